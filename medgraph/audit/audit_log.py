"""
Audit log of processed queries and user feedback, with compliance reporting
and CSV export.
"""

import csv
import json
import logging
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional

from ..engine.models import QueryResult
from ..kg.graph_store import GraphStoreAdapter
from ..kg.models import NodeType
from .models import QueryRecord, FeedbackRecord

logger = logging.getLogger(__name__)


CSV_HEADER = [
    "ID",
    "Timestamp",
    "Query",
    "Response Preview",
    "Nodes Visited",
    "Traversal Hops",
    "Latency (ms)",
    "Evaluation Score",
    "Hallucination Detected",
    "Hallucination Confidence",
    "Compliance Regulations",
]

THUMBS_VALUES = ("up", "down")
CORRECTNESS_VALUES = ("correct", "partially_correct", "incorrect")


class AuditLog:
    """Persistent storage for query audit records."""

    def __init__(self, storage_path: Path):
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)

        self.records_file = self.storage_path / "queries.json"
        self.feedback_file = self.storage_path / "feedback.json"
        self.records: List[QueryRecord] = []
        self.feedback: List[FeedbackRecord] = []

        self._load_records()
        self._load_feedback()

    def _load_records(self):
        """Load records from persistent storage."""
        try:
            if self.records_file.exists():
                with open(self.records_file, 'r') as f:
                    records_data = json.load(f)

                self.records = [QueryRecord(**record_data) for record_data in records_data]
                logger.info(f"Loaded {len(self.records)} audit records from storage")
            else:
                logger.info("No existing audit records found, starting with empty log")

        except Exception as e:
            logger.error(f"Failed to load audit records: {e}")
            self.records = []

    def _load_feedback(self):
        try:
            if self.feedback_file.exists():
                with open(self.feedback_file, 'r') as f:
                    self.feedback = [FeedbackRecord(**data) for data in json.load(f)]
                logger.info(f"Loaded {len(self.feedback)} feedback entries from storage")
        except Exception as e:
            logger.error(f"Failed to load feedback: {e}")
            self.feedback = []

    def _save_feedback(self):
        try:
            with open(self.feedback_file, 'w') as f:
                json.dump([asdict(entry) for entry in self.feedback], f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save feedback: {e}")

    def _save_records(self):
        """Save records to persistent storage."""
        try:
            with open(self.records_file, 'w') as f:
                json.dump([asdict(record) for record in self.records], f, indent=2)

            logger.debug(f"Saved {len(self.records)} audit records to storage")

        except OSError as e:
            logger.error(f"Failed to save audit records: {e}")

    def record(self, result: QueryResult) -> QueryRecord:
        """Append a processed query to the log."""
        record = QueryRecord(
            id=result.request_id,
            created_at=datetime.now(timezone.utc).isoformat(),
            query=result.query,
            response=result.response,
            nodes_visited=list(result.nodes_visited),
            traversal_path=[asdict(entry) for entry in result.traversal_path],
            retrieval_latency_ms=result.retrieval_latency_ms,
            evaluation_score=result.evaluation_score,
            hallucination_detected=result.hallucination_detected,
            hallucination_confidence=result.hallucination_confidence,
            hallucination_violations=list(result.hallucination_violations),
        )
        self.records.append(record)
        self._save_records()
        return record

    def get_all(self) -> List[QueryRecord]:
        return self.records.copy()

    def get_recent(self, limit: int = 10) -> List[QueryRecord]:
        """Most recent records first."""
        return list(reversed(self.records))[:limit]

    def get_record(self, query_id: str) -> Optional[QueryRecord]:
        for record in self.records:
            if record.id == query_id:
                return record
        return None

    def record_feedback(
        self,
        query_id: str,
        rating: Optional[int] = None,
        thumbs: Optional[str] = None,
        correctness: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> FeedbackRecord:
        """
        Attach user feedback to a recorded query.

        Raises:
            ValueError: If the query is unknown, a field is out of range, or
                no feedback value is given at all
        """
        if self.get_record(query_id) is None:
            raise ValueError(f"Unknown query id: {query_id}")
        if rating is not None and not 1 <= rating <= 5:
            raise ValueError(f"Rating must be between 1 and 5, got {rating}")
        if thumbs is not None and thumbs not in THUMBS_VALUES:
            raise ValueError(f"Thumbs must be one of {', '.join(THUMBS_VALUES)}")
        if correctness is not None and correctness not in CORRECTNESS_VALUES:
            raise ValueError(f"Correctness must be one of {', '.join(CORRECTNESS_VALUES)}")
        if rating is None and thumbs is None and correctness is None and not comment:
            raise ValueError("Feedback needs a rating, thumbs, correctness or comment")

        entry = FeedbackRecord(
            id=str(uuid.uuid4()),
            query_id=query_id,
            created_at=datetime.now(timezone.utc).isoformat(),
            rating=rating,
            thumbs=thumbs,
            correctness=correctness,
            comment=comment,
        )
        self.feedback.append(entry)
        self._save_feedback()
        logger.info(f"Recorded feedback {entry.id} for query {query_id}")
        return entry

    def get_feedback(self) -> List[FeedbackRecord]:
        return self.feedback.copy()

    def knowledge_gaps(self) -> List[Dict[str, Any]]:
        """Queries with negative feedback, most frequently criticised first."""
        counts: Dict[str, int] = {}
        for entry in self.feedback:
            if not entry.is_negative():
                continue
            record = self.get_record(entry.query_id)
            query = record.query if record is not None else "Unknown query"
            counts[query] = counts.get(query, 0) + 1

        return [
            {"query": query, "frequency": frequency}
            for query, frequency in sorted(counts.items(), key=lambda item: item[1], reverse=True)
        ]

    def feedback_analysis(self) -> Dict[str, Any]:
        """Feedback joined with its queries, plus the knowledge gap ranking."""
        feedback_list = []
        for entry in self.feedback:
            record = self.get_record(entry.query_id)
            item = asdict(entry)
            item["query"] = record.query if record is not None else "Unknown query"
            item["response"] = record.response if record is not None else None
            item["evaluation_score"] = record.evaluation_score if record is not None else None
            feedback_list.append(item)

        return {
            "total_feedback": len(self.feedback),
            "negative_feedback": sum(1 for entry in self.feedback if entry.is_negative()),
            "feedback_list": feedback_list,
            "knowledge_gaps": self.knowledge_gaps(),
        }

    def metrics_summary(self) -> Dict[str, Any]:
        """Aggregate quality metrics over all recorded queries."""
        total = len(self.records)
        if total == 0:
            return {
                "total_queries": 0,
                "avg_evaluation_score": 0.0,
                "avg_latency_ms": 0.0,
                "hallucination_rate": 0.0,
                "user_satisfaction": 0.0,
            }

        avg_evaluation_score = sum(r.evaluation_score for r in self.records) / total
        if self.feedback:
            user_satisfaction = sum(1 for entry in self.feedback if entry.is_positive()) / len(self.feedback)
        else:
            # Estimated from answer quality until users rate anything
            user_satisfaction = min(0.95, avg_evaluation_score + 0.05)

        return {
            "total_queries": total,
            "avg_evaluation_score": avg_evaluation_score,
            "avg_latency_ms": sum(r.retrieval_latency_ms for r in self.records) / total,
            "hallucination_rate": sum(1 for r in self.records if r.hallucination_detected) / total,
            "user_satisfaction": user_satisfaction,
        }

    def _compliance_nodes(self, record: QueryRecord, graph_store: GraphStoreAdapter) -> List[Dict[str, str]]:
        nodes = []
        for node_id in record.nodes_visited:
            node = graph_store.get_node(node_id)
            if node is not None and node.type == NodeType.REGULATION:
                nodes.append({"id": node.id, "label": node.label, "content": node.content})
        return nodes

    def compliance_report(self, graph_store: GraphStoreAdapter) -> Dict[str, Any]:
        """Per-query audit report listing the regulations each answer relied on."""
        queries = []
        for record in self.records:
            entry = asdict(record)
            entry["compliance_nodes"] = self._compliance_nodes(record, graph_store)
            queries.append(entry)

        return {
            "total_queries": len(queries),
            "report_generated_at": datetime.now(timezone.utc).isoformat(),
            "queries": queries,
        }

    def export_csv(self, filepath: str, graph_store: GraphStoreAdapter) -> int:
        """Write the audit log as CSV; returns the number of rows written."""
        with open(filepath, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            for record in self.records:
                regulations = "; ".join(
                    f"{node['label']} ({node['id']})"
                    for node in self._compliance_nodes(record, graph_store)
                )
                writer.writerow([
                    record.id,
                    record.created_at,
                    record.query,
                    record.response[:100].replace("\n", " "),
                    len(record.nodes_visited),
                    len(record.traversal_path),
                    record.retrieval_latency_ms,
                    record.evaluation_score,
                    record.hallucination_detected,
                    record.hallucination_confidence,
                    regulations,
                ])

        logger.info(f"Exported {len(self.records)} audit records to {filepath}")
        return len(self.records)
