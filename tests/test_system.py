"""
Tests for the MedGraph Support Query System.
"""

import pytest
import asyncio
import csv
import json
import time
from unittest.mock import Mock, patch, AsyncMock
from pathlib import Path

import yaml
from click.testing import CliRunner

# Add project root to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from medgraph.audit.audit_log import AuditLog, CSV_HEADER
from medgraph.engine.composer import NO_RESULTS_RESPONSE
from medgraph.engine.models import EmptyQueryError, QueryResult, TraversalPathEntry
from medgraph.engine.retrieval_engine import GraphRetrievalEngine
from medgraph.kg.graph_store import GraphStore, edge_id_for
from medgraph.kg.models import Node, Edge, NodeType
from medgraph.kg.seed_data import seed_graph, default_nodes, default_edges
from medgraph.models.llm_manager import LLMManager, LLMConfig, LLMProviderError


SCENARIO_QUERY = "Why is the Horizon X2 ventilator showing error code E-203?"


class UnreliableStore:
    """Delegates to a real store but fails one read method after some calls."""

    def __init__(self, store, failing, fail_after=0):
        self.store = store
        self.failing = failing
        self.remaining = fail_after

    def __getattr__(self, name):
        method = getattr(self.store, name)
        if name != self.failing:
            return method

        def flaky(*args, **kwargs):
            if self.remaining <= 0:
                raise OSError("store read failed")
            self.remaining -= 1
            return method(*args, **kwargs)

        return flaky


@pytest.fixture
def seeded_store(tmp_path):
    store = GraphStore(tmp_path / "graph")
    seed_graph(store)
    return store


class TestLLMManager:
    """Test LLM Manager functionality."""

    @pytest.fixture
    def config(self):
        return {
            "llm": {
                "default_provider": "openai",
                "openai": {
                    "api_key": "test_key",
                    "model": "gpt-4o-mini",
                    "temperature": 0.1,
                    "max_tokens": 500
                }
            }
        }

    @pytest.fixture
    def llm_manager(self, config):
        with patch('openai.AsyncOpenAI') as mock_client:
            mock_client.return_value = Mock()
            return LLMManager(config)

    def test_initialization(self, llm_manager):
        """Test LLM manager initialization."""
        assert "openai" in llm_manager.providers
        assert llm_manager.providers["openai"].config.temperature == 0.1

    @pytest.mark.asyncio
    async def test_generate(self, llm_manager):
        """Test text generation."""
        mock_response = Mock()
        mock_response.choices = [Mock()]
        mock_response.choices[0].message.content = "Test response"

        create = AsyncMock(return_value=mock_response)
        llm_manager.providers["openai"].client.chat.completions.create = create

        result = await llm_manager.generate("Test prompt", system_prompt="Be brief")
        assert result == "Test response"

        messages = create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "Be brief"}
        assert messages[1] == {"role": "user", "content": "Test prompt"}

    @pytest.mark.asyncio
    async def test_empty_response_raises(self, llm_manager):
        mock_response = Mock()
        mock_response.choices = [Mock()]
        mock_response.choices[0].message.content = ""
        llm_manager.providers["openai"].client.chat.completions.create = AsyncMock(return_value=mock_response)

        with pytest.raises(LLMProviderError):
            await llm_manager.generate("Test prompt")

    @pytest.mark.asyncio
    async def test_provider_failure_wrapped(self, llm_manager):
        llm_manager.providers["openai"].client.chat.completions.create = AsyncMock(
            side_effect=RuntimeError("rate limited")
        )

        with pytest.raises(LLMProviderError, match="rate limited"):
            await llm_manager.generate("Test prompt")

    def test_get_available_providers(self, llm_manager):
        """Test getting available providers."""
        assert llm_manager.get_available_providers() == ["openai"]

    @pytest.mark.asyncio
    async def test_unknown_provider(self, llm_manager):
        with pytest.raises(LLMProviderError):
            await llm_manager.generate("Test prompt", provider="anthropic")

    @pytest.mark.asyncio
    async def test_default_falls_back_to_available(self, config):
        config["llm"]["default_provider"] = "gemini"
        with patch('openai.AsyncOpenAI') as mock_client:
            mock_client.return_value = Mock()
            manager = LLMManager(config)

        manager.providers["openai"].generate = AsyncMock(return_value="from openai")
        assert await manager.generate("Test prompt") == "from openai"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        manager = LLMManager({"llm": {"openai": {"api_key": "${OPENAI_API_KEY}"}}})

        assert manager.get_available_providers() == []
        with pytest.raises(LLMProviderError, match="No LLM provider available"):
            await manager.generate("Test prompt")

    def test_env_var_resolution(self, monkeypatch):
        monkeypatch.setenv("MEDGRAPH_TEST_KEY", "secret")
        assert LLMConfig(provider="openai", model="m", api_key="${MEDGRAPH_TEST_KEY}").api_key == "secret"

        monkeypatch.delenv("MEDGRAPH_TEST_KEY")
        assert LLMConfig(provider="openai", model="m", api_key="${MEDGRAPH_TEST_KEY}").api_key is None


class TestGraphStore:
    """Test Graph Store functionality."""

    @pytest.fixture
    def store(self, tmp_path):
        return GraphStore(tmp_path / "graph")

    def test_add_and_reload(self, store):
        """Nodes and edges persist across store instances."""
        store.add_node(Node(id="DEV-9", type="device", label="Test Device", content="A device"))
        store.add_node(Node(id="SYM-9", type=NodeType.SYMPTOM, label="Test Symptom", content="A symptom"))
        store.add_edge(Edge(id=edge_id_for("DEV-9", "SYM-9"), source_id="DEV-9", target_id="SYM-9",
                            relationship_type="exhibits", weight=0.7))

        reloaded = GraphStore(store.storage_path)
        assert reloaded.get_node("DEV-9").type == NodeType.DEVICE
        assert reloaded.get_edge("DEV-9-SYM-9").weight == 0.7
        assert [edge.target_id for edge in reloaded.get_edges_from_node("DEV-9")] == ["SYM-9"]

    def test_edge_weight_validation(self):
        with pytest.raises(ValueError):
            Edge(id="A-B", source_id="A", target_id="B", relationship_type="exhibits", weight=1.5)
        with pytest.raises(ValueError):
            Edge(id="A-B", source_id="A", target_id="B", relationship_type="exhibits", weight=-0.1)

    def test_delete_node_cascades(self, seeded_store):
        assert seeded_store.delete_node("SYM-001") is True

        assert seeded_store.get_node("SYM-001") is None
        assert all(
            "SYM-001" not in (edge.source_id, edge.target_id)
            for edge in seeded_store.get_all_edges()
        )
        assert seeded_store.get_edge("SOL-001-REG-001") is not None
        assert seeded_store.delete_node("SYM-001") is False

    def test_update_node(self, seeded_store):
        node = seeded_store.update_node("DEV-004", content="Updated content", id="IGNORED")
        assert node.id == "DEV-004"
        assert GraphStore(seeded_store.storage_path).get_node("DEV-004").content == "Updated content"
        assert seeded_store.update_node("NOPE", content="x") is None

    def test_stats(self, seeded_store):
        stats = seeded_store.get_stats()

        assert stats["total_nodes"] == 18
        assert stats["total_edges"] == 18
        assert stats["node_types"] == {
            "device": 4, "symptom": 5, "solution": 5, "regulation": 2, "procedure": 2
        }
        assert "solved_by" in stats["relationship_types"]

    def test_seed_is_idempotent(self, seeded_store):
        seeded_store.add_node(Node(id="EXTRA", type="device", label="Extra", content=""))

        assert seed_graph(seeded_store) is False
        assert seeded_store.get_node("EXTRA") is not None

        assert seed_graph(seeded_store, force=True) is True
        assert seeded_store.get_node("EXTRA") is None
        assert len(seeded_store.get_all_nodes()) == len(default_nodes())

    def test_export_import(self, seeded_store, tmp_path):
        export_file = tmp_path / "graph.json"
        seeded_store.export_graph(str(export_file))

        other = GraphStore(tmp_path / "other")
        other.import_graph(str(export_file))
        assert len(other.get_all_nodes()) == 18
        assert [edge.id for edge in other.get_all_edges()] == [edge.id for edge in default_edges()]

    def test_corrupt_storage(self, tmp_path):
        graph_dir = tmp_path / "graph"
        graph_dir.mkdir()
        (graph_dir / "nodes.json").write_text("{not json")

        store = GraphStore(graph_dir)
        assert store.get_all_nodes() == []


class TestAuditLog:
    """Test audit trail persistence and reporting."""

    @pytest.fixture
    def audit_log(self, tmp_path):
        return AuditLog(tmp_path / "audit")

    def make_result(self, request_id, nodes, score=1.0, latency=10, hallucinated=False):
        return QueryResult(
            request_id=request_id,
            query=f"query {request_id}",
            response="Line one\nLine two",
            nodes_visited=nodes,
            traversal_path=[TraversalPathEntry(node_id=n, score=1.0, timestamp_ms=0) for n in nodes],
            retrieval_latency_ms=latency,
            evaluation_score=score,
            hallucination_detected=hallucinated,
            hallucination_confidence=0.5 if hallucinated else 1.0,
            hallucination_violations=['Term "pump" not found in traversed knowledge graph nodes'] if hallucinated else [],
            steps=[],
        )

    def test_record_and_reload(self, audit_log):
        record = audit_log.record(self.make_result("req-1", ["DEV-001", "SYM-001"]))

        assert record.id == "req-1"
        assert record.traversal_path[0]["node_id"] == "DEV-001"

        reloaded = AuditLog(audit_log.storage_path)
        assert [r.id for r in reloaded.get_all()] == ["req-1"]
        assert reloaded.get_all()[0].nodes_visited == ["DEV-001", "SYM-001"]

    def test_recent_newest_first(self, audit_log):
        for i in range(3):
            audit_log.record(self.make_result(f"req-{i}", []))

        assert [r.id for r in audit_log.get_recent(2)] == ["req-2", "req-1"]

    def test_metrics_summary(self, audit_log):
        assert audit_log.metrics_summary()["total_queries"] == 0

        audit_log.record(self.make_result("a", [], score=1.0, latency=10))
        audit_log.record(self.make_result("b", [], score=0.5, latency=30, hallucinated=True))

        metrics = audit_log.metrics_summary()
        assert metrics["total_queries"] == 2
        assert metrics["avg_evaluation_score"] == pytest.approx(0.75)
        assert metrics["avg_latency_ms"] == pytest.approx(20.0)
        assert metrics["hallucination_rate"] == pytest.approx(0.5)

    def test_compliance_report(self, audit_log, seeded_store):
        audit_log.record(self.make_result("req-1", ["DEV-001", "SOL-001", "REG-001", "PROC-002"]))
        audit_log.record(self.make_result("req-2", ["DEV-004"]))

        report = audit_log.compliance_report(seeded_store)

        assert report["total_queries"] == 2
        assert "report_generated_at" in report
        first, second = report["queries"]
        assert [node["id"] for node in first["compliance_nodes"]] == ["REG-001"]
        assert second["compliance_nodes"] == []
        json.dumps(report)

    def test_export_csv(self, audit_log, seeded_store, tmp_path):
        audit_log.record(self.make_result("req-1", ["DEV-001", "REG-001"]))
        output = tmp_path / "audit.csv"

        assert audit_log.export_csv(str(output), seeded_store) == 1

        with open(output, newline='') as f:
            rows = list(csv.reader(f))
        assert rows[0] == CSV_HEADER
        assert rows[1][0] == "req-1"
        assert rows[1][3] == "Line one Line two"
        assert rows[1][4] == "2"
        assert rows[1][10] == "FDA 21 CFR 820.72 (REG-001)"

    def test_record_feedback_and_reload(self, audit_log):
        audit_log.record(self.make_result("req-1", ["DEV-001"]))

        entry = audit_log.record_feedback("req-1", rating=5, thumbs="up", comment="Fixed it")

        assert entry.query_id == "req-1"
        reloaded = AuditLog(audit_log.storage_path)
        assert [(f.id, f.rating, f.comment) for f in reloaded.get_feedback()] == [(entry.id, 5, "Fixed it")]

    def test_feedback_validation(self, audit_log):
        audit_log.record(self.make_result("req-1", []))

        with pytest.raises(ValueError, match="Unknown query id"):
            audit_log.record_feedback("missing", rating=3)
        with pytest.raises(ValueError):
            audit_log.record_feedback("req-1", rating=6)
        with pytest.raises(ValueError):
            audit_log.record_feedback("req-1", thumbs="sideways")
        with pytest.raises(ValueError):
            audit_log.record_feedback("req-1", correctness="mostly")
        with pytest.raises(ValueError):
            audit_log.record_feedback("req-1")
        assert audit_log.get_feedback() == []

    def test_knowledge_gaps(self, audit_log):
        for request_id in ["a", "b", "c"]:
            audit_log.record(self.make_result(request_id, []))

        audit_log.record_feedback("a", thumbs="down")
        audit_log.record_feedback("b", rating=2)
        audit_log.record_feedback("b", correctness="partially_correct")
        audit_log.record_feedback("c", rating=5, correctness="correct")

        assert audit_log.knowledge_gaps() == [
            {"query": "query b", "frequency": 2},
            {"query": "query a", "frequency": 1},
        ]

        analysis = audit_log.feedback_analysis()
        assert analysis["total_feedback"] == 4
        assert analysis["negative_feedback"] == 3
        assert analysis["feedback_list"][0]["query"] == "query a"
        assert analysis["feedback_list"][3]["evaluation_score"] == 1.0

    def test_user_satisfaction(self, audit_log):
        assert audit_log.metrics_summary()["user_satisfaction"] == 0.0

        audit_log.record(self.make_result("a", [], score=0.7))
        assert audit_log.metrics_summary()["user_satisfaction"] == pytest.approx(0.75)

        audit_log.record(self.make_result("b", [], score=1.0))
        assert audit_log.metrics_summary()["user_satisfaction"] == pytest.approx(0.9)

        audit_log.record_feedback("a", thumbs="up")
        audit_log.record_feedback("a", rating=4)
        audit_log.record_feedback("b", rating=3)
        audit_log.record_feedback("b", thumbs="down")
        assert audit_log.metrics_summary()["user_satisfaction"] == pytest.approx(0.5)


class TestGraphRetrievalEngine:
    """Test end-to-end query processing."""

    @pytest.fixture
    def config(self):
        return {
            "engine": {"max_depth": 3, "max_seeds": 3, "max_branching": 2, "generation_timeout": 5.0},
            "hallucination": {"confidence_threshold": 0.7, "max_violations": 3},
        }

    @pytest.fixture
    def small_store(self, tmp_path):
        store = GraphStore(tmp_path / "small")
        store.add_node(Node(id="DEV-001", type="device", label="Horizon X2 Ventilator",
                            content="Mechanical ventilator with alarm systems."), save=False)
        store.add_node(Node(id="SYM-001", type="symptom", label="Error Code E-203",
                            content="Pressure sensor calibration issue."), save=False)
        store.add_edge(Edge(id="DEV-001-SYM-001", source_id="DEV-001", target_id="SYM-001",
                            relationship_type="exhibits", weight=0.95), save=False)
        return store

    @pytest.fixture
    def llm_manager(self):
        return Mock(spec=LLMManager)

    @pytest.mark.asyncio
    async def test_scenario_with_template_fallback(self, config, seeded_store):
        """Without an LLM the template answer is grounded in the traversed nodes."""
        engine = GraphRetrievalEngine(config, seeded_store, LLMManager({"llm": {}}))

        result = await engine.process_query(SCENARIO_QUERY, request_id="req-1")

        assert result.request_id == "req-1"
        assert result.nodes_visited[:8] == [
            "DEV-001", "SYM-001", "SOL-001", "PROC-002", "REG-001", "SYM-002", "SOL-002", "PROC-001"
        ]
        scores = [entry.score for entry in result.traversal_path[:3]]
        assert scores == pytest.approx([1.0, 0.95, 0.855])
        assert result.response_source == "template"
        assert "**Device Identified:**" in result.response
        assert "Horizon X2 Ventilator" in result.response
        assert result.evaluation_score == pytest.approx(1.0)
        assert result.hallucination_detected is False
        assert result.hallucination_confidence == 1.0
        assert result.retrieval_latency_ms >= 0
        assert len(result.steps) == len(result.nodes_visited)
        json.dumps(result.to_dict())

    @pytest.mark.asyncio
    async def test_no_overlap_query(self, config, seeded_store, llm_manager):
        llm_manager.generate = AsyncMock(return_value="unused")
        engine = GraphRetrievalEngine(config, seeded_store, llm_manager)

        result = await engine.process_query("xylophone quartet rehearsal")

        assert result.nodes_visited == []
        assert result.traversal_path == []
        assert result.response == NO_RESULTS_RESPONSE
        assert result.response_source == "no_results"
        assert result.evaluation_score == pytest.approx(0.46)
        assert result.hallucination_detected is False
        llm_manager.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self, config, seeded_store):
        engine = GraphRetrievalEngine(config, seeded_store)

        for query in ["", "   ", None]:
            with pytest.raises(EmptyQueryError):
                await engine.process_query(query)
        assert engine.latest_traversal() is None

    @pytest.mark.asyncio
    async def test_grounded_llm_response(self, config, small_store, llm_manager):
        llm_manager.generate = AsyncMock(
            return_value="The Horizon X2 ventilator shows error E-203. Recalibrate the pressure sensor."
        )
        engine = GraphRetrievalEngine(config, small_store, llm_manager)

        result = await engine.process_query(SCENARIO_QUERY)

        assert result.response_source == "llm"
        assert result.hallucination_detected is False
        system_prompt = llm_manager.generate.call_args.kwargs["system_prompt"]
        assert "Horizon X2 Ventilator --[exhibits]--> Error Code E-203 (0.95)" in system_prompt
        assert "Followed 2 relationship-based hops" in system_prompt

    @pytest.mark.asyncio
    async def test_invented_terms_flagged(self, config, small_store, llm_manager):
        llm_manager.generate = AsyncMock(
            return_value="Replace the infusion pump and check the oxygen flow display."
        )
        engine = GraphRetrievalEngine(config, small_store, llm_manager)

        result = await engine.process_query(SCENARIO_QUERY)

        assert result.hallucination_detected is True
        assert result.hallucination_confidence == 0.0
        assert len(result.hallucination_violations) == 5

    @pytest.mark.asyncio
    async def test_generation_timeout_falls_back(self, config, small_store, llm_manager):
        async def slow_generate(*args, **kwargs):
            await asyncio.sleep(5)

        config["engine"]["generation_timeout"] = 0.01
        llm_manager.generate = slow_generate
        engine = GraphRetrievalEngine(config, small_store, llm_manager)

        result = await engine.process_query(SCENARIO_QUERY)

        assert result.response_source == "template"
        assert "**Issue Analysis:**" in result.response

    @pytest.mark.asyncio
    async def test_edge_lookup_failure_still_answers(self, config, seeded_store):
        """A store error while collecting relationships degrades the prompt context only."""
        store = UnreliableStore(seeded_store, failing="get_edges_from_node")
        engine = GraphRetrievalEngine(config, store, LLMManager({"llm": {}}))

        result = await engine.process_query(SCENARIO_QUERY)

        assert result.nodes_visited[:3] == ["DEV-001", "SYM-001", "SOL-001"]
        assert result.response_source == "template"
        assert "**Device Identified:**" in result.response

    @pytest.mark.asyncio
    async def test_edge_lookup_failure_prompt_context(self, config, small_store, llm_manager):
        llm_manager.generate = AsyncMock(return_value="Recalibrate the pressure sensor.")
        store = UnreliableStore(small_store, failing="get_edges_from_node")
        engine = GraphRetrievalEngine(config, store, llm_manager)

        result = await engine.process_query(SCENARIO_QUERY)

        assert result.response_source == "llm"
        system_prompt = llm_manager.generate.call_args.kwargs["system_prompt"]
        assert "No relationships among traversed nodes." in system_prompt

    @pytest.mark.asyncio
    async def test_unreadable_store_gives_no_results(self, config, seeded_store):
        store = UnreliableStore(seeded_store, failing="get_all_nodes")
        engine = GraphRetrievalEngine(config, store)

        result = await engine.process_query(SCENARIO_QUERY)

        assert result.nodes_visited == []
        assert result.response == NO_RESULTS_RESPONSE

    @pytest.mark.asyncio
    async def test_node_resolution_failure_gives_no_results(self, config, seeded_store):
        store = UnreliableStore(seeded_store, failing="get_node", fail_after=20)
        engine = GraphRetrievalEngine(config, store)

        result = await engine.process_query(SCENARIO_QUERY, request_id="req-1")

        assert result.nodes_visited == []
        assert result.traversal_path == []
        assert result.response_source == "no_results"
        assert engine.traversal_cache.get("req-1") == []

    @pytest.mark.asyncio
    async def test_slow_generation_does_not_serialize_queries(self, config, small_store, llm_manager):
        async def slow_generate(*args, **kwargs):
            await asyncio.sleep(0.3)
            return "Recalibrate the pressure sensor."

        llm_manager.generate = slow_generate
        engine = GraphRetrievalEngine(config, small_store, llm_manager)

        start = time.monotonic()
        results = await asyncio.gather(*[
            engine.process_query(SCENARIO_QUERY, request_id=f"req-{i}") for i in range(5)
        ])
        elapsed = time.monotonic() - start

        assert elapsed < 1.2
        assert [r.request_id for r in results] == [f"req-{i}" for i in range(5)]
        assert all(r.response_source == "llm" for r in results)
        assert len(engine.traversal_cache) == 5

    @pytest.mark.asyncio
    async def test_latest_traversal_per_request(self, config, seeded_store):
        engine = GraphRetrievalEngine(config, seeded_store)

        await engine.process_query(SCENARIO_QUERY, request_id="first")
        await engine.process_query("infusion pump flow rate", request_id="second")

        request_id, steps = engine.latest_traversal()
        assert request_id == "second"
        assert steps[0].node_id == "SYM-004"
        assert engine.traversal_cache.get("first")[0].node_id == "DEV-001"


class TestCLI:
    """Test the command line interface."""

    @pytest.fixture
    def config_file(self, tmp_path):
        config = {
            "llm": {},
            "storage": {
                "graph_path": str(tmp_path / "graph"),
                "audit_path": str(tmp_path / "audit"),
                "seed_default_graph": True,
            },
            "logging": {"level": "WARNING", "file": str(tmp_path / "logs" / "medgraph.log")},
        }
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config))
        return path

    def test_stats(self, config_file):
        from main import cli

        result = CliRunner().invoke(cli, ["--config", str(config_file), "stats"])

        assert result.exit_code == 0
        assert "Knowledge Graph Statistics" in result.output
        assert "18" in result.output

    def test_seed_reports_existing_graph(self, config_file):
        from main import cli

        runner = CliRunner()
        first = runner.invoke(cli, ["--config", str(config_file), "seed"])
        assert first.exit_code == 0
        assert "Seeded graph" in first.output

        second = runner.invoke(cli, ["--config", str(config_file), "seed"])
        assert "already populated" in second.output

    def test_graph_admin_commands(self, config_file, tmp_path):
        from main import cli

        runner = CliRunner()
        base = ["--config", str(config_file)]

        listed = runner.invoke(cli, base + ["list-nodes", "--type", "regulation"])
        assert listed.exit_code == 0
        assert "REG-001" in listed.output
        assert "DEV-001" not in listed.output

        updated = runner.invoke(cli, base + ["update-node", "DEV-004", "--label", "SurgiLite LED Pro"])
        assert updated.exit_code == 0
        assert GraphStore(tmp_path / "graph").get_node("DEV-004").label == "SurgiLite LED Pro"

        missing = runner.invoke(cli, base + ["update-node", "NOPE", "--label", "x"])
        assert missing.exit_code == 1

        assert runner.invoke(cli, base + ["delete-edge", "SYM-001-SYM-002"]).exit_code == 0
        assert runner.invoke(cli, base + ["delete-node", "SYM-003", "--yes"]).exit_code == 0
        store = GraphStore(tmp_path / "graph")
        assert store.get_edge("SYM-001-SYM-002") is None
        assert store.get_node("SYM-003") is None
        assert store.get_edge("SYM-003-SOL-003") is None

    def test_export_import_graph(self, config_file, tmp_path):
        from main import cli

        runner = CliRunner()
        export_file = tmp_path / "export.json"
        assert runner.invoke(cli, ["--config", str(config_file), "export-graph", str(export_file)]).exit_code == 0
        assert len(json.loads(export_file.read_text())["nodes"]) == 18

        other_config = yaml.safe_load(config_file.read_text())
        other_config["storage"]["graph_path"] = str(tmp_path / "imported")
        other_config["storage"]["seed_default_graph"] = False
        other_file = tmp_path / "other.yaml"
        other_file.write_text(yaml.safe_dump(other_config))

        result = runner.invoke(cli, ["--config", str(other_file), "import-graph", str(export_file)])
        assert result.exit_code == 0
        assert len(GraphStore(tmp_path / "imported").get_all_edges()) == 18

    def test_feedback_and_knowledge_gaps(self, config_file, tmp_path):
        from main import cli

        AuditLog(tmp_path / "audit").record(QueryResult(
            request_id="req-1",
            query="Why does the monitor flicker?",
            response="Check the display cable.",
            nodes_visited=["SYM-003"],
            traversal_path=[],
            retrieval_latency_ms=5,
            evaluation_score=0.8,
            hallucination_detected=False,
            hallucination_confidence=1.0,
            hallucination_violations=[],
            steps=[],
        ))

        runner = CliRunner()
        base = ["--config", str(config_file)]

        result = runner.invoke(cli, base + ["feedback", "req-1", "--thumbs", "down", "--correctness", "incorrect"])
        assert result.exit_code == 0
        assert "recorded" in result.output

        unknown = runner.invoke(cli, base + ["feedback", "req-9", "--rating", "4"])
        assert unknown.exit_code == 1

        gaps = runner.invoke(cli, base + ["knowledge-gaps"])
        assert gaps.exit_code == 0
        assert "Why does the monitor flicker?" in gaps.output
        assert "1 of 1 feedback entries were negative" in gaps.output
