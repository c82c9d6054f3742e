#!/usr/bin/env python3
"""
MedGraph Support Query System - Graph-Grounded Retrieval
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.panel import Panel

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

# Setup logger
logger = logging.getLogger(__name__)

from medgraph.audit.audit_log import AuditLog
from medgraph.engine.models import EmptyQueryError, QueryResult
from medgraph.engine.retrieval_engine import GraphRetrievalEngine
from medgraph.kg.graph_store import GraphStore, edge_id_for
from medgraph.kg.models import Node, Edge, NodeType
from medgraph.kg.seed_data import seed_graph
from medgraph.models.llm_manager import LLMManager


def load_env_file():
    """Load environment variables from .env file if it exists."""
    env_file = Path(".env")
    if env_file.exists():
        with open(env_file, 'r') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    os.environ[key] = value


def load_config(config_path: str = "config/config.yaml") -> dict:
    """Load configuration from YAML file."""
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        return config
    except FileNotFoundError:
        print(f"❌ Configuration file not found: {config_path}")
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"❌ Error parsing configuration file: {e}")
        sys.exit(1)


def setup_logging(config: dict):
    """Setup logging configuration."""
    log_config = config.get("logging", {})
    log_level = getattr(logging, log_config.get("level", "INFO"))
    log_format = log_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Create logs directory if it doesn't exist
    log_file = log_config.get("file", "logs/medgraph.log")
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


class MedGraphSystem:
    """Main MedGraph support query system."""

    def __init__(self, config: dict):
        self.config = config
        self.console = Console()

        storage_config = config.get("storage", {})
        self.graph_store = GraphStore(Path(storage_config.get("graph_path", "data/graph")))
        if storage_config.get("seed_default_graph", True):
            seed_graph(self.graph_store)
        self.audit_log = AuditLog(Path(storage_config.get("audit_path", "data/audit")))

        self.llm_manager = LLMManager(config)
        self.engine = GraphRetrievalEngine(config, self.graph_store, self.llm_manager)

        self.debug_mode = config.get("debug", {}).get("enabled", False)

    async def query(self, user_query: str, debug: bool = False) -> QueryResult:
        """
        Process a user query and record it in the audit log.

        Args:
            user_query: The user's natural language query
            debug: Whether to enable debug mode

        Returns:
            QueryResult with response and traversal audit trail
        """
        debug = debug or self.debug_mode

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console
        ) as progress:
            task = progress.add_task("Traversing knowledge graph...", total=None)
            result = await self.engine.process_query(user_query, debug=debug)
            progress.update(task, description=f"Visited {len(result.nodes_visited)} nodes")

        self.audit_log.record(result)
        return result

    def display_result(self, result: QueryResult, debug: bool = False):
        """Display query results in a formatted way."""
        steps_table = Table(title="Knowledge Graph Traversal")
        steps_table.add_column("#", style="dim")
        steps_table.add_column("Node", style="cyan")
        steps_table.add_column("Type", style="magenta")
        steps_table.add_column("Depth", style="white")
        steps_table.add_column("Score", style="green")
        steps_table.add_column("Reason", style="white")

        for i, step in enumerate(result.steps, start=1):
            steps_table.add_row(
                str(i),
                f"{step.node_label} ({step.node_id})",
                step.node_type,
                str(step.depth),
                f"{step.score:.3f}",
                step.reason
            )

        self.console.print(steps_table)

        answer_panel = Panel(
            result.response,
            title="[bold blue]Answer[/bold blue]",
            border_style="blue"
        )
        self.console.print(answer_panel)

        quality_table = Table(title="Response Quality")
        quality_table.add_column("Metric", style="cyan")
        quality_table.add_column("Value", style="white")

        quality_table.add_row("Evaluation Score", f"{result.evaluation_score:.2f}")
        quality_table.add_row("Retrieval Latency", f"{result.retrieval_latency_ms}ms")
        quality_table.add_row("Response Source", result.response_source)
        quality_table.add_row(
            "Hallucination Detected",
            "[red]Yes[/red]" if result.hallucination_detected else "[green]No[/green]"
        )
        quality_table.add_row("Grounding Confidence", f"{result.hallucination_confidence:.2f}")

        self.console.print(quality_table)

        if result.hallucination_violations and (debug or result.hallucination_detected):
            self.console.print("\n[red]Ungrounded terms:[/red]")
            for violation in result.hallucination_violations:
                self.console.print(f"  • {violation}")

        self.console.print(f"[dim]Request ID: {result.request_id} (use it with the feedback command)[/dim]")

    def show_stats(self):
        """Display system statistics."""
        graph_stats = self.graph_store.get_stats()
        metrics = self.audit_log.metrics_summary()

        graph_table = Table(title="Knowledge Graph Statistics")
        graph_table.add_column("Metric", style="cyan")
        graph_table.add_column("Value", style="white")

        graph_table.add_row("Total Nodes", str(graph_stats["total_nodes"]))
        graph_table.add_row("Total Edges", str(graph_stats["total_edges"]))
        for node_type, count in sorted(graph_stats["node_types"].items()):
            graph_table.add_row(f"  {node_type}", str(count))
        graph_table.add_row("Relationship Types", ", ".join(graph_stats["relationship_types"]))

        metrics_table = Table(title="Query Metrics")
        metrics_table.add_column("Metric", style="cyan")
        metrics_table.add_column("Value", style="white")

        metrics_table.add_row("Total Queries", str(metrics["total_queries"]))
        metrics_table.add_row("Avg Evaluation Score", f"{metrics['avg_evaluation_score']:.2f}")
        metrics_table.add_row("Avg Latency", f"{metrics['avg_latency_ms']:.1f}ms")
        metrics_table.add_row("Hallucination Rate", f"{metrics['hallucination_rate']:.1%}")
        metrics_table.add_row("User Satisfaction", f"{metrics['user_satisfaction']:.1%}")
        metrics_table.add_row("LLM Providers", ", ".join(self.llm_manager.get_available_providers()) or "none (template fallback)")

        self.console.print(graph_table)
        self.console.print(metrics_table)

    def show_audit(self, limit: int = 10):
        """Display the most recent audit records."""
        table = Table(title="Audit Trail")
        table.add_column("Timestamp", style="dim")
        table.add_column("Query", style="cyan")
        table.add_column("Nodes", style="white")
        table.add_column("Latency", style="white")
        table.add_column("Score", style="green")
        table.add_column("Hallucination", style="red")

        for record in self.audit_log.get_recent(limit):
            table.add_row(
                record.created_at,
                record.query,
                str(len(record.nodes_visited)),
                f"{record.retrieval_latency_ms}ms",
                f"{record.evaluation_score:.2f}",
                "Yes" if record.hallucination_detected else "No"
            )

        self.console.print(table)

    async def interactive_mode(self):
        """Run the system in interactive mode."""
        self.console.print(Panel(
            "[bold blue]MedGraph Support Query System[/bold blue]\n"
            "Ask questions about medical device errors, symptoms and procedures.\n"
            "Type 'quit' to exit, 'stats' for system statistics, 'help' for commands.",
            border_style="blue"
        ))

        while True:
            try:
                query = click.prompt("\nQuery")

                if query.lower() in ['quit', 'exit', 'q']:
                    break
                elif query.lower() == 'stats':
                    self.show_stats()
                    continue
                elif query.lower() == 'help':
                    self.console.print("""
                    [bold]Available Commands:[/bold]
                    • Ask any question about a device, error code or symptom
                    • 'stats' - Show system statistics
                    • 'help' - Show this help message
                    • 'quit' - Exit the system
                    """)
                    continue
                elif not query.strip():
                    continue

                result = await self.query(query, debug=self.debug_mode)
                self.display_result(result, debug=self.debug_mode)

            except KeyboardInterrupt:
                self.console.print("\n[yellow]Exiting...[/yellow]")
                break
            except EmptyQueryError as e:
                self.console.print(f"[red]Error: {e}[/red]")


@click.group()
@click.option('--config', '-c', default='config/config.yaml', help='Configuration file path')
@click.option('--debug', '-d', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, config, debug):
    """MedGraph Support Query System CLI."""
    # Load environment variables first
    load_env_file()

    ctx.ensure_object(dict)
    ctx.obj['config'] = load_config(config)
    ctx.obj['debug'] = debug

    setup_logging(ctx.obj['config'])

    if debug:
        ctx.obj['config'].setdefault('debug', {})['enabled'] = True


@cli.command()
@click.argument('query')
@click.option('--json', 'as_json', is_flag=True, help='Print the raw result bundle as JSON')
@click.pass_context
def query(ctx, query, as_json):
    """Ask a support question."""
    system = MedGraphSystem(ctx.obj['config'])

    async def run_query():
        result = await system.query(query, debug=ctx.obj['debug'])
        if as_json:
            click.echo(json.dumps(result.to_dict(), indent=2))
        else:
            system.display_result(result, debug=ctx.obj['debug'])

    try:
        asyncio.run(run_query())
    except EmptyQueryError as e:
        system.console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def interactive(ctx):
    """Start interactive query mode."""
    system = MedGraphSystem(ctx.obj['config'])
    asyncio.run(system.interactive_mode())


@cli.command()
@click.pass_context
def stats(ctx):
    """Show system statistics."""
    system = MedGraphSystem(ctx.obj['config'])
    system.show_stats()


@cli.command()
@click.option('--force', is_flag=True, help='Replace the current graph with the default one')
@click.pass_context
def seed(ctx, force):
    """Load the default medical device knowledge graph."""
    storage_config = ctx.obj['config'].get("storage", {})
    store = GraphStore(Path(storage_config.get("graph_path", "data/graph")))

    console = Console()
    if seed_graph(store, force=force):
        console.print(f"[green]✅ Seeded graph with {len(store.nodes)} nodes and {len(store.edges)} edges[/green]")
    else:
        console.print("[yellow]Graph already populated. Use --force to replace it.[/yellow]")


@cli.command()
@click.argument('node_id')
@click.argument('node_type', type=click.Choice([t.value for t in NodeType]))
@click.argument('label')
@click.argument('content')
@click.pass_context
def add_node(ctx, node_id, node_type, label, content):
    """Add or replace a knowledge graph node."""
    system = MedGraphSystem(ctx.obj['config'])
    system.graph_store.add_node(Node(id=node_id, type=node_type, label=label, content=content))
    system.console.print(f"[green]✅ Node {node_id} saved[/green]")


@cli.command()
@click.argument('source_id')
@click.argument('target_id')
@click.argument('relationship')
@click.option('--weight', '-w', default=1.0, type=click.FloatRange(0.0, 1.0), help='Edge weight in [0, 1]')
@click.option('--edge-id', default=None, help='Edge identifier (defaults to SOURCE-TARGET)')
@click.pass_context
def add_edge(ctx, source_id, target_id, relationship, weight, edge_id):
    """Add or replace a weighted relationship between two nodes."""
    system = MedGraphSystem(ctx.obj['config'])
    for node_id in (source_id, target_id):
        if system.graph_store.get_node(node_id) is None:
            system.console.print(f"[yellow]Warning: node {node_id} does not exist yet[/yellow]")

    edge = Edge(
        id=edge_id or edge_id_for(source_id, target_id),
        source_id=source_id,
        target_id=target_id,
        relationship_type=relationship,
        weight=weight
    )
    system.graph_store.add_edge(edge)
    system.console.print(f"[green]✅ Edge {edge.id} saved[/green]")


@cli.command()
@click.option('--type', 'node_type', type=click.Choice([t.value for t in NodeType]), default=None,
              help='Only list nodes of this type')
@click.pass_context
def list_nodes(ctx, node_type):
    """List knowledge graph nodes."""
    system = MedGraphSystem(ctx.obj['config'])
    if node_type:
        nodes = system.graph_store.get_nodes_by_type(node_type)
    else:
        nodes = system.graph_store.get_all_nodes()

    table = Table(title="Knowledge Graph Nodes")
    table.add_column("ID", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Label", style="white")
    table.add_column("Outgoing", style="green")

    for node in nodes:
        table.add_row(node.id, node.type.value, node.label, str(len(system.graph_store.get_edges_from_node(node.id))))

    system.console.print(table)


@cli.command()
@click.argument('node_id')
@click.option('--type', 'node_type', type=click.Choice([t.value for t in NodeType]), default=None, help='New node type')
@click.option('--label', default=None, help='New label')
@click.option('--content', default=None, help='New content')
@click.pass_context
def update_node(ctx, node_id, node_type, label, content):
    """Update fields of an existing node."""
    system = MedGraphSystem(ctx.obj['config'])
    updates = {key: value for key, value in [("type", node_type), ("label", label), ("content", content)] if value is not None}
    if not updates:
        system.console.print("[yellow]Nothing to update. Pass --type, --label or --content.[/yellow]")
        return

    if system.graph_store.update_node(node_id, **updates) is None:
        system.console.print(f"[red]❌ Node {node_id} not found[/red]")
        sys.exit(1)
    system.console.print(f"[green]✅ Node {node_id} updated[/green]")


@cli.command()
@click.argument('node_id')
@click.confirmation_option(prompt='Delete the node and all of its relationships?')
@click.pass_context
def delete_node(ctx, node_id):
    """Delete a node together with its relationships."""
    system = MedGraphSystem(ctx.obj['config'])
    if not system.graph_store.delete_node(node_id):
        system.console.print(f"[red]❌ Node {node_id} not found[/red]")
        sys.exit(1)
    system.console.print(f"[green]✅ Node {node_id} deleted[/green]")


@cli.command()
@click.argument('edge_id')
@click.pass_context
def delete_edge(ctx, edge_id):
    """Delete a relationship."""
    system = MedGraphSystem(ctx.obj['config'])
    if not system.graph_store.delete_edge(edge_id):
        system.console.print(f"[red]❌ Edge {edge_id} not found[/red]")
        sys.exit(1)
    system.console.print(f"[green]✅ Edge {edge_id} deleted[/green]")


@cli.command()
@click.argument('file_path')
@click.pass_context
def export_graph(ctx, file_path):
    """Export the knowledge graph to a JSON file."""
    system = MedGraphSystem(ctx.obj['config'])
    system.graph_store.export_graph(file_path)
    system.console.print(f"[green]✅ Graph exported to {file_path}[/green]")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_graph(ctx, file_path):
    """Import nodes and edges from a JSON export, replacing matching ids."""
    system = MedGraphSystem(ctx.obj['config'])
    try:
        system.graph_store.import_graph(file_path)
    except (json.JSONDecodeError, KeyError, ValueError) as e:
        system.console.print(f"[red]❌ Invalid graph file: {e}[/red]")
        sys.exit(1)
    stats = system.graph_store.get_stats()
    system.console.print(f"[green]✅ Graph now has {stats['total_nodes']} nodes and {stats['total_edges']} edges[/green]")


@cli.command()
@click.option('--limit', '-n', default=10, help='Number of records to show')
@click.pass_context
def audit(ctx, limit):
    """Show the most recent queries from the audit trail."""
    system = MedGraphSystem(ctx.obj['config'])
    system.show_audit(limit)


@cli.command()
@click.option('--output', '-o', default=None, help='Write the report to a JSON file')
@click.pass_context
def compliance_report(ctx, output):
    """Generate the compliance report of all recorded queries."""
    system = MedGraphSystem(ctx.obj['config'])
    report = system.audit_log.compliance_report(system.graph_store)

    if output:
        with open(output, 'w') as f:
            json.dump(report, f, indent=2)
        system.console.print(f"[green]✅ Report with {report['total_queries']} queries written to {output}[/green]")
    else:
        click.echo(json.dumps(report, indent=2))


@cli.command()
@click.argument('file_path', required=False, default='medgraph-audit-logs.csv')
@click.pass_context
def export_csv(ctx, file_path):
    """Export the audit trail as CSV."""
    system = MedGraphSystem(ctx.obj['config'])
    rows = system.audit_log.export_csv(file_path, system.graph_store)
    system.console.print(f"[green]✅ Exported {rows} records to {file_path}[/green]")


@cli.command()
@click.argument('query_id')
@click.option('--rating', '-r', type=click.IntRange(1, 5), default=None, help='Rating from 1 to 5')
@click.option('--thumbs', type=click.Choice(['up', 'down']), default=None, help='Thumbs up or down')
@click.option('--correctness', type=click.Choice(['correct', 'partially_correct', 'incorrect']), default=None,
              help='Whether the answer was correct')
@click.option('--comment', default=None, help='Free-text comment')
@click.pass_context
def feedback(ctx, query_id, rating, thumbs, correctness, comment):
    """Leave feedback on the answer to a recorded query."""
    system = MedGraphSystem(ctx.obj['config'])
    try:
        entry = system.audit_log.record_feedback(
            query_id, rating=rating, thumbs=thumbs, correctness=correctness, comment=comment
        )
    except ValueError as e:
        system.console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)
    system.console.print(f"[green]✅ Feedback {entry.id} recorded[/green]")


@cli.command()
@click.pass_context
def knowledge_gaps(ctx):
    """Show queries that received negative feedback, most frequent first."""
    system = MedGraphSystem(ctx.obj['config'])
    analysis = system.audit_log.feedback_analysis()

    table = Table(title="Knowledge Gaps")
    table.add_column("Query", style="cyan")
    table.add_column("Negative Feedback", style="red")

    for gap in analysis["knowledge_gaps"]:
        table.add_row(gap["query"], str(gap["frequency"]))

    system.console.print(table)
    system.console.print(
        f"{analysis['negative_feedback']} of {analysis['total_feedback']} feedback entries were negative"
    )


if __name__ == "__main__":
    cli()
