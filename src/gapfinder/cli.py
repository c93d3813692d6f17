"""CLI entry point for gapfinder."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DEFAULT_CONFIG, load_config
from .errors import GapfinderError

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """gapfinder - Document Q&A that tells you what your documents are missing."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_config(ctx) -> dict:
    config = load_config(ctx.obj.get("config_path"))
    level = "DEBUG" if ctx.obj.get("verbose") else config.get("log_level", "INFO")
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )
    return config


def _stores(config):
    from .storage import get_file_store, get_record_store, get_vector_store

    records = get_record_store(config)
    return records, get_vector_store(config, records=records), get_file_store(config)


def _processor(config):
    from .embeddings.embedder import Embedder
    from .ingest.processor import DocumentProcessor
    from .llm import get_generator

    records, vectors, files = _stores(config)
    return DocumentProcessor(
        records, vectors, files, Embedder(config), generator=get_generator(config), config=config
    )


def _print_report(report):
    colour = "green" if report.status.value == "ready" else "red"
    console.print(f"[{colour}]✓ {report.document_id}: {report.status.value}, {report.chunk_count} chunk(s)[/]")
    if report.summary:
        console.print(f"  [dim]{report.summary}[/]")
    for w in report.warnings:
        console.print(f"  [yellow]skipped {w.step}: {w.message}[/]")


@cli.command()
@click.option("--path", default=None, help="Custom data directory")
@click.pass_context
def init(ctx, path):
    """Create the data directory, configuration and database."""
    import yaml

    from .storage.database import init_db, make_engine

    base = Path(path).expanduser().resolve() if path else Path("~/.gapfinder").expanduser()
    console.print(f"[bold green]Initializing gapfinder at {base}[/]")
    for d in ["files", "chroma"]:
        (base / d).mkdir(parents=True, exist_ok=True)

    config_file = base / "config.yaml"
    if not config_file.exists():
        cfg = {k: v for k, v in DEFAULT_CONFIG.items() if k != "email"}
        cfg["database_url"] = f"sqlite:///{base / 'gapfinder.db'}"
        cfg["files_path"] = str(base / "files")
        cfg["chroma_path"] = str(base / "chroma")
        header = (
            "# Claude API key for answers, summaries and labels (or set ANTHROPIC_API_KEY)\n"
            "# claude_api_key: sk-ant-your-key-here\n\n"
            "# Alert email through Resend (or set RESEND_API_KEY / EMAIL_FROM)\n"
            "# email:\n"
            "#   resend_api_key: re_your-key-here\n"
            '#   from: "Gapfinder <alerts@example.com>"\n\n'
        )
        config_file.write_text(header + yaml.dump(cfg, default_flow_style=False, sort_keys=False))
        console.print(f"  Created config: {config_file}")

    config = load_config(config_file)
    init_db(make_engine(config["database_url"]))
    console.print(f"  Database: {config['database_url']}")
    console.print("[bold green]✓ gapfinder initialized![/]")


@cli.command("add-tenant")
@click.argument("name")
@click.option("--slug", default=None, help="Short name used in links")
@click.pass_context
def add_tenant(ctx, name, slug):
    """Register a tenant."""
    from .storage import get_record_store

    tenant = get_record_store(_get_config(ctx)).add_tenant(name, slug=slug)
    console.print(f"[green]✓ Tenant {tenant.name}: {tenant.id}[/]")


@cli.command("add-operator")
@click.argument("tenant_id")
@click.option("--email", default=None)
@click.option("--name", default=None)
@click.pass_context
def add_operator(ctx, tenant_id, email, name):
    """Register an operator who receives knowledge-gap alerts."""
    from .storage import get_record_store

    records = get_record_store(_get_config(ctx))
    if records.get_tenant(tenant_id) is None:
        raise click.ClickException(f"Unknown tenant: {tenant_id}")
    op = records.add_operator(tenant_id, email=email, name=name)
    console.print(f"[green]✓ Operator {op.email or op.name or op.id} added[/]")


@cli.command()
@click.argument("tenant_id")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--title", default=None, help="Document title (single file only)")
@click.option("--tag", "tags", multiple=True, help="Document tag; repeatable")
@click.option("--category", default=None)
@click.option("--folder", default=None)
@click.pass_context
def upload(ctx, tenant_id, paths, title, tags, category, folder):
    """Upload and process one or more files for a tenant."""
    from .ingest.extractor import file_type_for, is_supported
    from .ingest.processor import ingest_file

    config = _get_config(ctx)
    processor = _processor(config)

    failed = 0
    for path in paths:
        if not is_supported(file_type_for(path.name)):
            console.print(f"[yellow]Unsupported file type, skipping: {path}[/]")
            continue
        console.print(f"[blue]Processing {path.name}...[/]")
        try:
            report = ingest_file(
                processor, path, tenant_id,
                title=title if len(paths) == 1 else None,
                tags=list(tags), category=category, folder=folder,
            )
        except Exception as e:
            console.print(f"[red]✗ {path.name}: {e}[/]")
            failed += 1
            continue
        _print_report(report)

    if failed:
        raise click.ClickException(f"{failed} file(s) failed")


@cli.command()
@click.argument("document_id")
@click.option("--timeout", default=None, type=float, help="Seconds before giving up")
@click.pass_context
def process(ctx, document_id, timeout):
    """Reprocess a stored document."""
    from .ingest.processor import process_with_timeout

    config = _get_config(ctx)
    processor = _processor(config)
    timeout = timeout or config.get("ingestion", {}).get("timeout_seconds", 300)
    try:
        report = process_with_timeout(processor, document_id, timeout)
    except GapfinderError as e:
        raise click.ClickException(str(e))
    _print_report(report)


@cli.command()
@click.argument("tenant_id")
@click.argument("query")
@click.option("--n", "-n", default=None, type=int, help="Number of results")
@click.option("--threshold", default=None, type=float, help="Minimum similarity")
@click.pass_context
def search(ctx, tenant_id, query, n, threshold):
    """Semantic search over a tenant's documents."""
    from .embeddings.embedder import Embedder
    from .query.search import Retriever

    config = _get_config(ctx)
    records, vectors, _ = _stores(config)
    retriever = Retriever(Embedder(config), vectors, records, config)

    console.print(f"[blue]Searching for: '{query}'[/]\n")
    results = retriever.search(query, tenant_id, match_count=n, match_threshold=threshold)
    if not results:
        console.print("[yellow]No results found.[/]")
        return

    table = Table(title="Search Results")
    table.add_column("#", style="dim", width=3)
    table.add_column("Document", style="cyan")
    table.add_column("Chunk", justify="right", style="dim")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Preview", max_width=60)

    for i, r in enumerate(results, 1):
        preview = r.content[:80].replace("\n", " ")
        table.add_row(str(i), r.document_title, str(r.index), f"{r.similarity:.3f}", preview)

    console.print(table)


@cli.command()
@click.argument("tenant_id")
@click.argument("question")
@click.pass_context
def ask(ctx, tenant_id, question):
    """Ask a question and get an answer grounded in the tenant's documents."""
    from rich.markdown import Markdown
    from rich.panel import Panel

    from .alerts.dispatcher import AlertDispatcher
    from .alerts.mailer import get_mailer
    from .embeddings.embedder import Embedder
    from .llm import TextGenerator
    from .qa import QuestionAnswerer
    from .query.search import Retriever

    config = _get_config(ctx)
    try:
        generator = TextGenerator(config)
    except GapfinderError as e:
        raise click.ClickException(str(e))

    records, vectors, _ = _stores(config)
    embedder = Embedder(config)
    answerer = QuestionAnswerer(
        Retriever(embedder, vectors, records, config),
        generator,
        records,
        embedder,
        AlertDispatcher(records, get_mailer(config), generator, config),
        config,
    )

    console.print("[blue]Searching documents for context...[/]\n")
    result = answerer.ask(question, tenant_id)

    console.print(Panel(Markdown(result.answer), title="Answer", border_style="green"))

    if result.sources:
        console.print("\n[bold]Sources:[/]")
        for s in result.sources:
            console.print(f"  [{s.source_number}] {s.title} [dim]({s.similarity:.2f})[/]")
            console.print(f"      [dim]{s.excerpt}[/]")
    if result.follow_ups:
        console.print("\n[bold]You might also ask:[/]")
        for q in result.follow_ups:
            console.print(f"  • {q}")
    if result.unanswered:
        console.print("\n[yellow]No trustworthy source found; recorded as unanswered.[/]")
        if result.alerted:
            console.print("[yellow]Operators were alerted about this knowledge gap.[/]")


@cli.command()
@click.argument("tenant_id")
@click.option("--limit", default=200, help="Most recent questions to include")
@click.pass_context
def gaps(ctx, tenant_id, limit):
    """Show recurring unanswered questions, highest priority first."""
    from .clustering.gaps import get_unanswered_groups
    from .llm import get_generator
    from .storage import get_record_store

    config = _get_config(ctx)
    threshold = config.get("clustering", {}).get("similarity_threshold", 0.82)
    reports = get_unanswered_groups(
        get_record_store(config), tenant_id, get_generator(config),
        similarity_threshold=threshold, limit=limit,
    )
    if not reports:
        console.print("[green]No unanswered questions.[/]")
        return

    table = Table(title="Knowledge Gaps")
    table.add_column("Topic", style="cyan", max_width=50)
    table.add_column("Questions", justify="right")
    table.add_column("Priority", justify="right", style="green")
    table.add_column("Newest", style="dim")
    table.add_column("Cluster", style="dim")

    for r in reports:
        table.add_row(
            r.label, str(r.count), f"{r.priority_score:.0f}",
            r.newest.strftime("%Y-%m-%d"), r.cluster_id or "-",
        )
    console.print(table)


@cli.command("migrate-clusters")
@click.option("--tenant", "tenant_id", default=None, help="Only this tenant (default: all)")
@click.pass_context
def migrate_clusters(ctx, tenant_id):
    """Backfill persistent clusters for questions that have none."""
    from .clustering.migrate import backfill_clusters
    from .llm import get_generator
    from .storage import get_record_store

    config = _get_config(ctx)
    records = get_record_store(config)
    generator = get_generator(config)
    cluster_cfg = config.get("clustering", {})

    tenants = [records.get_tenant(tenant_id)] if tenant_id else records.list_tenants()
    for tenant in tenants:
        if tenant is None:
            raise click.ClickException(f"Unknown tenant: {tenant_id}")
        console.print(f"[blue]Processing {tenant.name} ({tenant.id})[/]")
        created = backfill_clusters(
            records, tenant.id, generator,
            similarity_threshold=cluster_cfg.get("similarity_threshold", 0.82),
            limit=cluster_cfg.get("max_batch_questions", 500),
        )
        console.print(f"  [green]✓ {created} cluster(s) created[/]")

    console.print("\n[bold green]✓ Migration complete![/]")


if __name__ == "__main__":
    cli()
