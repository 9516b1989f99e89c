"""
QMS Pro - Command Line Interface

Presentation layer over the inspection core: record inspections,
approve or reject them, and export CSV / HTML reports. All business
rules live in the `qms` package; this module only parses arguments,
renders tables, and writes files.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from qms.analytics.kpis import compute_kpis
from qms.config.loader import load_settings
from qms.config.schema import QMSSettings
from qms.exceptions import PersistenceError, QMSError, ValidationError
from qms.inspection.backends import JSONFileBackend
from qms.inspection.models import InspectionRecord, ManagerStatus
from qms.inspection.scoring import CRITERIA, criteria_label
from qms.inspection.store import RecordStore
from qms.inspection.workflow import StatusChanged
from qms.observability.logging_config import configure_logging
from qms.reporting.generator import NO_NOTES_TEXT, ReportGenerator

app = typer.Typer(
    name="qms",
    help="QMS Pro - Quality inspection records and reports",
    no_args_is_help=True,
)
console = Console()

STATUS_STYLES = {
    ManagerStatus.PENDING: "yellow",
    ManagerStatus.ACCEPTED: "green",
    ManagerStatus.REJECTED: "red",
}


# =========================================================================
# Helpers
# =========================================================================


def _settings() -> QMSSettings:
    try:
        return load_settings()
    except QMSError as e:
        console.print(Panel(
            f"[red]{escape(str(e))}[/]",
            title="⚠ Configuration Error",
            border_style="red",
        ))
        raise typer.Exit(code=1)


def _store(settings: QMSSettings) -> RecordStore:
    backend = JSONFileBackend(
        settings.storage.data_path, key=settings.storage.storage_key
    )
    return RecordStore(backend, seed_sample_data=settings.storage.seed_sample_data)


def _reports(settings: QMSSettings) -> ReportGenerator:
    return ReportGenerator(
        datetime_format=settings.reporting.datetime_format,
        title=settings.reporting.title,
    )


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Render core errors as a panel and exit non-zero."""
    try:
        yield
    except ValidationError as e:
        lines = "\n".join(
            f"  [bold]{escape(err['field'])}[/]: {escape(err['message'])}"
            for err in e.errors
        ) or f"  {escape(str(e))}"
        console.print(Panel(
            f"[red]Please fix the following:[/]\n\n{lines}",
            title="⚠ Invalid Input",
            border_style="red",
        ))
        raise typer.Exit(code=1)
    except PersistenceError as e:
        message = f"[red]{escape(str(e))}[/]"
        if e.record is not None:
            message += (
                f"\n\nThe inspection was NOT saved. Entered data:\n"
                f"  [dim]{escape(str(e.record.to_persisted()))}[/]"
            )
        console.print(Panel(message, title="⚠ Save Failed", border_style="red"))
        raise typer.Exit(code=1)
    except QMSError as e:
        console.print(Panel(f"[red]{escape(str(e))}[/]", title="⚠ Error", border_style="red"))
        raise typer.Exit(code=1)


def _status_text(status: ManagerStatus) -> str:
    return f"[{STATUS_STYLES[status]}]{status.value}[/]"


def _inspection_table(records: list[InspectionRecord], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Product", style="cyan")
    table.add_column("Vendor", style="white")
    table.add_column("Inspector", style="white")
    table.add_column("Batch", style="blue")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Predicted")
    table.add_column("Manager")

    for r in records:
        table.add_row(
            escape(r.id),
            escape(r.product),
            escape(r.vendor),
            escape(r.inspector),
            escape(r.batch_id),
            f"{r.average}/10",
            r.predicted.value.split(" ")[0],
            _status_text(r.manager_status),
        )
    return table


def _write_or_print(content: str, out: Optional[Path], label: str) -> None:
    if out is None:
        sys.stdout.write(content)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(content, encoding="utf-8")
    console.print(f"[green]✓[/] {label} written to [bold]{escape(str(out))}[/]")


def _print_kpis(store: RecordStore) -> None:
    kpis = compute_kpis(store.list())
    console.print(
        f"[dim]Today: {kpis.today_count} · Pass rate: {kpis.pass_rate}% · "
        f"Issues: {kpis.issues} · Avg: {kpis.average_score}/10[/]"
    )


# =========================================================================
# Commands
# =========================================================================


@app.command("list")
def list_inspections(
    vendor: Optional[str] = typer.Option(None, help="Only this vendor"),
    inspector: Optional[str] = typer.Option(None, help="Only this inspector"),
    status: Optional[str] = typer.Option(None, help="Pending, Accepted or Rejected"),
    sort_by: str = typer.Option("timestamp", help="Field to sort on"),
    ascending: bool = typer.Option(False, help="Oldest / lowest first"),
    limit: Optional[int] = typer.Option(None, help="Show at most N rows"),
):
    """List inspections, newest first."""
    settings = _settings()
    with _handle_errors():
        records = _store(settings).list(
            vendor=vendor,
            inspector=inspector,
            manager_status=status,
            sort_by=sort_by,
            descending=not ascending,
            limit=limit,
        )

    if not records:
        console.print("[yellow]No inspections found.[/]")
        return
    console.print(_inspection_table(records, f"Inspections ({len(records)})"))


@app.command()
def recent():
    """Show the most recent inspections."""
    settings = _settings()
    with _handle_errors():
        records = _store(settings).recent(settings.reporting.recent_limit)
    if not records:
        console.print("[yellow]No recent inspections.[/]")
        return
    console.print(_inspection_table(records, "Recent Inspections"))


@app.command()
def show(record_id: str = typer.Argument(..., help="Inspection ID")):
    """Show one inspection with its score breakdown."""
    settings = _settings()
    with _handle_errors():
        record = _store(settings).get(record_id)

    scores = Table(show_header=True)
    scores.add_column("Criteria", style="cyan")
    scores.add_column("Score", justify="right")
    for name in CRITERIA:
        scores.add_row(criteria_label(name), f"{record.scores[name]}/10")

    reports = _reports(settings)
    console.print(Panel(
        f"[bold]{escape(record.product)}[/]  [dim]Batch: {escape(record.batch_id)}[/]\n\n"
        f"Vendor: {escape(record.vendor)}\n"
        f"Inspector: {escape(record.inspector)}\n"
        f"Inspection Time: {reports.format_datetime(record.timestamp)}\n"
        f"Overall Score: [bold]{record.average}/10[/]\n"
        f"Predicted Status: {record.predicted.value}\n"
        f"Manager Decision: {_status_text(record.manager_status)}\n\n"
        f"Notes: {escape(record.notes or NO_NOTES_TEXT)}",
        title=f"Inspection {escape(record.id)}",
    ))
    console.print(scores)


@app.command()
def add(
    product: str = typer.Option(..., help="Product name"),
    vendor: str = typer.Option(..., help="Vendor"),
    inspector: str = typer.Option(..., help="Inspector"),
    fabric: float = typer.Option(..., help="Fabric score (0-10)"),
    stitching: float = typer.Option(..., help="Stitching score (0-10)"),
    fit: float = typer.Option(..., help="Fit score (0-10)"),
    color: float = typer.Option(..., help="Color score (0-10)"),
    packaging: float = typer.Option(..., help="Packaging score (0-10)"),
    labels: float = typer.Option(..., help="Labels score (0-10)"),
    batch_id: Optional[str] = typer.Option(None, help="Batch ID (generated if omitted)"),
    notes: str = typer.Option("", help="Free-text notes"),
):
    """Record a new inspection and show its predicted status."""
    settings = _settings()
    with _handle_errors():
        record = _store(settings).create({
            "product": product,
            "vendor": vendor,
            "inspector": inspector,
            "batchId": batch_id,
            "notes": notes,
            "scores": {
                "fabric": fabric,
                "stitching": stitching,
                "fit": fit,
                "color": color,
                "packaging": packaging,
                "labels": labels,
            },
        })

    console.print(Panel(
        f"[green]Inspection saved[/]\n\n"
        f"ID: {escape(record.id)}\n"
        f"Batch: {escape(record.batch_id)}\n"
        f"Average: [bold]{record.average}/10[/]\n"
        f"Predicted: [bold]{record.predicted.value}[/]",
        title="✓ New Inspection",
    ))


def _decide(record_id: str, status: ManagerStatus) -> None:
    settings = _settings()
    store = _store(settings)

    def _on_change(event: StatusChanged) -> None:
        console.print(
            f"[green]✓[/] Inspection {escape(event.record_id)}: "
            f"{event.old_status.value} → {_status_text(event.new_status)}"
        )
        _print_kpis(store)

    store.workflow.subscribe(_on_change)
    with _handle_errors():
        store.update_status(record_id, status)


@app.command()
def approve(record_id: str = typer.Argument(..., help="Inspection ID")):
    """Accept an inspection (manager decision)."""
    _decide(record_id, ManagerStatus.ACCEPTED)


@app.command()
def reject(record_id: str = typer.Argument(..., help="Inspection ID")):
    """Reject an inspection (manager decision)."""
    _decide(record_id, ManagerStatus.REJECTED)


@app.command("export-csv")
def export_csv(
    out: Optional[Path] = typer.Option(None, help="Output file (default: stdout)"),
):
    """Export all inspections as CSV."""
    settings = _settings()
    with _handle_errors():
        records = _store(settings).list()
    if not records:
        console.print("[yellow]No inspections to export.[/]")
        raise typer.Exit(code=1)
    _write_or_print(_reports(settings).csv_export(records), out, "CSV export")


@app.command()
def report(
    record_id: str = typer.Argument(..., help="Inspection ID"),
    out: Optional[Path] = typer.Option(
        None, help="Output file (default: Inspection-Report-<batch>.html)"
    ),
):
    """Write a printable HTML report for one inspection."""
    settings = _settings()
    reports = _reports(settings)
    with _handle_errors():
        record = _store(settings).get(record_id)
    target = out or Path(reports.report_filename(record))
    _write_or_print(reports.detailed_report(record), target, "Detailed report")
    console.print("[dim]Open it in a browser and print to save as PDF.[/]")


@app.command()
def summary(
    out: Optional[Path] = typer.Option(None, help="Output file (default: stdout)"),
):
    """Write the quality summary report (KPIs + vendor performance)."""
    settings = _settings()
    with _handle_errors():
        records = _store(settings).list()
    if not records:
        console.print("[yellow]No data for summary report.[/]")
        raise typer.Exit(code=1)
    _write_or_print(_reports(settings).summary_report(records), out, "Summary report")


@app.command()
def kpis():
    """Show dashboard KPIs."""
    settings = _settings()
    with _handle_errors():
        snapshot = compute_kpis(_store(settings).list())

    table = Table(title="Quality KPIs")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="bold")
    table.add_row("Inspections today", str(snapshot.today_count))
    table.add_row("Total inspections", str(snapshot.total))
    table.add_row("Pass rate", f"{snapshot.pass_rate}%")
    table.add_row("Quality issues (< 7)", str(snapshot.issues))
    table.add_row("Average score", f"{snapshot.average_score}/10")
    console.print(table)


@app.command()
def reconcile():
    """Check stored averages/predictions against a recomputation."""
    settings = _settings()
    with _handle_errors():
        drift = _store(settings).reconcile()

    if not drift:
        console.print("[green]✓ All derived fields match their scores.[/]")
        return

    table = Table(title=f"Derived Field Drift ({len(drift)})")
    table.add_column("Inspection", style="dim")
    table.add_column("Field", style="cyan")
    table.add_column("Stored", style="red")
    table.add_column("Recomputed", style="green")
    for d in drift:
        table.add_row(
            escape(d.record_id), d.field, escape(str(d.stored)), escape(str(d.expected))
        )
    console.print(table)
    raise typer.Exit(code=2)


def main() -> None:
    """Console-script entry point."""
    root_env = Path(__file__).parent / ".env"
    if root_env.exists():
        load_dotenv(root_env, override=True)
    else:
        load_dotenv(override=True)

    configure_logging(level=_settings().logging.level)
    app()


if __name__ == "__main__":
    main()
