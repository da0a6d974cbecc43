"""
Command-line interface for the transaction deduplication engine.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import apply_overrides, generate_default_config, load_config
from .dedup.ledger import DuplicateLedger
from .loaders.csv_loader import CsvRecordLoader
from .models.transaction import MaintenanceResult, TransactionRecord
from .reports.excel_generator import ExcelReportGenerator
from .store import InMemoryRecordStore
from .utils.logging_config import level_from_name, setup_logging

console = Console()


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Transaction deduplication and reconciliation tool."""
    pass


@main.command()
@click.argument("records_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output Excel file path")
@click.option("--threshold", type=float, default=None, help="Override similarity threshold")
@click.option("--date-window", type=int, default=None, help="Override date window in days")
@click.option("--batch-size", type=int, default=None, help="Override clustering batch size")
@click.option("--workers", type=int, default=None, help="Buckets clustered in parallel")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--dry-run", is_flag=True, help="Cluster records and show summary without generating report"
)
def dedupe(
    records_file: Path,
    config: Optional[Path],
    output: Optional[Path],
    threshold: Optional[float],
    date_window: Optional[int],
    batch_size: Optional[int],
    workers: Optional[int],
    verbose: bool,
    dry_run: bool,
):
    """
    Cluster a record export into duplicate groups.

    RECORDS_FILE: Path to a CSV export of transaction records
    """
    try:
        dedup_config = load_config(config)
        setup_logging(
            logging.DEBUG if verbose else level_from_name(dedup_config.logging.level),
            log_format=dedup_config.logging.format,
        )
        dedup_config = apply_overrides(
            dedup_config,
            similarity_threshold=threshold,
            date_window_days=date_window,
            batch_size=batch_size,
            max_workers=workers,
        )

        records = CsvRecordLoader(dedup_config).load_file(records_file)
        ledger = DuplicateLedger(InMemoryRecordStore(records), dedup_config.dedup)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total} batches"),
            console=console,
        ) as progress:
            task = progress.add_task("Clustering records...", total=None)

            def on_batch(done: int, total: int) -> None:
                progress.update(task, completed=done, total=total)

            result = ledger.on_bulk_maintenance(records, progress=on_batch)

        _display_summary(result)

        if dry_run:
            console.print("\n[yellow]Dry run - no report generated[/yellow]")
            return

        if output is None:
            timestamp = datetime.now()
            output = Path(
                dedup_config.output.excel.filename_template.format(
                    date=timestamp.strftime("%Y%m%d"), time=timestamp.strftime("%H%M%S")
                )
            )

        report_path = ExcelReportGenerator(dedup_config).generate_report(
            result=result,
            records=records,
            output_path=output,
            source_filename=records_file.name,
        )
        console.print(f"\n[green]Report generated: {report_path}[/green]")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@main.command()
@click.argument("records_file", type=click.Path(exists=True, path_type=Path))
@click.option("--date", "txn_date", required=True, help="Transaction date (ISO-8601)")
@click.option("--amount", required=True, help="Signed amount, e.g. -100.00")
@click.option("--description", default="", help="Transaction description")
@click.option("--source", default="cli", help="Source label")
@click.option("--id", "record_id", default="cli-check", help="Id of the incoming record")
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
def check(
    records_file: Path,
    txn_date: str,
    amount: str,
    description: str,
    source: str,
    record_id: str,
    config: Optional[Path],
):
    """
    Check whether one incoming record duplicates a stored record.

    RECORDS_FILE: Path to a CSV export of existing records
    """
    try:
        dedup_config = load_config(config)
        parsed_date = datetime.fromisoformat(txn_date)
        parsed_amount = Decimal(amount)
    except (ValueError, InvalidOperation) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    try:
        records = CsvRecordLoader(dedup_config).load_file(records_file)
    except Exception as e:
        console.print(f"[red]Error loading records: {e}[/red]")
        sys.exit(1)

    ledger = DuplicateLedger(InMemoryRecordStore(records), dedup_config.dedup)
    incoming = TransactionRecord(
        id=record_id,
        date=parsed_date,
        amount=parsed_amount,
        description=description,
        source=source,
    )
    decision = ledger.on_insert(incoming)

    table = Table(title=f"Duplicate Check: {record_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Duplicate", "[red]yes[/red]" if decision.is_duplicate else "[green]no[/green]")
    table.add_row("Match Type", decision.match_type.value)
    table.add_row("Canonical ID", str(decision.canonical_id) if decision.canonical_id is not None else "-")
    table.add_row("Confidence", f"{decision.confidence:.1%}")
    table.add_row("Reason", decision.reason)
    table.add_row("Fingerprint", decision.fingerprint)
    if decision.score is not None:
        table.add_row(
            "Sub-scores",
            f"text={decision.score.text:.3f} amount={decision.score.amount:.3f} "
            f"date={decision.score.date:.2f}",
        )
    console.print(table)


@main.command()
@click.argument("records_file", type=click.Path(exists=True, path_type=Path))
@click.option("-c", "--config", type=click.Path(exists=True, path_type=Path))
@click.option("--limit", type=int, default=20, show_default=True, help="Groups to display")
def groups(records_file: Path, config: Optional[Path], limit: int):
    """
    List potential duplicate groups for review without marking anything.

    RECORDS_FILE: Path to a CSV export of transaction records
    """
    try:
        dedup_config = load_config(config)
        records = CsvRecordLoader(dedup_config).load_file(records_file)
        ledger = DuplicateLedger(InMemoryRecordStore(records), dedup_config.dedup)
        found = ledger.clustering.find_groups(records)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    by_id = {r.id: r for r in records}
    table = Table(title=f"Potential Duplicates: {records_file.name}")
    table.add_column("Group", justify="right")
    table.add_column("Record ID")
    table.add_column("Date")
    table.add_column("Amount", justify="right")
    table.add_column("Description")

    for group_no, group in enumerate(found[:limit], start=1):
        for member_id in group.member_ids:
            record = by_id[member_id]
            marker = "*" if member_id == group.canonical_id else ""
            table.add_row(
                str(group_no),
                f"{member_id}{marker}",
                record.date.strftime("%Y-%m-%d %H:%M"),
                f"{record.amount:,.2f}",
                (
                    record.description[:40] + "..."
                    if len(record.description) > 40
                    else record.description
                ),
            )

    console.print(table)

    if len(found) > limit:
        console.print(f"\n... and {len(found) - limit} more groups")

    console.print(f"\nTotal groups: {len(found)} (* = canonical)")

    counts = ledger.duplicate_counts_by_source(records)
    if counts:
        console.print("Exact duplicates by source: " + ", ".join(f"{s}={n}" for s, n in counts.items()))


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _display_summary(result: MaintenanceResult) -> None:
    """Display bulk clustering summary in console."""
    table = Table(title="Deduplication Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Total Records", str(result.total_records))
    table.add_row("Batches Processed", str(result.batches_processed))
    table.add_row("Duplicate Groups", str(len(result.groups)))
    table.add_row("Duplicates In Groups", str(result.duplicate_count))
    table.add_row("Newly Marked", str(result.newly_marked))
    table.add_row("Flags Cleared", str(result.unmarked))
    table.add_row("Cancelled", "yes" if result.cancelled else "no")
    table.add_row("Processing Time", f"{result.processing_time_seconds:.2f}s")

    console.print(table)


if __name__ == "__main__":
    main()
