import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from bankbridge.backends import BACKENDS, create_backend
from bankbridge.errors import BankBridgeError, ValidationError
from bankbridge.logging_setup import configure_logging
from bankbridge.mapping import parse_tags
from bankbridge.models import CreateTransactionInput, Pagination, SortOptions, Transaction, TransactionFilters
from bankbridge.settings import DEFAULTS, load_settings, master_data_path, save_settings
from bankbridge.store import TransactionStore

app = typer.Typer(help="BankBridge — keep a master ledger of bank transactions.", invoke_without_command=True)

console = Console()


@app.callback()
def main():
    """BankBridge — keep a master ledger of bank transactions."""
    configure_logging(load_settings().get("log_level"))


def get_store() -> TransactionStore:
    return TransactionStore(create_backend(load_settings()))


def _run(coro):
    """Run a store coroutine, turning bankbridge errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except BankBridgeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _money(amount: float) -> str:
    color = "red" if amount < 0 else "green"
    sign = "-" if amount < 0 else ""
    return f"[{color}]{sign}${abs(amount):,.2f}[/{color}]"


def _transactions_table(title: str, rows: list[Transaction]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Merchant")
    table.add_column("Amount", justify="right")
    table.add_column("Account")
    table.add_column("Category")
    table.add_column("Tags")
    for t in rows:
        account = " - ".join(p for p in (t.institution_name, t.account_name) if p)
        table.add_row(t.id, t.date, t.merchant, _money(t.amount), account, t.category, ", ".join(t.tags))
    return table


@app.command()
def init(
    data_dir: str = typer.Option(None, "--data-dir", help="Path for BankBridge data (default: ~/Documents/bankbridge)"),
    backend: str = typer.Option(None, "--backend", help="Persistence backend: file or memory"),
):
    """Set up BankBridge: choose a data directory and create the master data file."""
    settings = load_settings()

    if data_dir:
        settings["data_dir"] = str(Path(data_dir).expanduser().resolve())
    elif settings == DEFAULTS:
        # First run: ask where the ledger should live
        chosen = typer.prompt("Data directory", default=settings["data_dir"])
        settings["data_dir"] = str(Path(chosen).expanduser().resolve())

    if backend:
        if backend not in BACKENDS:
            typer.echo(f"Unknown backend: {backend}")
            raise typer.Exit(1)
        settings["backend"] = backend

    save_settings(settings)

    resolved = Path(settings["data_dir"])
    resolved.mkdir(parents=True, exist_ok=True)
    (resolved / "exports").mkdir(exist_ok=True)

    store = TransactionStore(create_backend(settings))

    async def ensure_master_data():
        if not await store.has_master_data():
            await store.save_master_data(await store.load_master_data())

    _run(ensure_master_data())
    location = master_data_path(settings) if settings["backend"] == "file" else "memory"
    typer.echo(f"Initialized bankbridge at {location}")


# --- Import ---

from bankbridge.mapping import FIELD_DEFINITIONS
from bankbridge.pipeline import ImportPipeline
from bankbridge.readers import read_tabular


def _parse_map_option(value: str) -> tuple[str, str | None]:
    if "=" not in value:
        raise ValidationError(f"Mapping must look like COLUMN=FIELD, got: {value}")
    column, field = value.rsplit("=", 1)
    field = field.strip()
    return column.strip(), (None if field.lower() in ("", "none") else field)


def _mapping_table(pipeline: ImportPipeline) -> Table:
    labels = {d.field: d.label + (" (required)" if d.required else "") for d in FIELD_DEFINITIONS}
    sample = pipeline.sample_data[0] if pipeline.sample_data else {}
    table = Table(title="Column Mapping")
    table.add_column("Source Column")
    table.add_column("Sample", style="dim")
    table.add_column("Field")
    for m in pipeline.mappings:
        field = labels[m.target_field] if m.target_field else "[dim]— skip —[/dim]"
        table.add_row(m.source_column, str(sample.get(m.source_column, "")), field)
    return table


def _preview_table(pipeline: ImportPipeline) -> Table:
    table = Table(title="Import Preview")
    table.add_column("#", style="dim")
    table.add_column("Import")
    table.add_column("Date")
    table.add_column("Merchant")
    table.add_column("Amount", justify="right")
    table.add_column("Status")
    for p in pipeline.preview:
        selected = "[green]✓[/green]" if p.index in pipeline.selected else ""
        status = (
            f"[yellow]Duplicate of {p.existing_transaction.id}[/yellow]" if p.is_duplicate else "[green]New[/green]"
        )
        table.add_row(str(p.index + 1), selected, p.input.date, p.input.merchant, _money(p.input.amount), status)
    return table


@app.command("import")
def import_cmd(
    file: Path = typer.Argument(help="Path to CSV or XLSX file to import"),
    mapping: list[str] = typer.Option(None, "--map", help="Override a mapping: COLUMN=FIELD (FIELD 'none' to skip)"),
    include_duplicates: bool = typer.Option(False, "--include-duplicates", help="Also import rows flagged as duplicates"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Import without asking for confirmation"),
):
    """Import a CSV/XLSX file: map its columns, preview duplicates, then commit."""
    if not file.exists():
        console.print(f"[red]Error:[/red] File not found: {file}")
        raise typer.Exit(1)

    async def run_import():
        data = read_tabular(file)
        if not data.source_columns:
            raise ValidationError("No data found in file")

        pipeline = ImportPipeline(get_store(), data.source_columns, data.sample_data, source_file=file.name)
        for value in mapping or []:
            column, field = _parse_map_option(value)
            # Free the field first so an override can move it between columns
            holder = pipeline.mapping_for(field) if field else None
            if holder and holder != column:
                pipeline.set_mapping(holder, None)
            pipeline.set_mapping(column, field)
        console.print(_mapping_table(pipeline))

        await pipeline.advance_to_preview()
        if include_duplicates:
            pipeline.select_duplicates()
        console.print(_preview_table(pipeline))

        summary = pipeline.summary()
        typer.echo(
            f"{summary['total']} rows, {summary['new']} new, {summary['duplicates']} duplicates, "
            f"{summary['selected']} selected"
        )
        if summary["selected"] == 0:
            pipeline.cancel()
            typer.echo("Nothing to import.")
            return
        if not yes and not typer.confirm(f"Import {summary['selected']} transactions?", default=True):
            pipeline.cancel()
            typer.echo("Import cancelled.")
            return

        created = await pipeline.commit()
        typer.echo(f"{len(created)} imported, {summary['total'] - len(created)} skipped")

    _run(run_import())


# --- Browse ---


@app.command("list")
def list_cmd(
    from_date: str = typer.Option(None, "--from", help="Start date: YYYY-MM-DD"),
    to_date: str = typer.Option(None, "--to", help="End date: YYYY-MM-DD"),
    institution: str = typer.Option(None, help="Institution contains"),
    account: str = typer.Option(None, help="Account contains"),
    category: str = typer.Option(None, help="Category contains"),
    min_amount: float = typer.Option(None, "--min", help="Minimum amount"),
    max_amount: float = typer.Option(None, "--max", help="Maximum amount"),
    tag: list[str] = typer.Option(None, "--tag", help="Match any tag containing this text"),
    search: str = typer.Option(None, help="Search merchant, statement and notes"),
    sort: str = typer.Option("date", help="Field to sort by"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    page: int = typer.Option(1, help="Page number"),
    page_size: int = typer.Option(50, help="Rows per page"),
):
    """List transactions with filters, sorting and pagination."""
    filters = TransactionFilters(
        date_from=from_date, date_to=to_date,
        institution_name=institution, account_name=account, category=category,
        search_text=search, amount_min=min_amount, amount_max=max_amount,
        tags=tag or None,
    )
    result = _run(get_store().get_transactions(
        filters, SortOptions(field=sort, direction="desc" if desc else "asc"), Pagination(page, page_size),
    ))

    if not result.items:
        typer.echo("No transactions found.")
        return
    console.print(_transactions_table(f"Transactions (page {result.page}/{result.total_pages})", result.items))
    typer.echo(f"{result.total} matching transactions")


@app.command()
def show(transaction_id: str = typer.Argument(help="Transaction ID")):
    """Show every field of one transaction."""
    txn = _run(get_store().get_transaction_by_id(transaction_id))
    if txn is None:
        console.print(f"[red]Error:[/red] Transaction not found: {transaction_id}")
        raise typer.Exit(1)

    table = Table(title=txn.id, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in txn.to_dict().items():
        if key == "amount":
            value = _money(value)
        elif key == "tags":
            value = ", ".join(value)
        table.add_row(key, str(value))
    console.print(table)


# --- Edit ---


@app.command()
def add(
    date: str = typer.Option(help="Transaction date: YYYY-MM-DD"),
    merchant: str = typer.Option(help="Merchant or payee"),
    amount: float = typer.Option(help="Amount (negative = debit)"),
    institution: str = typer.Option("", help="Institution name"),
    account: str = typer.Option("", help="Account name"),
    category: str = typer.Option("", help="Category"),
    statement: str = typer.Option("", help="Original bank statement text"),
    notes: str = typer.Option("", help="Notes"),
    tags: str = typer.Option("", help="Comma-separated tags"),
):
    """Add a transaction by hand."""
    txn = _run(get_store().add_transaction(CreateTransactionInput(
        date=date, merchant=merchant, amount=amount,
        institution_name=institution, account_name=account, category=category,
        original_statement=statement, notes=notes, tags=parse_tags(tags),
        source_file="manual_entry",
    )))
    typer.echo(f"Added transaction: {txn.id}")


@app.command()
def edit(
    transaction_id: str = typer.Argument(help="Transaction ID"),
    date: str = typer.Option(None, help="Transaction date: YYYY-MM-DD"),
    merchant: str = typer.Option(None, help="Merchant or payee"),
    amount: float = typer.Option(None, help="Amount (negative = debit)"),
    institution: str = typer.Option(None, help="Institution name"),
    account: str = typer.Option(None, help="Account name"),
    category: str = typer.Option(None, help="Category"),
    statement: str = typer.Option(None, help="Original bank statement text"),
    notes: str = typer.Option(None, help="Notes"),
    tags: str = typer.Option(None, help="Comma-separated tags (replaces existing)"),
):
    """Change fields of an existing transaction."""
    updates = {
        "date": date, "merchant": merchant, "amount": amount,
        "institution_name": institution, "account_name": account, "category": category,
        "original_statement": statement, "notes": notes,
        "tags": parse_tags(tags) if tags is not None else None,
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        typer.echo("Nothing to update.")
        return
    _run(get_store().update_transaction(transaction_id, **updates))
    typer.echo(f"Updated transaction: {transaction_id}")


@app.command()
def delete(transaction_ids: list[str] = typer.Argument(help="One or more transaction IDs")):
    """Delete transactions. A single unknown ID is an error; unknown IDs in a batch are ignored."""
    store = get_store()
    if len(transaction_ids) == 1:
        _run(store.delete_transaction(transaction_ids[0]))
        typer.echo(f"Deleted transaction: {transaction_ids[0]}")
        return
    removed = _run(store.delete_transactions(transaction_ids))
    typer.echo(f"Deleted {removed} of {len(transaction_ids)} transactions")


# --- Info ---


@app.command()
def info():
    """Show where master data lives and what it holds."""
    store = get_store()

    async def gather():
        return await store.get_file_info(), await store.get_metadata(), await store.check_modified()

    file_info, metadata, modified = _run(gather())

    table = Table(title="Master Data", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Path", file_info.path)
    table.add_row("Exists", "yes" if file_info.exists else "no")
    if file_info.last_modified:
        table.add_row("Last modified", file_info.last_modified.strftime("%Y-%m-%d %H:%M:%S"))
    if file_info.size is not None:
        table.add_row("Size", f"{file_info.size:,} bytes")
    table.add_row("Transactions", str(metadata.total_transactions))
    table.add_row("Earliest", metadata.date_range.earliest or "—")
    table.add_row("Latest", metadata.date_range.latest or "—")
    table.add_row("Accounts", ", ".join(metadata.accounts) or "—")
    if modified:
        table.add_row("[yellow]Changed on disk[/yellow]", "[yellow]yes[/yellow]")
    console.print(table)


VALUE_FIELDS = {"institution": "institution_name", "account": "account_name", "category": "category"}


@app.command("values")
def values_cmd(field: str = typer.Argument(help="institution, account, category or tags")):
    """List distinct values of a field."""
    store = get_store()
    if field == "tags":
        values = _run(store.get_unique_tags())
    elif field in VALUE_FIELDS:
        values = _run(store.get_unique_values(VALUE_FIELDS[field]))
    else:
        typer.echo(f"Unknown field: {field}")
        raise typer.Exit(1)

    if not values:
        typer.echo(f"No {field} values.")
        return
    for value in values:
        typer.echo(value)


# --- Export ---

from bankbridge.export import export_transactions


@app.command("export")
def export_cmd(file: Path = typer.Argument(help="Destination .csv or .xlsx file")):
    """Export all master data transactions to CSV or XLSX."""
    transactions = _run(get_store().get_all_transactions())
    try:
        count = export_transactions(transactions, file)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    typer.echo(f"Exported {count} transactions to {file}")


if __name__ == "__main__":
    app()
