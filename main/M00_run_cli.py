# ====================================================================================================
# M00_run_cli.py
# ----------------------------------------------------------------------------------------------------
# Step 0 – Command-line entry point for the Franchise Fee Reconciliation workflow
# ----------------------------------------------------------------------------------------------------
# Purpose:
# - Gives the operator one command per workflow step:
#       parse         → read one statement and show what was found (M01)
#       ingest        → save statements for a franchisee and update invoices (M01 → M05)
#       direct-sales  → preview / save a Slerp spreadsheet (M02_process_direct_sales → M05)
#       manual        → enter one platform's revenue against an invoice (M05)
#       invoices      → list invoices
#       status        → move an invoice forward (sent / processing / paid)
#       monthly       → create a fixed-monthly invoice (M06)
#       backfill      → backfill monthly invoices with an arrears waiver (M06)
#       statement     → show the invoice statement (line items, Slerp block, payable)
#       scan          → list statement files covering a period (M01)
# ----------------------------------------------------------------------------------------------------
# Inputs:
#   - Franchisee config JSON and SQLite database from P01_set_file_paths.py (overridable per run)
# Outputs:
#   - Console summaries; reports and invoices in the SQLite store
# ----------------------------------------------------------------------------------------------------
# Notes:
#   - Usage: python -m main.M00_run_cli <command> [options]
#   - Every workflow error is a StatementError; it is printed and the exit code is 1.
# ----------------------------------------------------------------------------------------------------
# Author:         Gerry Pidgeon
# Created:        2025-11-05
# Project:        Franchise Fee Reconciliation
# ====================================================================================================


# ====================================================================================================
# 1. SYSTEM IMPORTS
# ----------------------------------------------------------------------------------------------------
# Lightweight built-in modules for path handling and interpreter setup.
# ====================================================================================================
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.dont_write_bytecode = True


# ====================================================================================================
# 2. PROJECT IMPORTS
# ----------------------------------------------------------------------------------------------------
# --- Central Package Hub ---
from processes.P00_set_packages import *

# --- Configuration & Paths ---
from processes.P01_set_file_paths import (
    database_path, franchisee_config_path, statement_unprocessed_folder, statement_processed_folder,
    ensure_folders,
)
from processes.P02_period_resolver import parse_flexible_date, resolve_calendar_week
from processes.P03_shared_functions import to_decimal
from processes.P05_error_types import ConfigurationError, ExtractionError, RecordNotFoundError, StatementError
from processes.P06_class_items import ArrearsWaiverSchedule, BillingPeriod, Franchisee, UploadBatch
from processes.P07_module_configs import (
    AUTO_CREATE_DATA_FOLDERS, DISPLAY_DATE_FORMAT, MOVE_PROCESSED_STATEMENTS, SHOW_EXTRACTION_DETAIL,
)
from processes.P08_report_store import SqliteReportStore

# --- Business Logic Modules (The "Steps") ---
from main.M01_statement_intake import archive_statement, read_statement, scan_statement_folder
from main.M02_process_direct_sales import parse_direct_sales_file, preview_direct_sales
from main.M05_run_reconciliation import ReconciliationService
from main.M06_monthly_invoices import MonthlyInvoiceService

logger = logging.getLogger(__name__)


# ====================================================================================================
# 3. HELPERS
# ====================================================================================================

def load_franchisees(path: Path) -> Dict[str, Franchisee]:
    """
    Read the franchisee config file.

    Accepts either a JSON list of franchisees or {"franchisees": [...]}.

    Raises:
        ConfigurationError: File missing or unreadable.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Franchisee config not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Franchisee config is not valid JSON: {exc}") from exc

    entries = data.get("franchisees", []) if isinstance(data, dict) else data
    franchisees = {}
    for entry in entries:
        try:
            franchisee = Franchisee.from_dict(entry)
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(f"Bad franchisee entry {entry!r}: {exc}") from exc
        franchisees[franchisee.id] = franchisee
    return franchisees


def _franchisee(args) -> Franchisee:
    franchisees = load_franchisees(args.config)
    if args.franchisee not in franchisees:
        raise RecordNotFoundError(f"Franchisee not found: {args.franchisee}")
    return franchisees[args.franchisee]


def _week(value: Optional[str]) -> Optional[BillingPeriod]:
    if not value:
        return None
    day = parse_flexible_date(value)
    if day is None:
        raise ConfigurationError(f"Unreadable week date: {value}")
    return resolve_calendar_week(day)


def _resolve_invoice_id(store, franchise_id: Optional[str], reference: str) -> str:
    """Accept an invoice id or an invoice number (HT-2025-0001)."""
    for invoice in store.list_invoices(franchise_id):
        if reference in (invoice.id, invoice.invoice_number):
            return invoice.id
    raise RecordNotFoundError(f"Invoice not found: {reference}")


def _store(args) -> SqliteReportStore:
    return SqliteReportStore(args.db)


# ====================================================================================================
# 4. COMMAND HANDLERS
# ====================================================================================================

def _handle_parse(args) -> int:
    result = read_statement(Path(args.file), args.platform)
    print(f"📄 {Path(args.file).name}")
    print(f"   Gross revenue : £{result.gross_revenue}")
    print(f"   Confidence    : {result.confidence.value}")
    print(f"   Matched rule  : {result.matched_rule or '—'}")
    print(f"   Week          : {result.period or 'not found'}")
    if result.brand_breakdown:
        for brand, amount in result.brand_breakdown.items():
            print(f"     • {brand:<15} £{amount}")
    return 0


def _handle_ingest(args) -> int:
    franchisee = _franchisee(args)
    service = ReconciliationService(_store(args))
    batch = UploadBatch(franchisee.id, _week(args.week))

    # Unreadable files are reported and skipped
    paths, unreadable = [], 0
    for path in (Path(f) for f in args.files):
        try:
            result = read_statement(path, args.platform)
        except StatementError as exc:
            detail = exc.user_message(SHOW_EXTRACTION_DETAIL) if isinstance(exc, ExtractionError) else str(exc)
            print(f"❌ {path.name}: {detail}")
            unreadable += 1
            continue
        print(f"📄 {path.name}: £{result.gross_revenue} ({result.confidence.value}, {result.matched_rule or 'no match'})")
        batch.add(args.platform, result, brand=args.brand, source_path=str(path),
                  revenue_override=to_decimal(args.revenue) if args.revenue else None)
        paths.append(path)

    if not paths:
        return 1

    outcome = service.ingest_batch(franchisee, batch)
    for row in outcome.failed:
        print(f"❌ {paths[row.index].name}: {row.error}")
    for invoice in outcome.invoices:
        print(f"🧾 {invoice.invoice_number} {invoice.brand or '(all brands)'} {invoice.period}: "
              f"gross £{invoice.total_gross_revenue}, fee £{invoice.fee_amount} ({invoice.fee_percentage}%)")

    if MOVE_PROCESSED_STATEMENTS:
        for row in outcome.succeeded:
            path = paths[row.index]
            if path.resolve().parent == statement_unprocessed_folder.resolve():
                archive_statement(path, statement_processed_folder)

    return 0 if not (outcome.failed or unreadable) else 1


def _handle_direct_sales(args) -> int:
    franchisee = _franchisee(args)
    weeks, errors = parse_direct_sales_file(Path(args.file))
    for error in errors:
        print(f"⚠ {error}")

    preview = preview_direct_sales(weeks, franchisee.location, franchisee.fee_config)
    if preview.empty:
        print(f"⚠ No pay weeks for location '{franchisee.location}'.")
        return 1
    print(preview.to_string(index=False))

    if args.save:
        saved = ReconciliationService(_store(args)).ingest_direct_sales(
            franchisee, args.brand, weeks, source_path=str(args.file),
        )
        print(f"✅ Saved {len(saved)} Slerp week(s) for {args.brand}.")
    return 0


def _handle_manual(args) -> int:
    franchisee = _franchisee(args)
    store = _store(args)
    invoice_id = _resolve_invoice_id(store, franchisee.id, args.invoice)
    invoice = ReconciliationService(store).record_manual_report(franchisee, invoice_id, args.platform, args.amount)
    print(f"✅ {invoice.invoice_number}: gross £{invoice.total_gross_revenue}, fee £{invoice.fee_amount}")
    return 0


def _handle_invoices(args) -> int:
    frame = ReconciliationService(_store(args)).invoices_frame(args.franchisee)
    print(frame.to_string(index=False) if not frame.empty else "No invoices.")
    return 0


def _handle_status(args) -> int:
    store = _store(args)
    service = ReconciliationService(store)
    invoice_id = _resolve_invoice_id(store, None, args.invoice)
    if args.status == "paid" and args.franchisee:
        invoice = service.record_invoice_paid(_franchisee(args), invoice_id)
    else:
        invoice = service.apply_payment_event(invoice_id, args.status)
    print(f"✅ {invoice.invoice_number} is now {invoice.status.value}")
    return 0


def _handle_monthly(args) -> int:
    franchisee = _franchisee(args)
    invoice, created = MonthlyInvoiceService(_store(args)).create_monthly_invoice(franchisee, args.month)
    verb = "Created" if created else "Already exists:"
    print(f"🧾 {verb} {invoice.invoice_number} for {invoice.period} (fee £{invoice.fee_amount}, {invoice.status.value})")
    return 0


def _handle_backfill(args) -> int:
    franchisee = _franchisee(args)
    schedule = ArrearsWaiverSchedule(
        initial_arrears=to_decimal(args.arrears, Decimal("0")),
        monthly_cap=to_decimal(args.cap) if args.cap else None,
    )
    result = MonthlyInvoiceService(_store(args)).backfill_monthly_invoices(franchisee, args.start_month, schedule)
    if result.adjusted_start_month:
        print(f"ℹ Start month moved back to {result.adjusted_start_month}")
    for month in result.months:
        flag = "created" if month.created else "skipped"
        print(f"  {month.month}  {month.invoice.invoice_number}  fee £{month.fee_amount}  "
              f"waived £{month.waived_amount}  balance £{month.balance_after}  ({flag})")
    print(f"✅ Backfill complete: {result.created_count} created, {result.skipped_count} skipped, "
          f"arrears left £{result.remaining_arrears}")
    return 0


def _handle_statement(args) -> int:
    franchisee = _franchisee(args)
    store = _store(args)
    service = ReconciliationService(store)
    statement = service.build_invoice_statement(franchisee, _resolve_invoice_id(store, franchisee.id, args.invoice))
    invoice = statement.invoice

    print(f"🧾 {invoice.invoice_number}  {franchisee.name}  {invoice.brand or '(all brands)'}")
    print(f"   Period: {invoice.period_start.strftime(DISPLAY_DATE_FORMAT)} – {invoice.period_end.strftime(DISPLAY_DATE_FORMAT)}")
    frame = statement.to_frame()
    if not frame.empty:
        print(frame.to_string(index=False))
    print(f"   Total gross: £{invoice.total_gross_revenue}   Fee: £{invoice.fee_amount} ({invoice.fee_percentage}%)")
    if statement.direct_block:
        block = statement.direct_block
        print(f"   Slerp {block.period} (paid {block.payout_date}): £{block.gross_revenue}, fee £{block.fee_amount}")
    print(f"   {statement.payable_label}: £{statement.payable_amount}")
    print(f"   File: {service.statement_file_name(franchisee, invoice)}")
    return 0


def _handle_scan(args) -> int:
    start = parse_flexible_date(args.start)
    end = parse_flexible_date(args.end)
    if start is None or end is None:
        raise ConfigurationError("Start and end must be readable dates.")
    for path, week in scan_statement_folder(Path(args.folder), BillingPeriod(start, end)):
        print(f"  {week}  {path.name}")
    return 0


# ====================================================================================================
# 5. ARGUMENT PARSER
# ====================================================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="franchise-fees",
        description="Franchise fee reconciliation: statements in, invoices out.",
    )
    parser.add_argument("--db", default=str(database_path), help="SQLite database path")
    parser.add_argument("--config", default=str(franchisee_config_path), help="Franchisee config JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    platforms = ["deliveroo", "ubereats", "justeat"]

    p = subparsers.add_parser("parse", help="Read one statement and show the extracted revenue.")
    p.add_argument("--platform", required=True, choices=platforms)
    p.add_argument("file")
    p.set_defaults(handler=_handle_parse)

    p = subparsers.add_parser("ingest", help="Save statements for a franchisee and update invoices.")
    p.add_argument("--franchisee", required=True)
    p.add_argument("--platform", required=True, choices=platforms)
    p.add_argument("--brand", help="Brand (not needed for Deliveroo)")
    p.add_argument("--week", help="Any date in the statement week (default: read from the statement)")
    p.add_argument("--revenue", help="Corrected gross revenue, replaces the extracted figure")
    p.add_argument("files", nargs="+")
    p.set_defaults(handler=_handle_ingest)

    p = subparsers.add_parser("direct-sales", help="Preview (and optionally save) a Slerp spreadsheet.")
    p.add_argument("--franchisee", required=True)
    p.add_argument("--brand", required=True)
    p.add_argument("--save", action="store_true")
    p.add_argument("file")
    p.set_defaults(handler=_handle_direct_sales)

    p = subparsers.add_parser("manual", help="Enter one platform's revenue against an invoice.")
    p.add_argument("--franchisee", required=True)
    p.add_argument("--invoice", required=True, help="Invoice id or number")
    p.add_argument("--platform", required=True, choices=platforms)
    p.add_argument("amount")
    p.set_defaults(handler=_handle_manual)

    p = subparsers.add_parser("invoices", help="List invoices.")
    p.add_argument("--franchisee")
    p.set_defaults(handler=_handle_invoices)

    p = subparsers.add_parser("status", help="Move an invoice forward (sent / processing / paid).")
    p.add_argument("--invoice", required=True, help="Invoice id or number")
    p.add_argument("--franchisee", help="Record a manual payment to a pay-them franchisee")
    p.add_argument("status", choices=["sent", "processing", "paid"])
    p.set_defaults(handler=_handle_status)

    p = subparsers.add_parser("monthly", help="Create a fixed-monthly invoice (default: last full month).")
    p.add_argument("--franchisee", required=True)
    p.add_argument("--month", help="YYYY-MM")
    p.set_defaults(handler=_handle_monthly)

    p = subparsers.add_parser("backfill", help="Backfill monthly invoices with an arrears waiver.")
    p.add_argument("--franchisee", required=True)
    p.add_argument("--start-month", required=True, help="YYYY-MM")
    p.add_argument("--arrears", default="0", help="Arrears outstanding at the start month")
    p.add_argument("--cap", help="Most that may be waived in one month (default: the monthly fee)")
    p.set_defaults(handler=_handle_backfill)

    p = subparsers.add_parser("statement", help="Show the invoice statement.")
    p.add_argument("--franchisee", required=True)
    p.add_argument("--invoice", required=True, help="Invoice id or number")
    p.set_defaults(handler=_handle_statement)

    p = subparsers.add_parser("scan", help="List statement files covering a period.")
    p.add_argument("--start", required=True)
    p.add_argument("--end", required=True)
    p.add_argument("--folder", default=str(statement_unprocessed_folder))
    p.set_defaults(handler=_handle_scan)

    return parser


# ====================================================================================================
# 6. MAIN EXECUTION
# ====================================================================================================

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if AUTO_CREATE_DATA_FOLDERS:
        ensure_folders()

    try:
        return args.handler(args)
    except ExtractionError as exc:
        print(f"❌ {exc.user_message(SHOW_EXTRACTION_DETAIL)}")
        return 1
    except StatementError as exc:
        print(f"❌ {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
