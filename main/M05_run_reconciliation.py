# ====================================================================================================
# M05_run_reconciliation.py
# ----------------------------------------------------------------------------------------------------
# Step 5 – Reconcile revenue reports into franchise fee invoices
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Store one revenue report per (franchise, brand, platform, week), replacing any earlier one.
#   - Recompute the (franchise, brand, week) invoice after every report write.
#   - Handle manual report entry, draft overrides, payment status changes and deletions.
#   - Store direct-platform (Slerp) pay weeks and show them on the matching aggregator invoice.
#   - Build the invoice statement view used by the PDF and email steps.
#
# Inputs:
#   • Franchisee (fee configuration), UploadBatch rows, DirectSalesWeek rows
# Outputs:
#   • RevenueReport / Invoice rows in the ReportStore
#   • BatchOutcome (one outcome per upload row), InvoiceStatement
#
# Notes:
#   - Every report write and its invoice recomputation run under one per-key lock and one store
#     transaction, so a failure leaves both untouched.
#   - Direct-platform reports are stored alongside aggregator reports but never enter the fee.
# ----------------------------------------------------------------------------------------------------
# Author:        Gerry Pidgeon
# Created:       2025-11-05
# Project:       Franchise Fee Reconciliation
# ====================================================================================================


# ====================================================================================================
# 1. SYSTEM IMPORTS
# ----------------------------------------------------------------------------------------------------
# Add parent directory to sys.path so this module can import other "processes" packages.
# ====================================================================================================
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.dont_write_bytecode = True


# ====================================================================================================
# 2. PROJECT IMPORTS
# ----------------------------------------------------------------------------------------------------
# All standard and third-party packages are centrally imported in P00_set_packages.py
# ====================================================================================================
from processes.P00_set_packages import *
from processes.P02_period_resolver import (
    direct_platform_period_for_aggregator_week, payout_date_for_sales_period, resolve_calendar_week,
    parse_flexible_date,
)
from processes.P03_shared_functions import KeyedLocks, round_money, to_decimal
from processes.P05_error_types import (
    ConfigurationError, InvoiceStatusError, ReconciliationConflictError, StatementError,
    UploadValidationError,
)
from processes.P06_class_items import (
    AGGREGATOR_PLATFORMS, BatchOutcome, BillingPeriod, DirectPlatformBlock, DirectSalesWeek, Franchisee,
    Invoice, InvoiceStatement, InvoiceStatus, PaymentDirection, Platform, RevenueReport, RowOutcome,
    SourceKind, StatementLine, UploadBatch,
)
from processes.P07_module_configs import DISPLAY_DATE_FORMAT
from processes.P08_report_store import ReportStore
from main.M02_process_direct_sales import location_matches
from main.M03_allocate_brands import allocations_for_row
from main.M04_fee_rules import HUNDRED, compute_direct_platform_fee, compute_fee

logger = logging.getLogger(__name__)


# ====================================================================================================
# 3. RECONCILIATION SERVICE
# ====================================================================================================

class ReconciliationService:
    """
    Writes revenue reports and keeps the matching invoices in step with them.

    Args:
        store (ReportStore): Where reports and invoices live.
        locks (KeyedLocks | None): Per-key locks; share one instance between services on one store.
        clock (Callable[[], datetime] | None): Source of "now" for created_at and invoice numbers.
    """

    def __init__(self, store: ReportStore, locks: Optional[KeyedLocks] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.locks = locks if locks is not None else KeyedLocks()
        self.clock = clock or datetime.now

    # ------------------------------------------------------------------------------------------------
    # Report writes
    # ------------------------------------------------------------------------------------------------
    def _write_and_recompute(self, franchisee: Franchisee, brand: str, platform: Platform,
                             period: BillingPeriod, amount: Decimal, source_kind: SourceKind,
                             source_path: Optional[str]) -> Tuple[RevenueReport, Invoice]:
        brand = (brand or "").strip()
        key = (franchisee.id, brand, period.start, period.end)
        with self.locks.hold(key):
            with self.store.transaction():
                report = self.store.replace_report(RevenueReport(
                    franchise_id=franchisee.id,
                    brand=brand,
                    platform=platform,
                    period_start=period.start,
                    period_end=period.end,
                    gross_revenue=round_money(amount),
                    source_kind=source_kind,
                    source_path=source_path,
                    uploaded_at=self.clock(),
                ))
                invoice = self.recompute_invoice(franchisee, brand, period)
        return report, invoice

    def ingest_batch(self, franchisee: Franchisee, batch: UploadBatch) -> BatchOutcome:
        """
        Save every row of an upload session and recompute the affected invoices.

        Each row stands alone: a row that fails (no brand, no week, unsupported platform) is
        reported in the outcome and the remaining rows are still saved.

        Raises:
            ConfigurationError: The franchisee is on the fixed-monthly model.
        """
        if not franchisee.fee_config.is_percentage_model:
            raise ConfigurationError(
                "Statement uploads are only for percentage-based franchisees. "
                "Fixed monthly franchisees are invoiced from the monthly invoice step."
            )
        if batch.franchise_id != franchisee.id:
            raise ConfigurationError(f"Upload batch belongs to {batch.franchise_id}, not {franchisee.id}.")

        outcome = BatchOutcome()
        invoices: Dict[str, Invoice] = {}

        for index, row in enumerate(batch):
            try:
                if not row.platform.is_aggregator:
                    raise UploadValidationError("Slerp sales are added from the direct sales spreadsheet.")
                period = batch.period_for(row)
                if period is None:
                    raise UploadValidationError(f"Please select the week for {row.platform.label}.")
                week = resolve_calendar_week(period.start)

                reports = []
                for allocation in allocations_for_row(row, week):
                    report, invoice = self._write_and_recompute(
                        franchisee, allocation.brand, row.platform, week, allocation.amount,
                        row.result.source_kind, row.source_path,
                    )
                    reports.append(report)
                    invoices[invoice.id] = invoice
                outcome.rows.append(RowOutcome(index, row.platform, True, reports))

            except StatementError as exc:
                logger.warning("Upload row %d (%s) not saved: %s", index, row.platform.label, exc)
                outcome.rows.append(RowOutcome(index, row.platform, False, error=str(exc)))

        outcome.invoices = sorted(invoices.values(), key=lambda i: (i.brand or "", i.invoice_number))
        logger.info(
            "Upload for %s: %d row(s) saved, %d failed, %d invoice(s) updated",
            franchisee.id, len(outcome.succeeded), len(outcome.failed), len(outcome.invoices),
        )
        return outcome

    def record_manual_report(self, franchisee: Franchisee, invoice_id: str, platform, amount) -> Invoice:
        """
        Enter one platform's revenue by hand against an existing invoice's brand and week.

        Raises:
            UploadValidationError: Amount missing/negative, or platform is not an aggregator.
            RecordNotFoundError: Unknown invoice.
        """
        platform = Platform.parse(platform)
        if not platform.is_aggregator:
            raise UploadValidationError("Manual entries are for Deliveroo, Uber Eats or Just Eat.")

        value = to_decimal(str(amount).replace("£", "").replace(",", "").strip() if amount is not None else None)
        if value is None or value < 0:
            raise UploadValidationError("Please enter a valid amount (e.g. 849.73)")

        invoice = self.store.get_invoice(invoice_id)
        _, updated = self._write_and_recompute(
            franchisee, invoice.brand or "", platform, invoice.period, value, SourceKind.MANUAL, None,
        )
        return updated

    def ingest_direct_sales(self, franchisee: Franchisee, brand: str,
                            weeks: Iterable[DirectSalesWeek], source_path: Optional[str] = None) -> List[RevenueReport]:
        """
        Store direct-platform pay weeks for the franchisee's location as 'slerp' reports.

        Weeks for other locations are ignored. Each week replaces any earlier figure for the same
        (brand, sales period). Invoices are not recomputed: direct sales never enter the fee.

        Raises:
            ConfigurationError: No direct-platform rate configured.
            UploadValidationError: No brand, or no weeks for this franchisee's location.
        """
        if franchisee.fee_config.direct_rate is None:
            raise ConfigurationError("This franchisee does not have a Slerp % set.")
        brand = (brand or "").strip()
        if not brand:
            raise UploadValidationError("Please select a brand for Slerp.")

        matched = [w for w in weeks if location_matches(franchisee.location, w.location)]
        if not matched:
            raise UploadValidationError(f"No Slerp pay weeks found for location '{franchisee.location}'.")

        saved = []
        with self.store.transaction():
            for week in matched:
                saved.append(self.store.replace_report(RevenueReport(
                    franchise_id=franchisee.id,
                    brand=brand,
                    platform=Platform.SLERP,
                    period_start=week.period.start,
                    period_end=week.period.end,
                    gross_revenue=round_money(week.gross_revenue),
                    source_kind=SourceKind.SPREADSHEET,
                    source_path=source_path,
                    uploaded_at=self.clock(),
                )))
        logger.info("Saved %d Slerp week(s) for %s / %s", len(saved), franchisee.id, brand)
        return saved

    # ------------------------------------------------------------------------------------------------
    # Invoice recomputation
    # ------------------------------------------------------------------------------------------------
    def recompute_invoice(self, franchisee: Franchisee, brand: Optional[str], period: BillingPeriod) -> Invoice:
        """
        Re-derive the invoice for (franchisee, brand, week) from its aggregator reports.

        The existing invoice is updated whatever its status; a new one is created as a draft.
        Any manual override on a draft is overwritten here.
        """
        if not franchisee.fee_config.is_percentage_model:
            raise ConfigurationError("Weekly invoices are only computed for percentage-based franchisees.")

        with self.store.transaction():
            reports = self.store.list_reports(franchisee.id, brand=brand or "", period=period,
                                              platforms=AGGREGATOR_PLATFORMS)
            per_platform: Dict[Platform, Decimal] = {}
            for report in reports:
                per_platform[report.platform] = per_platform.get(report.platform, Decimal("0")) + report.gross_revenue
            fee = compute_fee(franchisee.fee_config, per_platform)

            invoice = self.store.find_invoice(franchisee.id, brand, period)
            if invoice is None:
                now = self.clock()
                invoice = Invoice(
                    id=uuid.uuid4().hex,
                    invoice_number=self.store.next_invoice_number(now.year),
                    franchise_id=franchisee.id,
                    brand=(brand or "").strip() or None,
                    period_start=period.start,
                    period_end=period.end,
                    total_gross_revenue=fee.total_gross,
                    fee_percentage=fee.effective_percentage,
                    fee_amount=fee.fee_amount,
                    status=InvoiceStatus.DRAFT,
                    created_at=now,
                )
                logger.info("Created draft %s for %s / %s (%s)", invoice.invoice_number, franchisee.id, brand, period)
            else:
                invoice.total_gross_revenue = fee.total_gross
                invoice.fee_percentage = fee.effective_percentage
                invoice.fee_amount = fee.fee_amount

            return self.store.save_invoice(invoice)

    # ------------------------------------------------------------------------------------------------
    # Invoice edits and status
    # ------------------------------------------------------------------------------------------------
    def override_invoice(self, invoice_id: str, total_gross_revenue=None, fee_amount=None,
                         fee_percentage=None, week_start=None) -> Invoice:
        """
        Hand-correct a draft invoice. Negative or blank values are ignored.

        The override lasts until the next report write for the same brand and week.

        Raises:
            ReconciliationConflictError: The invoice is not a draft.
            UploadValidationError: week_start is not a readable date.
        """
        current = self.store.get_invoice(invoice_id)
        if not current.is_draft:
            raise ReconciliationConflictError("Only draft invoices can be edited")

        week = None
        if week_start is not None and str(week_start).strip():
            day = parse_flexible_date(week_start)
            if day is None:
                raise UploadValidationError("Invalid week date. Use the Monday that starts the week (yyyy-MM-dd).")
            week = resolve_calendar_week(day)

        keys = [(current.franchise_id, current.brand or "", current.period_start, current.period_end)]
        if week is not None:
            keys.append((current.franchise_id, current.brand or "", week.start, week.end))

        # Read, edit and save under the key locks of both the old and the new week
        try:
            with self.locks.hold_all(keys), self.store.transaction():
                invoice = self.store.get_invoice(invoice_id)
                if not invoice.is_draft:
                    raise ReconciliationConflictError("Only draft invoices can be edited")

                changed = False
                for attribute, value in (("total_gross_revenue", total_gross_revenue),
                                         ("fee_amount", fee_amount),
                                         ("fee_percentage", fee_percentage)):
                    amount = to_decimal(value)
                    if amount is not None and amount >= 0:
                        setattr(invoice, attribute, round_money(amount))
                        changed = True
                if week is not None:
                    invoice.period_start, invoice.period_end = week.start, week.end
                    changed = True

                if not changed:
                    logger.info("Override of %s: no changes", invoice.invoice_number)
                    return invoice
                self.store.save_invoice(invoice)
        except sqlite3.IntegrityError as exc:
            raise ReconciliationConflictError(
                "An invoice already exists for this brand and week."
            ) from exc
        logger.info("Overrode draft %s", invoice.invoice_number)
        return invoice

    def apply_payment_event(self, invoice_id: str, status) -> Invoice:
        """
        Move an invoice forward through draft → sent → processing → paid.

        Repeating the current status is a no-op (payment webhooks may be delivered twice).

        Raises:
            InvoiceStatusError: The move would go backwards.
        """
        try:
            target = status if isinstance(status, InvoiceStatus) else InvoiceStatus(str(status).strip().lower())
        except ValueError as exc:
            raise InvoiceStatusError(f"Unknown invoice status: {status!r}") from exc
        invoice = self.store.get_invoice(invoice_id)
        if target.rank < invoice.status.rank:
            raise InvoiceStatusError(
                f"Invoice {invoice.invoice_number} is {invoice.status.value}; it cannot move back to {target.value}."
            )
        if target is invoice.status:
            return invoice

        invoice.status = target
        with self.store.transaction():
            self.store.save_invoice(invoice)
        logger.info("Invoice %s → %s", invoice.invoice_number, target.value)
        return invoice

    def record_invoice_paid(self, franchisee: Franchisee, invoice_id: str) -> Invoice:
        """
        Mark an invoice paid after paying a 'pay-them' franchisee by hand.

        Raises:
            InvoiceStatusError: Already paid.
            ConfigurationError: The franchisee is on the collect-fees direction.
        """
        invoice = self.store.get_invoice(invoice_id)
        if invoice.status is InvoiceStatus.PAID:
            raise InvoiceStatusError("This invoice is already marked as paid")
        if franchisee.fee_config.payment_direction is not PaymentDirection.PAY_THEM:
            raise ConfigurationError(
                "Record payment is only for franchisees we pay (payment direction: We pay them)."
            )
        return self.apply_payment_event(invoice_id, InvoiceStatus.PAID)

    def delete_invoice(self, invoice_id: str) -> None:
        with self.store.transaction():
            self.store.delete_invoice(invoice_id)
        logger.info("Deleted invoice %s", invoice_id)

    def delete_franchise(self, franchise_id: str) -> Tuple[int, int]:
        """Remove every report and invoice for a franchisee. Returns (reports, invoices) deleted."""
        with self.store.transaction():
            return self.store.delete_franchise(franchise_id)

    # ------------------------------------------------------------------------------------------------
    # Invoice statement view
    # ------------------------------------------------------------------------------------------------
    def build_invoice_statement(self, franchisee: Franchisee, invoice_id: str) -> InvoiceStatement:
        """
        Everything the invoice PDF / email needs for one invoice.

        Returns:
            InvoiceStatement:
                - one line per aggregator report (platform, brand, gross, rate, fee)
                - the direct-platform block for the sales period paid the Monday after the week
                - the payable figure: fee amount (collect-fees) or Deliveroo gross − fee (pay-them)
        """
        invoice = self.store.get_invoice(invoice_id)
        config = franchisee.fee_config
        brand_filter = invoice.brand if invoice.brand else None

        # STEP 1: Aggregator lines
        reports = self.store.list_reports(franchisee.id, brand=brand_filter, period=invoice.period,
                                          platforms=AGGREGATOR_PLATFORMS)
        lines = []
        for report in reports:
            rate = config.rate_for(report.platform)
            lines.append(StatementLine(
                platform=report.platform,
                brand=report.brand,
                gross_revenue=report.gross_revenue,
                fee_rate=rate,
                fee_amount=round_money(report.gross_revenue * rate / HUNDRED),
            ))

        # STEP 2: Direct-platform block (weekly invoices only)
        direct_block = None
        if invoice.period_start.weekday() == 0 and (invoice.period_end - invoice.period_start).days == 6:
            direct_period = direct_platform_period_for_aggregator_week(invoice.period_end)
            direct_reports = self.store.list_reports(franchisee.id, brand=brand_filter, period=direct_period,
                                                     platforms=[Platform.SLERP])
            if direct_reports:
                gross = round_money(sum((r.gross_revenue for r in direct_reports), Decimal("0")))
                direct_block = DirectPlatformBlock(
                    period=direct_period,
                    payout_date=payout_date_for_sales_period(direct_period),
                    gross_revenue=gross,
                    fee_amount=compute_direct_platform_fee(config, gross),
                )

        # STEP 3: Payable figure
        if config.payment_direction is PaymentDirection.PAY_THEM:
            deliveroo_gross = sum(
                (r.gross_revenue for r in reports if r.platform is Platform.DELIVEROO), Decimal("0")
            )
            payable = round_money(deliveroo_gross - invoice.fee_amount)
        else:
            payable = round_money(invoice.fee_amount)

        return InvoiceStatement(invoice, lines, direct_block, config.payment_direction, payable)

    @staticmethod
    def statement_file_name(franchisee: Franchisee, invoice: Invoice) -> str:
        """"<Franchise name> - <invoice number> - <week>.pdf" with filesystem-unsafe characters replaced."""
        name = re.sub(r'[\\/:*?"<>|]', "-", franchisee.name or "Franchisee").strip() or "Franchisee"
        week = (f"{invoice.period_start.strftime(DISPLAY_DATE_FORMAT)} - "
                f"{invoice.period_end.strftime(DISPLAY_DATE_FORMAT)}")
        return re.sub(r"\s+", " ", f"{name} - {invoice.invoice_number} - {week}.pdf")

    # ------------------------------------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------------------------------------
    def reports_frame(self, franchise_id: str) -> pd.DataFrame:
        """All stored reports for a franchisee as a DataFrame (one row per report)."""
        reports = self.store.list_reports(franchise_id)
        return pd.DataFrame(
            [
                {
                    "brand": r.brand,
                    "platform": r.platform.label,
                    "week_start": r.period_start,
                    "week_end": r.period_end,
                    "gross_revenue": float(r.gross_revenue),
                    "source": r.source_kind.value,
                }
                for r in reports
            ],
            columns=["brand", "platform", "week_start", "week_end", "gross_revenue", "source"],
        )

    def invoices_frame(self, franchise_id: Optional[str] = None) -> pd.DataFrame:
        invoices = self.store.list_invoices(franchise_id)
        return pd.DataFrame(
            [
                {
                    "invoice_number": i.invoice_number,
                    "franchise_id": i.franchise_id,
                    "brand": i.brand or "",
                    "week_start": i.period_start,
                    "week_end": i.period_end,
                    "gross_revenue": float(i.total_gross_revenue),
                    "fee_percentage": float(i.fee_percentage),
                    "fee_amount": float(i.fee_amount),
                    "status": i.status.value,
                }
                for i in invoices
            ],
            columns=["invoice_number", "franchise_id", "brand", "week_start", "week_end",
                     "gross_revenue", "fee_percentage", "fee_amount", "status"],
        )
