# ====================================================================================================
# M06_monthly_invoices.py
# ----------------------------------------------------------------------------------------------------
# Step 6 – Fixed-monthly invoices and arrears backfill
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Raise one draft invoice per calendar month for franchisees on the fixed-monthly model.
#   - Backfill missed months from a start month up to the last full month, writing off
#     historical arrears against each month's fee on an explicit schedule.
#
# Notes:
#   - Monthly invoices cover all brands (brand is None) and record gross revenue as 0.
#   - The waiver is reported per month; the invoice itself always carries the full monthly fee.
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
from processes.P02_period_resolver import last_full_month, month_period, next_month, parse_month_selector
from processes.P03_shared_functions import round_money
from processes.P05_error_types import ConfigurationError, UploadValidationError
from processes.P06_class_items import (
    ArrearsWaiverSchedule, BackfillMonth, BackfillResult, BillingPeriod, FeeModel, Franchisee, Invoice,
    InvoiceStatus,
)
from processes.P07_module_configs import MONTH_SELECTOR_FORMAT
from processes.P08_report_store import ReportStore
from main.M04_fee_rules import compute_fee

logger = logging.getLogger(__name__)


def _month_label(period: BillingPeriod) -> str:
    return period.start.strftime(MONTH_SELECTOR_FORMAT)


# ====================================================================================================
# 3. MONTHLY INVOICE SERVICE
# ====================================================================================================

class MonthlyInvoiceService:
    """
    Creates fixed-monthly invoices.

    Args:
        store (ReportStore): Invoice storage shared with the reconciliation service.
        clock (Callable[[], datetime] | None): Source of "now" for invoice numbers.
    """

    def __init__(self, store: ReportStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or datetime.now

    @staticmethod
    def _monthly_fee(franchisee: Franchisee) -> Decimal:
        if franchisee.fee_config.model is not FeeModel.FIXED_MONTHLY:
            raise ConfigurationError("Monthly invoices are only available for fixed-monthly franchisees.")
        # compute_fee validates the monthly fee (set and > 0)
        return compute_fee(franchisee.fee_config, {}).fee_amount

    def _new_invoice(self, franchisee: Franchisee, period: BillingPeriod, fee: Decimal,
                     created_at: datetime) -> Invoice:
        invoice = Invoice(
            id=uuid.uuid4().hex,
            invoice_number=self.store.next_invoice_number(created_at.year),
            franchise_id=franchisee.id,
            brand=None,
            period_start=period.start,
            period_end=period.end,
            total_gross_revenue=Decimal("0.00"),
            fee_percentage=Decimal("0.00"),
            fee_amount=fee,
            status=InvoiceStatus.DRAFT,
            created_at=created_at,
        )
        return self.store.save_invoice(invoice)

    def create_monthly_invoice(self, franchisee: Franchisee, month: Optional[str] = None,
                               today: Optional[date] = None) -> Tuple[Invoice, bool]:
        """
        Create the draft invoice for one month (default: the last full month).

        Args:
            franchisee (Franchisee): Must be on the fixed-monthly model with a positive fee.
            month (str | None): "YYYY-MM". Blank means the last full month.
            today (date | None): Reference date for "last full month".

        Returns:
            tuple[Invoice, bool]: The invoice and whether it was created (False = already existed).

        Raises:
            ConfigurationError: Wrong fee model, or monthly fee missing.
            UploadValidationError: Malformed month.
        """
        fee = self._monthly_fee(franchisee)

        if month is not None and str(month).strip():
            period = parse_month_selector(month)
            if period is None:
                raise UploadValidationError("Invoice month must be in yyyy-MM format.")
        else:
            period = last_full_month(today)

        with self.store.transaction():
            existing = self.store.find_invoice(franchisee.id, None, period)
            if existing is not None:
                logger.info("Invoice already exists for %s (%s)", _month_label(period), existing.status.value)
                return existing, False
            invoice = self._new_invoice(franchisee, period, fee, self.clock())

        logger.info("Monthly invoice %s created for %s", invoice.invoice_number, _month_label(period))
        return invoice, True

    def backfill_monthly_invoices(self, franchisee: Franchisee, start_month: str,
                                  schedule: ArrearsWaiverSchedule,
                                  today: Optional[date] = None) -> BackfillResult:
        """
        Create one draft invoice per month from `start_month` to the last full month.

        Args:
            franchisee (Franchisee): Fixed-monthly franchisee.
            start_month (str): "YYYY-MM". A month after the last full month is moved back one year
                if that lands on or before the last full month (e.g. "2025-06" picked in Jan 2025).
            schedule (ArrearsWaiverSchedule): Arrears to write off and the monthly cap.
            today (date | None): Reference date for "last full month".

        Returns:
            BackfillResult: Per month: invoice, created flag, fee, waived amount, balance after.

        Notes:
            - Months that already have an invoice are skipped but still consume the waiver.
            - Each month waives min(cap or monthly fee, monthly fee, remaining arrears).
            - created_at of a backfilled invoice is the month's last day (midday).
        """
        fee = self._monthly_fee(franchisee)

        start = parse_month_selector(start_month)
        if start is None:
            raise UploadValidationError("Start month must be in yyyy-MM format.")
        arrears = schedule.initial_arrears
        if arrears is None or arrears < 0:
            raise UploadValidationError("Initial arrears must be a non-negative number.")
        if schedule.monthly_cap is not None and schedule.monthly_cap < 0:
            raise UploadValidationError("Monthly waiver cap must be a non-negative number.")

        # ------------------------------------------------------------------------------------------------
        # STEP 1: Work out the month range
        # ------------------------------------------------------------------------------------------------
        end = last_full_month(today)
        result = BackfillResult(starting_arrears=round_money(arrears))
        if start.start > end.start:
            shifted = month_period(start.start.year - 1, start.start.month)
            if shifted.start > end.start:
                raise UploadValidationError("Start month must be before or equal to the last full month.")
            start = shifted
            result.adjusted_start_month = _month_label(shifted)
            logger.info("Start month moved back one year to %s", result.adjusted_start_month)

        # ------------------------------------------------------------------------------------------------
        # STEP 2: Walk the months
        # ------------------------------------------------------------------------------------------------
        remaining = round_money(arrears)
        cap = fee if schedule.monthly_cap is None else round_money(schedule.monthly_cap)
        period = start

        with self.store.transaction():
            while period.start <= end.start:
                waived = round_money(min(cap, fee, remaining))
                balance_after = round_money(max(Decimal("0"), remaining - waived))

                existing = self.store.find_invoice(franchisee.id, None, period)
                if existing is not None:
                    invoice, created = existing, False
                else:
                    created_at = datetime.combine(period.end, dt.time(12, 0))
                    invoice, created = self._new_invoice(franchisee, period, fee, created_at), True

                result.months.append(BackfillMonth(
                    month=_month_label(period),
                    invoice=invoice,
                    created=created,
                    fee_amount=fee,
                    waived_amount=waived,
                    balance_after=balance_after,
                ))
                remaining = balance_after
                period = next_month(period)

        logger.info(
            "Backfill complete for %s: %d created, %d skipped, arrears left £%s",
            franchisee.id, result.created_count, result.skipped_count, result.remaining_arrears,
        )
        return result
