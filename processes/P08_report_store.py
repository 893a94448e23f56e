# ====================================================================================================
# P08_report_store.py
# ----------------------------------------------------------------------------------------------------
# Storage for revenue reports and invoices.
#
# Purpose:
#   - Define the store interface the reconciliation service writes through.
#   - Provide an in-memory store (tests, dry runs) and a SQLite store (local persistence).
#   - Enforce "one report per (franchise, brand, platform, period)" with a unique key and
#     delete-then-insert replacement.
#   - Make replace + recompute atomic via a re-entrant transaction() context.
#
# Usage:
#   from processes.P08_report_store import SqliteReportStore
#   store = SqliteReportStore(database_path)
#   with store.transaction():
#       store.replace_report(report)
#       store.save_invoice(invoice)
#
# Notes:
#   - SQLite money columns are INTEGER pence; percentages are INTEGER hundredths.
#
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
sys.dont_write_bytecode = True  # Prevents __pycache__ folders from being created


# ====================================================================================================
# 2. PROJECT IMPORTS
# ----------------------------------------------------------------------------------------------------
# Bring in standard libraries and settings from the central import hub.
# ====================================================================================================
from processes.P00_set_packages import *
from processes.P03_shared_functions import round_money
from processes.P05_error_types import RecordNotFoundError
from processes.P06_class_items import (
    BillingPeriod, Invoice, InvoiceStatus, Platform, RevenueReport, SourceKind,
)
from processes.P07_module_configs import INVOICE_PREFIX, INVOICE_SEQUENCE_WIDTH

logger = logging.getLogger(__name__)


def format_invoice_number(year: int, sequence: int) -> str:
    """HT-2025-0001 style invoice number."""
    return f"{INVOICE_PREFIX}-{year}-{sequence:0{INVOICE_SEQUENCE_WIDTH}d}"


def _invoice_key(franchise_id: str, brand: Optional[str], period: BillingPeriod) -> tuple:
    return (franchise_id, (brand or "").strip(), period.start, period.end)


# ====================================================================================================
# 3. STORE INTERFACE
# ====================================================================================================

class ReportStore:
    """Operations the reconciliation service needs from storage."""

    def transaction(self):
        raise NotImplementedError

    def replace_report(self, report: RevenueReport) -> RevenueReport:
        raise NotImplementedError

    def list_reports(self, franchise_id: str, brand: Optional[str] = None,
                     period: Optional[BillingPeriod] = None,
                     platforms: Optional[Iterable[Platform]] = None) -> List[RevenueReport]:
        raise NotImplementedError

    def save_invoice(self, invoice: Invoice) -> Invoice:
        raise NotImplementedError

    def get_invoice(self, invoice_id: str) -> Invoice:
        raise NotImplementedError

    def find_invoice(self, franchise_id: str, brand: Optional[str], period: BillingPeriod) -> Optional[Invoice]:
        raise NotImplementedError

    def list_invoices(self, franchise_id: Optional[str] = None) -> List[Invoice]:
        raise NotImplementedError

    def delete_invoice(self, invoice_id: str) -> None:
        raise NotImplementedError

    def delete_franchise(self, franchise_id: str) -> Tuple[int, int]:
        raise NotImplementedError

    def next_invoice_number(self, year: int) -> str:
        prefix = f"{INVOICE_PREFIX}-{year}-"
        sequences = [
            int(inv.invoice_number[len(prefix):])
            for inv in self.list_invoices()
            if inv.invoice_number.startswith(prefix) and inv.invoice_number[len(prefix):].isdigit()
        ]
        return format_invoice_number(year, max(sequences, default=0) + 1)


# ====================================================================================================
# 4. IN-MEMORY STORE
# ----------------------------------------------------------------------------------------------------
# Rolls back to a snapshot if anything inside the outermost transaction raises.
# ====================================================================================================

class InMemoryReportStore(ReportStore):

    def __init__(self):
        self._lock = threading.RLock()
        self._depth = 0
        self._reports: Dict[tuple, RevenueReport] = {}
        self._invoices: Dict[str, Invoice] = {}

    @contextmanager
    def transaction(self):
        with self._lock:
            snapshot = None
            if self._depth == 0:
                snapshot = (dict(self._reports), {k: replace(v) for k, v in self._invoices.items()})
            self._depth += 1
            try:
                yield self
            except Exception:
                if snapshot is not None:
                    self._reports, self._invoices = snapshot
                raise
            finally:
                self._depth -= 1

    def replace_report(self, report: RevenueReport) -> RevenueReport:
        with self.transaction():
            stored = replace(report, id=report.id or uuid.uuid4().hex)
            self._reports.pop(stored.key, None)
            self._reports[stored.key] = stored
            return stored

    def list_reports(self, franchise_id, brand=None, period=None, platforms=None):
        with self._lock:
            wanted = {Platform.parse(p) for p in platforms} if platforms is not None else None
            rows = [
                r for r in self._reports.values()
                if r.franchise_id == franchise_id
                and (brand is None or (r.brand or "") == brand.strip())
                and (period is None or (r.period_start, r.period_end) == (period.start, period.end))
                and (wanted is None or r.platform in wanted)
            ]
            return sorted(rows, key=lambda r: (r.period_start, r.brand or "", r.platform.value))

    def save_invoice(self, invoice: Invoice) -> Invoice:
        with self.transaction():
            key = _invoice_key(invoice.franchise_id, invoice.brand, invoice.period)
            for other in self._invoices.values():
                if other.id != invoice.id and _invoice_key(other.franchise_id, other.brand, other.period) == key:
                    raise sqlite3.IntegrityError(f"Invoice already exists for {key}")
            self._invoices[invoice.id] = replace(invoice)
            return invoice

    def get_invoice(self, invoice_id):
        with self._lock:
            if invoice_id not in self._invoices:
                raise RecordNotFoundError(f"Invoice not found: {invoice_id}")
            return replace(self._invoices[invoice_id])

    def find_invoice(self, franchise_id, brand, period):
        key = _invoice_key(franchise_id, brand, period)
        with self._lock:
            for invoice in self._invoices.values():
                if _invoice_key(invoice.franchise_id, invoice.brand, invoice.period) == key:
                    return replace(invoice)
        return None

    def list_invoices(self, franchise_id=None):
        with self._lock:
            rows = [replace(i) for i in self._invoices.values() if franchise_id is None or i.franchise_id == franchise_id]
        return sorted(rows, key=lambda i: (i.period_start, i.invoice_number))

    def delete_invoice(self, invoice_id):
        with self.transaction():
            if self._invoices.pop(invoice_id, None) is None:
                raise RecordNotFoundError(f"Invoice not found: {invoice_id}")

    def delete_franchise(self, franchise_id):
        with self.transaction():
            report_keys = [k for k, r in self._reports.items() if r.franchise_id == franchise_id]
            invoice_ids = [k for k, i in self._invoices.items() if i.franchise_id == franchise_id]
            for k in report_keys:
                del self._reports[k]
            for k in invoice_ids:
                del self._invoices[k]
            return len(report_keys), len(invoice_ids)


# ====================================================================================================
# 5. SQLITE STORE
# ====================================================================================================

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS revenue_reports (
  report_id      TEXT PRIMARY KEY,
  franchise_id   TEXT NOT NULL,
  brand          TEXT NOT NULL DEFAULT '',
  platform       TEXT NOT NULL CHECK (platform IN ('deliveroo','ubereats','justeat','slerp')),
  period_start   TEXT NOT NULL,          -- "YYYY-MM-DD"
  period_end     TEXT NOT NULL,
  gross_pence    INTEGER NOT NULL,
  source_path    TEXT,                   -- NULL for manual entries
  source_kind    TEXT NOT NULL CHECK (source_kind IN ('csv','extracted-text','spreadsheet','manual')),
  uploaded_at    TEXT NOT NULL,
  UNIQUE(franchise_id, brand, platform, period_start, period_end)
);

CREATE TABLE IF NOT EXISTS invoices (
  invoice_id       TEXT PRIMARY KEY,
  invoice_number   TEXT NOT NULL UNIQUE,
  franchise_id     TEXT NOT NULL,
  brand            TEXT NOT NULL DEFAULT '',   -- '' = all brands combined
  period_start     TEXT NOT NULL,
  period_end       TEXT NOT NULL,
  gross_pence      INTEGER NOT NULL,
  fee_pct_hundredths INTEGER NOT NULL,
  fee_pence        INTEGER NOT NULL,
  status           TEXT NOT NULL CHECK (status IN ('draft','sent','processing','paid')) DEFAULT 'draft',
  created_at       TEXT NOT NULL,
  UNIQUE(franchise_id, brand, period_start, period_end)
);

CREATE INDEX IF NOT EXISTS idx_reports_franchise_period ON revenue_reports(franchise_id, period_start, period_end);
CREATE INDEX IF NOT EXISTS idx_invoices_franchise ON invoices(franchise_id);
"""


def _to_hundredths(value: Decimal) -> int:
    return int(round_money(value) * 100)


def _from_hundredths(value: int) -> Decimal:
    return round_money(Decimal(int(value)) / Decimal(100))


class SqliteReportStore(ReportStore):
    """
    SQLite-backed report/invoice store.

    - Ensures schema on first use.
    - Provides a context-managed connection; one connection per thread while a transaction is open.
    - transaction() is re-entrant: only the outermost block commits or rolls back.
    """

    def __init__(self, db_path):
        self.db_path = str(db_path)
        # File-backed only: every transaction opens its own connection
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        logger.info("Report DB path: %s", self.db_path)
        self._ensure_schema()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._open()
        try:
            conn.executescript(SCHEMA_SQL)
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            # Nested: join the outer transaction
            yield conn
            return

        conn = self._open()
        self._local.conn = conn
        try:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")
        finally:
            self._local.conn = None
            conn.close()

    # ------------------------------------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------------------------------------
    @staticmethod
    def _report_from_row(row: sqlite3.Row) -> RevenueReport:
        return RevenueReport(
            franchise_id=row["franchise_id"],
            brand=row["brand"],
            platform=Platform(row["platform"]),
            period_start=date.fromisoformat(row["period_start"]),
            period_end=date.fromisoformat(row["period_end"]),
            gross_revenue=_from_hundredths(row["gross_pence"]),
            source_kind=SourceKind(row["source_kind"]),
            source_path=row["source_path"],
            uploaded_at=datetime.fromisoformat(row["uploaded_at"]),
            id=row["report_id"],
        )

    @staticmethod
    def _invoice_from_row(row: sqlite3.Row) -> Invoice:
        return Invoice(
            id=row["invoice_id"],
            invoice_number=row["invoice_number"],
            franchise_id=row["franchise_id"],
            brand=row["brand"] or None,
            period_start=date.fromisoformat(row["period_start"]),
            period_end=date.fromisoformat(row["period_end"]),
            total_gross_revenue=_from_hundredths(row["gross_pence"]),
            fee_percentage=_from_hundredths(row["fee_pct_hundredths"]),
            fee_amount=_from_hundredths(row["fee_pence"]),
            status=InvoiceStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ------------------------------------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------------------------------------
    def replace_report(self, report: RevenueReport) -> RevenueReport:
        stored = replace(report, id=report.id or uuid.uuid4().hex)
        with self.transaction() as conn:
            conn.execute(
                """
                DELETE FROM revenue_reports
                 WHERE franchise_id = ? AND brand = ? AND platform = ? AND period_start = ? AND period_end = ?
                """,
                (stored.franchise_id, stored.brand or "", stored.platform.value,
                 stored.period_start.isoformat(), stored.period_end.isoformat()),
            )
            conn.execute(
                """
                INSERT INTO revenue_reports
                  (report_id, franchise_id, brand, platform, period_start, period_end,
                   gross_pence, source_path, source_kind, uploaded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (stored.id, stored.franchise_id, stored.brand or "", stored.platform.value,
                 stored.period_start.isoformat(), stored.period_end.isoformat(),
                 _to_hundredths(stored.gross_revenue), stored.source_path, stored.source_kind.value,
                 stored.uploaded_at.isoformat()),
            )
        return stored

    def list_reports(self, franchise_id, brand=None, period=None, platforms=None):
        sql = "SELECT * FROM revenue_reports WHERE franchise_id = ?"
        params: list = [franchise_id]
        if brand is not None:
            sql += " AND brand = ?"
            params.append(brand.strip())
        if period is not None:
            sql += " AND period_start = ? AND period_end = ?"
            params += [period.start.isoformat(), period.end.isoformat()]
        if platforms is not None:
            values = [Platform.parse(p).value for p in platforms]
            sql += f" AND platform IN ({', '.join('?' for _ in values)})"
            params += values
        sql += " ORDER BY period_start, brand, platform"

        with self.transaction() as conn:
            return [self._report_from_row(r) for r in conn.execute(sql, params).fetchall()]

    # ------------------------------------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------------------------------------
    def save_invoice(self, invoice: Invoice) -> Invoice:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO invoices
                  (invoice_id, invoice_number, franchise_id, brand, period_start, period_end,
                   gross_pence, fee_pct_hundredths, fee_pence, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(invoice_id) DO UPDATE SET
                  brand = excluded.brand,
                  period_start = excluded.period_start,
                  period_end = excluded.period_end,
                  gross_pence = excluded.gross_pence,
                  fee_pct_hundredths = excluded.fee_pct_hundredths,
                  fee_pence = excluded.fee_pence,
                  status = excluded.status
                """,
                (invoice.id, invoice.invoice_number, invoice.franchise_id, (invoice.brand or "").strip(),
                 invoice.period_start.isoformat(), invoice.period_end.isoformat(),
                 _to_hundredths(invoice.total_gross_revenue), _to_hundredths(invoice.fee_percentage),
                 _to_hundredths(invoice.fee_amount), invoice.status.value, invoice.created_at.isoformat()),
            )
        return invoice

    def get_invoice(self, invoice_id):
        with self.transaction() as conn:
            row = conn.execute("SELECT * FROM invoices WHERE invoice_id = ?", (invoice_id,)).fetchone()
        if row is None:
            raise RecordNotFoundError(f"Invoice not found: {invoice_id}")
        return self._invoice_from_row(row)

    def find_invoice(self, franchise_id, brand, period):
        with self.transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM invoices
                 WHERE franchise_id = ? AND brand = ? AND period_start = ? AND period_end = ?
                """,
                (franchise_id, (brand or "").strip(), period.start.isoformat(), period.end.isoformat()),
            ).fetchone()
        return self._invoice_from_row(row) if row else None

    def list_invoices(self, franchise_id=None):
        sql = "SELECT * FROM invoices"
        params: list = []
        if franchise_id is not None:
            sql += " WHERE franchise_id = ?"
            params.append(franchise_id)
        sql += " ORDER BY period_start, invoice_number"
        with self.transaction() as conn:
            return [self._invoice_from_row(r) for r in conn.execute(sql, params).fetchall()]

    def delete_invoice(self, invoice_id):
        with self.transaction() as conn:
            cur = conn.execute("DELETE FROM invoices WHERE invoice_id = ?", (invoice_id,))
            if cur.rowcount == 0:
                raise RecordNotFoundError(f"Invoice not found: {invoice_id}")

    def delete_franchise(self, franchise_id):
        with self.transaction() as conn:
            reports = conn.execute("DELETE FROM revenue_reports WHERE franchise_id = ?", (franchise_id,)).rowcount
            invoices = conn.execute("DELETE FROM invoices WHERE franchise_id = ?", (franchise_id,)).rowcount
        logger.info("Deleted franchise %s: %d reports, %d invoices", franchise_id, reports, invoices)
        return reports, invoices
