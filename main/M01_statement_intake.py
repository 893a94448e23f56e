# ====================================================================================================
# M01_statement_intake.py
# ----------------------------------------------------------------------------------------------------
# Step 1 – Read an uploaded statement and hand it to the right extractor
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Decide the statement shape from its extension and content (CSV, PDF, text, HTML saved as .doc).
#   - Extract PDF text with a size limit and a timeout.
#   - Route the content to the Tabular / Free-text / HTML extractor for the selected platform.
#   - Fall back to a YYYYMMDD date in the file name when the content gives no week.
#   - Scan a statement folder for files covering a selected period.
#
# Inputs:
#   • Statement file (path or raw bytes + file name), platform
# Outputs:
#   • ParseResult for operator review (nothing is stored here)
#
# Notes:
#   - Direct-platform (Slerp) exports are spreadsheets and go through M02_process_direct_sales.
#   - Just Eat "doc" invoices are usually HTML saved with a .doc extension; real binary .doc
#     files are refused.
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
from processes.P02_period_resolver import period_from_filename, periods_overlap
from processes.P04_static_lists import (
    CSV_EXTENSIONS, PDF_EXTENSIONS, TEXT_EXTENSIONS, HTML_EXTENSIONS, HTML_SIGNATURES,
)
from processes.P05_error_types import ExtractionTimeoutError, UnrecognizedFormatError
from processes.P06_class_items import BillingPeriod, ParseResult, Platform
from processes.P07_module_configs import MAX_PDF_BYTES, PDF_EXTRACTION_TIMEOUT_SECONDS
from main.M02_process_csv import TabularExtractor
from main.M02_process_pdfs import FreeTextExtractor, extract_pdf_text
from main.M02_process_html import HtmlExtractor

logger = logging.getLogger(__name__)

EXTRACTORS = {
    "csv": TabularExtractor(),
    "text": FreeTextExtractor(),
    "html": HtmlExtractor(),
}


# ====================================================================================================
# 3. FORMAT SNIFFING
# ====================================================================================================

def is_html_content(data: bytes) -> bool:
    """True if the first 100 bytes look like an HTML document."""
    head = (data or b"")[:100].lstrip().lower()
    return any(signature in head for signature in HTML_SIGNATURES)


def sniff_statement_kind(file_name: str, data: bytes) -> str:
    """
    Work out which extractor a file needs.

    Returns:
        str: "csv", "pdf", "text" or "html".

    Raises:
        UnrecognizedFormatError: Unsupported extension, or a binary .doc file.
    """
    suffix = Path(file_name or "").suffix.lower()

    if suffix in CSV_EXTENSIONS:
        return "csv"
    if suffix in PDF_EXTENSIONS:
        return "pdf"
    if suffix in TEXT_EXTENSIONS:
        return "text"
    if suffix in HTML_EXTENSIONS:
        if is_html_content(data):
            return "html"
        raise UnrecognizedFormatError(
            "This appears to be a binary .doc file. Just Eat invoices are usually HTML files saved "
            "as .doc. Please re-download it from Just Eat Partner Centre."
        )
    raise UnrecognizedFormatError("Unsupported file type. Please upload a CSV, PDF, or DOC file.")


# ====================================================================================================
# 4. PDF EXTRACTION WITH TIMEOUT
# ====================================================================================================

def extract_pdf_text_with_timeout(data: bytes, timeout: Optional[float] = None) -> str:
    """
    Run PDF text extraction in a worker thread and give up after `timeout` seconds.

    Raises:
        UnrecognizedFormatError: PDF larger than MAX_PDF_BYTES.
        ExtractionTimeoutError: Extraction did not finish in time.
        ExtractionError: The PDF could not be read.
    """
    if len(data) > MAX_PDF_BYTES:
        raise UnrecognizedFormatError(
            f"PDF is too large (max {MAX_PDF_BYTES // (1024 * 1024)}MB). "
            "Try a shorter date range or use CSV if available."
        )

    timeout = PDF_EXTRACTION_TIMEOUT_SECONDS if timeout is None else timeout
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(extract_pdf_text, data)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError as exc:
        raise ExtractionTimeoutError(
            "Reading the PDF took too long. Try a shorter date range or use CSV if available.",
            detail=f"PDF extraction exceeded {timeout}s",
        ) from exc
    finally:
        # Don't block on a stuck worker; it finishes (or dies) in the background
        executor.shutdown(wait=False)


# ====================================================================================================
# 5. READ ONE STATEMENT
# ====================================================================================================

def read_statement(source, platform, file_name: Optional[str] = None,
                   timeout: Optional[float] = None) -> ParseResult:
    """
    Parse one statement upload for the operator to review.

    Args:
        source (Path | str | bytes): File path, or the raw uploaded bytes.
        platform (Platform | str): Aggregator the statement came from.
        file_name (str | None): Original file name (required when `source` is bytes).
        timeout (float | None): PDF extraction timeout override in seconds.

    Returns:
        ParseResult: Gross revenue, confidence, matched rule and inferred week.

    Raises:
        UnrecognizedFormatError: Unsupported file, binary .doc, oversize PDF or direct platform.
        ExtractionError / ExtractionTimeoutError: PDF text could not be obtained.
    """
    platform = Platform.parse(platform)
    if not platform.is_aggregator:
        raise UnrecognizedFormatError(
            "Slerp sales are uploaded as a spreadsheet on the direct sales step, not as a statement."
        )

    # ------------------------------------------------------------------------------------------------
    # STEP 1: Load bytes
    # ------------------------------------------------------------------------------------------------
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
        file_name = file_name or "upload"
    else:
        path = Path(source)
        data = path.read_bytes()
        file_name = file_name or path.name

    kind = sniff_statement_kind(file_name, data)
    logger.info("Reading %s statement %s (%s)", platform.label, file_name, kind)

    # ------------------------------------------------------------------------------------------------
    # STEP 2: Extract
    # ------------------------------------------------------------------------------------------------
    if kind == "csv":
        result = EXTRACTORS["csv"].parse(data.decode("utf-8-sig", errors="replace"), platform)
    elif kind == "html":
        result = EXTRACTORS["html"].parse(data.decode("utf-8", errors="replace"), platform)
    elif kind == "pdf":
        text = extract_pdf_text_with_timeout(data, timeout)
        result = EXTRACTORS["text"].parse(text, platform)
    else:
        result = EXTRACTORS["text"].parse(data.decode("utf-8", errors="replace"), platform)

    # ------------------------------------------------------------------------------------------------
    # STEP 3: Filename fallback for the week
    # ------------------------------------------------------------------------------------------------
    if result.period is None:
        result.period = period_from_filename(file_name)
        if result.period:
            logger.info("Week taken from file name: %s", result.period)

    return result


# ====================================================================================================
# 6. STATEMENT FOLDER SCAN
# ----------------------------------------------------------------------------------------------------
# Lists statement files whose file-name week overlaps the selected period.
# Statements are expected to carry a YYYYMMDD date in their name (e.g. "Deliveroo_20250203.pdf").
# ====================================================================================================

def scan_statement_folder(folder: Path, period: BillingPeriod) -> List[Tuple[Path, BillingPeriod]]:
    """
    Find statements in a folder covering the selected period.

    Args:
        folder (Path): Folder to scan (not recursive).
        period (BillingPeriod): Period to check coverage for.

    Returns:
        list[tuple[Path, BillingPeriod]]: (file, statement week) pairs sorted by week, then name.
            Files without a readable date in their name are skipped.
    """
    folder = Path(folder)
    supported = CSV_EXTENSIONS | PDF_EXTENSIONS | TEXT_EXTENSIONS | HTML_EXTENSIONS

    found = []
    for path in folder.glob("*"):
        if not path.is_file() or path.suffix.lower() not in supported:
            continue
        week = period_from_filename(path.name)
        if week and periods_overlap(week, period):
            found.append((path, week))

    if not found:
        print(f"⚠ No statements overlap {period} in {folder}")
        return []

    found.sort(key=lambda item: (item[1].start, item[0].name))
    print(f"📅 Overlapping statements: {found[0][1].start} → {found[-1][1].end} ({len(found)} files)")
    return found


def archive_statement(path: Path, processed_folder: Path) -> Path:
    """Move a statement into the processed folder, keeping its name. Returns the new path."""
    processed_folder = Path(processed_folder)
    processed_folder.mkdir(parents=True, exist_ok=True)
    target = processed_folder / Path(path).name
    shutil.move(str(path), str(target))
    logger.info("Moved %s → %s", Path(path).name, processed_folder)
    return target


# ====================================================================================================
# 7. MODULE TEST (STANDALONE EXECUTION)
# ----------------------------------------------------------------------------------------------------
# Usage: python main/M01_statement_intake.py <platform> <statement file>
# ====================================================================================================
if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python main/M01_statement_intake.py <platform> <statement file>")
        sys.exit(1)
    parsed = read_statement(Path(sys.argv[2]), sys.argv[1])
    print(f"Gross: £{parsed.gross_revenue}  ({parsed.confidence.value}, rule={parsed.matched_rule})")
    print(f"Week:  {parsed.period}")
