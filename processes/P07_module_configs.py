# ====================================================================================================
# P07_module_configs.py
# ----------------------------------------------------------------------------------------------------
# Central configuration hub for the Franchise Fee Reconciliation project.
#
# Purpose:
#   - Store shared constants, configuration parameters, and toggle switches used across modules.
#   - Maintain one centralized source for settings such as fee defaults, brand names, size limits
#     and invoice numbering.
#   - Simplify maintenance by avoiding hard-coded values in parsing or reconciliation scripts.
#
# Usage:
#   from processes.P07_module_configs import DEFAULT_FEE_RATE, KNOWN_BRANDS
#
# Example:
#   >>> print(DEFAULT_FEE_RATE)
#   Decimal('6')
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
# Bring in shared libraries and base settings from the central import hub.
# ====================================================================================================
from processes.P00_set_packages import *


# ====================================================================================================
# 3. GLOBAL CONFIGURATION CONSTANTS
# ----------------------------------------------------------------------------------------------------
# Shared constants for date formats, brands, fees and invoice numbering.
# These should remain consistent across all platform workflows.
# ----------------------------------------------------------------------------------------------------

# --- Date & Time Formats ---
DISPLAY_DATE_FORMAT = "%d %b %Y"          # Human-readable display format for statements
MONTH_SELECTOR_FORMAT = "%Y-%m"           # Month selector for monthly invoices (e.g. 2025-06)
DAY_FIRST_DATES = True                    # Ambiguous numeric dates are read as DD/MM (UK statements)

# --- Brands (Deliveroo statements list several brands in one document) ---
KNOWN_BRANDS = ["Wing Shack", "SMSH BN", "Eggs n Stuff"]
DEFAULT_BRAND = "Wing Shack"              # Receives the whole total when no brand rows are found

# --- Fee defaults ---
DEFAULT_FEE_RATE = Decimal("6")           # Flat percentage when a franchisee has none configured
MONEY_QUANTUM = Decimal("0.01")           # All money rounds half-up to pence

# --- Invoice numbering ---
INVOICE_PREFIX = "HT"                     # Invoice numbers look like HT-2025-0001
INVOICE_SEQUENCE_WIDTH = 4

# --- Statement extraction limits ---
MAX_PDF_BYTES = 15 * 1024 * 1024          # Larger PDFs are refused before extraction
PDF_EXTRACTION_TIMEOUT_SECONDS = 60       # Extraction is abandoned after this many seconds
PERIOD_SCAN_LIMIT = 2000                  # Standalone dates are only trusted near the top of a document
RAW_TEXT_SNIPPET_LENGTH = 2000            # Length of the text snippet kept on a ParseResult
BRAND_LOOKAHEAD_CHARS = 350               # Window after a brand name searched for its Total Order Value
NUMERIC_COLUMN_SHARE = 0.5                # Share of numeric-looking cells for a fallback revenue column
ASSUMED_MARKETPLACE_COMMISSION = Decimal("0.30")   # Uber Eats commission when none is stated

# --- Direct platform (Slerp) ---
EXCLUDED_DIRECT_LOCATIONS = ["luton"]     # Locations never billed through the direct platform
DIRECT_FULFILLED_STATUS = "fulfilled"

# --- Environment & diagnostics ---
APP_ENV = os.environ.get("FRANCHISE_ENV", "production")
SHOW_EXTRACTION_DETAIL = APP_ENV != "production"   # Developer detail on extraction errors


# ====================================================================================================
# 4. FUNCTIONAL CONFIGURATION TOGGLES
# ----------------------------------------------------------------------------------------------------
# Use these to enable/disable optional behaviours at runtime.
# ----------------------------------------------------------------------------------------------------

# Move statements into the processed folder once a folder ingest has stored them
MOVE_PROCESSED_STATEMENTS = True

# Automatically create missing data folders when the CLI starts
AUTO_CREATE_DATA_FOLDERS = True

# --- Logging Settings ---
ENABLE_DEBUG_LOGGING = os.environ.get("FRANCHISE_DEBUG") == "1"   # Toggle verbose console debug messages
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"        # Timestamp + level + message layout
LOG_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"                         # Format for log timestamps


# ====================================================================================================
# 5. LOGGING CONFIGURATION
# ----------------------------------------------------------------------------------------------------
# Applied once, on first import. Does nothing if the root logger already has handlers.
# ====================================================================================================
logging.basicConfig(
    level=logging.DEBUG if ENABLE_DEBUG_LOGGING else logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATETIME_FORMAT,
)
