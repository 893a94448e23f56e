# ====================================================================================================
# P00_set_packages.py
# ----------------------------------------------------------------------------------------------------
# Centralized import file that sets up all global packages used across the project.
# Ensures consistent imports and prevents duplication across modules.
# Optimized for statement parsing (PDF / CSV / HTML) + Pandas + SQLite workflow.
#
# Purpose:
#   - Provide a single, consistent import hub for all core, parsing, and reconciliation modules.
#   - Unify dependencies for Pandas + PDF + HTML + SQLite workflows.
#   - Prevent duplication across scripts and simplify maintenance.
#
# Optimized for:
#   • DataFrames (Pandas, NumPy, openpyxl for Excel exports)
#   • PDF parsing (pdfplumber / pdfminer)
#   • HTML statements saved as .doc (BeautifulSoup)
#   • Money arithmetic (Decimal, half-up rounding)
#
# Usage:
#   from processes.P00_set_packages import *
#
# Dependencies (install once per venv):
#   pip install pandas numpy pdfplumber pdfminer.six beautifulsoup4 openpyxl
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


# ----------------------------------------------------------------------------------------------------
# --- Standard library imports (no installation required) ---
# ----------------------------------------------------------------------------------------------------
import os                                                       # OS-level operations (paths, environment variables)
import io                                                       # Handle in-memory file-like streams (e.g., StringIO)
import re                                                       # Regular expressions for pattern matching
import json                                                     # Read/write JSON files for franchisee configs
import shutil                                                   # File operations: move processed statements
import html                                                     # Decode HTML entities left behind after tag stripping
import uuid                                                     # Unique identifiers for invoices and reports
import sqlite3                                                  # Local SQLite store for reports and invoices
import logging                                                  # Standard logging for info/warning/error tracking
import argparse                                                 # Command-line interface for the workflow steps
import threading                                                # Per-key locks around report writes
import datetime as dt                                           # Shortcut alias for datetime module (used as dt.date / dt.datetime)
import calendar                                                 # Calendar operations (e.g., month ranges, weekday checks)
from datetime import date, datetime, timedelta                  # Work with dates and times
from enum import Enum                                           # Closed sets (platforms, statuses, fee models)
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation    # Exact money arithmetic with half-up rounding
from concurrent.futures import ThreadPoolExecutor               # Run PDF extraction with a timeout
from concurrent.futures import TimeoutError as FuturesTimeoutError
from functools import partial                                   # Preconfigured function wrappers
from typing import Iterable, Callable, Optional, List, Dict, Tuple, Union   # Type hints for clean function signatures
from dataclasses import dataclass, field, replace               # Lightweight class creation (auto __init__, __repr__, etc.)

# Only needed where modules define their own context managers (store transactions, key locks).
from contextlib import contextmanager                           # Simplify resource management (e.g., custom DB contexts)

import warnings                                                 # Control or suppress library warnings
warnings.filterwarnings("ignore", category=UserWarning)         # Suppress noisy UserWarnings (e.g., openpyxl styles)


# ----------------------------------------------------------------------------------------------------
# --- Third-party imports (require installation via pip) ---
# ----------------------------------------------------------------------------------------------------
import pandas as pd                                             # (pip install pandas) Data analysis and manipulation
import numpy as np                                              # (installed with pandas) Numerical arrays, fast math ops
import pdfplumber                                               # (pip install pdfplumber) Extract text/tables from PDF files accurately
from pdfminer.high_level import extract_text                    # (installed with pdfplumber) Fallback PDF text extraction if pdfplumber fails
from bs4 import BeautifulSoup                                   # (pip install beautifulsoup4) Flatten HTML statements to plain text


# ----------------------------------------------------------------------------------------------------
# Default pandas display settings (for readability and consistency)
# ----------------------------------------------------------------------------------------------------
pd.set_option("display.max_columns", None)                      # Always show all columns in printed DataFrames
pd.set_option("display.width", 200)                             # Wider console display for tabular outputs
pd.set_option("display.float_format", "{:,.2f}".format)         # Uniform float formatting (e.g., 1,234.56)
