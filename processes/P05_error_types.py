# ====================================================================================================
# P05_error_types.py
# ----------------------------------------------------------------------------------------------------
# Typed exceptions raised by statement intake, extraction and reconciliation.
#
# Purpose:
#   - Give each failure class its own exception so callers can tell an unsupported upload apart
#     from a broken PDF or a locked invoice.
#   - Keep operator-facing messages separate from developer diagnostics.
#
# Usage:
#   from processes.P05_error_types import ExtractionError, UnrecognizedFormatError
#
# Notes:
#   - "No rule matched" is NOT an error: extractors return a zero, low-confidence result instead.
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
from processes.P00_set_packages import *


# ====================================================================================================
# 3. EXCEPTION HIERARCHY
# ====================================================================================================

class StatementError(Exception):
    """Base class for every error raised by the fee reconciliation workflow."""


class UnrecognizedFormatError(StatementError):
    """The upload is not a statement shape we can read (unsupported extension, binary .doc, etc.)."""


class ExtractionError(StatementError):
    """
    Text could not be obtained from a statement file.

    Args:
        message (str): Generic message safe to show an operator.
        detail (str | None): Underlying diagnostic, only shown when diagnostics are enabled.
    """

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def user_message(self, show_detail: bool = False) -> str:
        if show_detail and self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class ExtractionTimeoutError(ExtractionError):
    """PDF text extraction did not finish within the configured timeout."""


class ReconciliationConflictError(StatementError):
    """The requested change conflicts with the invoice's current state."""


class InvoiceStatusError(ReconciliationConflictError):
    """A payment event tried to move an invoice backwards or into an invalid status."""


class ConfigurationError(StatementError):
    """The franchisee's fee configuration cannot support the requested operation."""


class RecordNotFoundError(StatementError):
    """No invoice or report exists with the given identifier."""


class UploadValidationError(StatementError):
    """An upload row is missing something it needs (brand, billing period)."""
