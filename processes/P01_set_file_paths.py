# ====================================================================================================
# P01_set_file_paths.py
# ----------------------------------------------------------------------------------------------------
# Defines all root, statement, and output paths used across the project.
# Ensures centralised path management for consistent use across all modules.
#
# Purpose:
#   - Centralise all file and folder paths used throughout the project.
#   - Simplify portability between environments (FRANCHISE_ROOT overrides the default root).
#   - Create required folders on request before processing begins.
#
# Usage:
#   from processes.P01_set_file_paths import statement_unprocessed_folder, database_path
#
# Folder Hierarchy:
#   01 Statements
#       ├── 01 To Process
#       ├── 02 Processed
#       └── 03 Reference
#   02 Direct Sales
#   03 Output
#   franchise.sqlite3
#   franchisees.json
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


# ====================================================================================================
# 3. ROOT FOLDER DEFINITIONS
# ----------------------------------------------------------------------------------------------------
# Define the base directory. FRANCHISE_ROOT points the whole project at another data folder.
# ====================================================================================================
root_folder = Path(os.environ.get("FRANCHISE_ROOT", Path.cwd() / "franchise_data"))


# ====================================================================================================
# 4. SUBFOLDER DEFINITIONS
# ----------------------------------------------------------------------------------------------------
# Define the folder structure for statements, direct-platform exports and outputs.
# ====================================================================================================

# --- Statement folders ---
statement_folder = root_folder / '01 Statements'
statement_unprocessed_folder = statement_folder / '01 To Process'
statement_processed_folder = statement_folder / '02 Processed'
statement_reference_folder = statement_folder / '03 Reference'  # Sample statements for new layouts

# --- Direct platform + output folders ---
direct_sales_folder = root_folder / '02 Direct Sales'
output_folder = root_folder / '03 Output'

# --- Files ---
database_path = root_folder / 'franchise.sqlite3'
franchisee_config_path = root_folder / 'franchisees.json'


# ====================================================================================================
# 5. ENSURE FOLDERS EXIST
# ----------------------------------------------------------------------------------------------------
# Create all expected subdirectories if they don't already exist.
# Called by the CLI rather than at import so tests never touch the real data folder.
# ====================================================================================================
def ensure_folders(base: Optional[Path] = None) -> List[Path]:
    """
    Create the standard folder tree under the given root (defaults to root_folder).

    Returns:
        list[Path]: The folders that now exist.
    """
    base = Path(base) if base else root_folder
    folders = [
        base,
        base / statement_folder.name,
        base / statement_folder.name / statement_unprocessed_folder.name,
        base / statement_folder.name / statement_processed_folder.name,
        base / statement_folder.name / statement_reference_folder.name,
        base / direct_sales_folder.name,
        base / output_folder.name,
    ]
    for folder in folders:
        folder.mkdir(parents=True, exist_ok=True)
    return folders
