"""Public interface for the ``ledger_ingest`` package.

This module exposes the import API and the public models/types as the stable
import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import Analysis, ImportResult, analyze_table, import_file, import_table
from .autocat import apply_category, learn, pending_suggestions, suggest
from .errors import LedgerIngestError, RowIssue, StatsStoreError, StructuralError
from .models import (
    CanonicalRow,
    ColumnProfile,
    ColumnRoleMap,
    FileStructure,
    ImportConfig,
    RoleDetection,
    WordStats,
)

__all__ = [
    # API
    "analyze_table",
    "import_file",
    "import_table",
    "learn",
    "suggest",
    "pending_suggestions",
    "apply_category",
    "Analysis",
    "ImportResult",
    # Models / types
    "CanonicalRow",
    "ColumnProfile",
    "ColumnRoleMap",
    "FileStructure",
    "ImportConfig",
    "RoleDetection",
    "WordStats",
    # Errors
    "LedgerIngestError",
    "RowIssue",
    "StatsStoreError",
    "StructuralError",
]
