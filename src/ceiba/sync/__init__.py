"""
Synchronization package for ceiba.

This package provides:
- Dataset-level sync (full and partial) driven by cached content hashes
- Table orchestration: create novel, reconcile common, adopt untracked
- Accretive per-table schema reconciliation
"""

from .fields import FieldReconciler, FieldReconciliation, sanitize_appended_field
from .reconciler import DatasetReconciler, SyncResult, SyncStatus
from .tables import TableReconciler, TableReconciliation

__all__ = [
    "FieldReconciler",
    "FieldReconciliation",
    "sanitize_appended_field",
    "DatasetReconciler",
    "SyncResult",
    "SyncStatus",
    "TableReconciler",
    "TableReconciliation",
]
