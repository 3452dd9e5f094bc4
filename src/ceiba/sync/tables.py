"""
Table-level orchestration for a dataset.

Classifies declared and remote tables into novel / common / untracked and
drives creation, schema reconciliation and adoption. Tables are never
deleted.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from ..exceptions import UnimplementedError, ValidationError
from ..schema.differ import diff
from ..schema.hashing import hash_table
from ..schema.labels import LabelCache
from ..schema.models import TableSpec, TableType
from ..store.base import RemoteStore
from .fields import FieldReconciler, table_spec_from_remote


logger = logging.getLogger(__name__)

CREATABLE_TABLE_TYPES = (TableType.STANDARD, TableType.VIEW)


@dataclass
class TableReconciliation:
    """Outcome of reconciling a dataset's tables."""

    tables: List[TableSpec]
    created: List[str] = field(default_factory=list)
    reconciled: List[str] = field(default_factory=list)
    cache_hits: List[str] = field(default_factory=list)
    adopted: List[str] = field(default_factory=list)
    altered: List[str] = field(default_factory=list)
    drifted: List[str] = field(default_factory=list)

    @property
    def remote_writes(self) -> int:
        """Create and schema-update calls issued."""
        return len(self.created) + len(self.altered)


def check_creatable(dataset_id: str, table: TableSpec) -> None:
    """
    Fail before any remote call if a table cannot be created.

    Raises:
        UnimplementedError: For kinds other than standard and view
        ValidationError: For a standard table without fields
    """
    if table.type not in CREATABLE_TABLE_TYPES:
        raise UnimplementedError("table type", table.type.value)
    if table.type is TableType.STANDARD and not table.fields:
        raise ValidationError(
            f"Standard table '{dataset_id}.{table.id}' needs at least one field"
        )


class TableReconciler:
    """Creates, reconciles and adopts the tables of one dataset."""

    def __init__(self, store: RemoteStore, field_reconciler: Optional[FieldReconciler] = None):
        self.store = store
        self.field_reconciler = field_reconciler or FieldReconciler(store)

    def reconcile(
        self,
        dataset_id: str,
        tables: Sequence[TableSpec],
        cache: LabelCache,
        remote_table_ids: Optional[Iterable[str]] = None,
        table_filter: Optional[Iterable[str]] = None,
    ) -> TableReconciliation:
        """
        Reconcile declared tables against the remote dataset.

        Args:
            dataset_id: Dataset id
            tables: Declared tables
            cache: Per-table hashes from the last sync
            remote_table_ids: Remote table ids; listed from the store when None
            table_filter: Restrict the run to these table ids

        Returns:
            TableReconciliation with novel, common and untracked tables sorted by id
        """
        logger.info(f"Synchronizing tables for {dataset_id}")

        if remote_table_ids is None:
            remote_table_ids = self.store.list_tables(dataset_id)

        wanted = set(table_filter) if table_filter is not None else None
        declared = [t for t in tables if wanted is None or t.id in wanted]
        actual_ids = [t for t in remote_table_ids if wanted is None or t in wanted]

        if wanted is not None:
            unknown = wanted - {t.id for t in declared} - set(actual_ids)
            if unknown:
                logger.warning(
                    f"Ignoring tables neither declared nor present in {dataset_id}: {sorted(unknown)}"
                )

        table_diff = diff([t.id for t in declared], actual_ids)
        novel = [t for t in declared if t.id in table_diff.novel]
        common = [t for t in declared if t.id in table_diff.common]

        for table in novel:
            check_creatable(dataset_id, table)

        result = TableReconciliation(tables=[])
        synced: List[TableSpec] = []

        for table in novel:
            logger.info(f"Creating table {dataset_id}.{table.id}")
            self.store.create_table(dataset_id, table)
            result.created.append(table.id)
            synced.append(table)

        for table in common:
            if cache.table_hash(table.id) == hash_table(table):
                logger.debug(f"Hashes match for {dataset_id}.{table.id}")
                result.cache_hits.append(table.id)
                synced.append(table)
                continue

            outcome = self.field_reconciler.reconcile(dataset_id, table)
            result.reconciled.append(table.id)
            if outcome.schema_updated:
                result.altered.append(table.id)
            if outcome.has_drift:
                result.drifted.append(table.id)
            synced.append(outcome.table)

        for table_id in sorted(table_diff.untracked):
            logger.warning(f"Found untracked table, incorporating '{dataset_id}.{table_id}'")
            remote = self.store.get_table(dataset_id, table_id)
            synced.append(table_spec_from_remote(remote))
            result.adopted.append(table_id)

        result.tables = sorted(synced, key=lambda t: t.id)
        logger.info(
            f"Finished synchronizing tables for {dataset_id}: "
            f"{len(result.created)} created, {len(result.reconciled)} reconciled, "
            f"{len(result.cache_hits)} cached, {len(result.adopted)} adopted"
        )
        return result
