"""
Dataset synchronization for ceiba.

Makes a remote dataset match its declaration without deleting anything.
Content hashes from the previous sync are kept in reserved dataset labels so
that an unchanged declaration costs a single read, and every sync ends with
at most one consolidated label/description update.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from ..exceptions import DatasetNotFoundError, ValidationError
from ..schema.hashing import hash_dataset, hash_properties, hash_table, hash_tables
from ..schema.labels import (
    DATASET_HASH,
    PROPS_HASH,
    TABLES_HASH,
    LabelCache,
    apply_patch,
    strip_reserved,
)
from ..schema.models import DatasetProperties, DatasetSpec
from ..schema.properties import merge_properties
from ..store.base import RemoteDataset, RemoteStore
from .tables import TableReconciler, TableReconciliation, check_creatable


logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    """Which path a sync took."""

    CREATED = "created"
    UNCHANGED = "unchanged"
    RECONCILED = "reconciled"
    PROPERTIES_RECONCILED = "properties_reconciled"
    PARTIAL = "partial"
    SKIPPED = "skipped"


@dataclass
class SyncResult:
    """Result of a dataset sync."""

    status: SyncStatus
    dataset: DatasetSpec
    labels: Optional[Dict[str, Optional[str]]] = None
    tables: Optional[TableReconciliation] = None
    remote_writes: int = 0
    execution_time_ms: float = 0.0

    @property
    def changed(self) -> bool:
        return self.remote_writes > 0


def without_reserved_labels(dataset: DatasetSpec) -> DatasetSpec:
    """Copy of a declaration whose properties carry only user labels."""
    properties = dataset.properties
    if properties is None:
        return dataset

    cleaned = DatasetProperties(
        description=properties.description,
        labels=strip_reserved(properties.labels),
    )
    return dataset.with_properties(None if cleaned.is_empty else cleaned)


def stamp(cache: LabelCache, dataset: DatasetSpec) -> LabelCache:
    """Record every hash level of a dataset spec in the cache."""
    cache.set(TABLES_HASH, hash_tables(dataset.tables))
    cache.set(PROPS_HASH, hash_properties(dataset.properties))
    cache.set(DATASET_HASH, hash_dataset(dataset))
    for table in dataset.tables:
        cache.set_table_hash(table.id, hash_table(table))
    return cache


class DatasetReconciler:
    """
    Synchronizes declared datasets with a remote store.

    The reconciler holds no state between calls: the returned spec and the
    reserved labels written remotely are the only memory of a sync.
    """

    def __init__(
        self,
        store: RemoteStore,
        ignore_cache: bool = False,
        table_reconciler: Optional[TableReconciler] = None,
    ):
        self.store = store
        self.ignore_cache = ignore_cache
        self.table_reconciler = table_reconciler or TableReconciler(store)

    def sync(self, dataset: DatasetSpec) -> SyncResult:
        """
        Fully synchronize a dataset.

        Args:
            dataset: Declared dataset

        Returns:
            SyncResult whose dataset is the post-sync truth, including tables
            and columns found remotely but not declared
        """
        start_time = time.monotonic()
        self._check_preconditions(dataset)

        declared = without_reserved_labels(dataset)
        dataset_key = f"{declared.project}.{declared.id}"
        logger.info(f"Synchronizing dataset {dataset_key}")

        remote = self.store.get_dataset(declared.id)

        if remote is None:
            result = self._create(declared)
        else:
            logger.info(f"Using existing dataset {dataset_key} in {remote.location}")
            cache = self._read_cache(remote)

            if cache.dataset_hash == hash_dataset(declared):
                logger.info(f"Hashes match for {dataset_key}")
                result = SyncResult(status=SyncStatus.UNCHANGED, dataset=declared)
            elif cache.tables_hash != hash_tables(declared.tables):
                result = self._reconcile_all(declared, remote, cache)
            else:
                logger.info(f"Tables ok, reconciling properties for {dataset_key}")
                result = self._reconcile_properties(declared, remote)

        result.execution_time_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            f"Finished synchronizing {dataset_key}: "
            f"{result.status.value} ({result.execution_time_ms:.1f}ms)"
        )
        return result

    def sync_tables(
        self, dataset: DatasetSpec, table_ids: Optional[Iterable[str]] = None
    ) -> SyncResult:
        """
        Synchronize a subset of a dataset's tables.

        The dataset must already exist. Aggregate hashes cannot be computed
        from a subset, so they are invalidated and the next full sync
        re-derives them.

        Args:
            dataset: Declared dataset
            table_ids: Tables to synchronize; defaults to every declared table

        Raises:
            DatasetNotFoundError: If the dataset does not exist remotely
        """
        start_time = time.monotonic()
        self._check_preconditions(dataset)

        declared = without_reserved_labels(dataset)
        dataset_key = f"{declared.project}.{declared.id}"
        subset = list(table_ids) if table_ids is not None else declared.table_ids

        remote = self.store.get_dataset(declared.id)
        if remote is None:
            raise DatasetNotFoundError(declared.id)

        if not subset:
            logger.info(f"No tables selected for {dataset_key}, skipping")
            return SyncResult(status=SyncStatus.SKIPPED, dataset=declared)

        logger.info(f"Synchronizing tables {subset} of existing dataset {dataset_key}")
        cache = self._read_cache(remote)

        selected = [t for t in declared.tables if t.id in subset]
        if len(selected) == len(set(subset)) and all(
            cache.table_hash(t.id) == hash_table(t) for t in selected
        ):
            logger.info(f"Hashes match for every selected table in {dataset_key}")
            result = SyncResult(status=SyncStatus.UNCHANGED, dataset=declared)
        else:
            report = self.table_reconciler.reconcile(
                declared.id, declared.tables, cache, table_filter=subset
            )
            untouched = [t for t in declared.tables if t.id not in set(subset)]
            next_properties = merge_properties(remote.properties, declared.properties)
            next_dataset = declared.with_tables(
                sorted(untouched + report.tables, key=lambda t: t.id)
            ).with_properties(next_properties)

            next_cache = cache
            next_cache.invalidate(DATASET_HASH)
            next_cache.invalidate(TABLES_HASH)
            next_cache.set(PROPS_HASH, hash_properties(next_properties))
            for table in report.tables:
                next_cache.set_table_hash(table.id, hash_table(table))

            labels, wrote = self._write_back(declared.id, remote, next_cache, next_properties)
            result = SyncResult(
                status=SyncStatus.PARTIAL,
                dataset=next_dataset,
                labels=labels,
                tables=report,
                remote_writes=report.remote_writes + int(wrote),
            )

        result.execution_time_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            f"Finished synchronizing subset of {dataset_key}: "
            f"{result.status.value} ({result.execution_time_ms:.1f}ms)"
        )
        return result

    def _check_preconditions(self, dataset: DatasetSpec) -> None:
        if not isinstance(dataset, DatasetSpec):
            raise ValidationError(f"Expected a DatasetSpec, got {type(dataset).__name__}")
        for name in ("project", "location", "id"):
            if not getattr(dataset, name, None):
                raise ValidationError(f"Dataset spec is missing '{name}'")

    def _read_cache(self, remote: RemoteDataset) -> LabelCache:
        if self.ignore_cache:
            return LabelCache.empty()
        return LabelCache(remote.labels)

    def _create(self, declared: DatasetSpec) -> SyncResult:
        """Clean slate: create the dataset and every declared table."""
        for table in declared.tables:
            check_creatable(declared.id, table)

        logger.info(f"Creating dataset {declared.project}.{declared.id}")

        user_labels = declared.properties.labels if declared.properties else None
        self.store.create_dataset(declared, dict(user_labels or {}))

        report = self.table_reconciler.reconcile(
            declared.id, declared.tables, LabelCache.empty(), remote_table_ids=[]
        )

        # hashes are written only once every table exists, so a failed
        # creation leaves nothing that would short-circuit the next sync
        cache = stamp(LabelCache.empty(), declared)
        labels = cache.render(user_labels)
        self.store.update_dataset(declared.id, labels, None)

        return SyncResult(
            status=SyncStatus.CREATED,
            dataset=declared,
            labels=labels,
            tables=report,
            remote_writes=2 + report.remote_writes,
        )

    def _reconcile_all(
        self, declared: DatasetSpec, remote: RemoteDataset, cache: LabelCache
    ) -> SyncResult:
        report = self.table_reconciler.reconcile(declared.id, declared.tables, cache)
        next_properties = merge_properties(remote.properties, declared.properties)
        next_dataset = declared.with_tables(report.tables).with_properties(next_properties)

        next_cache = stamp(LabelCache.empty(), next_dataset)
        labels, wrote = self._write_back(declared.id, remote, next_cache, next_properties)

        return SyncResult(
            status=SyncStatus.RECONCILED,
            dataset=next_dataset,
            labels=labels,
            tables=report,
            remote_writes=report.remote_writes + int(wrote),
        )

    def _reconcile_properties(
        self, declared: DatasetSpec, remote: RemoteDataset
    ) -> SyncResult:
        next_properties = merge_properties(remote.properties, declared.properties)
        next_dataset = declared.with_properties(next_properties)

        next_cache = stamp(LabelCache.empty(), next_dataset)
        labels, wrote = self._write_back(declared.id, remote, next_cache, next_properties)

        return SyncResult(
            status=SyncStatus.PROPERTIES_RECONCILED,
            dataset=next_dataset,
            labels=labels,
            remote_writes=int(wrote),
        )

    def _write_back(
        self,
        dataset_id: str,
        remote: RemoteDataset,
        cache: LabelCache,
        properties: Optional[DatasetProperties],
    ) -> Tuple[Dict[str, Optional[str]], bool]:
        """Issue the single consolidated label/description update, if anything changed."""
        user_labels = properties.labels if properties else None
        description = properties.description if properties else None
        labels = cache.render(user_labels, previous_labels=remote.labels)

        unchanged_labels = apply_patch(remote.labels, labels) == dict(remote.labels or {})
        unchanged_description = description is None or description == remote.description
        if unchanged_labels and unchanged_description:
            logger.info(f"Dataset {dataset_id} labels already up to date")
            return labels, False

        self.store.update_dataset(dataset_id, labels, description)
        return labels, True
