"""
Per-table schema reconciliation.

Compares a declared table against its remote definition and evolves the
remote schema accretively: missing columns are appended, columns that only
exist remotely are absorbed into the returned spec, nothing is ever removed
or narrowed.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from ..exceptions import UnimplementedError
from ..schema.differ import diff
from ..schema.models import FieldMode, FieldSpec, TableSpec, TableType
from ..store.base import RemoteStore, RemoteTable


logger = logging.getLogger(__name__)


@dataclass
class FieldReconciliation:
    """Result of reconciling one table's schema."""

    table: TableSpec
    appended: List[FieldSpec] = field(default_factory=list)
    orphaned: List[FieldSpec] = field(default_factory=list)
    relaxed: List[FieldSpec] = field(default_factory=list)
    unsupported: List[FieldSpec] = field(default_factory=list)
    view_query_drift: bool = False
    schema_updated: bool = False

    @property
    def has_drift(self) -> bool:
        return bool(
            self.appended
            or self.orphaned
            or self.relaxed
            or self.unsupported
            or self.view_query_drift
        )


def sanitize_appended_field(spec: FieldSpec) -> FieldSpec:
    """Columns added to an existing table cannot be required or carry a default."""
    mode = FieldMode.NULLABLE if spec.mode is FieldMode.REQUIRED else spec.mode
    return spec.model_copy(update={"mode": mode, "default": None})


def _appended_drift(spec: FieldSpec) -> str:
    parts = []
    if spec.mode is FieldMode.REQUIRED:
        parts.append("required mode")
    if spec.default is not None:
        parts.append(f"default {spec.default!r}")
    return " and ".join(parts)


def table_spec_from_remote(remote: RemoteTable) -> TableSpec:
    """
    Translate a remote table definition into a spec.

    Raises:
        UnimplementedError: If the table carries foreign keys
    """
    if remote.has_foreign_keys:
        raise UnimplementedError("foreign key recovery", remote.constraints.foreign_keys)

    constraints = remote.constraints
    if constraints is not None and constraints.is_empty:
        constraints = None

    return TableSpec(
        id=remote.table_id,
        type=remote.table_type,
        description=remote.description,
        fields=remote.fields,
        constraints=constraints,
        view_query=remote.view_query if remote.table_type is TableType.VIEW else None,
    )


class FieldReconciler:
    """Reconciles declared table schemas against the remote store."""

    def __init__(self, store: RemoteStore):
        self.store = store

    def reconcile(self, dataset_id: str, table: TableSpec) -> FieldReconciliation:
        """
        Reconcile one table that exists both in the declaration and remotely.

        Args:
            dataset_id: Dataset holding the table
            table: Declared table spec

        Returns:
            FieldReconciliation whose table reflects the post-sync remote truth
        """
        table_key = f"{dataset_id}.{table.id}"
        logger.debug(f"Starting table schema sync for {table_key}")

        remote = self.store.get_table(dataset_id, table.id)

        if remote.table_type is not table.type:
            logger.warning(
                f"Table {table_key} is declared as {table.type.value} but is "
                f"{remote.table_type.value} remotely, adopting the remote definition"
            )
            return FieldReconciliation(table=table_spec_from_remote(remote))

        if table.type is TableType.VIEW:
            result = self._reconcile_view(table_key, table, remote)
        elif table.type is TableType.STANDARD:
            result = self._reconcile_standard(dataset_id, table, remote)
        else:
            logger.debug(f"Schema sync does not apply to {table.type.value} table {table_key}")
            result = FieldReconciliation(table=table)

        logger.debug(f"Finished table schema sync for {table_key}")
        return result

    def _reconcile_view(
        self, table_key: str, table: TableSpec, remote: RemoteTable
    ) -> FieldReconciliation:
        if table.view_query == remote.view_query:
            return FieldReconciliation(table=table)

        # The remote query wins; view edits are never pushed
        logger.warning(f"Found view query drift for {table_key}")
        logger.warning(f"  expected {table.view_query!r}")
        logger.warning(f"    actual {remote.view_query!r}")
        return FieldReconciliation(
            table=table.with_view_query(remote.view_query),
            view_query_drift=True,
        )

    def _reconcile_standard(
        self, dataset_id: str, table: TableSpec, remote: RemoteTable
    ) -> FieldReconciliation:
        table_key = f"{dataset_id}.{table.id}"
        field_diff = diff(table.fields, remote.fields)

        if field_diff.is_equal:
            return FieldReconciliation(table=table)

        logger.warning(f"Found schema drift for {table_key}")

        append = [f for f in table.fields if f in field_diff.novel]
        declared_names = set(table.field_names)
        # same-name columns that differ are reported per column below
        orphaned = [
            f for f in remote.fields
            if f in field_diff.untracked and f.name not in declared_names
        ]

        if orphaned:
            logger.warning(
                f"Found untracked columns in {table_key}: {[f.name for f in orphaned]}"
            )

        if not append:
            return FieldReconciliation(
                table=table.with_fields(remote.fields), orphaned=orphaned
            )

        remote_names = {f.name for f in remote.fields}
        next_fields = list(remote.fields)
        appended = []
        relaxed = []
        unsupported = []

        for declared in append:
            sanitized = sanitize_appended_field(declared)
            if sanitized in next_fields:
                # appended columns lose required and default, so a declaration
                # that keeps either drifts on every sync
                logger.warning(
                    f"Column '{declared.name}' in {table_key} exists without "
                    f"{_appended_drift(declared)}; drop it from the declaration "
                    f"to stop this drift"
                )
                relaxed.append(declared)
            elif sanitized.name in remote_names:
                logger.warning(
                    f"Column '{declared.name}' in {table_key} differs from the remote "
                    f"column of the same name; existing columns cannot be altered"
                )
                unsupported.append(declared)
            else:
                appended.append(sanitized)
                next_fields.append(sanitized)

        if not appended:
            return FieldReconciliation(
                table=table.with_fields(remote.fields),
                orphaned=orphaned,
                relaxed=relaxed,
                unsupported=unsupported,
            )

        logger.warning(f"Appending columns to {table_key}: {[f.name for f in appended]}")
        self.store.update_table_schema(dataset_id, table.id, next_fields)

        return FieldReconciliation(
            table=table.with_fields(next_fields),
            appended=appended,
            orphaned=orphaned,
            relaxed=relaxed,
            unsupported=unsupported,
            schema_updated=True,
        )
