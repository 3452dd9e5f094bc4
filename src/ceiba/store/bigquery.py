"""
BigQuery implementation of the remote store.

Wraps google-cloud-bigquery's Client. Translation between spec models and
the client's SchemaField / Table / Dataset objects lives here; nothing in
this module retries, retry and timeout policy belong to the client library.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import bigquery
from google.cloud.bigquery.table import (
    ColumnReference as BQColumnReference,
    ForeignKey as BQForeignKey,
    PrimaryKey as BQPrimaryKey,
    TableConstraints as BQTableConstraints,
    TableReference,
)

from ..exceptions import (
    QueryError,
    QueryErrorDetail,
    RemoteMutationError,
    RowInsertError,
    RowInsertFailure,
    UnimplementedError,
    UnknownTableTypeError,
    ValidationError,
)
from ..schema.models import (
    ColumnReference,
    DatasetSpec,
    FieldSpec,
    ForeignKeySpec,
    TableConstraints,
    TableSpec,
    TableType,
)
from .base import RemoteDataset, RemoteStore, RemoteTable
from .types import (
    FIELD_MODE_TO_SQL,
    FIELD_TYPE_TO_SQL,
    TABLE_TYPES,
    field_mode_from_sql,
    field_type_from_sql,
)


logger = logging.getLogger(__name__)


def field_to_schema(spec: FieldSpec) -> bigquery.SchemaField:
    """Build a SchemaField from a field spec (nested fields included)."""
    return bigquery.SchemaField(
        spec.name,
        FIELD_TYPE_TO_SQL[spec.type],
        mode=FIELD_MODE_TO_SQL[spec.mode],
        description=spec.description,
        fields=tuple(field_to_schema(f) for f in spec.subfields),
        default_value_expression=spec.default,
    )


def field_from_schema(field: bigquery.SchemaField) -> FieldSpec:
    """Build a field spec from a SchemaField reported by the API."""
    return FieldSpec(
        name=field.name,
        type=field_type_from_sql(field.field_type),
        mode=field_mode_from_sql(field.mode),
        description=field.description,
        default=getattr(field, "default_value_expression", None),
        subfields=tuple(field_from_schema(f) for f in (field.fields or ())),
    )


def _constraints_from_table(table: bigquery.Table) -> Optional[TableConstraints]:
    constraints = table.table_constraints
    if constraints is None:
        return None

    primary_keys = tuple(constraints.primary_key.columns) if constraints.primary_key else ()
    foreign_keys = tuple(
        ForeignKeySpec(
            referenced_table=fk.referenced_table.table_id,
            column_references=tuple(
                ColumnReference(
                    referencing_column=ref.referencing_column,
                    referenced_column=ref.referenced_column,
                )
                for ref in fk.column_references
            ),
        )
        for fk in (constraints.foreign_keys or [])
    )
    return TableConstraints(primary_keys=primary_keys, foreign_keys=foreign_keys)


class BigQueryStore(RemoteStore):
    """RemoteStore backed by a BigQuery project."""

    def __init__(
        self,
        project: str,
        location: Optional[str] = None,
        credentials_file: Optional[str] = None,
        client: Optional[bigquery.Client] = None,
    ):
        if not project:
            raise ValidationError("BigQueryStore requires a project")

        self.project = project
        self.location = location

        if client is not None:
            self.client = client
        elif credentials_file:
            from google.oauth2 import service_account

            credentials = service_account.Credentials.from_service_account_file(credentials_file)
            self.client = bigquery.Client(project=project, credentials=credentials, location=location)
        else:
            self.client = bigquery.Client(project=project, location=location)

    def _dataset_ref(self, dataset_id: str) -> str:
        return f"{self.project}.{dataset_id}"

    def _table_ref(self, dataset_id: str, table_id: str) -> str:
        return f"{self.project}.{dataset_id}.{table_id}"

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    def get_dataset(self, dataset_id: str) -> Optional[RemoteDataset]:
        try:
            dataset = self.client.get_dataset(self._dataset_ref(dataset_id))
        except NotFound:
            return None

        return RemoteDataset(
            dataset_id=dataset.dataset_id,
            location=dataset.location,
            description=dataset.description,
            labels=dict(dataset.labels or {}),
        )

    def create_dataset(self, dataset: DatasetSpec, labels: Mapping[str, str]) -> None:
        bq_dataset = bigquery.Dataset(self._dataset_ref(dataset.id))
        bq_dataset.location = dataset.location
        if dataset.properties and dataset.properties.description is not None:
            bq_dataset.description = dataset.properties.description
        bq_dataset.labels = {k: v for k, v in labels.items() if v is not None}

        try:
            self.client.create_dataset(bq_dataset)
        except GoogleAPICallError as e:
            raise RemoteMutationError("create dataset", dataset.id, cause=e) from e

    def update_dataset(
        self,
        dataset_id: str,
        labels: Mapping[str, Optional[str]],
        description: Optional[str],
    ) -> None:
        bq_dataset = bigquery.Dataset(self._dataset_ref(dataset_id))
        bq_dataset.labels = dict(labels)
        fields = ["labels"]
        if description is not None:
            bq_dataset.description = description
            fields.append("description")

        try:
            self.client.update_dataset(bq_dataset, fields)
        except GoogleAPICallError as e:
            raise RemoteMutationError("update dataset", dataset_id, cause=e) from e

    def list_datasets(self) -> List[str]:
        return [d.dataset_id for d in self.client.list_datasets()]

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def list_tables(self, dataset_id: str) -> List[str]:
        return [t.table_id for t in self.client.list_tables(self._dataset_ref(dataset_id))]

    def get_table(self, dataset_id: str, table_id: str) -> RemoteTable:
        table = self.client.get_table(self._table_ref(dataset_id, table_id))

        table_type = TABLE_TYPES.get(table.table_type)
        if table_type is None:
            raise UnknownTableTypeError(table.table_type, dataset_id, table_id)

        return RemoteTable(
            table_id=table.table_id,
            table_type=table_type,
            description=table.description,
            fields=tuple(field_from_schema(f) for f in (table.schema or [])),
            view_query=table.view_query if table_type is TableType.VIEW else None,
            constraints=_constraints_from_table(table),
        )

    def create_table(self, dataset_id: str, table: TableSpec) -> None:
        ref = self._table_ref(dataset_id, table.id)

        if table.type is TableType.STANDARD:
            if not table.fields:
                raise ValidationError(
                    f"Standard table '{dataset_id}.{table.id}' needs at least one field"
                )
            bq_table = bigquery.Table(ref, schema=[field_to_schema(f) for f in table.fields])
            if table.constraints is not None and not table.constraints.is_empty:
                bq_table.table_constraints = self._build_constraints(dataset_id, table.constraints)
        elif table.type is TableType.VIEW:
            bq_table = bigquery.Table(ref)
            bq_table.view_query = table.view_query
        else:
            raise UnimplementedError("table type", table.type.value)

        if table.description is not None:
            bq_table.description = table.description

        try:
            self.client.create_table(bq_table)
        except GoogleAPICallError as e:
            raise RemoteMutationError("create table", dataset_id, table.id, cause=e) from e

    def update_table_schema(
        self, dataset_id: str, table_id: str, fields: Sequence[FieldSpec]
    ) -> None:
        bq_table = bigquery.Table(
            self._table_ref(dataset_id, table_id),
            schema=[field_to_schema(f) for f in fields],
        )
        try:
            self.client.update_table(bq_table, ["schema"])
        except GoogleAPICallError as e:
            raise RemoteMutationError("update table schema", dataset_id, table_id, cause=e) from e

    def _build_constraints(
        self, dataset_id: str, constraints: TableConstraints
    ) -> BQTableConstraints:
        primary_key = (
            BQPrimaryKey(columns=list(constraints.primary_keys))
            if constraints.primary_keys
            else None
        )
        foreign_keys = [
            BQForeignKey(
                name="",
                referenced_table=TableReference.from_string(
                    self._table_ref(dataset_id, fk.referenced_table)
                ),
                column_references=[
                    BQColumnReference(
                        referencing_column=ref.referencing_column,
                        referenced_column=ref.referenced_column,
                    )
                    for ref in fk.column_references
                ],
            )
            for fk in constraints.foreign_keys
        ]
        return BQTableConstraints(primary_key=primary_key, foreign_keys=foreign_keys or None)

    def copy_table(
        self,
        source_dataset: str,
        source_table: str,
        destination_dataset: str,
        destination_table: Optional[str] = None,
    ) -> None:
        """Copy a table and wait for the job to finish."""
        destination_table = destination_table or source_table
        try:
            job = self.client.copy_table(
                self._table_ref(source_dataset, source_table),
                self._table_ref(destination_dataset, destination_table),
            )
            job.result()
        except GoogleAPICallError as e:
            raise RemoteMutationError(
                "copy table", destination_dataset, destination_table, cause=e
            ) from e

    # ------------------------------------------------------------------
    # Rows and queries
    # ------------------------------------------------------------------

    def insert_rows(
        self, dataset_id: str, table_id: str, rows: Sequence[Mapping[str, Any]]
    ) -> None:
        """
        Stream rows into a table.

        Raises:
            RowInsertError: With one RowInsertFailure per rejected row index;
                rows not listed were accepted
        """
        rows = [dict(row) for row in rows]
        errors = self.client.insert_rows_json(self._table_ref(dataset_id, table_id), rows)
        if not errors:
            return

        errors_by_row: Dict[int, RowInsertFailure] = {}
        for entry in errors:
            index = entry["index"]
            # the API reports a single error per row in practice
            first = (entry.get("errors") or [{}])[0]
            errors_by_row[index] = RowInsertFailure(
                row=rows[index],
                message=first.get("message", "unknown error"),
                reason=first.get("reason"),
            )
        raise RowInsertError(dataset_id, table_id, errors_by_row)

    def query(
        self,
        sql: str,
        params: Optional[Union[Mapping[str, Any], Sequence[Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a standard SQL query and return its rows as dicts.

        Args:
            sql: Query text; tables must be dataset-qualified
            params: Mapping for named parameters, sequence for positional ones

        Raises:
            QueryError: If the remote reports structured errors
        """
        job_config = bigquery.QueryJobConfig(use_legacy_sql=False)
        if params is not None:
            job_config.query_parameters = _query_parameters(params)

        try:
            rows = self.client.query(sql, job_config=job_config).result()
        except GoogleAPICallError as e:
            details = [
                QueryErrorDetail(
                    message=err.get("message", ""),
                    location=err.get("location"),
                    reason=err.get("reason"),
                )
                for err in (e.errors or [])
                if isinstance(err, dict)
            ]
            if not details:
                raise
            raise QueryError(details, cause=e) from e

        return [dict(row.items()) for row in rows]


def _parameter_type(value: Any) -> str:
    if isinstance(value, str):
        return "STRING"
    if isinstance(value, bool):
        return "BOOL"
    if isinstance(value, int):
        return "INT64"
    if isinstance(value, float):
        return "FLOAT64"
    if isinstance(value, datetime):
        return "TIMESTAMP"
    if isinstance(value, date):
        return "DATE"
    raise ValidationError(f"Unsupported query parameter type: {type(value).__name__}")


def _query_parameter(name: Optional[str], value: Any):
    if isinstance(value, (list, tuple)):
        if not all(isinstance(v, str) for v in value):
            raise ValidationError("Array query parameters must contain only strings")
        return bigquery.ArrayQueryParameter(name, "STRING", list(value))
    return bigquery.ScalarQueryParameter(name, _parameter_type(value), value)


def _query_parameters(params: Union[Mapping[str, Any], Sequence[Any]]) -> list:
    if isinstance(params, Mapping):
        return [_query_parameter(k, v) for k, v in params.items() if v is not None]
    return [_query_parameter(None, v) for v in params]
