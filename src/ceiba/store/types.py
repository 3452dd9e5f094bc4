"""
Keyword tables between spec enums and BigQuery's wire names.
"""

from typing import Dict

from ..exceptions import UnimplementedError
from ..schema.models import FIELD_TYPE_ALIASES, FieldMode, FieldType, TableType

FIELD_TYPE_TO_SQL: Dict[FieldType, str] = {
    FieldType.ARRAY: "ARRAY",
    FieldType.BIGNUMERIC: "BIGNUMERIC",
    FieldType.BOOL: "BOOL",
    FieldType.BYTES: "BYTES",
    FieldType.DATE: "DATE",
    FieldType.DATETIME: "DATETIME",
    FieldType.FLOAT64: "FLOAT64",
    FieldType.GEOGRAPHY: "GEOGRAPHY",
    FieldType.INT64: "INT64",
    FieldType.INTERVAL: "INTERVAL",
    FieldType.JSON: "JSON",
    FieldType.NUMERIC: "NUMERIC",
    FieldType.RANGE: "RANGE",
    FieldType.STRING: "STRING",
    FieldType.STRUCT: "STRUCT",
    FieldType.TIME: "TIME",
    FieldType.TIMESTAMP: "TIMESTAMP",
}

FIELD_MODE_TO_SQL: Dict[FieldMode, str] = {
    FieldMode.NULLABLE: "NULLABLE",
    FieldMode.REQUIRED: "REQUIRED",
    FieldMode.REPEATED: "REPEATED",
}

# Table.table_type values reported by the API
TABLE_TYPES: Dict[str, TableType] = {
    "TABLE": TableType.STANDARD,
    "VIEW": TableType.VIEW,
    "MATERIALIZED_VIEW": TableType.MATERIALIZED_VIEW,
    "EXTERNAL": TableType.EXTERNAL,
    "SNAPSHOT": TableType.SNAPSHOT,
    "MODEL": TableType.MODEL,
}


def field_type_from_sql(name: str) -> FieldType:
    """Map a standard or legacy SQL type name to a FieldType."""
    key = (name or "").lower()
    try:
        return FieldType(FIELD_TYPE_ALIASES.get(key, key))
    except ValueError:
        raise UnimplementedError("field type", name)


def field_mode_from_sql(name: str) -> FieldMode:
    try:
        return FieldMode((name or "NULLABLE").lower())
    except ValueError:
        raise UnimplementedError("field mode", name)
