"""
Schema package for ceiba.

This package provides:
- Declarative spec models for datasets, tables and fields
- Order-insensitive content hashing of specs
- Three-way set diffing of declared versus actual identifiers
- Reserved-label handling for the persisted reconciliation cache
- Remote-precedence merging of dataset properties
"""

from .differ import SetDiff, diff
from .hashing import content_hash, hash_dataset, hash_properties, hash_table, hash_tables
from .labels import LabelCache, strip_reserved, table_label
from .models import (
    DatasetProperties,
    DatasetSpec,
    FieldMode,
    FieldSpec,
    FieldType,
    TableConstraints,
    TableSpec,
    TableType,
)
from .properties import merge_properties

__all__ = [
    "SetDiff",
    "diff",
    "content_hash",
    "hash_dataset",
    "hash_properties",
    "hash_table",
    "hash_tables",
    "LabelCache",
    "strip_reserved",
    "table_label",
    "DatasetProperties",
    "DatasetSpec",
    "FieldMode",
    "FieldSpec",
    "FieldType",
    "TableConstraints",
    "TableSpec",
    "TableType",
    "merge_properties",
]
