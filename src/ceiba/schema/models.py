"""
Declarative spec models for ceiba.

A dataset declaration is a tree of frozen pydantic models:
DatasetSpec -> TableSpec -> FieldSpec (recursive for struct columns).
Models accept the camelCase wire keys as aliases and compare by value;
FieldSpec and TableSpec equality is the drift predicate used by the
reconcilers.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError


class FieldType(str, Enum):
    """Standard SQL column types."""

    ARRAY = "array"
    BIGNUMERIC = "bignumeric"
    BOOL = "bool"
    BYTES = "bytes"
    DATE = "date"
    DATETIME = "datetime"
    FLOAT64 = "float64"
    GEOGRAPHY = "geography"
    INT64 = "int64"
    INTERVAL = "interval"
    JSON = "json"
    NUMERIC = "numeric"
    RANGE = "range"
    STRING = "string"
    STRUCT = "struct"
    TIME = "time"
    TIMESTAMP = "timestamp"

    @property
    def is_structural(self) -> bool:
        return self is FieldType.STRUCT


# Legacy SQL spellings the remote store still reports
FIELD_TYPE_ALIASES = {
    "record": "struct",
    "integer": "int64",
    "float": "float64",
    "boolean": "bool",
}


class FieldMode(str, Enum):
    """Column modes."""

    NULLABLE = "nullable"
    REQUIRED = "required"
    REPEATED = "repeated"


class TableType(str, Enum):
    """Kinds of table a dataset can hold."""

    STANDARD = "standard"
    VIEW = "view"
    MATERIALIZED_VIEW = "materialized-view"
    EXTERNAL = "external"
    SNAPSHOT = "snapshot"
    MODEL = "model"


def sorted_canonical(items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Order canonical dicts by their JSON text so sequence order is irrelevant."""
    return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))


def _check_unique(names: Sequence[str], what: str) -> None:
    seen = set()
    duplicates = []
    for name in names:
        if name in seen:
            duplicates.append(name)
        seen.add(name)
    if duplicates:
        raise ValueError(f"duplicate {what}: {sorted(set(duplicates))}")


class _Spec(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class FieldSpec(_Spec):
    """A single column declaration."""

    name: str = Field(..., min_length=1, description="Column name")
    type: FieldType = Field(..., description="Column type keyword")
    mode: FieldMode = Field(FieldMode.NULLABLE, description="Column mode")
    description: Optional[str] = Field(None, description="Column description")
    default: Optional[str] = Field(None, description="Default value expression")
    subfields: Tuple["FieldSpec", ...] = Field(
        (), alias="fields", description="Nested columns of a struct"
    )

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            key = v.strip().lower()
            return FIELD_TYPE_ALIASES.get(key, key)
        return v

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v: Any) -> Any:
        if v is None:
            return FieldMode.NULLABLE
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="after")
    def check_subfields(self) -> "FieldSpec":
        if self.subfields:
            if not self.type.is_structural:
                raise ValueError(
                    f"field '{self.name}' of type {self.type.value} cannot have nested fields"
                )
            _check_unique([f.name for f in self.subfields], f"nested fields in '{self.name}'")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape, nested fields in declared order."""
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "mode": self.mode.value,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.default is not None:
            data["default"] = self.default
        if self.subfields:
            data["fields"] = [f.to_dict() for f in self.subfields]
        return data

    def canonical(self) -> Dict[str, Any]:
        data = self.to_dict()
        if self.subfields:
            data["fields"] = sorted_canonical(f.canonical() for f in self.subfields)
        return data


class ColumnReference(_Spec):
    referencing_column: str = Field(..., alias="referencingColumn")
    referenced_column: str = Field(..., alias="referencedColumn")


class ForeignKeySpec(_Spec):
    referenced_table: str = Field(..., alias="referencedTable")
    column_references: Tuple[ColumnReference, ...] = Field(..., alias="columnReferences")


class TableConstraints(_Spec):
    """Primary and foreign keys. Recorded on the remote, never enforced."""

    primary_keys: Tuple[str, ...] = Field((), alias="primaryKeys")
    foreign_keys: Tuple[ForeignKeySpec, ...] = Field((), alias="foreignKeys")

    @property
    def is_empty(self) -> bool:
        return not self.primary_keys and not self.foreign_keys

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TableSpec(_Spec):
    """A single table declaration."""

    id: str = Field(..., min_length=1, description="Table id")
    type: TableType = Field(..., description="Table kind")
    description: Optional[str] = Field(None, description="Table description")
    fields: Tuple[FieldSpec, ...] = Field((), description="Columns of a standard table")
    constraints: Optional[TableConstraints] = Field(None, description="Key constraints")
    view_query: Optional[str] = Field(None, alias="viewQuery", description="View SQL")

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower().replace("_", "-")
        return v

    @model_validator(mode="after")
    def check_definition(self) -> "TableSpec":
        if self.type is TableType.VIEW and self.view_query is None:
            raise ValueError(f"view '{self.id}' requires viewQuery")
        if self.type is TableType.STANDARD and self.view_query is not None:
            raise ValueError(f"standard table '{self.id}' cannot have viewQuery")
        _check_unique(self.field_names, f"fields in table '{self.id}'")
        return self

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def with_fields(self, fields: Iterable[FieldSpec]) -> "TableSpec":
        return self.model_copy(update={"fields": tuple(fields)})

    def with_view_query(self, view_query: Optional[str]) -> "TableSpec":
        return self.model_copy(update={"view_query": view_query})

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "type": self.type.value}
        if self.description is not None:
            data["description"] = self.description
        if self.fields:
            data["fields"] = [f.to_dict() for f in self.fields]
        if self.constraints is not None:
            data["constraints"] = self.constraints.to_dict()
        if self.view_query is not None:
            data["viewQuery"] = self.view_query
        return data

    def canonical(self) -> Dict[str, Any]:
        data = self.to_dict()
        if self.fields:
            data["fields"] = sorted_canonical(f.canonical() for f in self.fields)
        return data


class DatasetProperties(_Spec):
    """Dataset-level metadata: description and user labels."""

    description: Optional[str] = None
    labels: Optional[Dict[str, str]] = None

    @property
    def is_empty(self) -> bool:
        return self.description is None and not self.labels

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.description is not None:
            data["description"] = self.description
        if self.labels is not None:
            data["labels"] = dict(sorted(self.labels.items()))
        return data

    canonical = to_dict


class DatasetSpec(_Spec):
    """A dataset declaration: where it lives, its metadata and its tables."""

    project: str = Field(..., min_length=1, description="Cloud project id")
    location: str = Field(..., min_length=1, description="Dataset location")
    id: str = Field(..., min_length=1, description="Dataset id")
    properties: Optional[DatasetProperties] = Field(None, description="Description and labels")
    tables: Tuple[TableSpec, ...] = Field((), description="Declared tables")

    @model_validator(mode="after")
    def check_tables(self) -> "DatasetSpec":
        _check_unique([t.id for t in self.tables], f"table ids in dataset '{self.id}'")
        return self

    @property
    def table_ids(self) -> List[str]:
        return [t.id for t in self.tables]

    def get_table(self, table_id: str) -> Optional[TableSpec]:
        for table in self.tables:
            if table.id == table_id:
                return table
        return None

    def with_tables(self, tables: Iterable[TableSpec]) -> "DatasetSpec":
        return self.model_copy(update={"tables": tuple(tables)})

    def with_properties(self, properties: Optional[DatasetProperties]) -> "DatasetSpec":
        return self.model_copy(update={"properties": properties})

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "project": self.project,
            "location": self.location,
            "id": self.id,
        }
        if self.properties is not None:
            data["properties"] = self.properties.to_dict()
        data["tables"] = [t.to_dict() for t in self.tables]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatasetSpec":
        """Build a spec from its wire shape, failing fast on malformed input."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid dataset spec '{data.get('id', '?')}'", cause=e
            ) from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "DatasetSpec":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValidationError(f"Dataset spec file {path} must contain a mapping")
        return cls.from_dict(data)
