"""
Pytest configuration and shared fixtures for ceiba tests.

This module provides sample declarations and an in-memory remote store that
records every call, so reconciler tests can assert on remote traffic.
"""

import os
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pytest
import yaml

from ceiba.schema.labels import apply_patch
from ceiba.schema.models import DatasetSpec, FieldSpec, TableSpec, TableType
from ceiba.store.base import RemoteDataset, RemoteStore, RemoteTable


WRITE_OPERATIONS = ("create_dataset", "update_dataset", "create_table", "update_table_schema")


class FakeStore(RemoteStore):
    """In-memory RemoteStore that records each call as a (name, *args) tuple."""

    def __init__(self):
        self.datasets: Dict[str, RemoteDataset] = {}
        self.tables: Dict[str, Dict[str, RemoteTable]] = {}
        self.calls: List[Tuple[Any, ...]] = []

    # Test helpers

    def add_dataset(
        self,
        dataset_id: str,
        location: str = "US",
        description: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> RemoteDataset:
        dataset = RemoteDataset(dataset_id, location, description, dict(labels or {}))
        self.datasets[dataset_id] = dataset
        self.tables.setdefault(dataset_id, {})
        return dataset

    def add_table(self, dataset_id: str, table: RemoteTable) -> RemoteTable:
        self.tables.setdefault(dataset_id, {})[table.table_id] = table
        return table

    def calls_to(self, name: str) -> List[Tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]

    @property
    def writes(self) -> List[Tuple[Any, ...]]:
        return [c for c in self.calls if c[0] in WRITE_OPERATIONS]

    def reset_calls(self) -> None:
        self.calls = []

    # RemoteStore

    def get_dataset(self, dataset_id: str) -> Optional[RemoteDataset]:
        self.calls.append(("get_dataset", dataset_id))
        dataset = self.datasets.get(dataset_id)
        if dataset is None:
            return None
        return RemoteDataset(
            dataset.dataset_id, dataset.location, dataset.description, dict(dataset.labels)
        )

    def create_dataset(self, dataset: DatasetSpec, labels: Mapping[str, str]) -> None:
        self.calls.append(("create_dataset", dataset.id, dict(labels)))
        description = dataset.properties.description if dataset.properties else None
        self.add_dataset(dataset.id, dataset.location, description, dict(labels))

    def update_dataset(
        self,
        dataset_id: str,
        labels: Mapping[str, Optional[str]],
        description: Optional[str],
    ) -> None:
        self.calls.append(("update_dataset", dataset_id, dict(labels), description))
        dataset = self.datasets[dataset_id]
        dataset.labels = apply_patch(dataset.labels, labels)
        if description is not None:
            dataset.description = description

    def list_tables(self, dataset_id: str) -> List[str]:
        self.calls.append(("list_tables", dataset_id))
        return sorted(self.tables.get(dataset_id, {}))

    def get_table(self, dataset_id: str, table_id: str) -> RemoteTable:
        self.calls.append(("get_table", dataset_id, table_id))
        return self.tables[dataset_id][table_id]

    def create_table(self, dataset_id: str, table: TableSpec) -> None:
        self.calls.append(("create_table", dataset_id, table.id))
        self.add_table(
            dataset_id,
            RemoteTable(
                table_id=table.id,
                table_type=table.type,
                description=table.description,
                fields=table.fields,
                view_query=table.view_query,
                constraints=table.constraints,
            ),
        )

    def update_table_schema(
        self, dataset_id: str, table_id: str, fields: Sequence[FieldSpec]
    ) -> None:
        self.calls.append(("update_table_schema", dataset_id, table_id, tuple(fields)))
        self.tables[dataset_id][table_id].fields = tuple(fields)


# ============================================================================
# Spec Fixtures
# ============================================================================

@pytest.fixture
def sample_dataset_dict() -> Dict[str, Any]:
    """Wire-shaped dataset declaration with a standard table and a view."""
    return {
        "project": "test-project",
        "location": "EU",
        "id": "analytics",
        "properties": {
            "description": "Analytics warehouse",
            "labels": {"team": "data"},
        },
        "tables": [
            {
                "id": "events",
                "type": "standard",
                "description": "Raw events",
                "fields": [
                    {"name": "event_id", "type": "string", "mode": "required"},
                    {"name": "occurred_at", "type": "timestamp"},
                    {
                        "name": "context",
                        "type": "struct",
                        "fields": [
                            {"name": "ip", "type": "string"},
                            {"name": "agent", "type": "string"},
                        ],
                    },
                ],
                "constraints": {"primaryKeys": ["event_id"], "foreignKeys": []},
            },
            {
                "id": "daily",
                "type": "view",
                "viewQuery": "SELECT 1 AS n",
            },
        ],
    }


@pytest.fixture
def sample_dataset(sample_dataset_dict) -> DatasetSpec:
    """Parsed sample dataset declaration."""
    return DatasetSpec.from_dict(sample_dataset_dict)


@pytest.fixture
def simple_table() -> TableSpec:
    """Standard table with two nullable columns."""
    return TableSpec(
        id="users",
        type=TableType.STANDARD,
        fields=(
            FieldSpec(name="id", type="int64"),
            FieldSpec(name="email", type="string"),
        ),
    )


@pytest.fixture
def fake_store() -> FakeStore:
    """Empty in-memory remote store."""
    return FakeStore()


@pytest.fixture
def temp_config_file(tmp_path, sample_dataset_dict) -> str:
    """Configuration file declaring the sample dataset."""
    dataset = dict(sample_dataset_dict)
    dataset.pop("project")
    config = {
        "project": "test-project",
        "location": "EU",
        "datasets": [dataset],
    }
    path = tmp_path / "ceiba.yaml"
    path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return str(path)


# ============================================================================
# Environment Setup
# ============================================================================

@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Keep CEIBA_ settings from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("CEIBA_") and key != "CEIBA_TEST_PROJECT":
            monkeypatch.delenv(key, raising=False)
    yield
