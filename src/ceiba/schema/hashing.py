"""
Content hashing of spec subtrees.

Digests are computed over the canonical form of a spec (mapping keys sorted,
field lists compared as sets) and rendered as UUID strings so that they fit
the remote store's label value rules.
"""

import hashlib
import json
import uuid
from typing import Any, Optional, Sequence

from .labels import strip_reserved
from .models import DatasetProperties, DatasetSpec, TableSpec


def content_hash(data: Any) -> str:
    """Digest a JSON-compatible value independently of mapping order."""
    encoded = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(encoded.encode("utf-8")).digest()
    return str(uuid.UUID(bytes=digest[:16]))


def hash_table(table: TableSpec) -> str:
    return content_hash(table.canonical())


def hash_tables(tables: Sequence[TableSpec]) -> str:
    """Digest an ordered table sequence."""
    return content_hash([t.canonical() for t in tables])


def _clean_properties(properties: Optional[DatasetProperties]) -> dict:
    if properties is None:
        return {}
    data = {}
    if properties.description is not None:
        data["description"] = properties.description
    labels = strip_reserved(properties.labels)
    if labels:
        data["labels"] = labels
    return data


def hash_properties(properties: Optional[DatasetProperties]) -> str:
    """Digest dataset properties with reserved labels removed."""
    return content_hash(_clean_properties(properties))


def hash_dataset(dataset: DatasetSpec) -> str:
    """Top-level cache key: id, location, properties and the table sequence."""
    return content_hash(
        {
            "id": dataset.id,
            "location": dataset.location,
            "properties": _clean_properties(dataset.properties),
            "tables": [t.canonical() for t in dataset.tables],
        }
    )
