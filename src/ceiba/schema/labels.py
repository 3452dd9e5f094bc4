"""
Reserved dataset labels used as a persisted reconciliation cache.

The remote dataset's label map carries both user labels and entries under the
reserved ``ceiba_`` prefix. Reserved entries hold content hashes from the last
sync; they are never hashed, compared or handed back to the caller, and they
are regenerated on every write.
"""

from typing import Dict, Mapping, Optional

RESERVED_PREFIX = "ceiba_"

DATASET_HASH = "ceiba_dataset_hash"
TABLES_HASH = "ceiba_dataset_tables_hash"
PROPS_HASH = "ceiba_props_hash"
TABLE_HASH_PREFIX = "ceiba_table_hash_"


def is_reserved(key: str) -> bool:
    return key.startswith(RESERVED_PREFIX)


def table_label(table_id: str) -> str:
    """Label key holding the hash of one table."""
    return TABLE_HASH_PREFIX + table_id.lower()


def strip_reserved(labels: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
    """Return only the user labels, or None when there are none."""
    if not labels:
        return None
    cleaned = {k: v for k, v in labels.items() if not is_reserved(k)}
    return cleaned or None


class LabelCache:
    """
    Get/set view over the reserved part of a label map.

    Values set to None are invalidated entries: they render as deletions so
    the next full sync has to re-derive them.
    """

    def __init__(self, labels: Optional[Mapping[str, Optional[str]]] = None):
        self._entries: Dict[str, Optional[str]] = {
            k: v for k, v in (labels or {}).items() if is_reserved(k)
        }

    @classmethod
    def empty(cls) -> "LabelCache":
        return cls()

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, value: Optional[str]) -> None:
        if not is_reserved(key):
            raise KeyError(f"'{key}' is not a reserved label key")
        self._entries[key] = value

    def invalidate(self, key: str) -> None:
        self.set(key, None)

    @property
    def dataset_hash(self) -> Optional[str]:
        return self.get(DATASET_HASH)

    @property
    def tables_hash(self) -> Optional[str]:
        return self.get(TABLES_HASH)

    @property
    def props_hash(self) -> Optional[str]:
        return self.get(PROPS_HASH)

    def table_hash(self, table_id: str) -> Optional[str]:
        return self.get(table_label(table_id))

    def set_table_hash(self, table_id: str, value: Optional[str]) -> None:
        self.set(table_label(table_id), value)

    def render(
        self,
        user_labels: Optional[Mapping[str, str]],
        previous_labels: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Optional[str]]:
        """
        Build the label patch to write back.

        Args:
            user_labels: Labels owned by the caller; reserved keys are dropped
            previous_labels: Labels currently on the remote dataset

        Returns:
            User labels plus every reserved entry of this cache. Reserved keys
            present remotely but not in this cache map to None.
        """
        patch: Dict[str, Optional[str]] = dict(strip_reserved(user_labels) or {})
        for key in previous_labels or {}:
            if is_reserved(key) and key not in self._entries:
                patch[key] = None
        patch.update(self._entries)
        return patch


def apply_patch(
    labels: Optional[Mapping[str, str]], patch: Mapping[str, Optional[str]]
) -> Dict[str, str]:
    """Labels the remote will hold after a patch: None deletes, anything else sets."""
    result = dict(labels or {})
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = value
    return result
