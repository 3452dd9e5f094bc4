"""
Dataset property merging.

The remote dataset is the source of truth for every property it already
carries; the declaration only fills gaps. No I/O happens here.
"""

from typing import Dict, Mapping, Optional, TypeVar

from .labels import strip_reserved
from .models import DatasetProperties

V = TypeVar("V")


def prefer_remote(remote: Optional[V], declared: Optional[V]) -> Optional[V]:
    """Scalar policy: a present remote value wins."""
    return remote if remote is not None else declared


def overlay_labels(
    remote: Optional[Mapping[str, str]], declared: Optional[Mapping[str, str]]
) -> Dict[str, str]:
    """Mapping policy: declared labels overlaid by remote user labels."""
    merged = dict(strip_reserved(declared) or {})
    merged.update(strip_reserved(remote) or {})
    return merged


def merge_properties(
    remote: Optional[DatasetProperties], declared: Optional[DatasetProperties]
) -> Optional[DatasetProperties]:
    """
    Merge remote and declared dataset properties with remote precedence.

    Returns:
        The merged properties, or None if neither a description nor any user
        label survives the merge
    """
    description = prefer_remote(
        remote.description if remote else None,
        declared.description if declared else None,
    )
    labels = overlay_labels(
        remote.labels if remote else None,
        declared.labels if declared else None,
    )
    if description is None and not labels:
        return None
    return DatasetProperties(description=description, labels=labels or None)
