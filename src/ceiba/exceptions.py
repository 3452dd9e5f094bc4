"""
Exception classes for ceiba.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class CeibaError(Exception):
    """Base exception for all ceiba errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(CeibaError):
    """Raised when there's an error in configuration."""

    pass


class ValidationError(CeibaError):
    """Raised when a declared spec or call argument is malformed."""

    pass


class UnimplementedError(CeibaError):
    """Raised when a feature path exists but is not implemented."""

    def __init__(self, feature: str, value: Any) -> None:
        super().__init__(f"Unimplemented {feature}: {value!r}", {"feature": feature})
        self.feature = feature
        self.value = value


class UnknownTableTypeError(UnimplementedError):
    """Raised when the remote store reports a table kind outside the known set."""

    def __init__(self, table_type: Any, dataset_id: str, table_id: str) -> None:
        super().__init__("table type", table_type)
        self.details.update({"dataset_id": dataset_id, "table_id": table_id})
        self.dataset_id = dataset_id
        self.table_id = table_id


class RemoteStoreError(CeibaError):
    """Raised when there's an error talking to the remote store."""

    pass


class DatasetNotFoundError(RemoteStoreError):
    """Raised when an operation requires an existing dataset."""

    def __init__(self, dataset_id: str) -> None:
        super().__init__(f"Dataset '{dataset_id}' does not exist")
        self.dataset_id = dataset_id


class RemoteMutationError(RemoteStoreError):
    """Raised when a create or update call against the remote store fails."""

    def __init__(
        self,
        operation: str,
        dataset_id: str,
        table_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        target = f"{dataset_id}.{table_id}" if table_id else dataset_id
        details = {"operation": operation, "dataset_id": dataset_id}
        if table_id:
            details["table_id"] = table_id
        super().__init__(f"Failed to {operation} '{target}'", details, cause)
        self.operation = operation
        self.dataset_id = dataset_id
        self.table_id = table_id


@dataclass
class RowInsertFailure:
    """A single rejected row from a streaming insert."""

    row: Dict[str, Any]
    message: str
    reason: Optional[str] = None


class RowInsertError(RemoteStoreError):
    """Raised when some or all rows of an insert are rejected."""

    def __init__(
        self,
        dataset_id: str,
        table_id: str,
        errors_by_row: Dict[int, RowInsertFailure],
    ) -> None:
        super().__init__(
            f"Error inserting rows into '{dataset_id}.{table_id}'",
            {"failed_rows": sorted(errors_by_row)},
        )
        self.dataset_id = dataset_id
        self.table_id = table_id
        self.errors_by_row = errors_by_row


@dataclass
class QueryErrorDetail:
    """One structured error reported by the remote query engine."""

    message: str
    location: Optional[str] = None
    reason: Optional[str] = None


class QueryError(RemoteStoreError):
    """Raised when a query fails with structured error details."""

    def __init__(self, errors: List[QueryErrorDetail], cause: Optional[Exception] = None) -> None:
        super().__init__(
            "Query failed: " + "; ".join(e.message for e in errors),
            {"reasons": [e.reason for e in errors]},
            cause,
        )
        self.errors = errors
