"""
Abstract remote store interface.

This module defines the operations the reconciliation core needs from the
warehouse. Implementations own transport, authentication, retries and
timeouts; the core never retries a call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..schema.labels import strip_reserved
from ..schema.models import (
    DatasetProperties,
    DatasetSpec,
    FieldSpec,
    TableConstraints,
    TableSpec,
    TableType,
)


@dataclass
class RemoteDataset:
    """A dataset as reported by the remote store."""

    dataset_id: str
    location: Optional[str] = None
    description: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)

    @property
    def properties(self) -> Optional[DatasetProperties]:
        """Description and user labels; None when neither is present."""
        labels = strip_reserved(self.labels)
        if self.description is None and not labels:
            return None
        return DatasetProperties(description=self.description, labels=labels)


@dataclass
class RemoteTable:
    """A table definition as reported by the remote store."""

    table_id: str
    table_type: TableType
    description: Optional[str] = None
    fields: Tuple[FieldSpec, ...] = ()
    view_query: Optional[str] = None
    constraints: Optional[TableConstraints] = None

    @property
    def has_foreign_keys(self) -> bool:
        return bool(self.constraints and self.constraints.foreign_keys)


class RemoteStore(ABC):
    """
    Remote warehouse operations used by the reconcilers.

    Every call is blocking. Mutations that fail should raise
    RemoteMutationError carrying the dataset id, table id and operation.
    """

    @abstractmethod
    def get_dataset(self, dataset_id: str) -> Optional[RemoteDataset]:
        """
        Fetch a dataset.

        Args:
            dataset_id: Dataset id within the store's project

        Returns:
            The remote dataset, or None if it does not exist
        """

    @abstractmethod
    def create_dataset(self, dataset: DatasetSpec, labels: Mapping[str, str]) -> None:
        """
        Create a dataset with the declared location and description.

        Args:
            dataset: Declared dataset
            labels: Complete label map to create it with
        """

    @abstractmethod
    def update_dataset(
        self,
        dataset_id: str,
        labels: Mapping[str, Optional[str]],
        description: Optional[str],
    ) -> None:
        """
        Patch a dataset's labels and description.

        Args:
            dataset_id: Dataset id
            labels: Label patch; a None value removes that label
            description: New description, or None to leave it untouched
        """

    @abstractmethod
    def list_tables(self, dataset_id: str) -> List[str]:
        """List the ids of every table in a dataset."""

    @abstractmethod
    def get_table(self, dataset_id: str, table_id: str) -> RemoteTable:
        """
        Fetch a table's full definition.

        Raises:
            UnknownTableTypeError: If the remote kind is not a known TableType
        """

    @abstractmethod
    def create_table(self, dataset_id: str, table: TableSpec) -> None:
        """
        Create a table from its declaration.

        Raises:
            UnimplementedError: If the table kind cannot be created
        """

    @abstractmethod
    def update_table_schema(
        self, dataset_id: str, table_id: str, fields: Sequence[FieldSpec]
    ) -> None:
        """Replace a table's schema with an additive superset of it."""
