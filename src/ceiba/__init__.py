"""
ceiba: Declarative, non-destructive schema sync for BigQuery datasets.

ceiba reconciles a declared dataset (tables and their typed columns) against
the live warehouse, creating and appending what is missing and adopting what
it finds, without ever deleting data.
"""

__version__ = "0.1.0"
__author__ = "ceiba Contributors"

from .config import CeibaConfig
from .exceptions import CeibaError, ConfigurationError, RemoteStoreError, ValidationError

__all__ = [
    "__version__",
    "CeibaConfig",
    "CeibaError",
    "ConfigurationError",
    "RemoteStoreError",
    "ValidationError",
]
