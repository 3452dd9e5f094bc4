"""
Remote store adapters for ceiba.
"""

from .base import RemoteDataset, RemoteStore, RemoteTable

__all__ = [
    "RemoteDataset",
    "RemoteStore",
    "RemoteTable",
]
