"""Storage abstraction: relational records, chunk vectors, files."""

from .base import VectorStoreBase, get_file_store, get_record_store, get_vector_store

__all__ = ["VectorStoreBase", "get_file_store", "get_record_store", "get_vector_store"]
