"""Repository extraction."""

from .extractor import RepositoryExtractor, is_relation_type
from .snapshots import SnapshotCache

__all__ = ["RepositoryExtractor", "SnapshotCache", "is_relation_type"]
