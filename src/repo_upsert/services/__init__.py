"""Core services: repository ensuring and batch upserts."""

from .batch_upsert_engine import BatchUpsertEngine, validate_file_set
from .repository_ensurer import RepositoryEnsurer

__all__ = [
    "BatchUpsertEngine",
    "RepositoryEnsurer",
    "validate_file_set",
]
