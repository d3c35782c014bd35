"""
Remote repository client interface.

Defines the operations the upsert engine and repository ensurer need from a
Git hosting service. Implementations raise the RemoteError family from
repo_upsert.errors; a 404 must surface as NotFoundError and a 409 as
ConflictError so the engine can distinguish them.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..cancellation import CancellationToken
from ..models import BranchRef, CommitInfo, ContentFile, RepositoryInfo, TreeEntry


class RemoteRepositoryClient(ABC):
    """Abstract base for remote Git object and repository operations."""

    @abstractmethod
    def get_ref(
        self,
        owner: str,
        repo: str,
        ref: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> BranchRef:
        """Resolve a ref such as ``refs/heads/main`` to its commit SHA."""

    @abstractmethod
    def get_commit(
        self,
        owner: str,
        repo: str,
        sha: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> CommitInfo:
        """Fetch a commit object."""

    @abstractmethod
    def get_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> ContentFile:
        """Read the file at ``path`` on ``ref``."""

    @abstractmethod
    def create_blob(
        self,
        owner: str,
        repo: str,
        content: str,
        encoding: str = "utf-8",
        cancellation: Optional[CancellationToken] = None,
    ) -> str:
        """Create a blob and return its SHA."""

    @abstractmethod
    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: Sequence[TreeEntry],
        base_tree: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> str:
        """Create a tree, layered on ``base_tree`` when given; return its SHA."""

    @abstractmethod
    def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree_sha: str,
        parents: List[str],
        cancellation: Optional[CancellationToken] = None,
    ) -> CommitInfo:
        """Create a commit object."""

    @abstractmethod
    def create_ref(
        self,
        owner: str,
        repo: str,
        ref: str,
        sha: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> BranchRef:
        """Create a new ref pointing at ``sha``."""

    @abstractmethod
    def update_ref(
        self,
        owner: str,
        repo: str,
        ref: str,
        sha: str,
        force: bool = False,
        cancellation: Optional[CancellationToken] = None,
    ) -> BranchRef:
        """Move an existing ref; without ``force`` only fast-forwards succeed."""

    @abstractmethod
    def get_repository(
        self,
        owner: str,
        name: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> RepositoryInfo:
        """Look up a repository."""

    @abstractmethod
    def create_repository(
        self,
        name: str,
        private: bool = False,
        auto_init: bool = True,
        description: str = "",
        organization: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> RepositoryInfo:
        """Create a repository for the authenticated user or an organization."""
