"""Remote repository API clients."""

from .base_client import RemoteRepositoryClient
from .github_client import GitHubAPIClient

__all__ = [
    "RemoteRepositoryClient",
    "GitHubAPIClient",
]
