"""
Repository Ensurer.

Makes sure the target repository exists before any content operation.
The first call against a missing repository creates it; later calls are
idempotent no-ops.
"""

import logging
from typing import Optional

from ..api_clients.base_client import RemoteRepositoryClient
from ..cancellation import CancellationToken
from ..errors import NotFoundError, RemoteError
from ..logging_utils import correlation_scope, format_error_log, get_log_extra
from ..models import RepositoryInfo

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Auto-created by repo-upsert"


class RepositoryEnsurer:
    """Looks a repository up and creates it when it is missing."""

    def __init__(
        self,
        client: RemoteRepositoryClient,
        private: bool = False,
        auto_init: bool = True,
        description: str = DEFAULT_DESCRIPTION,
    ):
        """
        Args:
            client: Remote repository client
            private: Visibility of a newly created repository
            auto_init: Initialize a new repository with a default README
            description: Description of a newly created repository
        """
        self._client = client
        self._private = private
        self._auto_init = auto_init
        self._description = description

    def ensure(
        self,
        owner: str,
        name: str,
        organization: bool = False,
        cancellation: Optional[CancellationToken] = None,
    ) -> RepositoryInfo:
        """
        Ensure ``owner/name`` exists.

        Args:
            owner: Repository owner (user or organization login)
            name: Repository name
            organization: Create under the ``owner`` organization instead of
                the authenticated user
            cancellation: Optional cancellation token

        Returns:
            The existing or newly created repository

        Raises:
            RemoteError: If the lookup fails with anything other than
                "not found", or the creation fails
            CancelledError: If the token is cancelled
        """
        with correlation_scope():
            try:
                repository = self._client.get_repository(
                    owner, name, cancellation=cancellation
                )
                logger.info(
                    f"Repository already exists: "
                    f"{repository.html_url or f'{owner}/{name}'}"
                )
                return repository
            except NotFoundError:
                logger.info(f"Repository {owner}/{name} not found, creating it")
            except RemoteError as e:
                logger.error(
                    format_error_log(
                        "ENSURE-LOOKUP-001",
                        "Error checking if repository exists",
                        repository=f"{owner}/{name}",
                        error=e,
                    ),
                    extra=get_log_extra("ENSURE-LOOKUP-001"),
                )
                raise

            try:
                created = self._client.create_repository(
                    name,
                    private=self._private,
                    auto_init=self._auto_init,
                    description=self._description,
                    organization=owner if organization else None,
                    cancellation=cancellation,
                )
            except RemoteError as e:
                logger.error(
                    format_error_log(
                        "ENSURE-CREATE-001",
                        "Error creating repository",
                        repository=f"{owner}/{name}",
                        error=e,
                    ),
                    extra=get_log_extra("ENSURE-CREATE-001"),
                )
                raise

            logger.info(f"Repository created: {created.html_url}")
            return created
