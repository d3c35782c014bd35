"""
GitHub API client for repo-upsert.

Implements RemoteRepositoryClient on top of the GitHub REST API: repository
lookup and creation, and the Git data API (refs, commits, blobs, trees) used
to build commits without a local clone.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from .base_client import RemoteRepositoryClient
from ..cancellation import CancellationToken
from ..errors import (
    AuthenticationError,
    CancelledError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    RemoteError,
)
from ..logging_utils import sanitize_for_logging
from ..models import (
    BranchRef,
    CommitInfo,
    ContentFile,
    RepositoryInfo,
    TreeEntry,
    branch_ref_name,
)

logger = logging.getLogger(__name__)


class GitHubAPIClient(RemoteRepositoryClient):
    """
    Synchronous GitHub REST API client.

    One instance holds one pooled httpx.Client; use it as a context manager
    or call close() when done.
    """

    DEFAULT_BASE_URL = "https://api.github.com"
    API_VERSION = "2022-11-28"

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        api_timeout: float = 30,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the GitHub client.

        Args:
            token: Personal access token used as Bearer credential
            base_url: API root, override for GitHub Enterprise
            api_timeout: Per-request timeout in seconds
            http_client: Optional preconfigured httpx.Client
        """
        if not token:
            raise AuthenticationError("GitHub token not configured")

        self._base_url = base_url.rstrip("/")
        self._api_timeout = api_timeout
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.API_VERSION,
        }
        self._http = http_client or httpx.Client()

    def __enter__(self) -> "GitHubAPIClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _get_api_url(self, endpoint: str) -> str:
        """Construct full API URL for an endpoint."""
        return f"{self._base_url}/{endpoint}"

    def _make_api_request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> httpx.Response:
        """
        Send one request to the GitHub API.

        Args:
            method: HTTP method
            endpoint: API endpoint relative to the base URL
            json: Optional JSON body
            params: Optional query parameters
            cancellation: Optional token checked before sending and used to
                bound the request timeout

        Returns:
            HTTP response (any status)

        Raises:
            CancelledError: If cancelled before sending or the deadline
                expired while waiting for the response
            RemoteError: On transport failures and timeouts
        """
        timeout = self._api_timeout
        if cancellation is not None:
            cancellation.raise_if_cancelled(f"{method} {endpoint}")
            timeout = cancellation.bound_timeout(timeout)

        url = self._get_api_url(endpoint)
        logger.debug(
            f"GitHub API {method} {url} params={params} "
            f"headers={sanitize_for_logging(self._headers)}"
        )

        try:
            return self._http.request(
                method,
                url,
                headers=self._headers,
                json=json,
                params=params,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            if cancellation is not None and cancellation.cancelled:
                raise CancelledError(
                    f"GitHub API request cancelled: {method} {endpoint}"
                ) from e
            raise RemoteError(f"GitHub API request timed out: {e}") from e
        except httpx.RequestError as e:
            raise RemoteError(f"GitHub API request failed: {e}") from e

    @staticmethod
    def _extract_error_detail(response: httpx.Response) -> str:
        """Pull the human-readable message out of an error response."""
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return str(body)[:200]

    def _check_rate_limit(self, response: httpx.Response) -> None:
        """
        Check if rate limit was exceeded and raise appropriate error.

        Raises:
            RateLimitError: If rate limit was exceeded
        """
        if response.status_code in (403, 429):
            remaining = response.headers.get("X-RateLimit-Remaining", "")
            reset_time = response.headers.get("X-RateLimit-Reset", "")

            if remaining == "0" or response.status_code == 429:
                reset_at = None
                reset_msg = ""
                if reset_time:
                    try:
                        reset_at = int(reset_time)
                        reset_dt = datetime.fromtimestamp(reset_at)
                        reset_msg = (
                            f" Rate limit resets at {reset_dt.strftime('%H:%M:%S')}"
                        )
                    except (ValueError, TypeError, OverflowError, OSError):
                        pass

                raise RateLimitError(
                    f"GitHub API rate limit exceeded.{reset_msg}", reset_at=reset_at
                )

    def _check_response(self, response: httpx.Response, operation: str) -> None:
        """
        Map a non-2xx response onto the RemoteError family.

        Args:
            response: HTTP response to check
            operation: Short description used in error messages

        Raises:
            AuthenticationError, RateLimitError, NotFoundError, ConflictError,
            RemoteError
        """
        status = response.status_code
        if 200 <= status < 300:
            return

        self._check_rate_limit(response)
        detail = self._extract_error_detail(response)

        if status == 401:
            raise AuthenticationError(f"{operation}: invalid or expired GitHub token")
        if status == 404:
            raise NotFoundError(f"{operation}: not found ({detail})")
        if status == 409:
            raise ConflictError(f"{operation}: conflict ({detail})")
        raise RemoteError(f"{operation}: GitHub API error {status} ({detail})", status)

    def _request(
        self,
        method: str,
        endpoint: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Any:
        """Send a request, check its status and return the decoded JSON body."""
        response = self._make_api_request(
            method, endpoint, json=json, params=params, cancellation=cancellation
        )
        self._check_response(response, operation)
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                f"{operation}: invalid JSON in response", response.status_code
            ) from e

    @staticmethod
    def _repo_endpoint(owner: str, repo: str, suffix: str = "") -> str:
        endpoint = f"repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
        return f"{endpoint}/{suffix}" if suffix else endpoint

    @staticmethod
    def _short_ref(ref: str) -> str:
        """``refs/heads/main`` -> ``heads/main`` as used in ref endpoints."""
        qualified = ref if ref.startswith("refs/") else branch_ref_name(ref)
        return quote(qualified[len("refs/"):], safe="/")

    @staticmethod
    def _parse(operation: str, builder):
        try:
            return builder()
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(f"{operation}: malformed response ({e})") from e

    def get_ref(
        self,
        owner: str,
        repo: str,
        ref: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> BranchRef:
        operation = f"GetRef {ref}"
        data = self._request(
            "GET",
            self._repo_endpoint(owner, repo, f"git/ref/{self._short_ref(ref)}"),
            operation,
            cancellation=cancellation,
        )
        return self._parse(
            operation, lambda: BranchRef(ref=data["ref"], sha=data["object"]["sha"])
        )

    def get_commit(
        self,
        owner: str,
        repo: str,
        sha: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> CommitInfo:
        operation = f"GetCommit {sha}"
        data = self._request(
            "GET",
            self._repo_endpoint(owner, repo, f"git/commits/{sha}"),
            operation,
            cancellation=cancellation,
        )
        return self._parse(operation, lambda: self._commit_from_json(data))

    @staticmethod
    def _commit_from_json(data: Dict[str, Any]) -> CommitInfo:
        tree = data.get("tree") or {}
        return CommitInfo(
            sha=data["sha"],
            tree_sha=tree.get("sha"),
            parents=[p["sha"] for p in data.get("parents") or []],
            message=data.get("message") or "",
            html_url=data.get("html_url"),
        )

    def get_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> ContentFile:
        operation = f"GetContents {path}"
        data = self._request(
            "GET",
            self._repo_endpoint(owner, repo, f"contents/{quote(path, safe='/')}"),
            operation,
            params={"ref": ref},
            cancellation=cancellation,
        )

        # A directory listing comes back as a JSON array
        if isinstance(data, list):
            return ContentFile(path=path, type="dir")

        return self._parse(
            operation,
            lambda: ContentFile(
                path=data.get("path", path),
                sha=data.get("sha"),
                type=data.get("type", "file"),
                encoding=data.get("encoding"),
                content=data.get("content"),
            ),
        )

    def create_blob(
        self,
        owner: str,
        repo: str,
        content: str,
        encoding: str = "utf-8",
        cancellation: Optional[CancellationToken] = None,
    ) -> str:
        operation = "CreateBlob"
        data = self._request(
            "POST",
            self._repo_endpoint(owner, repo, "git/blobs"),
            operation,
            json={"content": content, "encoding": encoding},
            cancellation=cancellation,
        )
        return self._parse(operation, lambda: str(data["sha"]))

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: Sequence[TreeEntry],
        base_tree: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> str:
        operation = "CreateTree"
        payload: Dict[str, Any] = {"tree": [entry.model_dump() for entry in entries]}
        if base_tree:
            payload["base_tree"] = base_tree

        data = self._request(
            "POST",
            self._repo_endpoint(owner, repo, "git/trees"),
            operation,
            json=payload,
            cancellation=cancellation,
        )
        return self._parse(operation, lambda: str(data["sha"]))

    def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree_sha: str,
        parents: List[str],
        cancellation: Optional[CancellationToken] = None,
    ) -> CommitInfo:
        operation = "CreateCommit"
        data = self._request(
            "POST",
            self._repo_endpoint(owner, repo, "git/commits"),
            operation,
            json={"message": message, "tree": tree_sha, "parents": list(parents)},
            cancellation=cancellation,
        )
        return self._parse(operation, lambda: self._commit_from_json(data))

    def create_ref(
        self,
        owner: str,
        repo: str,
        ref: str,
        sha: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> BranchRef:
        qualified = ref if ref.startswith("refs/") else branch_ref_name(ref)
        operation = f"CreateRef {qualified}"
        data = self._request(
            "POST",
            self._repo_endpoint(owner, repo, "git/refs"),
            operation,
            json={"ref": qualified, "sha": sha},
            cancellation=cancellation,
        )
        return self._parse(
            operation, lambda: BranchRef(ref=data["ref"], sha=data["object"]["sha"])
        )

    def update_ref(
        self,
        owner: str,
        repo: str,
        ref: str,
        sha: str,
        force: bool = False,
        cancellation: Optional[CancellationToken] = None,
    ) -> BranchRef:
        operation = f"UpdateRef {ref}"
        data = self._request(
            "PATCH",
            self._repo_endpoint(owner, repo, f"git/refs/{self._short_ref(ref)}"),
            operation,
            json={"sha": sha, "force": force},
            cancellation=cancellation,
        )
        return self._parse(
            operation, lambda: BranchRef(ref=data["ref"], sha=data["object"]["sha"])
        )

    def get_repository(
        self,
        owner: str,
        name: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> RepositoryInfo:
        operation = f"GetRepository {owner}/{name}"
        data = self._request(
            "GET",
            self._repo_endpoint(owner, name),
            operation,
            cancellation=cancellation,
        )
        return self._parse(operation, lambda: self._repository_from_json(data))

    def create_repository(
        self,
        name: str,
        private: bool = False,
        auto_init: bool = True,
        description: str = "",
        organization: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> RepositoryInfo:
        endpoint = (
            f"orgs/{quote(organization, safe='')}/repos" if organization else "user/repos"
        )
        operation = f"CreateRepository {name}"
        data = self._request(
            "POST",
            endpoint,
            operation,
            json={
                "name": name,
                "private": private,
                "auto_init": auto_init,
                "description": description,
            },
            cancellation=cancellation,
        )
        return self._parse(operation, lambda: self._repository_from_json(data))

    @staticmethod
    def _repository_from_json(data: Dict[str, Any]) -> RepositoryInfo:
        return RepositoryInfo(
            owner=data["owner"]["login"],
            name=data["name"],
            html_url=data.get("html_url"),
            private=bool(data.get("private", False)),
            default_branch=data.get("default_branch"),
        )
