"""
Batch Upsert Engine.

Creates or updates a batch of files on a branch as one commit, using the Git
data API (blobs -> tree -> commit -> ref update):

- Branch missing (404) or repository empty (409): bootstrap the branch with a
  root commit holding every file.
- Branch present: compare each file against the head commit, upload blobs
  only for created/updated files, layer them on the head tree, commit with
  the head as single parent and fast-forward the ref.

The ref only moves if it still points at the head read at the start. The
engine never retries; a ConcurrentModificationError means the caller should
run the whole upsert again.
"""

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple

from ..api_clients.base_client import RemoteRepositoryClient
from ..cancellation import CancellationToken
from ..errors import (
    CancelledError,
    ConcurrentModificationError,
    ConflictError,
    ContentDecodeError,
    InconsistentStateError,
    NotFoundError,
    RemoteError,
    RepoUpsertError,
    with_outcome,
)
from ..logging_utils import correlation_scope, format_error_log, get_log_extra
from ..models import (
    BranchRef,
    FileSet,
    FileStatus,
    TreeEntry,
    UpsertOutcome,
    UpsertResult,
    branch_ref_name,
)

logger = logging.getLogger(__name__)

INITIAL_COMMIT_MESSAGE = "Initial commit"

# Final ref update rejected because the branch is no longer a fast-forward
# of our commit, or the ref vanished.
_REF_REJECTED_STATUSES = (409, 422)


def validate_file_set(files: FileSet) -> None:
    """
    Check that every key is a repository-relative forward-slash path.

    Raises:
        ValueError: On the first invalid path or non-text content
    """
    for path, content in files.items():
        if not isinstance(path, str) or not path:
            raise ValueError(f"File path must be a non-empty string, got {path!r}")
        if "\\" in path:
            raise ValueError(f"File path must use forward slashes: {path}")
        if path.startswith("/"):
            raise ValueError(f"File path must be repository-relative: {path}")
        segments = path.split("/")
        if any(segment in ("", ".", "..") for segment in segments):
            raise ValueError(f"File path has an empty or relative segment: {path}")
        if not isinstance(content, str):
            raise ValueError(f"Content for {path} must be text")


class BatchUpsertEngine:
    """Upserts a FileSet onto a remote branch as a single commit."""

    def __init__(self, client: RemoteRepositoryClient, max_workers: int = 1):
        """
        Initialize the engine.

        Args:
            client: Remote repository client
            max_workers: Threads used to compare and upload files in parallel
                on an existing branch (1 = sequential)
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._client = client
        self._max_workers = max_workers

    def upsert(
        self,
        owner: str,
        repo: str,
        branch: str,
        files: FileSet,
        commit_message: str,
        cancellation: Optional[CancellationToken] = None,
    ) -> UpsertResult:
        """
        Create, update or skip every file in ``files`` on ``branch``.

        Args:
            owner: Repository owner
            repo: Repository name
            branch: Branch name (``main`` or ``refs/heads/main``)
            files: Mapping of repository path to desired content
            commit_message: Message for the update commit
            cancellation: Optional cancellation token

        Returns:
            UpsertResult with one status per path and the new commit, if any

        Raises:
            RemoteError: An API call outside the per-file steps failed. The
                concrete subclass (AuthenticationError, RateLimitError, ...)
                is raised as is.
            ConcurrentModificationError: The branch moved during the upsert
            InconsistentStateError: The head commit or its tree is missing
            CancelledError: The token was cancelled or its deadline expired
            ValueError: A path in ``files`` is invalid

        Every RepoUpsertError raised carries the outcome computed so far.
        """
        validate_file_set(files)
        outcome: UpsertOutcome = {}

        with correlation_scope():
            try:
                return self._run(
                    owner, repo, branch, files, commit_message, cancellation, outcome
                )
            except CancelledError as e:
                logger.warning(f"Upsert to {owner}/{repo}@{branch} cancelled: {e}")
                raise with_outcome(e, outcome)

    def bootstrap(
        self,
        owner: str,
        repo: str,
        branch: str,
        files: FileSet,
        cancellation: Optional[CancellationToken] = None,
    ) -> UpsertResult:
        """
        Create ``branch`` with a root commit holding exactly ``files``.

        Blob creation is fail-fast: the failing path is marked ``error`` and
        paths after it get no status at all.

        Raises:
            RemoteError: Any blob, tree, commit or ref creation failed
            CancelledError: The token was cancelled
        """
        validate_file_set(files)
        outcome: UpsertOutcome = {}

        with correlation_scope():
            try:
                return self._bootstrap(owner, repo, branch, files, cancellation, outcome)
            except CancelledError as e:
                raise with_outcome(e, outcome)

    def _run(
        self,
        owner: str,
        repo: str,
        branch: str,
        files: FileSet,
        commit_message: str,
        cancellation: Optional[CancellationToken],
        outcome: UpsertOutcome,
    ) -> UpsertResult:
        ref_name = branch_ref_name(branch)
        try:
            head = self._client.get_ref(owner, repo, ref_name, cancellation=cancellation)
        except (NotFoundError, ConflictError):
            logger.info(
                f"Branch {ref_name} doesn't exist, repository may be empty. "
                "Creating initial commit..."
            )
            return self._bootstrap(owner, repo, branch, files, cancellation, outcome)
        except RemoteError as e:
            raise self._remote_failure("UPSERT-REF-001", "GetRef", e, outcome)

        return self._update(
            owner, repo, head, files, commit_message, cancellation, outcome
        )

    def _bootstrap(
        self,
        owner: str,
        repo: str,
        branch: str,
        files: FileSet,
        cancellation: Optional[CancellationToken],
        outcome: UpsertOutcome,
    ) -> UpsertResult:
        ref_name = branch_ref_name(branch)
        entries: List[TreeEntry] = []

        for path, content in files.items():
            outcome[path] = FileStatus.CREATED
            try:
                blob_sha = self._client.create_blob(
                    owner, repo, content, encoding="utf-8", cancellation=cancellation
                )
            except CancelledError:
                outcome[path] = FileStatus.ERROR
                raise
            except RemoteError as e:
                outcome[path] = FileStatus.ERROR
                raise self._remote_failure(
                    "UPSERT-INIT-001", "CreateBlob (init)", e, outcome, path=path
                )
            entries.append(TreeEntry(path=path, sha=blob_sha))

        if not entries:
            logger.info(f"No files to commit, {ref_name} left unborn")
            return UpsertResult(outcome=outcome)

        try:
            tree_sha = self._client.create_tree(
                owner, repo, entries, base_tree=None, cancellation=cancellation
            )
        except RemoteError as e:
            raise self._remote_failure(
                "UPSERT-INIT-002", "CreateTree (init)", e, outcome
            )

        try:
            commit = self._client.create_commit(
                owner,
                repo,
                INITIAL_COMMIT_MESSAGE,
                tree_sha,
                [],
                cancellation=cancellation,
            )
        except RemoteError as e:
            raise self._remote_failure(
                "UPSERT-INIT-003", "CreateCommit (init)", e, outcome
            )

        try:
            self._client.create_ref(
                owner, repo, ref_name, commit.sha, cancellation=cancellation
            )
        except RemoteError as e:
            raise self._remote_failure(
                "UPSERT-INIT-004", "CreateRef (init)", e, outcome
            )

        logger.info(f"Initial commit and branch {ref_name} created: {commit.sha}")
        return UpsertResult(
            outcome=outcome,
            commit_sha=commit.sha,
            commit_url=commit.html_url,
            bootstrapped=True,
        )

    def _update(
        self,
        owner: str,
        repo: str,
        head: BranchRef,
        files: FileSet,
        commit_message: str,
        cancellation: Optional[CancellationToken],
        outcome: UpsertOutcome,
    ) -> UpsertResult:
        original_head_sha = head.sha

        try:
            base_commit = self._client.get_commit(
                owner, repo, original_head_sha, cancellation=cancellation
            )
        except NotFoundError as e:
            raise InconsistentStateError(
                f"Head commit {original_head_sha} of {head.ref} not found; "
                "SHA might be invalid or repository in bad state",
                outcome,
            ) from e
        except RemoteError as e:
            raise self._remote_failure("UPSERT-COMMIT-001", "GetCommit", e, outcome)

        if not base_commit.tree_sha:
            raise InconsistentStateError(
                f"Head commit {original_head_sha} has no tree reference", outcome
            )

        entries = self._collect_entries(
            owner, repo, original_head_sha, files, cancellation, outcome
        )

        if not entries:
            logger.info(f"No changes to commit on {head.ref}")
            return UpsertResult(outcome=outcome)

        try:
            ref_check = self._client.get_ref(
                owner, repo, head.ref, cancellation=cancellation
            )
        except RemoteError as e:
            raise self._remote_failure(
                "UPSERT-REF-002", "Recheck GetRef", e, outcome
            )

        if ref_check.sha != original_head_sha:
            logger.warning(
                format_error_log(
                    "UPSERT-REF-003",
                    "Branch was updated during operation",
                    ref=head.ref,
                    expected=original_head_sha,
                    actual=ref_check.sha,
                ),
                extra=get_log_extra("UPSERT-REF-003"),
            )
            raise ConcurrentModificationError(
                f"Branch {head.ref} was updated during operation (SHA mismatch)",
                expected_sha=original_head_sha,
                actual_sha=ref_check.sha,
                outcome=outcome,
            )

        try:
            tree_sha = self._client.create_tree(
                owner,
                repo,
                entries,
                base_tree=base_commit.tree_sha,
                cancellation=cancellation,
            )
        except RemoteError as e:
            raise self._remote_failure("UPSERT-TREE-001", "CreateTree", e, outcome)

        try:
            commit = self._client.create_commit(
                owner,
                repo,
                commit_message,
                tree_sha,
                [original_head_sha],
                cancellation=cancellation,
            )
        except RemoteError as e:
            raise self._remote_failure(
                "UPSERT-COMMIT-002", "CreateCommit", e, outcome
            )

        try:
            self._client.update_ref(
                owner, repo, head.ref, commit.sha, force=False, cancellation=cancellation
            )
        except RemoteError as e:
            if e.status_code in _REF_REJECTED_STATUSES:
                logger.warning(
                    format_error_log(
                        "UPSERT-REF-004",
                        "Ref update rejected",
                        ref=head.ref,
                        commit=commit.sha,
                        error=e,
                    ),
                    extra=get_log_extra("UPSERT-REF-004"),
                )
                raise ConcurrentModificationError(
                    f"Branch {head.ref} diverged before the ref update: {e}",
                    expected_sha=original_head_sha,
                    outcome=outcome,
                ) from e
            raise self._remote_failure("UPSERT-REF-005", "UpdateRef", e, outcome)

        logger.info(f"Commit created: {commit.html_url or commit.sha}")
        return UpsertResult(
            outcome=outcome, commit_sha=commit.sha, commit_url=commit.html_url
        )

    def _collect_entries(
        self,
        owner: str,
        repo: str,
        head_sha: str,
        files: FileSet,
        cancellation: Optional[CancellationToken],
        outcome: UpsertOutcome,
    ) -> List[TreeEntry]:
        """Process every file independently and merge the results."""
        for path in files:
            outcome[path] = FileStatus.ERROR

        results: Dict[str, Tuple[FileStatus, Optional[TreeEntry]]] = {}

        if self._max_workers == 1 or len(files) <= 1:
            for path, content in files.items():
                results[path] = self._process_file(
                    owner, repo, head_sha, path, content, cancellation
                )
                outcome[path] = results[path][0]
        else:
            workers = min(self._max_workers, len(files))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(
                        contextvars.copy_context().run,
                        self._process_file,
                        owner,
                        repo,
                        head_sha,
                        path,
                        content,
                        cancellation,
                    ): path
                    for path, content in files.items()
                }
                try:
                    for future in as_completed(futures):
                        path = futures[future]
                        results[path] = future.result()
                        outcome[path] = results[path][0]
                except RepoUpsertError:
                    for future in futures:
                        future.cancel()
                    raise

        # Keep FileSet order so the tree payload is deterministic
        return [
            results[path][1]
            for path in files
            if path in results and results[path][1] is not None
        ]

    def _process_file(
        self,
        owner: str,
        repo: str,
        head_sha: str,
        path: str,
        content: str,
        cancellation: Optional[CancellationToken],
    ) -> Tuple[FileStatus, Optional[TreeEntry]]:
        """
        Decide the status of one file and upload its blob when needed.

        Content is read at the head commit so the comparison matches the base
        tree the new entries are layered on. Remote and decode failures are
        confined to this file; cancellation propagates.
        """
        try:
            current = self._client.get_content(
                owner, repo, path, head_sha, cancellation=cancellation
            )
        except NotFoundError:
            status = FileStatus.CREATED
        except RemoteError as e:
            logger.warning(
                format_error_log("UPSERT-READ-001", "Reading file failed", path=path, error=e),
                extra=get_log_extra("UPSERT-READ-001"),
            )
            return FileStatus.ERROR, None
        else:
            try:
                current_bytes = current.decoded_bytes()
            except ContentDecodeError as e:
                logger.warning(
                    format_error_log(
                        "UPSERT-READ-002", "Decoding file failed", path=path, error=e
                    ),
                    extra=get_log_extra("UPSERT-READ-002"),
                )
                return FileStatus.ERROR, None

            if current_bytes == content.encode("utf-8"):
                logger.debug(f"Unchanged, skipping: {path}")
                return FileStatus.SKIPPED, None
            status = FileStatus.UPDATED

        try:
            blob_sha = self._client.create_blob(
                owner, repo, content, encoding="utf-8", cancellation=cancellation
            )
        except RemoteError as e:
            logger.warning(
                format_error_log("UPSERT-BLOB-001", "Blob creation failed", path=path, error=e),
                extra=get_log_extra("UPSERT-BLOB-001"),
            )
            return FileStatus.ERROR, None

        logger.debug(f"{status.value}: {path} -> blob {blob_sha}")
        return status, TreeEntry(path=path, sha=blob_sha)

    @staticmethod
    def _remote_failure(
        error_code: str,
        step: str,
        error: RemoteError,
        outcome: UpsertOutcome,
        **context,
    ) -> RemoteError:
        """Log a fatal remote failure and return ``error``, concrete type intact,
        with the outcome attached."""
        logger.error(
            format_error_log(error_code, f"{step} failed", error=error, **context),
            extra=get_log_extra(error_code),
        )
        return with_outcome(error, outcome)
