"""
Shared fixtures for repo-upsert unit tests.

InMemoryRemote models one remote repository: blobs addressed by their git
SHA-1, flat trees (path -> blob sha), commits and refs. Non-force ref
updates are rejected unless they fast-forward, like GitHub. Tests inject
failures per method and register hooks that run before a method executes
(e.g. to let another writer move the branch).
"""

import base64
import hashlib
import itertools
import json
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from repo_upsert.api_clients.base_client import RemoteRepositoryClient
from repo_upsert.cancellation import CancellationToken
from repo_upsert.errors import ConflictError, NotFoundError, RemoteError
from repo_upsert.models import (
    BranchRef,
    CommitInfo,
    ContentFile,
    RepositoryInfo,
    TreeEntry,
    branch_ref_name,
)


def git_blob_sha(data: bytes) -> str:
    """SHA-1 of a git blob object, as git hash-object computes it."""
    return hashlib.sha1(b"blob %d\x00" % len(data) + data).hexdigest()


class InMemoryRemote(RemoteRepositoryClient):
    """In-memory stand-in for a GitHub repository."""

    def __init__(self, owner: str = "octo", name: str = "notes"):
        self.owner = owner
        self.name = name
        self.repository_exists = True
        self.empty_repository_conflict = False
        self.blobs: Dict[str, bytes] = {}
        self.trees: Dict[str, Dict[str, str]] = {}
        self.commits: Dict[str, CommitInfo] = {}
        self.refs: Dict[str, str] = {}
        self.calls: List[str] = []
        self.created_repositories: List[dict] = []
        self._failures: Dict[str, List[Tuple[Callable[[dict], bool], Exception]]] = {}
        self._hooks: Dict[str, List[Callable[[dict], None]]] = {}
        self._counter = itertools.count(1)

    # -- test controls -------------------------------------------------

    def fail(
        self,
        method: str,
        error: Exception,
        when: Optional[Callable[[dict], bool]] = None,
    ) -> None:
        """Make ``method`` raise ``error`` whenever ``when(kwargs)`` holds."""
        self._failures.setdefault(method, []).append((when or (lambda _: True), error))

    def on(self, method: str, hook: Callable[[dict], None]) -> None:
        """Run ``hook(kwargs)`` before every call of ``method``."""
        self._hooks.setdefault(method, []).append(hook)

    def count(self, method: str) -> int:
        return self.calls.count(method)

    def seed(self, files: Dict[str, str], branch: str = "main", message: str = "seed") -> str:
        """Commit ``files`` on top of ``branch`` (or as root) without recording calls."""
        ref = branch_ref_name(branch)
        parent = self.refs.get(ref)
        base = dict(self.trees[self.commits[parent].tree_sha]) if parent else {}
        for path, content in files.items():
            base[path] = self._store_blob(content.encode("utf-8"))
        tree_sha = self._store_tree(base)
        commit = self._store_commit(message, tree_sha, [parent] if parent else [])
        self.refs[ref] = commit.sha
        return commit.sha

    def head(self, branch: str = "main") -> Optional[str]:
        return self.refs.get(branch_ref_name(branch))

    def tree_of(self, commit_sha: str) -> Dict[str, str]:
        return self.trees[self.commits[commit_sha].tree_sha]

    def files_at(self, branch: str = "main") -> Dict[str, str]:
        """Decoded file contents at the branch head."""
        tree = self.tree_of(self.refs[branch_ref_name(branch)])
        return {path: self.blobs[sha].decode("utf-8") for path, sha in tree.items()}

    # -- internals -----------------------------------------------------

    def _enter(self, method: str, cancellation: Optional[CancellationToken], **kwargs) -> None:
        self.calls.append(method)
        if cancellation is not None:
            cancellation.raise_if_cancelled(method)
        for hook in self._hooks.get(method, []):
            hook(kwargs)
        if cancellation is not None:
            cancellation.raise_if_cancelled(method)
        for when, error in self._failures.get(method, []):
            if when(kwargs):
                raise error

    def _store_blob(self, data: bytes) -> str:
        sha = git_blob_sha(data)
        self.blobs[sha] = data
        return sha

    def _store_tree(self, entries: Dict[str, str]) -> str:
        payload = json.dumps(sorted(entries.items())).encode("utf-8")
        sha = hashlib.sha1(b"tree " + payload).hexdigest()
        self.trees[sha] = dict(entries)
        return sha

    def _store_commit(self, message: str, tree_sha: str, parents: List[str]) -> CommitInfo:
        seed = f"{tree_sha}|{','.join(parents)}|{message}|{next(self._counter)}"
        sha = hashlib.sha1(b"commit " + seed.encode("utf-8")).hexdigest()
        commit = CommitInfo(
            sha=sha,
            tree_sha=tree_sha,
            parents=list(parents),
            message=message,
            html_url=f"https://github.com/{self.owner}/{self.name}/commit/{sha}",
        )
        self.commits[sha] = commit
        return commit

    def _is_ancestor(self, ancestor: str, descendant: str) -> bool:
        pending = [descendant]
        seen = set()
        while pending:
            sha = pending.pop()
            if sha == ancestor:
                return True
            if sha in seen or sha not in self.commits:
                continue
            seen.add(sha)
            pending.extend(self.commits[sha].parents)
        return False

    def _resolve(self, ref: str) -> str:
        if ref in self.commits:
            return ref
        qualified = branch_ref_name(ref)
        if qualified in self.refs:
            return self.refs[qualified]
        raise NotFoundError(f"No commit found for the ref {ref}")

    # -- RemoteRepositoryClient ----------------------------------------

    def get_ref(self, owner, repo, ref, cancellation=None) -> BranchRef:
        self._enter("get_ref", cancellation, ref=ref)
        if ref not in self.refs:
            if self.empty_repository_conflict and not self.refs:
                raise ConflictError("Git Repository is empty.")
            raise NotFoundError(f"GetRef {ref}: not found")
        return BranchRef(ref=ref, sha=self.refs[ref])

    def get_commit(self, owner, repo, sha, cancellation=None) -> CommitInfo:
        self._enter("get_commit", cancellation, sha=sha)
        if sha not in self.commits:
            raise NotFoundError(f"GetCommit {sha}: not found")
        return self.commits[sha]

    def get_content(self, owner, repo, path, ref, cancellation=None) -> ContentFile:
        self._enter("get_content", cancellation, path=path, ref=ref)
        tree = self.tree_of(self._resolve(ref))
        if path not in tree:
            raise NotFoundError(f"GetContents {path}: not found")
        encoded = base64.b64encode(self.blobs[tree[path]]).decode("ascii")
        # GitHub wraps base64 content at 60 columns
        wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
        return ContentFile(
            path=path, sha=tree[path], type="file", encoding="base64", content=wrapped
        )

    def create_blob(self, owner, repo, content, encoding="utf-8", cancellation=None) -> str:
        self._enter("create_blob", cancellation, content=content, encoding=encoding)
        return self._store_blob(content.encode("utf-8"))

    def create_tree(
        self,
        owner,
        repo,
        entries: Sequence[TreeEntry],
        base_tree=None,
        cancellation=None,
    ) -> str:
        self._enter("create_tree", cancellation, entries=list(entries), base_tree=base_tree)
        if base_tree is not None and base_tree not in self.trees:
            raise RemoteError("CreateTree: base_tree not found", 422)
        tree = dict(self.trees[base_tree]) if base_tree else {}
        for entry in entries:
            if entry.sha not in self.blobs:
                raise RemoteError(f"CreateTree: unknown blob {entry.sha}", 422)
            tree[entry.path] = entry.sha
        return self._store_tree(tree)

    def create_commit(self, owner, repo, message, tree_sha, parents, cancellation=None) -> CommitInfo:
        self._enter(
            "create_commit", cancellation, message=message, tree_sha=tree_sha, parents=parents
        )
        if tree_sha not in self.trees:
            raise RemoteError("CreateCommit: tree not found", 422)
        return self._store_commit(message, tree_sha, list(parents))

    def create_ref(self, owner, repo, ref, sha, cancellation=None) -> BranchRef:
        self._enter("create_ref", cancellation, ref=ref, sha=sha)
        if ref in self.refs:
            raise RemoteError("CreateRef: Reference already exists", 422)
        self.refs[ref] = sha
        return BranchRef(ref=ref, sha=sha)

    def update_ref(self, owner, repo, ref, sha, force=False, cancellation=None) -> BranchRef:
        self._enter("update_ref", cancellation, ref=ref, sha=sha, force=force)
        if ref not in self.refs:
            raise RemoteError("UpdateRef: Reference does not exist", 422)
        if not force and not self._is_ancestor(self.refs[ref], sha):
            raise RemoteError("UpdateRef: Update is not a fast forward", 422)
        self.refs[ref] = sha
        return BranchRef(ref=ref, sha=sha)

    def get_repository(self, owner, name, cancellation=None) -> RepositoryInfo:
        self._enter("get_repository", cancellation, owner=owner, name=name)
        if not self.repository_exists:
            raise NotFoundError(f"GetRepository {owner}/{name}: not found")
        return RepositoryInfo(
            owner=owner, name=name, html_url=f"https://github.com/{owner}/{name}"
        )

    def create_repository(
        self,
        name,
        private=False,
        auto_init=True,
        description="",
        organization=None,
        cancellation=None,
    ) -> RepositoryInfo:
        self._enter("create_repository", cancellation, name=name)
        self.repository_exists = True
        self.created_repositories.append(
            {
                "name": name,
                "private": private,
                "auto_init": auto_init,
                "description": description,
                "organization": organization,
            }
        )
        owner = organization or self.owner
        return RepositoryInfo(
            owner=owner,
            name=name,
            private=private,
            html_url=f"https://github.com/{owner}/{name}",
        )


@pytest.fixture
def remote():
    """Fresh in-memory remote with no branches."""
    return InMemoryRemote()
