"""
Data models for repo-upsert.

Wire models for the Git data objects exchanged with the remote API are
Pydantic models so that malformed responses fail validation at the client
boundary instead of deep inside the upsert engine.
"""

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ContentDecodeError

REGULAR_FILE_MODE = "100644"
BLOB_TYPE = "blob"
HEADS_PREFIX = "refs/heads/"

FileSet = Mapping[str, str]


class FileStatus(str, Enum):
    """Terminal status of a single path in an upsert."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    ERROR = "error"


UpsertOutcome = Dict[str, FileStatus]


def branch_ref_name(branch: str) -> str:
    """Return the fully qualified ref name for ``branch``."""
    if branch.startswith(HEADS_PREFIX):
        return branch
    return f"{HEADS_PREFIX}{branch}"


class BranchRef(BaseModel):
    """A named ref and the commit SHA it points to."""

    model_config = ConfigDict(frozen=True)

    ref: str = Field(description="Fully qualified ref name, e.g. refs/heads/main")
    sha: str = Field(description="Commit SHA the ref points to")


class TreeEntry(BaseModel):
    """One path written into a tree."""

    model_config = ConfigDict(frozen=True)

    path: str
    mode: str = REGULAR_FILE_MODE
    type: str = BLOB_TYPE
    sha: str


class CommitInfo(BaseModel):
    """Commit metadata as returned by the Git data API."""

    model_config = ConfigDict(frozen=True)

    sha: str
    tree_sha: Optional[str] = Field(
        None, description="Root tree SHA; None signals an inconsistent commit"
    )
    parents: List[str] = Field(default_factory=list)
    message: str = ""
    html_url: Optional[str] = None


class ContentFile(BaseModel):
    """File content read from a branch through the contents API."""

    path: str
    sha: Optional[str] = None
    type: str = "file"
    encoding: Optional[str] = None
    content: Optional[str] = None

    def decoded_bytes(self) -> bytes:
        """Decode the payload to raw bytes.

        Raises:
            ContentDecodeError: If the entry is not a file or the payload
                cannot be decoded (e.g. encoding "none" for large files)
        """
        if self.type != "file":
            raise ContentDecodeError(f"{self.path} is a {self.type}, not a file")
        if self.content is None:
            raise ContentDecodeError(f"{self.path} has no inline content")

        if self.encoding == "base64":
            try:
                # GitHub wraps base64 payloads at 60 columns
                return base64.b64decode("".join(self.content.split()), validate=True)
            except (binascii.Error, ValueError) as e:
                raise ContentDecodeError(f"Invalid base64 content for {self.path}: {e}")
        if self.encoding in (None, "", "utf-8"):
            return self.content.encode("utf-8")

        raise ContentDecodeError(
            f"Unsupported content encoding '{self.encoding}' for {self.path}"
        )


class RepositoryInfo(BaseModel):
    """Minimal repository metadata."""

    owner: str
    name: str
    html_url: Optional[str] = None
    private: bool = False
    default_branch: Optional[str] = None


@dataclass
class UpsertResult:
    """Result of one upsert call."""

    outcome: UpsertOutcome = field(default_factory=dict)
    commit_sha: Optional[str] = None
    commit_url: Optional[str] = None
    bootstrapped: bool = False

    @property
    def committed(self) -> bool:
        return self.commit_sha is not None

    def counts(self) -> Dict[str, int]:
        """Number of paths per status, every status present."""
        counts = {status.value: 0 for status in FileStatus}
        for status in self.outcome.values():
            counts[FileStatus(status).value] += 1
        return counts
