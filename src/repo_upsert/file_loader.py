"""Read local files into a FileSet keyed by forward-slash repository paths."""

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

logger = logging.getLogger(__name__)


def to_repository_path(local_path: Path, root: Path) -> str:
    """
    Map a local file to its path inside the repository.

    Raises:
        ValueError: If the file lies outside ``root``
    """
    resolved = local_path.resolve()
    try:
        relative = resolved.relative_to(root.resolve())
    except ValueError:
        raise ValueError(f"{local_path} is outside the sync root {root}")
    # Use forward slashes even on Windows for repository paths
    return relative.as_posix()


def load_file_set(paths: Iterable[str], root: Optional[str] = None) -> Dict[str, str]:
    """
    Read every file in ``paths`` as UTF-8 text.

    Args:
        paths: Local file paths, absolute or relative to the current directory
        root: Directory the repository paths are relative to (default: cwd)

    Returns:
        Mapping of repository path to file content, in the order given

    Raises:
        FileNotFoundError: If a path does not exist or is not a file
        ValueError: If a file is outside ``root``, is not valid UTF-8, or two
            paths map to the same repository path
    """
    root_path = Path(root) if root else Path.cwd()
    files: Dict[str, str] = {}

    for raw in paths:
        local = Path(raw)
        if not local.is_absolute():
            local = Path.cwd() / local
        if not local.is_file():
            raise FileNotFoundError(f"Failed to read {raw}: not a file")

        repo_path = to_repository_path(local, root_path)
        if repo_path in files:
            raise ValueError(f"Duplicate repository path: {repo_path}")

        try:
            # read_bytes keeps line endings intact for byte-exact comparison
            files[repo_path] = local.read_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValueError(f"Failed to read {raw}: not valid UTF-8 ({e})")

        logger.debug(f"Loaded {raw} as {repo_path} ({len(files[repo_path])} chars)")

    return files
