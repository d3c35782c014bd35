"""
Configuration for repo-upsert.

A sync run is described by a SyncConfig: which repository, which branch,
which local files and how to talk to the API. Values come from an optional
JSON config file, then environment variable overrides, then command-line
options, and are validated before any remote call is made.

The GitHub token is never read from the config file; it comes from the
GITHUB_TOKEN environment variable.
"""

import json
import logging
import os
import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".repo-upsert.json"
TOKEN_ENV_VAR = "GITHUB_TOKEN"

_OWNER_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")
_REPO_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,100}$")
_BRANCH_FORBIDDEN = re.compile(r"[\x00-\x20~^:?*\[\\\x7f]")


@dataclass
class SyncConfig:
    """Options for one sync run."""

    owner: str = ""
    repo_name: str = ""
    branch: str = "main"
    commit_message: str = "Upsert files via repo-upsert"
    files: List[str] = field(default_factory=list)
    # API access
    api_base_url: str = "https://api.github.com"
    api_timeout: int = 30
    # Parallel per-file comparison/upload on existing branches (1 = sequential)
    max_workers: int = 1
    # Repository creation
    create_repository: bool = True
    private: bool = False
    organization: bool = False
    description: str = "Auto-created by repo-upsert"


def validate_branch_name(branch: str) -> None:
    """
    Validate a branch name against git's ref naming rules.

    Raises:
        ValueError: If the name cannot be used as refs/heads/<branch>
    """
    name = branch[len("refs/heads/"):] if branch.startswith("refs/heads/") else branch
    if not name:
        raise ValueError("Branch name must not be empty")
    if _BRANCH_FORBIDDEN.search(name):
        raise ValueError(f"Branch name contains forbidden characters: {branch!r}")
    if (
        ".." in name
        or "@{" in name
        or "//" in name
        or name.startswith(("/", "-", "."))
        or name.endswith(("/", ".", ".lock"))
        or name == "@"
    ):
        raise ValueError(f"Invalid branch name: {branch!r}")


class SyncConfigManager:
    """
    Loads, overrides and validates SyncConfig.

    Handles the JSON config file, environment variable overrides and
    validation.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: Path to the JSON config file (defaults to the
                REPO_UPSERT_CONFIG env var or ./.repo-upsert.json)
        """
        if config_path:
            self.config_file_path = Path(config_path)
        else:
            self.config_file_path = Path(
                os.environ.get("REPO_UPSERT_CONFIG", DEFAULT_CONFIG_FILENAME)
            )

    def load_config(self) -> Optional[SyncConfig]:
        """
        Load configuration from file.

        Returns:
            SyncConfig if the file exists, None otherwise

        Raises:
            ValueError: If the configuration file is malformed
        """
        if not self.config_file_path.exists():
            return None

        try:
            with open(self.config_file_path, "r", encoding="utf-8") as f:
                config_dict = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file {self.config_file_path}: {e}")

        if not isinstance(config_dict, dict):
            raise ValueError(
                f"Config file {self.config_file_path} must contain a JSON object"
            )

        known = {f.name for f in fields(SyncConfig)}
        unknown = sorted(set(config_dict) - known)
        if unknown:
            raise ValueError(f"Unknown config options: {', '.join(unknown)}")

        if "files" in config_dict and not (
            isinstance(config_dict["files"], list)
            and all(isinstance(p, str) for p in config_dict["files"])
        ):
            raise ValueError("Config option 'files' must be a list of paths")

        for config_field in fields(SyncConfig):
            if config_field.name == "files" or config_field.name not in config_dict:
                continue
            value = config_dict[config_field.name]
            expected = config_field.type
            # bool is a subclass of int
            if not isinstance(value, expected) or (
                expected is int and isinstance(value, bool)
            ):
                raise ValueError(
                    f"Config option '{config_field.name}' must be "
                    f"{expected.__name__}, got {type(value).__name__}: {value!r}"
                )

        return SyncConfig(**config_dict)

    def save_config(self, config: SyncConfig) -> None:
        """Save configuration to file."""
        self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file_path, "w", encoding="utf-8") as f:
            json.dump(asdict(config), f, indent=2)

    def apply_env_overrides(self, config: SyncConfig) -> SyncConfig:
        """
        Apply environment variable overrides to configuration.

        Supported environment variables:
        - REPO_UPSERT_OWNER, REPO_UPSERT_REPO, REPO_UPSERT_BRANCH
        - REPO_UPSERT_API_URL
        - REPO_UPSERT_API_TIMEOUT, REPO_UPSERT_MAX_WORKERS

        Returns:
            Updated configuration with environment overrides
        """
        if owner_env := os.environ.get("REPO_UPSERT_OWNER"):
            config.owner = owner_env

        if repo_env := os.environ.get("REPO_UPSERT_REPO"):
            config.repo_name = repo_env

        if branch_env := os.environ.get("REPO_UPSERT_BRANCH"):
            config.branch = branch_env

        if api_url_env := os.environ.get("REPO_UPSERT_API_URL"):
            config.api_base_url = api_url_env

        if timeout_env := os.environ.get("REPO_UPSERT_API_TIMEOUT"):
            try:
                config.api_timeout = int(timeout_env)
            except ValueError:
                logger.warning(
                    f"Invalid REPO_UPSERT_API_TIMEOUT environment variable value "
                    f"'{timeout_env}'. Using {config.api_timeout}"
                )

        if workers_env := os.environ.get("REPO_UPSERT_MAX_WORKERS"):
            try:
                config.max_workers = int(workers_env)
            except ValueError:
                logger.warning(
                    f"Invalid REPO_UPSERT_MAX_WORKERS environment variable value "
                    f"'{workers_env}'. Using {config.max_workers}"
                )

        return config

    def validate_config(self, config: SyncConfig) -> None:
        """
        Validate configuration settings.

        Raises:
            ValueError: If any configuration value is invalid
        """
        if not config.owner:
            raise ValueError("Repository owner is required")
        if not _OWNER_PATTERN.match(config.owner):
            raise ValueError(f"Invalid repository owner: {config.owner!r}")

        if not config.repo_name:
            raise ValueError("Repository name is required")
        if not _REPO_PATTERN.match(config.repo_name) or config.repo_name in (".", ".."):
            raise ValueError(f"Invalid repository name: {config.repo_name!r}")

        validate_branch_name(config.branch)

        if not config.commit_message or not config.commit_message.strip():
            raise ValueError("Commit message must not be empty")

        if not config.files:
            raise ValueError("At least one file to sync is required")

        if not config.api_base_url.startswith(("https://", "http://")):
            raise ValueError(
                f"api_base_url must be an http(s) URL, got {config.api_base_url!r}"
            )

        if not (1 <= config.api_timeout <= 600):
            raise ValueError(
                f"api_timeout must be between 1 and 600, got {config.api_timeout}"
            )

        if not (1 <= config.max_workers <= 32):
            raise ValueError(
                f"max_workers must be between 1 and 32, got {config.max_workers}"
            )


def get_token() -> str:
    """
    Read the GitHub token from the environment.

    Raises:
        ValueError: If GITHUB_TOKEN is not set
    """
    token = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if not token:
        raise ValueError(f"{TOKEN_ENV_VAR} is not set in the environment")
    return token
