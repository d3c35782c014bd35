"""Command line interface for repo-upsert.

Provides the ``ensure`` and ``sync`` commands:

    repo-upsert ensure --owner octo --repo notes
    repo-upsert sync README.md docs/guide.md --owner octo --repo notes -m "Update docs"
"""

import logging
import os
import sys
from typing import Any, Dict, NoReturn, Optional, Tuple

import click
from rich.console import Console

from . import __version__
from .cancellation import CancellationToken
from .config_manager import SyncConfig, SyncConfigManager, get_token
from .errors import RepoUpsertError
from .models import UpsertResult

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging(verbose: bool) -> None:
    """Configure root logging for a CLI run."""
    if verbose:
        level = logging.DEBUG
    else:
        level_name = os.environ.get("REPO_UPSERT_LOG_LEVEL", "WARNING").upper()
        level = getattr(logging, level_name, logging.WARNING)
        if not isinstance(level, int):
            level = logging.WARNING

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def _fail(e: Exception, json_output: bool, data: Optional[Any] = None) -> NoReturn:
    """Report an error in the selected output format and exit 1."""
    from .cli_utils import format_json_error, handle_remote_error

    if json_output:
        click.echo(format_json_error(str(e), type(e).__name__, data=data))
    else:
        console.print(f"[red]Error: {handle_remote_error(e, verbose=False)}[/red]")
    sys.exit(1)


def _resolve_config(config_path: Optional[str], **overrides: Any) -> SyncConfig:
    """Build a validated SyncConfig: file, then environment, then options.

    Raises:
        ValueError: If the config file is malformed or the result is invalid
    """
    manager = SyncConfigManager(config_path)
    if config_path and not manager.config_file_path.exists():
        raise ValueError(f"Config file not found: {config_path}")

    config = manager.load_config() or SyncConfig()
    config = manager.apply_env_overrides(config)

    for key, value in overrides.items():
        if value is None or value == ():
            continue
        setattr(config, key, list(value) if isinstance(value, tuple) else value)

    manager.validate_config(config)
    return config


def _result_to_dict(config: SyncConfig, result: UpsertResult) -> Dict[str, Any]:
    return {
        "repository": f"{config.owner}/{config.repo_name}",
        "branch": config.branch,
        "outcome": {path: status.value for path, status in result.outcome.items()},
        "counts": result.counts(),
        "commit_sha": result.commit_sha,
        "commit_url": result.commit_url,
        "bootstrapped": result.bootstrapped,
    }


def _print_result(result: UpsertResult) -> None:
    from .cli_utils import build_summary_table

    console.print(build_summary_table(result.outcome))

    if result.committed:
        label = "Initial commit created" if result.bootstrapped else "Commit created"
        console.print(f"[green]{label}:[/green] {result.commit_url or result.commit_sha}")
    else:
        console.print("[dim]No changes to commit.[/dim]")

    errors = result.counts()["error"]
    if errors:
        console.print(f"[yellow]Warning: {errors} file(s) could not be synced[/yellow]")


@click.group("repo-upsert")
@click.version_option(__version__, prog_name="repo-upsert")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Synchronize local files into a GitHub repository as a single commit.

    Requires a GitHub token in the GITHUB_TOKEN environment variable.
    """
    _configure_logging(verbose)


@cli.command("ensure")
@click.option("--owner", "-o", required=True, help="Repository owner")
@click.option("--repo", "-r", "repo_name", required=True, help="Repository name")
@click.option("--private", is_flag=True, help="Create the repository as private")
@click.option("--org", "organization", is_flag=True, help="Owner is an organization")
@click.option("--api-url", default=None, help="GitHub API base URL")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def ensure_command(
    owner: str,
    repo_name: str,
    private: bool,
    organization: bool,
    api_url: Optional[str],
    json_output: bool,
):
    """Create OWNER/REPO if it does not exist yet.

    Examples:

        repo-upsert ensure --owner octo --repo notes

        repo-upsert ensure --owner my-org --repo tools --org --private
    """
    from .api_clients import GitHubAPIClient
    from .cli_utils import format_json_success
    from .services import RepositoryEnsurer

    try:
        token = get_token()
        config = SyncConfig()
        base_url = api_url or os.environ.get("REPO_UPSERT_API_URL") or config.api_base_url
        with GitHubAPIClient(token, base_url=base_url) as client:
            ensurer = RepositoryEnsurer(
                client, private=private, description=config.description
            )
            repository = ensurer.ensure(owner, repo_name, organization=organization)
    except (RepoUpsertError, ValueError) as e:
        _fail(e, json_output)

    if json_output:
        click.echo(format_json_success(repository.model_dump()))
    else:
        console.print(
            f"[green]Repository ready:[/green] "
            f"{repository.html_url or f'{owner}/{repo_name}'}"
        )


@cli.command("sync")
@click.argument("files", nargs=-1, type=click.Path(dir_okay=False))
@click.option("--owner", "-o", default=None, help="Repository owner")
@click.option("--repo", "-r", "repo_name", default=None, help="Repository name")
@click.option("--branch", "-b", default=None, help="Target branch (default: main)")
@click.option("--message", "-m", "commit_message", default=None, help="Commit message")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="JSON config file (default: ./.repo-upsert.json)",
)
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Directory repository paths are relative to (default: cwd)",
)
@click.option("--workers", "max_workers", type=int, default=None, help="Parallel file workers")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Cancel the whole sync after this many seconds",
)
@click.option("--no-create", is_flag=True, help="Skip the repository existence check")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def sync_command(
    files: Tuple[str, ...],
    owner: Optional[str],
    repo_name: Optional[str],
    branch: Optional[str],
    commit_message: Optional[str],
    config_path: Optional[str],
    root: Optional[str],
    max_workers: Optional[int],
    timeout: Optional[float],
    no_create: bool,
    json_output: bool,
):
    """Upsert FILES into the repository as one commit.

    Each file is created if absent, updated if its content differs and
    skipped if identical. An empty branch is bootstrapped with an initial
    commit. FILES may also be listed under "files" in the config file.

    Examples:

        repo-upsert sync main.go --owner octo --repo notes

        repo-upsert sync -c sync.json --branch docs -m "Refresh docs"
    """
    from .api_clients import GitHubAPIClient
    from .cli_utils import format_json_success
    from .file_loader import load_file_set
    from .logging_utils import correlation_scope
    from .services import BatchUpsertEngine, RepositoryEnsurer, validate_file_set

    try:
        config = _resolve_config(
            config_path,
            owner=owner,
            repo_name=repo_name,
            branch=branch,
            commit_message=commit_message,
            files=files,
            max_workers=max_workers,
            create_repository=False if no_create else None,
        )
        token = get_token()
        file_set = load_file_set(config.files, root)
        validate_file_set(file_set)
        cancellation = CancellationToken(timeout) if timeout is not None else None
    except (ValueError, FileNotFoundError) as e:
        _fail(e, json_output)

    try:
        with GitHubAPIClient(
            token, base_url=config.api_base_url, api_timeout=config.api_timeout
        ) as client, correlation_scope():
            if config.create_repository:
                RepositoryEnsurer(
                    client, private=config.private, description=config.description
                ).ensure(
                    config.owner,
                    config.repo_name,
                    organization=config.organization,
                    cancellation=cancellation,
                )

            engine = BatchUpsertEngine(client, max_workers=config.max_workers)
            result = engine.upsert(
                config.owner,
                config.repo_name,
                config.branch,
                file_set,
                config.commit_message,
                cancellation=cancellation,
            )
    except ValueError as e:
        _fail(e, json_output)
    except RepoUpsertError as e:
        partial = {path: getattr(s, "value", s) for path, s in e.outcome.items()}
        if partial and not json_output:
            from .cli_utils import build_summary_table

            console.print(build_summary_table(partial))
        _fail(e, json_output, data={"outcome": partial} if partial else None)

    if json_output:
        click.echo(format_json_success(_result_to_dict(config, result)))
    else:
        _print_result(result)


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
