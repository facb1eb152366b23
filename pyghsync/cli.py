"""CLI interface for pyghsync."""

import logging
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import click

from .api import GitHubClient
from .cli_progress import run_with_progress
from .config import config
from .exceptions import GhSyncError, PushStepError
from .output import OutputFormatter
from .sync import ProjectLayout, SyncEngine, SyncStateManager
from .sync.version import check_version
from .utils import DEFAULT_MAX_WORKERS, HISTORY_TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)


def _get_client(ctx: Any) -> GitHubClient:
    """Create an API client from global options and config."""
    obj = ctx.obj
    return GitHubClient(token=obj["token"], owner=obj["owner"], repo=obj["repo"])


def _get_engine(ctx: Any) -> SyncEngine:
    """Create a sync engine for the selected project.

    Exits with status 1 when the client cannot be configured.
    """
    out: OutputFormatter = ctx.obj["out"]
    try:
        client = _get_client(ctx)
    except GhSyncError as e:
        out.error(str(e))
        ctx.exit(1)

    project_root = Path(ctx.obj["project"]).resolve()
    layout = ProjectLayout(project_root)
    state_manager = SyncStateManager(project_root, f"{client.owner}/{client.repo}")
    return SyncEngine(client, layout, state_manager, output=out)


@contextmanager
def _cancel_on_interrupt(out: OutputFormatter) -> Iterator[threading.Event]:
    """Turn Ctrl+C into a cancel request between downloads."""
    cancel_event = threading.Event()

    def handler(signum: int, frame: Any) -> None:
        if not cancel_event.is_set():
            out.warning("Cancelling - waiting for running downloads to finish")
        cancel_event.set()

    try:
        previous = signal.signal(signal.SIGINT, handler)
    except ValueError:
        # Not in the main thread; cancellation is unavailable
        yield cancel_event
        return

    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGINT, previous)


@click.group()
@click.option("--token", "-t", envvar="GHSYNC_TOKEN", help="GitHub token")
@click.option("--owner", envvar="GHSYNC_OWNER", help="Repository owner")
@click.option("--repo", envvar="GHSYNC_REPO", help="Repository name")
@click.option("--branch", "-b", envvar="GHSYNC_BRANCH", help="Branch to sync with")
@click.option(
    "--project",
    "-p",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Project root directory",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyghsync")
@click.pass_context
def main(
    ctx: Any,
    token: Optional[str],
    owner: Optional[str],
    repo: Optional[str],
    branch: Optional[str],
    project: str,
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pyghsync - Push and pull a project tree to and from GitHub."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["token"] = token
    ctx.obj["owner"] = owner
    ctx.obj["repo"] = repo
    ctx.obj["branch"] = branch or config.branch
    ctx.obj["project"] = project
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyghsync").setLevel(logging.DEBUG)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--token", "-t", prompt="GitHub token", hide_input=True)
@click.option("--owner", prompt="Repository owner")
@click.option("--repo", prompt="Repository name")
@click.option("--branch", "-b", prompt="Branch", default="main")
@click.pass_context
def init(ctx: Any, token: str, owner: str, repo: str, branch: str) -> None:
    """Initialize pyghsync configuration.

    Stores the token and repository in ~/.config/pyghsync/config.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        out.info("Validating token...")
        client = GitHubClient(token=token, owner=owner, repo=repo)
        try:
            info = client.get_repository()
        finally:
            client.close()
    except GhSyncError as e:
        out.error(f"Could not access {owner}/{repo}: {e}")
        ctx.exit(1)
        return

    out.success(f"Token is valid for {info.get('full_name', f'{owner}/{repo}')}")
    config.save(token=token, owner=owner, repo=repo, branch=branch)
    out.success(f"Configuration saved to {config.get_config_path()}")


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Show untracked and modified files."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _get_engine(ctx)

    try:
        result = engine.scan()
    except GhSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            {
                "untracked": result.untracked,
                "modified": result.modified,
                "sidecars": result.sidecars,
                "unreadable": result.unreadable,
            }
        )
        return

    if not result.changed:
        out.success("Everything is up to date")
        return

    rows = (
        [["untracked", path] for path in result.untracked]
        + [["modified", path] for path in result.modified]
        + [["sidecar", path] for path in result.sidecars]
    )
    out.output_table(["Status", "Path"], rows)
    out.info(
        f"{len(result.untracked)} untracked, {len(result.modified)} modified, "
        f"{len(result.sidecars)} sidecar file(s)"
    )


@main.command()
@click.argument("paths", nargs=-1)
@click.option("--version", "-V", "version_label", help="Version label to record")
@click.option("--notes", "-n", default="", help="What's new in this version")
@click.option("--message", "-m", help="Commit message")
@click.option("--dry-run", is_flag=True, help="Show what would be pushed")
@click.option(
    "--workers",
    "-w",
    type=int,
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Parallel blob uploads",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress bar")
@click.pass_context
def push(
    ctx: Any,
    paths: tuple[str, ...],
    version_label: Optional[str],
    notes: str,
    message: Optional[str],
    dry_run: bool,
    workers: int,
    no_progress: bool,
) -> None:
    """Push changed files to GitHub as one commit.

    PATHS: Repository paths to push (default: all untracked and modified files)

    Examples:
        pyghsync push --version 1.2 --notes "New level"
        pyghsync push Assets/Scripts/Player.cs -m "Fix jump"
        pyghsync push --dry-run
    """
    out: OutputFormatter = ctx.obj["out"]
    if workers < 1:
        out.error("Workers must be at least 1")
        ctx.exit(1)

    engine = _get_engine(ctx)

    try:
        stats = run_with_progress(
            engine.push,
            show_progress=not (no_progress or out.quiet or out.json_output),
            files=list(paths) or None,
            message=message,
            version=version_label,
            notes=notes,
            branch=ctx.obj["branch"],
            dry_run=dry_run,
            max_workers=workers,
        )
    except PushStepError as e:
        out.error(str(e))
        out.info("The branch was not changed. Run the push again to retry.")
        ctx.exit(1)
        return
    except GhSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    finally:
        engine.client.close()

    if out.json_output:
        out.output_json(stats)


@main.command()
@click.option("--ref", "-r", help="Branch, tag or commit (default: branch)")
@click.pass_context
def ls(ctx: Any, ref: Optional[str]) -> None:
    """List every file in the remote repository."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _get_engine(ctx)
    ref = ref or ctx.obj["branch"]

    try:
        listing = engine.preview_pull(ref)
    finally:
        engine.client.close()

    if out.json_output:
        out.output_json(
            {
                "ref": ref,
                "files": [
                    {"path": entry.path, "size": entry.size, "sha": entry.sha}
                    for entry in listing.files
                ],
                "partial": listing.partial,
                "failed_paths": listing.failed_paths,
            }
        )
    else:
        out.output_table(
            ["Path", "Size"],
            [[entry.path, out.format_size(entry.size)] for entry in listing.files],
            title=f"{engine.client.owner}/{engine.client.repo} @ {ref}",
        )

    if listing.partial:
        ctx.exit(2)


@main.command()
@click.argument("paths", nargs=-1)
@click.option("--all", "pull_all", is_flag=True, help="Pull every remote file")
@click.option("--ref", "-r", help="Branch, tag or commit (default: branch)")
@click.option("--version", "-V", "version_label", help="Version label to record")
@click.option("--notes", "-n", help="Notes to record in the pull history")
@click.option("--dry-run", is_flag=True, help="Show what would be downloaded")
@click.option(
    "--workers",
    "-w",
    type=int,
    default=DEFAULT_MAX_WORKERS,
    show_default=True,
    help="Parallel downloads",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress bar")
@click.pass_context
def pull(
    ctx: Any,
    paths: tuple[str, ...],
    pull_all: bool,
    ref: Optional[str],
    version_label: Optional[str],
    notes: Optional[str],
    dry_run: bool,
    workers: int,
    no_progress: bool,
) -> None:
    """Download files from GitHub into the project.

    PATHS: Repository paths to download (use 'pyghsync ls' to preview)

    Examples:
        pyghsync pull Assets/Scenes/Main.unity Assets/Scenes/Main.unity.meta
        pyghsync pull --all --ref v1.2
    """
    out: OutputFormatter = ctx.obj["out"]

    if not paths and not pull_all:
        out.error("Specify paths to pull or use --all")
        ctx.exit(1)
    if paths and pull_all:
        out.error("Cannot combine paths with --all")
        ctx.exit(1)
    if workers < 1:
        out.error("Workers must be at least 1")
        ctx.exit(1)

    engine = _get_engine(ctx)

    try:
        with _cancel_on_interrupt(out) as cancel_event:
            stats = run_with_progress(
                engine.pull,
                show_progress=not (no_progress or out.quiet or out.json_output),
                selected=None if pull_all else list(paths),
                ref=ref or ctx.obj["branch"],
                version=version_label,
                notes=notes,
                dry_run=dry_run,
                max_workers=workers,
                cancel_event=cancel_event,
            )
    except GhSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    finally:
        engine.client.close()

    if out.json_output:
        out.output_json(stats)

    if stats["failed"] or stats["cancelled"]:
        ctx.exit(1)


@main.command()
@click.option("--pulls", is_flag=True, help="Show pull history instead of pushes")
@click.pass_context
def history(ctx: Any, pulls: bool) -> None:
    """Show the push (or pull) history."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _get_engine(ctx)

    try:
        entries = engine.history("pull" if pulls else "push")
    except GhSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json([entry.to_dict() for entry in entries])
        return

    if not entries:
        out.info("No history yet")
        return

    # Most recent first
    out.output_table(
        ["Version", "Date", "Notes"],
        [
            [
                entry.version,
                entry.timestamp.strftime(HISTORY_TIMESTAMP_FORMAT),
                entry.notes,
            ]
            for entry in reversed(entries)
        ],
        title="Pull history" if pulls else "Push history",
    )


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def exclude(ctx: Any, paths: tuple[str, ...]) -> None:
    """Stop tracking PATHS (they are no longer offered for push)."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _get_engine(ctx)
    try:
        excluded = engine.exclude(paths)
    except GhSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    for path in excluded:
        out.success(f"Excluded {path}")


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def include(ctx: Any, paths: tuple[str, ...]) -> None:
    """Resume tracking previously excluded PATHS."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _get_engine(ctx)
    try:
        included = engine.include(paths)
    except GhSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    for path in included:
        out.success(f"Tracking {path}")


@main.command()
@click.option("--ref", "-r", help="Branch, tag or commit (default: branch)")
@click.pass_context
def check(ctx: Any, ref: Optional[str]) -> None:
    """Check whether a newer version is available."""
    out: OutputFormatter = ctx.obj["out"]
    engine = _get_engine(ctx)
    ref = ref or ctx.obj["branch"]

    try:
        version_status = check_version(engine.client, ref, engine.layout)
    except GhSyncError as e:
        out.error(f"Could not check for updates: {e}")
        ctx.exit(1)
        return
    finally:
        engine.client.close()

    if out.json_output:
        out.output_json(
            {
                "local": version_status.local,
                "remote": version_status.remote,
                "update_available": version_status.update_available,
            }
        )
        return

    out.info(f"Current version: {version_status.local or 'none'}")
    out.info(f"Latest version:  {version_status.remote or 'none'}")
    if version_status.remote is None:
        out.warning(f"No version file found at {ref}")
    elif version_status.update_available:
        out.success(f"A new version ({version_status.remote}) is available")
    else:
        out.success("You are up to date!")


@main.command()
@click.pass_context
def tags(ctx: Any) -> None:
    """List repository tags (usable as --ref)."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        client = _get_client(ctx)
        try:
            tag_names = client.list_tags()
        finally:
            client.close()
    except GhSyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(tag_names)
        return

    if not tag_names:
        out.info("No tags found")
        return
    for name in tag_names:
        out.print(name)


if __name__ == "__main__":
    main()
