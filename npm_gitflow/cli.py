"""CLI entry point for npm-gitflow.

Every workflow is available both as a subcommand of ``npm-gitflow`` and as
its own console script (``feature-start``, ``release-finish``, ...).
Any failure, including a usage error, exits with status 1.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import click

from npm_gitflow.errors import GitflowError
from npm_gitflow.lockfile import update_lock_file as prune_and_update_lock_file
from npm_gitflow.manifest import NpmManifestStore
from npm_gitflow.models import WorkflowRun
from npm_gitflow.pipeline import GitflowPipeline
from npm_gitflow.vcs import GitCLI


def _pipeline() -> GitflowPipeline:
    root = Path.cwd()
    return GitflowPipeline(GitCLI(root), NpmManifestStore(root))


def _run(action: Callable[[GitflowPipeline], WorkflowRun]) -> None:
    """Run a workflow and print its summary, turning failures into CLI errors."""
    try:
        run = action(_pipeline())
    except GitflowError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"\n{'=' * 60}\nSummary of actions:")
    for line in run.summary:
        click.echo(f"  - {line}")
    click.echo("=" * 60)


def _excluded_packages(excluded: tuple[str, ...], trailing: tuple[str, ...]) -> set[str]:
    """Merge ``--no-version-check a --no-version-check b`` and ``--no-version-check a b``."""
    if trailing and not excluded:
        raise click.UsageError(
            f"Unexpected arguments: {' '.join(trailing)}. "
            "Pass packages to skip with --no-version-check PACKAGE..."
        )
    return {*excluded, *trailing}


@click.group(name="npm-gitflow")
@click.version_option(package_name="npm-gitflow")
@click.option(
    "-C",
    "--directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Run as if started in this directory.",
)
def cli(directory: Path | None) -> None:
    """Gitflow branching and releases for npm projects and lerna monorepos."""
    if directory is not None:
        os.chdir(directory)


@cli.command("feature-start")
@click.argument("name")
def feature_start(name: str) -> None:
    """Create feature/NAME from develop."""
    _run(lambda pipeline: pipeline.feature_start(name))


@cli.command("feature-finish")
@click.option("-s", "--squash", is_flag=True, help="Squash the feature into one commit.")
@click.option("-m", "--message", default=None, help="Commit message for the merge.")
def feature_finish(squash: bool, message: str | None) -> None:
    """Merge the current feature branch into develop and delete it."""
    _run(lambda pipeline: pipeline.feature_finish(squash=squash, message=message))


@cli.command("bugfix-start")
@click.argument("name")
def bugfix_start(name: str) -> None:
    """Create bugfix/NAME from develop."""
    _run(lambda pipeline: pipeline.bugfix_start(name))


@cli.command("bugfix-finish")
@click.option("-s", "--squash", is_flag=True, help="Squash the bugfix into one commit.")
@click.option("-m", "--message", default=None, help="Commit message for the merge.")
def bugfix_finish(squash: bool, message: str | None) -> None:
    """Merge the current bugfix branch into develop and delete it."""
    _run(lambda pipeline: pipeline.bugfix_finish(squash=squash, message=message))


@cli.command("release-start")
@click.argument("version", required=False)
def release_start(version: str | None) -> None:
    """Create the release branch from develop, optionally at VERSION."""
    _run(lambda pipeline: pipeline.release_start(version))


@cli.command("release-finish")
@click.option(
    "--no-version-check",
    "excluded",
    multiple=True,
    metavar="PACKAGE",
    help="Skip dependency validation for PACKAGE (more packages may follow).",
)
@click.argument("trailing", nargs=-1, metavar="[PACKAGE]...")
def release_finish(excluded: tuple[str, ...], trailing: tuple[str, ...]) -> None:
    """Merge the release branch into main, tag it, and merge back to develop."""
    packages = _excluded_packages(excluded, trailing)
    _run(lambda pipeline: pipeline.release_finish(packages))


@cli.command("hotfix-start")
def hotfix_start() -> None:
    """Create the hotfix branch from main with the next patch version."""
    _run(lambda pipeline: pipeline.hotfix_start())


@cli.command("hotfix-finish")
@click.option(
    "--no-version-check",
    "excluded",
    multiple=True,
    metavar="PACKAGE",
    help="Skip dependency validation for PACKAGE (more packages may follow).",
)
@click.argument("trailing", nargs=-1, metavar="[PACKAGE]...")
def hotfix_finish(excluded: tuple[str, ...], trailing: tuple[str, ...]) -> None:
    """Merge the hotfix branch into main, tag it, and merge back to develop."""
    packages = _excluded_packages(excluded, trailing)
    _run(lambda pipeline: pipeline.hotfix_finish(packages))


@cli.command("update-lock-file")
@click.argument("scopes", nargs=-1, required=True, metavar="SCOPE...")
def update_lock_file(scopes: tuple[str, ...]) -> None:
    """Refresh lock-file entries of dependencies under SCOPE (e.g. @company)."""
    try:
        names = prune_and_update_lock_file(NpmManifestStore(Path.cwd()), list(scopes))
    except GitflowError as exc:
        raise click.ClickException(str(exc)) from exc
    if names:
        click.echo(f"\nUpdated {len(names)} packages: {' '.join(names)}")


def invoke(command: click.Command, args: Sequence[str] | None = None) -> None:
    """Run a click command, exiting 1 on any error (usage errors included)."""
    try:
        command.main(args=args, prog_name=command.name, standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        sys.exit(1)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)


def _entry_point(command: click.Command) -> Callable[[], None]:
    def entry() -> None:
        invoke(command)

    entry.__doc__ = f"Console script for {command.name}."
    return entry


def main(args: Sequence[str] | None = None) -> None:
    """``npm-gitflow`` console script."""
    invoke(cli, args)


feature_start_main = _entry_point(feature_start)
feature_finish_main = _entry_point(feature_finish)
bugfix_start_main = _entry_point(bugfix_start)
bugfix_finish_main = _entry_point(bugfix_finish)
release_start_main = _entry_point(release_start)
release_finish_main = _entry_point(release_finish)
hotfix_start_main = _entry_point(hotfix_start)
hotfix_finish_main = _entry_point(hotfix_finish)
update_lock_file_main = _entry_point(update_lock_file)
