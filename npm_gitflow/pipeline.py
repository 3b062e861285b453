"""Branch workflows: start → merge → version → tag → push → clean up.

Every command is a fixed, ordered list of steps run by GitflowPipeline:

- feature-start / bugfix-start: branch off develop with a prerelease version
- feature-finish / bugfix-finish: merge back into develop, restore develop's
  version, promote topic dist-tags to "dev", delete the branch
- release-start: branch "release" off develop, promote "dev" deps to "next"
- hotfix-start: branch "hotfix" off main with the next patch version
- release-finish / hotfix-finish: merge into main, tag the version core,
  merge main back into develop with the next patch version, delete the branch

Steps run strictly one after another and the first failure aborts the
workflow. Nothing is rolled back: a tag pushed before a later step fails
stays pushed, and the failure report lists the completed steps so the
repository can be repaired by hand.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Collection
from pathlib import Path

from .deps import is_dev_tag, is_topic_tag, refresh_lock_file, rewrite_dist_tags
from .errors import (
    GitflowError,
    InvalidBranchName,
    InvalidVersionFormat,
    UncommittedChanges,
    WorkflowAlreadyInProgress,
    WrongBranch,
)
from .lockfile import LOCK_FILE_CANDIDATES
from .manifest import PackageManifestStore, version_from_document
from .models import DEV_TAG, NEXT_TAG, REMOTE, BranchType, WorkflowRun
from .shell import step
from .validation import validate_dependencies
from .vcs import VersionControl, remote_branch_exists
from .versions import bump_patch, is_version_core, topic_version, version_core

Step = Callable[[WorkflowRun], None]

# Any of these pins dependency versions, making the stability check moot
PINNING_LOCK_FILES = (*LOCK_FILE_CANDIDATES, "yarn.lock")

DEVELOP = BranchType.DEVELOP.value
MAIN = BranchType.MAIN.value


class GitflowPipeline:
    """Runs the gitflow workflows against a repository.

    Args:
        vcs: Git operations for the repository.
        store: Manifest access for the project in the repository.
    """

    def __init__(self, vcs: VersionControl, store: PackageManifestStore) -> None:
        self.vcs = vcs
        self.store = store

    def execute(self, run: WorkflowRun, steps: list[tuple[str, Step]]) -> WorkflowRun:
        """Run steps in order, stopping at the first failure.

        Each completed step label is appended to run.completed. On failure
        the completed steps are reported to stderr and the error re-raised.
        """
        for label, action in steps:
            step(label)
            try:
                action(run)
            except GitflowError:
                _report_failure(run, label)
                raise
            run.completed.append(label)
        return run

    def feature_start(self, name: str) -> WorkflowRun:
        return self.start_topic(BranchType.FEATURE, name)

    def bugfix_start(self, name: str) -> WorkflowRun:
        return self.start_topic(BranchType.BUGFIX, name)

    def feature_finish(self, squash: bool = False, message: str | None = None) -> WorkflowRun:
        return self.finish_topic(BranchType.FEATURE, squash, message)

    def bugfix_finish(self, squash: bool = False, message: str | None = None) -> WorkflowRun:
        return self.finish_topic(BranchType.BUGFIX, squash, message)

    def start_topic(self, branch_type: BranchType, name: str) -> WorkflowRun:
        """Create {type}/{name} from develop with a prerelease version.

        Raises:
            InvalidBranchName: If name is empty.
        """
        _require_topic(branch_type)
        name = (name or "").strip()
        if not name:
            raise InvalidBranchName(f"{branch_type.value} name must not be empty!")

        branch = branch_type.topic_branch(name)
        run = WorkflowRun(workflow=f"{branch_type.value}-start", source_branch=branch)

        def create_branch(run: WorkflowRun) -> None:
            self.vcs.checkout_local_branch(branch)
            print(f"  Created branch {branch}")

        def set_topic_version(run: WorkflowRun) -> None:
            run.version = topic_version(self._read_version(DEVELOP), branch_type, name)
            self.store.set_version(run.version, branch)

        self.execute(
            run,
            [
                ("Checking working tree", self._check_clean),
                (f"Switching to {DEVELOP}", self._switch_and_pull(DEVELOP)),
                (f"Creating branch {branch}", create_branch),
                (f"Setting {branch_type.value} version", set_topic_version),
                (
                    f"Pushing {branch}",
                    self._commit_and_push_new(
                        branch, lambda r: f"chore: start {branch}, version {r.version}"
                    ),
                ),
            ],
        )
        run.summary += [
            f"A new branch {branch} was created, based on '{DEVELOP}'",
            f"You are now on branch {branch}",
            f"{branch_type.value.capitalize()} version now: {run.version}",
        ]
        return run

    def finish_topic(
        self,
        branch_type: BranchType,
        squash: bool = False,
        message: str | None = None,
    ) -> WorkflowRun:
        """Merge the current topic branch into develop and delete it.

        Args:
            branch_type: FEATURE or BUGFIX.
            squash: Squash the branch into a single commit on develop.
            message: Commit message for the merge; a default naming the
                branch is used when omitted.
        """
        _require_topic(branch_type)
        run = WorkflowRun(workflow=f"{branch_type.value}-finish")

        def update_with_develop(run: WorkflowRun) -> None:
            # Conflicts make git fail here; resolving them is up to the user
            self.vcs.pull(REMOTE, DEVELOP, ["--no-rebase"])
            print(f"  Pulled latest {DEVELOP} into {run.source_branch}")

        def merge_into_develop(run: WorkflowRun) -> None:
            options = ["--squash"] if squash else ["--no-ff", "--no-commit", "--no-edit"]
            self.vcs.merge(run.source_branch, options)
            print(f"  Merged {run.source_branch} into {DEVELOP}")

        def restore_develop_version(run: WorkflowRun) -> None:
            # develop:<file> still shows develop's committed version mid-merge
            run.version = self._read_version(DEVELOP)
            self.store.set_version(run.version, DEVELOP)

        def promote_tags(run: WorkflowRun) -> None:
            rewrite = rewrite_dist_tags(self.store, is_topic_tag, DEV_TAG)
            refresh_lock_file(self.store, rewrite)

        def commit_and_push(run: WorkflowRun) -> None:
            commit_message = message or f"chore: merge from {run.source_branch} to {DEVELOP}"
            self._commit(commit_message)
            self.vcs.push(REMOTE, DEVELOP)
            print(f"  Committed and pushed {DEVELOP}")

        self.execute(
            run,
            [
                ("Checking working tree", self._check_clean),
                ("Checking current branch", self._require_current_branch(branch_type)),
                (f"Updating branch with {DEVELOP}", update_with_develop),
                (f"Switching to {DEVELOP}", self._switch_and_pull(DEVELOP)),
                (f"Merging into {DEVELOP}", merge_into_develop),
                (f"Restoring {DEVELOP} version", restore_develop_version),
                (f"Updating dependency tags to {DEV_TAG}", promote_tags),
                (f"Pushing {DEVELOP}", commit_and_push),
                ("Deleting finished branch", self._delete_source_branch),
            ],
        )
        run.summary += [
            f"Branch {run.source_branch} was merged into '{DEVELOP}'"
            + (" as a single squashed commit" if squash else ""),
            f"Branch {run.source_branch} was deleted locally and remotely",
            f"You are now on branch {DEVELOP} at version {run.version}",
        ]
        return run

    def release_start(self, version: str | None = None) -> WorkflowRun:
        """Create the release branch from develop.

        Args:
            version: Explicit release version (bare major.minor.patch). When
                omitted the release inherits develop's version core.
        """
        release = BranchType.RELEASE.value
        run = WorkflowRun(workflow="release-start", source_branch=release)

        def check_version_argument(run: WorkflowRun) -> None:
            if version is not None and not is_version_core(version):
                raise InvalidVersionFormat(
                    version, "the release version should only include major.minor.patch"
                )

        def create_branch(run: WorkflowRun) -> None:
            self.vcs.checkout_branch(release, DEVELOP)
            print(f"  Created branch {release} from {DEVELOP}")

        def set_release_version(run: WorkflowRun) -> None:
            run.version = version or version_core(self._read_version(DEVELOP))
            self.store.set_version(run.version, release)

        def promote_tags(run: WorkflowRun) -> None:
            rewrite = rewrite_dist_tags(self.store, is_dev_tag, NEXT_TAG)
            refresh_lock_file(self.store, rewrite)

        self.execute(
            run,
            [
                ("Checking release version", check_version_argument),
                ("Checking working tree", self._check_clean),
                (f"Checking for an existing {release} branch", self._ensure_not_started(release)),
                (f"Switching to {DEVELOP}", self._switch_and_pull(DEVELOP)),
                ("Checking dependency stability", self._check_stability),
                (f"Creating branch {release}", create_branch),
                ("Setting release version", set_release_version),
                (f"Updating dependency tags to {NEXT_TAG}", promote_tags),
                (
                    f"Pushing {release}",
                    self._commit_and_push_new(release, lambda r: f"chore: release start {r.version}"),
                ),
            ],
        )
        run.summary += [
            f"A new {release} branch was created from {DEVELOP}",
            f"Release version: {run.version}",
            f"Dependencies with '{DEV_TAG}' tag were updated to '{NEXT_TAG}'",
            "All changes were committed and pushed to remote",
            "When you're ready to finish the release, run 'release-finish'.",
        ]
        return run

    def hotfix_start(self) -> WorkflowRun:
        """Create the hotfix branch from main with the next patch version."""
        hotfix = BranchType.HOTFIX.value
        run = WorkflowRun(workflow="hotfix-start", source_branch=hotfix)

        def compute_version(run: WorkflowRun) -> None:
            run.version = bump_patch(self._read_version(MAIN))
            print(f"  Hotfix version: {run.version}")

        def create_branch(run: WorkflowRun) -> None:
            self.vcs.checkout_branch(hotfix, MAIN)
            print(f"  Created branch {hotfix} from {MAIN}")

        def set_hotfix_version(run: WorkflowRun) -> None:
            self.store.set_version(run.version, hotfix)

        self.execute(
            run,
            [
                ("Checking working tree", self._check_clean),
                (f"Checking for an existing {hotfix} branch", self._ensure_not_started(hotfix)),
                (f"Switching to {MAIN}", self._switch_and_pull(MAIN)),
                ("Computing hotfix version", compute_version),
                (f"Creating branch {hotfix}", create_branch),
                ("Setting hotfix version", set_hotfix_version),
                (
                    f"Pushing {hotfix}",
                    self._commit_and_push_new(
                        hotfix, lambda r: f"chore: hotfix started, hotfix version {r.version}"
                    ),
                ),
            ],
        )
        run.summary += [
            f"A new {hotfix} branch was created from {MAIN}",
            f"Hotfix version: {run.version}",
            "When you're ready to finish the hotfix, run 'hotfix-finish'.",
        ]
        return run

    def release_finish(self, excluded: Collection[str] = ()) -> WorkflowRun:
        return self.finish_process_branch(BranchType.RELEASE, excluded)

    def hotfix_finish(self, excluded: Collection[str] = ()) -> WorkflowRun:
        return self.finish_process_branch(BranchType.HOTFIX, excluded)

    def finish_process_branch(
        self, branch_type: BranchType, excluded: Collection[str] = ()
    ) -> WorkflowRun:
        """Release the current release/hotfix branch.

        Merges it into main, tags the version core, merges main back into
        develop with the next patch version and deletes the branch.

        Args:
            branch_type: RELEASE or HOTFIX.
            excluded: Package names exempt from dependency validation.
        """
        if branch_type not in (BranchType.RELEASE, BranchType.HOTFIX):
            raise ValueError(f"{branch_type.value} is not a release or hotfix branch type")
        run = WorkflowRun(workflow=f"{branch_type.value}-finish")

        def switch_to_source(run: WorkflowRun) -> None:
            self._switch_and_pull(run.source_branch)(run)

        def validate(run: WorkflowRun) -> None:
            validate_dependencies(self.store.read_manifests(), BranchType.MAIN, excluded)

        def read_branch_version(run: WorkflowRun) -> None:
            run.version = version_core(self._read_version(run.source_branch))
            print(f"  Releasing version {run.version}")

        def merge_into_main(run: WorkflowRun) -> None:
            self.vcs.merge(run.source_branch, ["--no-ff", "--no-edit"])
            print(f"  Merged {run.source_branch} into {MAIN}")

        def set_release_version(run: WorkflowRun) -> None:
            self.store.set_version(run.version, MAIN)
            if self._commit(f"chore: release {run.version}"):
                print(f"  Committed release {run.version}")

        def tag_release(run: WorkflowRun) -> None:
            self.vcs.add_annotated_tag(run.version, f"Release {run.version}")
            self.vcs.push_tags([run.version])
            print(f"  Tagged and pushed {run.version}")

        def push_main(run: WorkflowRun) -> None:
            self.vcs.push(REMOTE, MAIN)
            print(f"  Pushed {MAIN}")

        def merge_main_into_develop(run: WorkflowRun) -> None:
            self.vcs.merge(MAIN, ["--no-ff", "--no-edit"])
            print(f"  Merged {MAIN} into {DEVELOP}")

        def set_develop_version(run: WorkflowRun) -> None:
            run.next_version = bump_patch(self._read_version(MAIN))
            self.store.set_version(run.next_version, DEVELOP)

        def commit_and_push_develop(run: WorkflowRun) -> None:
            self._commit(f"chore: merge {branch_type.value} {run.version} to {DEVELOP}")
            self.vcs.push(REMOTE, DEVELOP)
            print(f"  Committed and pushed {DEVELOP}")

        self.execute(
            run,
            [
                ("Checking working tree", self._check_clean),
                ("Checking current branch", self._require_current_branch(branch_type)),
                (f"Updating {branch_type.value} branch", switch_to_source),
                ("Validating dependencies", validate),
                ("Reading branch version", read_branch_version),
                (f"Switching to {MAIN}", self._switch_and_pull(MAIN)),
                (f"Merging into {MAIN}", merge_into_main),
                ("Setting release version", set_release_version),
                ("Tagging release", tag_release),
                (f"Pushing {MAIN}", push_main),
                (f"Switching to {DEVELOP}", self._switch_and_pull(DEVELOP)),
                (f"Merging {MAIN} into {DEVELOP}", merge_main_into_develop),
                (f"Setting next {DEVELOP} version", set_develop_version),
                (f"Pushing {DEVELOP}", commit_and_push_develop),
                ("Deleting finished branch", self._delete_source_branch),
            ],
        )
        run.summary += [
            f"Branch {run.source_branch} was merged into '{MAIN}' and tagged {run.version}",
            f"'{MAIN}' was merged back into '{DEVELOP}', now at {run.next_version}",
            f"Branch {run.source_branch} was deleted locally and remotely",
        ]
        return run

    def _commit(self, message: str) -> bool:
        """Commit all changes, or do nothing when there is nothing to record.

        A version that is already correct leaves the tree clean, and git
        refuses an empty commit unless a merge is pending.

        Returns:
            True if a commit was created.
        """
        if self.vcs.is_clean() and not self.vcs.is_merging():
            print(f"  Nothing to commit on {self.vcs.current_branch()}")
            return False
        self.vcs.commit(message, ["--all"])
        return True

    def _check_clean(self, run: WorkflowRun) -> None:
        if not self.vcs.is_clean():
            raise UncommittedChanges()
        print("  Working directory is clean")

    def _ensure_not_started(self, branch: str) -> Step:
        """Step failing if the singleton branch already exists remotely.

        Advisory only: another actor can still create the branch between
        this check and our push.
        """

        def check(run: WorkflowRun) -> None:
            if remote_branch_exists(self.vcs, branch):
                raise WorkflowAlreadyInProgress(branch)
            print(f"  No {branch} branch on {REMOTE}")

        return check

    def _require_current_branch(self, branch_type: BranchType) -> Step:
        """Step failing unless HEAD is a branch of branch_type.

        Records the branch as run.source_branch.
        """

        def check(run: WorkflowRun) -> None:
            current = self.vcs.current_branch()
            if not current.startswith(branch_type.branch_prefix):
                raise WrongBranch(branch_type.value, current)
            run.source_branch = current
            print(f"  Current branch: {current}")

        return check

    def _switch_and_pull(self, branch: str) -> Step:
        def switch(run: WorkflowRun) -> None:
            self.vcs.checkout(branch)
            self.vcs.pull(REMOTE, branch)
            print(f"  Switched to {branch} and pulled from {REMOTE}")

        return switch

    def _commit_and_push_new(
        self, branch: str, message: Callable[[WorkflowRun], str]
    ) -> Step:
        """Step committing everything and pushing a new branch with upstream."""

        def commit_and_push(run: WorkflowRun) -> None:
            self._commit(message(run))
            self.vcs.push(REMOTE, branch, ["--set-upstream"])
            print(f"  Committed and pushed {branch} to {REMOTE}")

        return commit_and_push

    def _delete_source_branch(self, run: WorkflowRun) -> None:
        self.vcs.delete_local_branch(run.source_branch)
        self.vcs.delete_remote_branch(run.source_branch)
        print(f"  Branch {run.source_branch} was deleted locally and from {REMOTE}")

    def _check_stability(self, run: WorkflowRun) -> None:
        """Require release-grade dependencies unless a lock file pins them."""
        root: Path = self.store.root
        lock_files = [name for name in PINNING_LOCK_FILES if (root / name).exists()]
        if lock_files:
            print(f"  Dependency versions are pinned by {lock_files[0]}")
            return
        validate_dependencies(self.store.read_manifests(), BranchType.MAIN)

    def _read_version(self, revision: str) -> str:
        """Version recorded in the committed version file of a branch."""
        path = self.store.version_file
        content = self.vcs.show_file(revision, path)
        return version_from_document(content, f"{revision}:{path}")


def _require_topic(branch_type: BranchType) -> None:
    if not branch_type.is_topic:
        raise ValueError(f"{branch_type.value} is not a topic branch type")


def _report_failure(run: WorkflowRun, label: str) -> None:
    print(f"\n{run.workflow} failed at step: {label}", file=sys.stderr)
    if run.completed:
        print("Completed steps (not rolled back):", file=sys.stderr)
        for done in run.completed:
            print(f"  - {done}", file=sys.stderr)
