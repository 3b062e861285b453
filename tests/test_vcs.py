"""Tests for npm_gitflow.vcs and npm_gitflow.shell."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from npm_gitflow.errors import UnderlyingToolFailure
from npm_gitflow.shell import capture, run
from npm_gitflow.vcs import GitCLI, remote_branch_exists


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    return tmp_path


class TestGitCLI:
    @patch("npm_gitflow.vcs.git")
    def test_is_clean(self, mock_git: MagicMock, repo_root: Path) -> None:
        mock_git.return_value = ""
        assert GitCLI(repo_root).is_clean()
        mock_git.assert_called_once_with("status", "--porcelain", cwd=repo_root)

    @patch("npm_gitflow.vcs.git")
    def test_is_dirty(self, mock_git: MagicMock, repo_root: Path) -> None:
        mock_git.return_value = " M package.json"
        assert not GitCLI(repo_root).is_clean()

    @patch("npm_gitflow.vcs.git")
    def test_current_branch(self, mock_git: MagicMock, repo_root: Path) -> None:
        mock_git.return_value = "feature/login"
        assert GitCLI(repo_root).current_branch() == "feature/login"
        mock_git.assert_called_once_with("rev-parse", "--abbrev-ref", "HEAD", cwd=repo_root)

    @patch("npm_gitflow.vcs.git")
    def test_pull_with_options(self, mock_git: MagicMock, repo_root: Path) -> None:
        GitCLI(repo_root).pull("origin", "develop", ["--no-rebase"])
        mock_git.assert_called_once_with(
            "pull", "--no-rebase", "origin", "develop", cwd=repo_root
        )

    @patch("npm_gitflow.vcs.git")
    def test_checkout_branch_from_start_point(self, mock_git: MagicMock, repo_root: Path) -> None:
        GitCLI(repo_root).checkout_branch("release", "develop")
        mock_git.assert_called_once_with("checkout", "-b", "release", "develop", cwd=repo_root)

    @patch("npm_gitflow.vcs.git")
    def test_merge_from_to(self, mock_git: MagicMock, repo_root: Path) -> None:
        GitCLI(repo_root).merge_from_to("main", "develop", ["--no-ff"])
        assert [c.args for c in mock_git.call_args_list] == [
            ("checkout", "develop"),
            ("merge", "--no-ff", "main"),
        ]

    @patch("npm_gitflow.vcs.git")
    def test_commit(self, mock_git: MagicMock, repo_root: Path) -> None:
        GitCLI(repo_root).commit("chore: release 1.0.0", ["--all"])
        mock_git.assert_called_once_with(
            "commit", "--all", "-m", "chore: release 1.0.0", cwd=repo_root
        )

    @patch("npm_gitflow.vcs.git")
    def test_push_with_upstream(self, mock_git: MagicMock, repo_root: Path) -> None:
        GitCLI(repo_root).push("origin", "release", ["--set-upstream"])
        mock_git.assert_called_once_with(
            "push", "--set-upstream", "origin", "release", cwd=repo_root
        )

    @patch("npm_gitflow.vcs.git")
    def test_push_tags(self, mock_git: MagicMock, repo_root: Path) -> None:
        vcs = GitCLI(repo_root)
        vcs.push_tags(["1.0.0"])
        vcs.push_tags()
        assert [c.args for c in mock_git.call_args_list] == [
            ("push", "origin", "1.0.0"),
            ("push", "origin", "--tags"),
        ]

    @patch("npm_gitflow.vcs.git")
    def test_tag_and_delete(self, mock_git: MagicMock, repo_root: Path) -> None:
        vcs = GitCLI(repo_root, remote="upstream")
        vcs.add_annotated_tag("1.0.0", "Release 1.0.0")
        vcs.delete_local_branch("release")
        vcs.delete_remote_branch("release")
        assert [c.args for c in mock_git.call_args_list] == [
            ("tag", "-a", "1.0.0", "-m", "Release 1.0.0"),
            ("branch", "-D", "release"),
            ("push", "upstream", "--delete", "release"),
        ]

    @patch("npm_gitflow.vcs.git")
    def test_show_file(self, mock_git: MagicMock, repo_root: Path) -> None:
        mock_git.return_value = '{"version": "1.0.0"}'
        assert GitCLI(repo_root).show_file("main", "package.json") == '{"version": "1.0.0"}'
        mock_git.assert_called_once_with("show", "main:package.json", cwd=repo_root)

    @patch("npm_gitflow.vcs.git")
    def test_list_remote_heads(self, mock_git: MagicMock, repo_root: Path) -> None:
        mock_git.return_value = "abc123\trefs/heads/develop\ndef456\trefs/heads/main"
        vcs = GitCLI(repo_root)

        assert vcs.list_remote_heads() == ["refs/heads/develop", "refs/heads/main"]
        assert remote_branch_exists(vcs, "main")
        assert not remote_branch_exists(vcs, "release")

    @patch("npm_gitflow.vcs.git")
    def test_branch_name_must_match_exactly(self, mock_git: MagicMock, repo_root: Path) -> None:
        mock_git.return_value = "abc123\trefs/heads/release-notes"
        assert not remote_branch_exists(GitCLI(repo_root), "release")


class TestShell:
    @patch("npm_gitflow.shell.subprocess.run")
    def test_capture_strips_output(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess(["git"], 0, " main\n", "")
        assert capture("git", "branch") == "main"

    @patch("npm_gitflow.shell.subprocess.run")
    def test_capture_wraps_failure(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(
            128, ["git", "show"], output="", stderr="fatal: bad revision"
        )

        with pytest.raises(UnderlyingToolFailure) as exc_info:
            capture("git", "show", "main:package.json")

        assert exc_info.value.returncode == 128
        assert exc_info.value.command == ["git", "show", "main:package.json"]
        assert "fatal: bad revision" in str(exc_info.value)

    @patch("npm_gitflow.shell.subprocess.run")
    def test_run_wraps_missing_executable(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError(2, "No such file or directory", "lerna")

        with pytest.raises(UnderlyingToolFailure) as exc_info:
            run("lerna", "list")

        assert exc_info.value.returncode is None


class TestIsMerging:
    @patch("npm_gitflow.vcs.git")
    def test_merge_pending(self, mock_git: MagicMock, repo_root: Path) -> None:
        mock_git.return_value = "3f2a9c1d"
        assert GitCLI(repo_root).is_merging()
        mock_git.assert_called_once_with(
            "rev-parse", "-q", "--verify", "MERGE_HEAD", cwd=repo_root, check=False
        )

    @patch("npm_gitflow.vcs.git")
    def test_no_merge(self, mock_git: MagicMock, repo_root: Path) -> None:
        mock_git.return_value = ""
        assert not GitCLI(repo_root).is_merging()

    @patch("npm_gitflow.shell.subprocess.run")
    def test_capture_unchecked_returns_output(self, mock_run: MagicMock) -> None:
        mock_run.return_value = subprocess.CompletedProcess(["git"], 1, "", "")

        assert capture("git", "rev-parse", "-q", "--verify", "MERGE_HEAD", check=False) == ""
        assert mock_run.call_args.kwargs["check"] is False
