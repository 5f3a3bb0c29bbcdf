"""Shared fixtures: throwaway git repositories for mining tests."""

import subprocess
from pathlib import Path

import pytest


class GitRepoFixture:
    """A real git repository in a temporary directory.

    The repository starts with one root commit containing README.md.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.root,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout

    def commit(self, files: dict[str, str], message: str) -> str:
        """Write files, commit them, and return the new commit id."""
        for name, content in files.items():
            path = self.root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        self.git("add", ".")
        self.git("commit", "-m", message)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepoFixture:
    """Create a real git repo with an initial commit."""
    repo = tmp_path / "fixture-repo"
    repo.mkdir()
    subprocess.run(["git", "init"], cwd=repo, capture_output=True, check=True)
    for key, value in (
        ("user.email", "test@test.com"),
        ("user.name", "Test"),
        ("commit.gpgsign", "false"),
        ("core.autocrlf", "false"),
    ):
        subprocess.run(["git", "config", key, value], cwd=repo, capture_output=True, check=True)

    fixture = GitRepoFixture(repo)
    fixture.commit({"README.md": "# Test\n"}, "initial")
    return fixture
