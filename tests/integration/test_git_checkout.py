"""Integration tests for GitAcquirer against real git repositories.

Repositories are created in tmp_path with the git command line; nothing
touches the network.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

from codeforge.acquisition import GitAcquirer
from codeforge.config import GitSettings
from codeforge.errors import AcquisitionError
from codeforge.models import Repository, RepositoryProvider

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


@pytest.fixture
def source_repo(tmp_path: Path) -> Path:
    """Create a committed repository on branch main."""
    repo = tmp_path / "source"
    (repo / "src").mkdir(parents=True)
    (repo / "src" / "app.py").write_text("def handler(event):\n    return event\n")
    (repo / "README.md").write_text("# Service\n")
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "dev@example.com")
    git(repo, "config", "user.name", "Dev")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "Initial commit")
    return repo


@pytest.fixture
def acquirer(tmp_path: Path) -> GitAcquirer:
    return GitAcquirer(GitSettings(work_dir=str(tmp_path / "work"), clone_timeout=60))


class TestLocalRepository:
    """Tests for in-place local repositories."""

    async def test_acquire_reads_head(self, acquirer: GitAcquirer, source_repo: Path) -> None:
        """Test that local repositories report their HEAD commit."""
        repository = Repository.from_url("cb-1", str(source_repo))

        acquired = await acquirer.acquire(repository)

        assert acquired.local_path == source_repo.resolve()
        assert acquired.owned is False
        assert acquired.commit_hash == git(source_repo, "rev-parse", "HEAD")
        assert acquired.commit_date is not None

    async def test_release_keeps_local_checkout(
        self, acquirer: GitAcquirer, source_repo: Path
    ) -> None:
        """Test that releasing never deletes a local repository."""
        repository = Repository.from_url("cb-1", str(source_repo))

        async with acquirer.checkout(repository) as acquired:
            scan = await acquirer.scan(acquired.local_path, max_file_size=10_000)

        assert source_repo.exists()
        assert [f.path for f in scan.files] == ["README.md", "src/app.py"]

    async def test_empty_repository_has_no_commit(
        self, acquirer: GitAcquirer, tmp_path: Path
    ) -> None:
        """Test that a repository without commits still acquires."""
        empty = tmp_path / "empty"
        empty.mkdir()
        git(empty, "init", "-q")

        acquired = await acquirer.acquire(Repository.from_url("cb-1", str(empty)))

        assert acquired.commit_hash is None


class TestClone:
    """Tests for cloning through a file:// remote."""

    async def test_clone_scan_release(
        self, acquirer: GitAcquirer, source_repo: Path, tmp_path: Path
    ) -> None:
        """Test the full clone lifecycle in the work directory."""
        repository = Repository.from_url(
            "cb-1", source_repo.as_uri(), provider=RepositoryProvider.GITHUB
        )

        async with acquirer.checkout(repository) as acquired:
            clone_path = acquired.local_path
            assert clone_path == tmp_path / "work" / repository.id
            assert acquired.owned is True
            assert acquired.commit_hash == git(source_repo, "rev-parse", "HEAD")
            scan = await acquirer.scan(clone_path, max_file_size=10_000)

        assert scan.total_files == 2
        assert scan.lines_by_language["python"] == 3
        assert not clone_path.exists()

    async def test_clone_unknown_branch(self, acquirer: GitAcquirer, source_repo: Path) -> None:
        """Test that a missing branch fails with the git error."""
        repository = Repository.from_url(
            "cb-1", source_repo.as_uri(), provider=RepositoryProvider.GITHUB, branch="release"
        )

        with pytest.raises(AcquisitionError, match="git clone failed"):
            await acquirer.acquire(repository)

    async def test_clone_replaces_stale_directory(
        self, acquirer: GitAcquirer, source_repo: Path, tmp_path: Path
    ) -> None:
        """Test that leftovers from an earlier run are cleared first."""
        repository = Repository.from_url(
            "cb-1", source_repo.as_uri(), provider=RepositoryProvider.GITHUB
        )
        stale = tmp_path / "work" / repository.id
        stale.mkdir(parents=True)
        (stale / "leftover.py").write_text("x = 1\n")

        acquired = await acquirer.acquire(repository)

        assert not (acquired.local_path / "leftover.py").exists()
        await acquirer.release(acquired)


class TestPullLatest:
    """Tests for refreshing an existing checkout."""

    async def test_pull_picks_up_new_commit(
        self, acquirer: GitAcquirer, source_repo: Path
    ) -> None:
        """Test that a clone fast-forwards to the remote HEAD."""
        repository = Repository.from_url(
            "cb-1", source_repo.as_uri(), provider=RepositoryProvider.GITHUB
        )
        acquired = await acquirer.acquire(repository)
        (source_repo / "src" / "extra.py").write_text("VALUE = 2\n")
        git(source_repo, "add", ".")
        git(source_repo, "commit", "-q", "-m", "Add extra")

        refreshed = await acquirer.pull_latest(repository, acquired.local_path)

        assert refreshed.commit_hash == git(source_repo, "rev-parse", "HEAD")
        assert refreshed.commit_hash != acquired.commit_hash
        assert (acquired.local_path / "src" / "extra.py").exists()
        await acquirer.release(refreshed)
        assert not acquired.local_path.exists()

    async def test_pull_requires_checkout(self, acquirer: GitAcquirer, tmp_path: Path) -> None:
        """Test that a plain directory cannot be pulled."""
        plain = tmp_path / "plain"
        plain.mkdir()

        with pytest.raises(AcquisitionError, match="Not a git checkout"):
            await acquirer.pull_latest(Repository.from_url("cb-1", str(plain)), plain)
