"""Git-backed repository acquirer.

Remote repositories are shallow-cloned into ``<work_dir>/<repository id>``
and removed again on release. Local repositories are scanned in place and
never removed.
"""

import asyncio
import base64
import binascii
import logging
import os
import re
import shutil
from datetime import datetime
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from codeforge.acquisition.base import AcquiredRepository, RepositoryAcquirer, ScanResult, SourceFile
from codeforge.acquisition.languages import detect_language, should_skip
from codeforge.config import GitSettings
from codeforge.errors import AcquisitionError
from codeforge.models import Repository, RepositoryProvider

logger = logging.getLogger(__name__)

_USERINFO_PATTERN = re.compile(r"(https?://)[^/@\s]+@")


class GitAcquirer(RepositoryAcquirer):
    """Acquire repositories with the ``git`` command line.

    Usage:
        acquirer = GitAcquirer(GitSettings(work_dir="/tmp/repos"))
        async with acquirer.checkout(repository) as acquired:
            scan = await acquirer.scan(acquired.local_path, max_file_size=100_000)
    """

    def __init__(self, settings: GitSettings | None = None, git_binary: str = "git") -> None:
        """Initialize the acquirer.

        Args:
            settings: Work directory, timeout and default branch
            git_binary: Name or path of the git executable
        """
        self.settings = settings or GitSettings()
        self.work_dir = Path(self.settings.work_dir)
        self.git_binary = git_binary

    # -------------------------------------------------------------------------
    # Acquisition
    # -------------------------------------------------------------------------

    async def acquire(self, repository: Repository) -> AcquiredRepository:
        """Clone a remote repository, or resolve a local one in place.

        Args:
            repository: Repository to acquire

        Returns:
            AcquiredRepository with commit information when available

        Raises:
            AcquisitionError: If cloning fails or a local path is missing
        """
        if repository.is_local:
            return await self._acquire_local(repository)

        repo_dir = self.work_dir / repository.id
        branch = repository.branch or self.settings.default_branch

        try:
            await asyncio.to_thread(self.work_dir.mkdir, parents=True, exist_ok=True)
            if repo_dir.exists():
                await asyncio.to_thread(shutil.rmtree, repo_dir)
        except OSError as e:
            raise AcquisitionError(
                repository.id, f"Cannot prepare work directory {repo_dir}: {e}"
            ) from e

        logger.info("Cloning %s (%s) to %s", repository.remote_url, branch, repo_dir)
        try:
            clone_url = build_authenticated_url(repository)
        except ValueError as e:
            raise AcquisitionError(repository.id, str(e)) from e
        await self._git(
            repository.id,
            ["clone", "--depth", "1", "--branch", branch, clone_url, str(repo_dir)],
            timeout=self.settings.clone_timeout,
        )

        commit_hash, commit_date = await self._head_commit(repository.id, repo_dir)
        return AcquiredRepository(
            local_path=repo_dir,
            commit_hash=commit_hash,
            commit_date=commit_date,
            owned=True,
        )

    async def _acquire_local(self, repository: Repository) -> AcquiredRepository:
        local_path = Path(repository.remote_url).expanduser().resolve()
        if not local_path.is_dir():
            raise AcquisitionError(repository.id, f"Local path is not a directory: {local_path}")

        commit_hash: str | None = None
        commit_date: datetime | None = None
        if (local_path / ".git").exists():
            try:
                commit_hash, commit_date = await self._head_commit(repository.id, local_path)
            except AcquisitionError as e:
                # Repositories without commits have no HEAD
                logger.debug("No commit information for %s: %s", local_path, e)

        return AcquiredRepository(
            local_path=local_path,
            commit_hash=commit_hash,
            commit_date=commit_date,
            owned=False,
        )

    async def pull_latest(self, repository: Repository, local_path: Path) -> AcquiredRepository:
        """Fast-forward an existing checkout and report the new HEAD.

        Raises:
            AcquisitionError: If the path is not a git checkout or the pull fails
        """
        if not (local_path / ".git").exists():
            raise AcquisitionError(repository.id, f"Not a git checkout: {local_path}")

        logger.info("Pulling latest changes in %s", local_path)
        await self._git(
            repository.id,
            ["pull", "--ff-only"],
            cwd=local_path,
            timeout=self.settings.clone_timeout,
        )

        commit_hash, commit_date = await self._head_commit(repository.id, local_path)
        return AcquiredRepository(
            local_path=local_path,
            commit_hash=commit_hash,
            commit_date=commit_date,
            owned=not repository.is_local,
        )

    async def _head_commit(self, repository_id: str, repo_dir: Path) -> tuple[str, datetime | None]:
        commit_hash = await self._git(repository_id, ["rev-parse", "HEAD"], cwd=repo_dir)
        commit_date_str = await self._git(
            repository_id, ["log", "-1", "--format=%cI"], cwd=repo_dir
        )
        try:
            commit_date = datetime.fromisoformat(commit_date_str) if commit_date_str else None
        except ValueError:
            logger.warning("Unparseable commit date %r in %s", commit_date_str, repo_dir)
            commit_date = None
        return commit_hash, commit_date

    async def _git(
        self,
        repository_id: str,
        args: list[str],
        cwd: Path | None = None,
        timeout: int = 60,
    ) -> str:
        """Run a git command and return its stripped stdout.

        Raises:
            AcquisitionError: On a non-zero exit, timeout or missing binary
        """
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            process = await asyncio.create_subprocess_exec(
                self.git_binary,
                *args,
                cwd=str(cwd) if cwd else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except FileNotFoundError as e:
            raise AcquisitionError(repository_id, f"git executable not found: {self.git_binary}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise AcquisitionError(
                repository_id, f"git {args[0]} timed out after {timeout}s"
            ) from e

        if process.returncode != 0:
            message = _redact(stderr.decode("utf-8", errors="replace").strip())
            raise AcquisitionError(
                repository_id,
                f"git {args[0]} failed (exit code {process.returncode}): {message}",
            )

        return stdout.decode("utf-8", errors="replace").strip()

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    async def scan(
        self,
        local_path: Path,
        max_file_size: int,
        exclude_patterns: list[str] | None = None,
    ) -> ScanResult:
        """Walk ``local_path`` and read every recognised source file.

        Files over ``max_file_size`` bytes are skipped. Unreadable files are
        logged and skipped.
        """
        if not local_path.is_dir():
            raise AcquisitionError(local_path.name, f"Scan path is not a directory: {local_path}")
        return await asyncio.to_thread(
            self._scan_directory, local_path, max_file_size, exclude_patterns or []
        )

    def _scan_directory(
        self,
        root: Path,
        max_file_size: int,
        exclude_patterns: list[str],
    ) -> ScanResult:
        result = ScanResult()

        for current, dirnames, filenames in os.walk(root):
            current_path = Path(current)
            relative_dir = current_path.relative_to(root)

            # Prune in place so os.walk never descends into skipped directories
            dirnames[:] = sorted(
                d for d in dirnames
                if not should_skip(d, (relative_dir / d).as_posix(), exclude_patterns)
            )

            for filename in sorted(filenames):
                relative_path = (relative_dir / filename).as_posix()
                if should_skip(filename, relative_path, exclude_patterns):
                    continue

                language = detect_language(filename)
                if language is None:
                    continue

                full_path = current_path / filename
                try:
                    size = full_path.stat().st_size
                    if size > max_file_size:
                        continue
                    content = full_path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning("Could not read file %s: %s", full_path, e)
                    continue

                result.add(SourceFile(path=relative_path, content=content, language=language, size=size))

        logger.info(
            "Scanned %s: %d files, %d lines", root, result.total_files, result.total_lines
        )
        return result

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    async def release(self, acquired: AcquiredRepository) -> None:
        """Remove a clone created by ``acquire``; local checkouts are kept."""
        if not acquired.owned:
            return

        path = acquired.local_path.resolve()
        if self.work_dir.resolve() not in path.parents:
            logger.warning("Refusing to remove %s outside work dir %s", path, self.work_dir)
            return

        try:
            await asyncio.to_thread(shutil.rmtree, path)
        except OSError as e:
            logger.warning("Failed to clean up %s: %s", path, e)


def decode_credential(encrypted_value: str) -> str:
    """Decode a stored credential value (base64 text)."""
    try:
        return base64.b64decode(encrypted_value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("Credential value is not valid base64 text") from e


def encode_credential(secret: str) -> str:
    """Encode a secret for storage in RepositoryCredentials."""
    return base64.b64encode(secret.encode("utf-8")).decode("ascii")


def build_authenticated_url(repository: Repository) -> str:
    """Inject credentials into an https clone URL.

    GitHub, GitLab and Bitbucket take ``oauth2:<token>``; Azure DevOps takes
    the token as password with an empty user; basic credentials are stored as
    ``user:password``. SSH credentials and non-http URLs are returned as-is.

    Args:
        repository: Repository with optional credentials

    Returns:
        Clone URL
    """
    credentials = repository.credentials
    if credentials is None or credentials.type == "ssh":
        return repository.remote_url

    parts = urlsplit(repository.remote_url)
    if parts.scheme not in {"http", "https"}:
        return repository.remote_url

    secret = decode_credential(credentials.encrypted_value)

    if credentials.type == "basic":
        username, _, password = secret.partition(":")
    elif repository.provider in {
        RepositoryProvider.GITHUB,
        RepositoryProvider.GITLAB,
        RepositoryProvider.BITBUCKET,
    }:
        username, password = "oauth2", secret
    elif repository.provider == RepositoryProvider.AZURE_DEVOPS:
        username, password = "", secret
    else:
        return repository.remote_url

    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = f"{quote(username, safe='')}:{quote(password, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def _redact(text: str) -> str:
    """Strip URL userinfo from git output so tokens never reach logs."""
    return _USERINFO_PATTERN.sub(r"\1***@", text)
