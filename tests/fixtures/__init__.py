"""Test doubles for CodeForge.

This package provides in-process stand-ins for the two external edges of
the pipeline so orchestration can be tested without git or an LLM:
- FakeAcquirer: serves in-memory files per repository, with scripted failures
- ScriptedReviewer: answers batch prompts with findings keyed by file path
"""

import json
from pathlib import Path
from typing import Any

from codeforge.acquisition import AcquiredRepository, RepositoryAcquirer, ScanResult, SourceFile
from codeforge.errors import AcquisitionError
from codeforge.llm import LLMError, ModelReviewer
from codeforge.models import (
    Codebase,
    CodebaseStatus,
    Repository,
    RepositoryProvider,
)
from codeforge.store import Stores

FAKE_ROOT = Path("/fake-checkouts")
SUMMARY_PROMPT_PREFIX = "Based on a code analysis that found:"


def source_file(path: str, content: str = "print('hello')\n", language: str = "python") -> SourceFile:
    """Build a SourceFile with its size derived from the content."""
    return SourceFile(
        path=path, content=content, language=language, size=len(content.encode("utf-8"))
    )


def finding_item(
    title: str,
    severity: str = "medium",
    category: str = "technical_debt",
    file_path: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build one reviewer finding object as the model would return it."""
    item: dict[str, Any] = {
        "title": title,
        "description": f"{title} description",
        "severity": severity,
        "category": category,
    }
    if file_path is not None:
        item["filePath"] = file_path
    item.update(extra)
    return item


class FakeAcquirer(RepositoryAcquirer):
    """Serves scripted files per repository name.

    Attributes:
        files: Repository name -> files returned by ``scan``
        fail_acquire: Repository names whose acquisition fails
        fail_scan: Repository names whose scan fails
        acquired: Repository names in acquisition order
        released: Repository names in release order
    """

    def __init__(
        self,
        files: dict[str, list[SourceFile]] | None = None,
        fail_acquire: set[str] | None = None,
        fail_scan: set[str] | None = None,
    ) -> None:
        self.files = files or {}
        self.fail_acquire = fail_acquire or set()
        self.fail_scan = fail_scan or set()
        self.acquired: list[str] = []
        self.released: list[str] = []

    async def acquire(self, repository: Repository) -> AcquiredRepository:
        if repository.name in self.fail_acquire:
            raise AcquisitionError(repository.id, "remote: Repository not found")
        self.acquired.append(repository.name)
        return AcquiredRepository(
            local_path=FAKE_ROOT / repository.name,
            commit_hash=f"{repository.name}-head",
            owned=False,
        )

    async def scan(
        self,
        local_path: Path,
        max_file_size: int,
        exclude_patterns: list[str] | None = None,
    ) -> ScanResult:
        name = local_path.name
        if name in self.fail_scan:
            raise AcquisitionError(name, "Permission denied")
        result = ScanResult()
        for scripted in self.files.get(name, []):
            if scripted.size <= max_file_size:
                result.add(scripted)
        return result

    async def release(self, acquired: AcquiredRepository) -> None:
        self.released.append(acquired.local_path.name)


class ScriptedReviewer(ModelReviewer):
    """Answers prompts from a script.

    Batch prompts are answered with the findings registered for every file
    path that appears in the prompt. Summary prompts are answered with
    ``summary_response``.

    Attributes:
        findings_by_path: File path -> finding objects reported for it
        fail_paths: File paths whose batch raises LLMError
        raw_by_path: File path -> raw response text returned verbatim
        summary_response: Text (or exception) returned for summary prompts
        batch_prompts: Batch prompts received, in order
        summary_prompts: Summary prompts received, in order
        max_tokens: ``max_tokens`` of every call, in order
        on_batch: Optional coroutine function awaited with the batch number
    """

    def __init__(
        self,
        findings_by_path: dict[str, list[dict[str, Any]]] | None = None,
        fail_paths: set[str] | None = None,
        raw_by_path: dict[str, str] | None = None,
        summary_response: str | Exception | None = None,
    ) -> None:
        self.findings_by_path = findings_by_path or {}
        self.fail_paths = fail_paths or set()
        self.raw_by_path = raw_by_path or {}
        self.summary_response = summary_response
        self.batch_prompts: list[str] = []
        self.summary_prompts: list[str] = []
        self.max_tokens: list[int | None] = []
        self.on_batch = None

    async def review(self, prompt: str, max_tokens: int | None = None) -> str:
        self.max_tokens.append(max_tokens)

        if prompt.startswith(SUMMARY_PROMPT_PREFIX):
            self.summary_prompts.append(prompt)
            if isinstance(self.summary_response, Exception):
                raise self.summary_response
            if self.summary_response is None:
                return "I could not produce a summary."
            return self.summary_response

        self.batch_prompts.append(prompt)
        if self.on_batch is not None:
            await self.on_batch(len(self.batch_prompts))

        paths = _prompt_paths(prompt)
        for path in paths:
            if path in self.fail_paths:
                raise LLMError(f"Connection failed to claude: reviewing {path}")
            if path in self.raw_by_path:
                return self.raw_by_path[path]

        items: list[dict[str, Any]] = []
        for path in paths:
            items.extend(self.findings_by_path.get(path, []))
        return json.dumps(items)


def _prompt_paths(prompt: str) -> list[str]:
    paths = []
    for line in prompt.splitlines():
        if line.startswith("### File: "):
            paths.append(line.removeprefix("### File: ").rsplit(" (", 1)[0])
    return paths


async def seed_codebase(
    stores: Stores,
    repository_names: list[str],
    status: CodebaseStatus = CodebaseStatus.READY,
) -> tuple[Codebase, list[Repository]]:
    """Store a codebase with one GitHub repository per name."""
    codebase = Codebase(name="portfolio", status=status)
    await stores.codebases.create(codebase)

    repositories = []
    for name in repository_names:
        repository = Repository(
            codebase_id=codebase.id,
            name=name,
            provider=RepositoryProvider.GITHUB,
            remote_url=f"https://github.com/acme/{name}.git",
        )
        await stores.repositories.create(repository)
        repositories.append(repository)
    return codebase, repositories
