"""Language detection and skip rules for repository scanning."""

import fnmatch
from pathlib import PurePosixPath

# Language detection by file extension
LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".py": "python",
    ".java": "java",
    ".kt": "kotlin",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "csharp",
    ".cpp": "cpp",
    ".c": "c",
    ".h": "c",
    ".hpp": "cpp",
    ".swift": "swift",
    ".scala": "scala",
    ".sql": "sql",
    ".sh": "bash",
    ".bash": "bash",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".json": "json",
    ".xml": "xml",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".less": "less",
    ".md": "markdown",
    ".dockerfile": "dockerfile",
    ".tf": "terraform",
    ".vue": "vue",
    ".svelte": "svelte",
}

# Directory and file names never scanned
SKIP_NAMES: frozenset[str] = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        "out",
        ".next",
        "__pycache__",
        ".pytest_cache",
        "venv",
        ".venv",
        "vendor",
        "target",
        ".idea",
        ".vscode",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
    }
)

# Filename suffixes never scanned (minified bundles, lock files, binaries)
SKIP_SUFFIXES: tuple[str, ...] = (
    ".min.js",
    ".min.css",
    ".map",
    ".lock",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".ico",
    ".svg",
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".pdf",
    ".zip",
    ".tar",
    ".gz",
)


def detect_language(file_name: str) -> str | None:
    """Return the language for a file name, or None if not a source file."""
    if file_name.lower() == "dockerfile":
        return "dockerfile"
    suffix = PurePosixPath(file_name).suffix.lower()
    return LANGUAGE_BY_EXTENSION.get(suffix)


def should_skip(name: str, relative_path: str, exclude_patterns: list[str] | None = None) -> bool:
    """Check whether a directory entry is excluded from scanning.

    Args:
        name: Entry name (last path segment)
        relative_path: POSIX path relative to the repository root
        exclude_patterns: Extra fnmatch globs matched against ``relative_path``

    Returns:
        True if the entry must not be scanned
    """
    if name in SKIP_NAMES or name.endswith(SKIP_SUFFIXES):
        return True
    for pattern in exclude_patterns or []:
        if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(name, pattern):
            return True
    return False
