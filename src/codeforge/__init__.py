"""CodeForge - Codebase Analysis Pipeline.

CodeForge acquires the repositories of a codebase, sends their source to an
LLM reviewer in batches, and aggregates the returned findings into
per-repository and codebase-wide scores with a human-readable summary.

Core principles:
- Partial failure is normal: a repository that cannot be acquired is skipped
- Reviewer output is untrusted: malformed responses are tolerated, never fatal
- Every run terminates: an Analysis always ends completed, failed or cancelled
- Preflight Validation: git and the reviewer model are checked before a run
"""

__version__ = "0.1.0"
__author__ = "CodeForge Contributors"
