"""Entry point for running CodeForge as a module.

Usage:
    python -m codeforge [command] [options]

Example:
    python -m codeforge analyze <codebase-id>
    python -m codeforge check
"""

from codeforge.cli import app

if __name__ == "__main__":
    app()
