"""CodeForge report rendering.

Jinja2-based markdown rendering of completed Analyses. Output is
deterministic: the same records always render to the same text.
"""

from codeforge.templates.renderer import ReportRenderer, format_datetime, table_cell

__all__ = ["ReportRenderer", "format_datetime", "table_cell"]
