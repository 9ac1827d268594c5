"""CodeForge utility modules.

- logging: Standardized logging with human/verbose/JSON modes
- preflight: Dependency checks before an analysis starts
- rounding: Half-up rounding and percentage histograms
"""

from codeforge.utils.logging import LogMode, configure_from_cli, get_logger, setup_logging
from codeforge.utils.rounding import percentage_histogram, round_half_up

__all__ = [
    "LogMode",
    "configure_from_cli",
    "get_logger",
    "percentage_histogram",
    "round_half_up",
    "setup_logging",
]
