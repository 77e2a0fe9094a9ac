"""
Configuration and text formatting shared by the appraisal core and CLI.
"""

from .config import Config
from .formatting import format_currency, format_percent, format_range

__all__ = ["Config", "format_currency", "format_percent", "format_range"]
