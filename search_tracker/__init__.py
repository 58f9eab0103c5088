"""
Search Tracker Package

Records and reports what the model-selection searches do: per-iteration
histories gated by reserve flags, and text reports of finished searches.
"""

from .history import SearchHistory, SearchRecord
from .reporter import SearchReporter, summarize_results

__version__ = "1.0.0"
__all__ = ["SearchHistory", "SearchRecord", "SearchReporter", "summarize_results"]
