"""
Search Exceptions

Error types raised by the model-complexity searches and their configuration.
"""


class SearchError(Exception):
    """Base class for all errors raised by structure_search."""


class ConfigurationError(SearchError, ValueError):
    """A configuration value is outside its allowed range."""


class SearchPreconditionError(SearchError):
    """
    The search cannot start.

    Raised before the first iteration when the oracle is missing or lacks a
    required capability, when there are no candidate inputs, or when the
    order bounds are inconsistent.
    """
