"""Exception hierarchy for the analysis worker."""


class LeadScoreError(RuntimeError):
    """Base class for worker errors."""


class ConfigError(LeadScoreError):
    """Raised when configuration values are present but invalid."""


class ProviderError(LeadScoreError):
    """Raised when an external scoring capability cannot be reached or answers badly."""


class SearchProviderError(ProviderError):
    """Raised by the web search capability."""


class PageFetchError(ProviderError):
    """Raised by the page fetch capability."""


class LanguageModelError(ProviderError):
    """Raised by the language model capability."""


class ParseError(LanguageModelError):
    """Raised when the language model reply is not the expected two-field JSON object."""


class PersistenceError(LeadScoreError):
    """Raised when a status/score write or a progress read against the record store fails."""


class SelectionError(LeadScoreError):
    """Raised when eligible records cannot be selected or claimed at batch start."""
