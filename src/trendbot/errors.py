"""
Error types raised across the pipeline.

Only PublishError, MissingPrerequisiteError and ConfigurationError are
allowed to leave a stage. NetworkError and ParseError are raised inside
the fetchers and analyzer and absorbed at their boundary.
"""


class TrendbotError(Exception):
    """Base class for all pipeline errors."""


class NetworkError(TrendbotError):
    """An HTTP call to a source, the agent or the store failed."""


class ParseError(TrendbotError):
    """A feed document or API response did not have the expected shape."""


class MissingPrerequisiteError(TrendbotError):
    """A stage ran before the data it needs was put in the context."""


class ConfigurationError(TrendbotError):
    """A required credential or identifier is missing from the settings."""


class PublishError(NetworkError):
    """Writing a record to the external store failed."""

    def __init__(self, message: str, title: str | None = None):
        super().__init__(message)
        self.title = title
