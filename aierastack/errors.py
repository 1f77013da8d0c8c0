"""Exception hierarchy for aierastack.

Everything raised on purpose inherits from AiEraStackError so callers at the
edges (API handlers, CLI commands) have a single catch point.
"""


class AiEraStackError(Exception):
    """Base exception for all aierastack errors."""


class ConfigError(AiEraStackError):
    """Invalid configuration value or registry file."""


class RepositoryNotFoundError(AiEraStackError):
    """The requested repository does not exist upstream."""

    def __init__(self, full_name: str):
        super().__init__(f"Repository not found: {full_name}")
        self.full_name = full_name


class UpstreamError(AiEraStackError):
    """The identity-resolving upstream call failed after retries."""


class StoreError(AiEraStackError):
    """The relational store could not be read or written."""
