"""
Custom exceptions for indexscm.

This module defines domain-specific exceptions so callers can tell transport
failures, configuration problems and file system refusals apart.
"""

from typing import List, NamedTuple, Optional


class ValidationIssue(NamedTuple):
    """A single configuration problem, keyed by the offending setting."""

    key: str
    message: str


class IndexScmError(Exception):
    """
    Base exception for all indexscm errors.

    All custom exceptions in indexscm inherit from this class so that the
    whole family can be caught at once.
    """

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(IndexScmError):
    """
    Exception raised when configuration is invalid or missing.

    This includes:
    - Configuration file parsing errors
    - Invalid configuration values
    """

    pass


class ConfigFileError(ConfigurationError):
    """Exception raised when the configuration file cannot be read or parsed."""

    pass


class ConfigValidationError(ConfigurationError):
    """
    Exception raised when configuration validation fails.

    Attributes:
        errors: Every problem found, one entry per offending key.
    """

    def __init__(
        self, message: str, errors: Optional[List[ValidationIssue]] = None
    ) -> None:
        self.errors = list(errors or [])
        details = "; ".join(f"{e.key}: {e.message}" for e in self.errors) or None
        super().__init__(message, details)


class PatternError(ConfigurationError):
    """
    Exception raised when a name pattern is not a valid regular expression.

    Attributes:
        pattern: The offending pattern text.
    """

    def __init__(self, message: str, pattern: Optional[str] = None) -> None:
        super().__init__(message)
        self.pattern = pattern


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(IndexScmError):
    """
    Base exception for listing and artifact fetch errors.

    Attributes:
        url: The URL that was being fetched when the error occurred.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url


class NetworkError(DownloadError):
    """
    Exception raised when the transport fails before a response arrives.

    This includes:
    - Connection timeouts
    - DNS resolution failures
    - Connection refused errors
    - Proxy and SSL/TLS errors
    """

    pass


class HTTPStatusError(DownloadError):
    """
    Exception raised when a server answers with a status code of 400 or above.

    Attributes:
        status_code: The HTTP status code returned by the server.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        url: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, url, details)
        self.status_code = status_code


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(IndexScmError):
    """Exception raised for file system-related errors."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


class UnsafePathError(FileSystemError):
    """Exception raised when a remote filename would escape the target directory."""

    pass
