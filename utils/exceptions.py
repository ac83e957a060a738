"""
Custom exception classes for operator commands and services.
"""
from typing import Optional, Dict, Any


class RollupAPIError(Exception):
    """Exception raised for Sovereign rollup REST API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize rollup API error.

        Args:
            message: Error message
            status_code: HTTP status code if available
            response_data: Decoded response body if available
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_data = response_data

    @property
    def details_message(self) -> Optional[str]:
        """The ``error.details.message`` string of the response body, if any."""
        if not isinstance(self.response_data, dict):
            return None
        error = self.response_data.get('error', self.response_data)
        if not isinstance(error, dict):
            return None
        details = error.get('details')
        if not isinstance(details, dict):
            return None
        message = details.get('message')
        return message if isinstance(message, str) else None


class SolanaTransactionError(Exception):
    """Exception raised when a Solana transaction fails to land."""

    def __init__(
        self,
        message: str,
        signature: Optional[str] = None,
        error: Any = None
    ):
        """
        Initialize Solana transaction error.

        Args:
            message: Error message
            signature: Transaction signature if available
            error: Transaction error returned by the RPC node if available
        """
        super().__init__(message)
        self.message = message
        self.signature = signature
        self.error = error


class ConfirmationTimeoutError(Exception):
    """Exception raised when a poll does not observe its condition in time."""

    def __init__(
        self,
        message: str,
        description: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        super().__init__(message)
        self.message = message
        self.description = description
        self.timeout = timeout


class SchemaEncodingError(Exception):
    """Exception raised when a value does not fit the rollup schema."""

    def __init__(self, message: str, path: Optional[str] = None):
        """
        Initialize schema encoding error.

        Args:
            message: Error message
            path: JSON path of the offending value, e.g. ``$.warp.register.admin``
        """
        super().__init__(f"{path}: {message}" if path else message)
        self.message = message
        self.path = path


class KeyLoadingError(Exception):
    """Exception raised when signer key material cannot be loaded."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source = source


class ValidationError(Exception):
    """Exception raised for validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None
    ):
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation if available
            value: Invalid value if available
        """
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value
