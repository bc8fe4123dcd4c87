"""tokenwatch exception hierarchy.

This module defines the base exception class and specialized exceptions
for the failure categories of the detection engine and its adapters.
"""


class TokenWatchError(Exception):
    """Base exception for all tokenwatch errors.

    All custom exceptions in tokenwatch should inherit from this class
    to enable consistent error handling and logging.
    """

    pass


class ConfigurationError(TokenWatchError):
    """Raised when configuration is invalid or missing.

    Example:
        raise ConfigurationError("Unknown network client: goerli")
    """

    pass


class ValidationError(TokenWatchError):
    """Raised when data validation fails.

    Example:
        raise ValidationError("Not an EVM address: 0x12")
    """

    pass


class ExternalServiceError(TokenWatchError):
    """Raised when an external service call fails.

    Use this for token list API errors, JSON-RPC errors, etc.

    Attributes:
        service: Name of the external service that failed.
        status_code: HTTP status code if available, None otherwise.

    Example:
        raise ExternalServiceError(service="token-api", message="Rate limited", status_code=429)
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class ChainNotSupportedError(TokenWatchError):
    """Raised by a candidate source that has no token list for a chain.

    Detection treats this as an empty candidate list, never as a failure.

    Attributes:
        chain_id: The chain id that was requested.
    """

    def __init__(self, chain_id: str, message: str | None = None) -> None:
        self.chain_id = chain_id
        super().__init__(message or f"Chain {chain_id} is not supported")


class CircuitBreakerOpenError(TokenWatchError):
    """Raised when circuit breaker is open.

    Example:
        raise CircuitBreakerOpenError("Circuit is open for token-api")
    """

    pass


class BalanceQueryError(TokenWatchError):
    """Raised when a batched balance lookup cannot be completed.

    Attributes:
        chain_id: Chain the query targeted.
        batch_size: Number of token addresses in the failed batch.
    """

    def __init__(self, message: str, chain_id: str, batch_size: int = 0) -> None:
        super().__init__(message)
        self.chain_id = chain_id
        self.batch_size = batch_size


class AddTokensError(TokenWatchError):
    """Raised when handing detected tokens to the token store fails.

    Attributes:
        chain_id: Chain the tokens were detected on.
        addresses: Checksummed addresses that were not written.
    """

    def __init__(self, message: str, chain_id: str, addresses: list[str]) -> None:
        super().__init__(message)
        self.chain_id = chain_id
        self.addresses = addresses
