"""Token list API client."""

from tokenwatch.services.token_api.client import TokenApiClient

__all__ = ["TokenApiClient"]
