"""Token list API client, the bundled CandidateSource.

Fetches the candidate token list of a chain from the token API:

    GET /tokens/{decimal chain id}

An unsupported chain answers 200 with ``{"error": "ChainId 3 is not
supported"}``, which is raised as ChainNotSupportedError. Lists are
cached per chain for ``cache_ttl_seconds``.
"""

from typing import Any

import structlog
from cachetools import TTLCache

from tokenwatch.constants.chains import chain_id_to_decimal, normalize_chain_id
from tokenwatch.core.exceptions import ChainNotSupportedError, ExternalServiceError
from tokenwatch.models.token import CandidateToken
from tokenwatch.services.base import BaseAPIClient

log = structlog.get_logger(__name__)


class TokenApiClient(BaseAPIClient):
    """Candidate token source backed by the token list API.

    Example:
        client = TokenApiClient()
        try:
            candidates = await client.get_candidates("0x1")
        finally:
            await client.close()
    """

    BASE_URL = "https://token-api.metaswap.codefi.network"
    DEFAULT_TIMEOUT = 30.0
    DEFAULT_CACHE_TTL_SECONDS = 4 * 60 * 60
    CIRCUIT_BREAKER_THRESHOLD = 5
    CIRCUIT_BREAKER_COOLDOWN = 30

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        circuit_breaker_threshold: int = CIRCUIT_BREAKER_THRESHOLD,
        circuit_breaker_cooldown: int = CIRCUIT_BREAKER_COOLDOWN,
    ) -> None:
        super().__init__(
            base_url=base_url or self.BASE_URL,
            timeout=timeout,
            headers={"Accept": "application/json"},
            circuit_breaker_threshold=circuit_breaker_threshold,
            circuit_breaker_cooldown=circuit_breaker_cooldown,
            service_name="token-api",
        )
        self._cache: TTLCache = TTLCache(maxsize=64, ttl=cache_ttl_seconds)

    def invalidate(self, chain_id: str | None = None) -> None:
        """Drop the cached list of ``chain_id`` (or every list)."""
        if chain_id is None:
            self._cache.clear()
        else:
            self._cache.pop(normalize_chain_id(chain_id), None)

    async def get_candidates(self, chain_id: str) -> list[CandidateToken]:
        """Return the candidate tokens of ``chain_id``.

        Raises:
            ChainNotSupportedError: If the API has no list for the chain.
            ExternalServiceError: If the request fails or the payload is not a list.
        """
        chain_id = normalize_chain_id(chain_id)
        cached = self._cache.get(chain_id)
        if cached is not None:
            return cached

        response = await self.get(f"/tokens/{chain_id_to_decimal(chain_id)}")
        try:
            data = response.json()
        except ValueError as e:
            raise ExternalServiceError(
                service=self.service_name,
                message=f"Invalid JSON for chain {chain_id}: {e}",
            ) from e

        if isinstance(data, dict) and "error" in data:
            message = str(data["error"])
            if "not supported" in message.lower():
                raise ChainNotSupportedError(chain_id, message)
            raise ExternalServiceError(service=self.service_name, message=message)

        if not isinstance(data, list):
            raise ExternalServiceError(
                service=self.service_name,
                message=f"Unexpected token list format: {type(data).__name__}",
            )

        tokens = self._parse_tokens(chain_id, data)
        self._cache[chain_id] = tokens
        log.info("token_list_fetched", chain_id=chain_id, total=len(data), parsed=len(tokens))
        return tokens

    @staticmethod
    def _parse_tokens(chain_id: str, items: list[Any]) -> list[CandidateToken]:
        tokens: list[CandidateToken] = []
        for item in items:
            try:
                tokens.append(CandidateToken.model_validate(item))
            except Exception as e:
                log.warning("token_list_entry_invalid", chain_id=chain_id, error=str(e))
        return tokens
