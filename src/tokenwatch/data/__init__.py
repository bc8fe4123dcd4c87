"""In-memory token store and network client registry."""

from tokenwatch.data.network_clients import NetworkClientRegistry
from tokenwatch.data.token_store import InMemoryTokenStore

__all__ = ["InMemoryTokenStore", "NetworkClientRegistry"]
