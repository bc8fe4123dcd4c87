"""tokenwatch - token detection polling engine for multi-chain wallets."""

__version__ = "0.1.0"
