"""Static chain data for tokenwatch."""

from tokenwatch.constants.chains import (
    CHAIN_IDS,
    DEFAULT_DETECTION_INTERVAL_MS,
    DEFAULT_MAX_BATCH_WIDTH,
    SINGLE_CALL_BALANCES_ADDRESSES,
    TOKEN_DETECTION_CHAINS,
    chain_id_to_decimal,
    normalize_chain_id,
)

__all__ = [
    "CHAIN_IDS",
    "DEFAULT_DETECTION_INTERVAL_MS",
    "DEFAULT_MAX_BATCH_WIDTH",
    "SINGLE_CALL_BALANCES_ADDRESSES",
    "TOKEN_DETECTION_CHAINS",
    "chain_id_to_decimal",
    "normalize_chain_id",
]
