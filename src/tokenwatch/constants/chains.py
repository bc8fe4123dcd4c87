"""Chain identifiers and per-chain contract addresses.

Chain ids are kept in their 0x-prefixed lowercase hex form everywhere
in tokenwatch, matching what EVM providers return from ``eth_chainId``.
"""

CHAIN_IDS: dict[str, str] = {
    "mainnet": "0x1",
    "goerli": "0x5",
    "sepolia": "0xaa36a7",
    "optimism": "0xa",
    "bsc": "0x38",
    "gnosis": "0x64",
    "polygon": "0x89",
    "fantom": "0xfa",
    "zksync_era": "0x144",
    "base": "0x2105",
    "arbitrum": "0xa4b1",
    "avalanche": "0xa86a",
    "linea_goerli": "0xe704",
    "linea_mainnet": "0xe708",
    "aurora": "0x4e454152",
    "localhost": "0x539",
}

# Chains with a maintained token list and a single-call balance contract.
TOKEN_DETECTION_CHAINS: frozenset[str] = frozenset(
    {
        CHAIN_IDS["mainnet"],
        CHAIN_IDS["bsc"],
        CHAIN_IDS["polygon"],
        CHAIN_IDS["avalanche"],
        CHAIN_IDS["aurora"],
        CHAIN_IDS["linea_goerli"],
        CHAIN_IDS["linea_mainnet"],
        CHAIN_IDS["arbitrum"],
        CHAIN_IDS["optimism"],
        CHAIN_IDS["fantom"],
    }
)

# Deployments of the balance checker exposing balances(address[],address[]).
SINGLE_CALL_BALANCES_ADDRESSES: dict[str, str] = {
    CHAIN_IDS["mainnet"]: "0xb1f8e55c7f64d203c1400b9d8555d050f94adf39",
    CHAIN_IDS["bsc"]: "0x2352c63A83f9Fd126af8676146721Fa00924d7e4",
    CHAIN_IDS["polygon"]: "0x2352c63A83f9Fd126af8676146721Fa00924d7e4",
    CHAIN_IDS["avalanche"]: "0xD023D153a0DFa485130ECFdE2FAA7e612EF94818",
    CHAIN_IDS["fantom"]: "0x07f697424ABe762bB808c109860c04eA488ff92B",
    CHAIN_IDS["arbitrum"]: "0x151E24A486D7258dd7C33Fb67E4bB01919B7B32c",
    CHAIN_IDS["optimism"]: "0xB1c568e9C3E6bdaf755A60c7418C269eb11524FC",
    CHAIN_IDS["aurora"]: "0x1286415D333855237f89Df27D388127181448538",
    CHAIN_IDS["linea_goerli"]: "0x10dAd7Ca3921471f616db788D9300DC97Db01783",
    CHAIN_IDS["linea_mainnet"]: "0xF62e6a41561b3650a69Bb03199C735e3E3328c0D",
}

DEFAULT_DETECTION_INTERVAL_MS = 180_000
DEFAULT_MAX_BATCH_WIDTH = 100


def normalize_chain_id(chain_id: str | int) -> str:
    """Return ``chain_id`` as 0x-prefixed lowercase hex.

    Accepts ints, decimal strings and hex strings in any case.

    Example:
        >>> normalize_chain_id(137)
        '0x89'
        >>> normalize_chain_id("0xA86A")
        '0xa86a'
    """
    if isinstance(chain_id, int):
        return hex(chain_id)
    value = chain_id.strip().lower()
    if value.startswith("0x"):
        return hex(int(value, 16))
    return hex(int(value))


def chain_id_to_decimal(chain_id: str) -> int:
    """Convert a hex chain id to its integer value."""
    return int(normalize_chain_id(chain_id), 16)
