"""Batched ERC-20 balance lookup, the bundled BalanceFetcher.

One ``eth_call`` per batch against the chain's single-call balance
contract:

    balances(address[] users, address[] tokens) returns (uint256[])

The result holds one balance per (user, token) pair, users outer.
"""

from collections.abc import Mapping, Sequence

import structlog
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from tokenwatch.constants.chains import SINGLE_CALL_BALANCES_ADDRESSES, normalize_chain_id
from tokenwatch.core.address import normalize_address
from tokenwatch.core.exceptions import BalanceQueryError, ValidationError
from tokenwatch.models.chain import ChainContext

log = structlog.get_logger(__name__)

BALANCES_SIGNATURE = "balances(address[],address[])"
BALANCES_SELECTOR = function_signature_to_4byte_selector(BALANCES_SIGNATURE)


def encode_balances_call(account: str, tokens: Sequence[str]) -> str:
    """ABI-encode a ``balances([account], tokens)`` call as 0x-hex."""
    arguments = encode(["address[]", "address[]"], [[account], list(tokens)])
    return "0x" + (BALANCES_SELECTOR + arguments).hex()


def decode_balances_result(result: str) -> list[int]:
    """Decode the uint256[] returned by ``balances``."""
    raw = bytes.fromhex(result[2:] if result.startswith("0x") else result)
    (balances,) = decode(["uint256[]"], raw)
    return list(balances)


class BalanceChecker:
    """Looks up token balances through the single-call balance contract.

    The context's provider must expose ``eth_call(to, data)`` returning
    the raw hex result (see JsonRpcClient).

    Attributes:
        contracts: Balance contract address per hex chain id.
    """

    def __init__(self, contracts: Mapping[str, str] | None = None) -> None:
        source = SINGLE_CALL_BALANCES_ADDRESSES if contracts is None else contracts
        self.contracts = {
            normalize_chain_id(chain_id): normalize_address(address)
            for chain_id, address in source.items()
        }

    def supports(self, chain_id: str) -> bool:
        return normalize_chain_id(chain_id) in self.contracts

    async def get_balances(
        self,
        addresses: Sequence[str],
        context: ChainContext,
        account: str,
    ) -> dict[str, int]:
        """Return non-zero balances of ``account`` keyed by token address.

        Raises:
            BalanceQueryError: If the chain has no balance contract, the
                inputs are invalid, or the call fails.
        """
        chain_id = normalize_chain_id(context.chain_id)
        if not addresses:
            return {}

        contract = self.contracts.get(chain_id)
        if contract is None:
            raise BalanceQueryError(
                f"No balance contract for chain {chain_id}",
                chain_id=chain_id,
                batch_size=len(addresses),
            )

        provider = context.provider
        if provider is None or not hasattr(provider, "eth_call"):
            raise BalanceQueryError(
                f"Context for {context.network_client_id} has no JSON-RPC provider",
                chain_id=chain_id,
                batch_size=len(addresses),
            )

        try:
            user = normalize_address(account)
            tokens = [normalize_address(address) for address in addresses]
        except ValidationError as e:
            raise BalanceQueryError(str(e), chain_id=chain_id, batch_size=len(addresses)) from e

        try:
            result = await provider.eth_call(contract, encode_balances_call(user, tokens))
            balances = decode_balances_result(result)
        except Exception as e:
            raise BalanceQueryError(
                f"balances() call failed on {chain_id}: {e}",
                chain_id=chain_id,
                batch_size=len(tokens),
            ) from e

        if len(balances) != len(tokens):
            raise BalanceQueryError(
                f"Expected {len(tokens)} balances, got {len(balances)}",
                chain_id=chain_id,
                batch_size=len(tokens),
            )

        held = {token: balance for token, balance in zip(tokens, balances) if balance > 0}
        log.debug("balances_fetched", chain_id=chain_id, queried=len(tokens), held=len(held))
        return held
