"""EVM address helpers.

Every address that crosses the detection core is passed through
``normalize_address`` so comparisons are never case-sensitive.
"""

from collections.abc import Iterable

from eth_utils import is_address, to_checksum_address

from tokenwatch.core.exceptions import ValidationError


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksummed form of ``address``.

    Args:
        address: Hex address in any letter case.

    Returns:
        Checksummed address.

    Raises:
        ValidationError: If ``address`` is not a 20-byte hex address.

    Example:
        >>> normalize_address("0x514910771af9ca656af840dff83e8264ecf986ca")
        '0x514910771AF9Ca656af840dff83E8264EcF986CA'
    """
    if not isinstance(address, str) or not is_address(address):
        raise ValidationError(f"Not an EVM address: {address!r}")
    return to_checksum_address(address)


def normalize_addresses(addresses: Iterable[str]) -> set[str]:
    """Normalize a collection of addresses into a set.

    Malformed entries are dropped; callers only use the result for
    membership tests.
    """
    normalized: set[str] = set()
    for address in addresses:
        try:
            normalized.add(normalize_address(address))
        except ValidationError:
            continue
    return normalized


def truncate_address(address: str) -> str:
    """Truncate an address for log output: 0x5149...86CA."""
    if len(address) > 12:
        return f"{address[:6]}...{address[-4:]}"
    return address
