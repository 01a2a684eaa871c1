"""EVM address format helpers."""

from __future__ import annotations

from eth_utils import is_checksum_address, is_hex_address, to_checksum_address


def is_valid_address(address: str) -> bool:
    """
    Check that a string is a well-formed EVM address.

    Syntactic check only: 0x prefix, 40 hex digits, and a valid EIP-55
    checksum when the address uses mixed case. Says nothing about whether
    the address is reachable or owned by anyone.
    """
    if not isinstance(address, str):
        return False
    address = address.strip()
    if not address.startswith("0x") or not is_hex_address(address):
        return False

    body = address[2:]
    if body.islower() or body.isupper() or body.isdigit():
        return True
    return is_checksum_address(address)


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksummed form of a valid address."""
    return to_checksum_address(address.strip())
