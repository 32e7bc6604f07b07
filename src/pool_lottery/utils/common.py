"""Common utility functions for the lottery backend."""

from web3 import Web3

from pool_lottery.lottery.exceptions import InvalidAddress


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksummed form of ``address``.

    Raises InvalidAddress for anything that is not a 20-byte hex address.
    """
    if not isinstance(address, str) or not Web3.is_address(address):
        raise InvalidAddress(address)
    return Web3.to_checksum_address(address)


def shorten_address(address: str) -> str:
    """Shorten an address for display: '0x123456...abcd'.
    Returns the first 6 and last 4 characters, separated by '...'.
    Handles addresses with or without '0x' prefix.
    """
    if not address:
        return ""
    addr = address.lower()
    if addr.startswith("0x"):
        addr = addr[2:]
    # Always add 0x prefix
    if len(addr) < 10:
        return f"0x{addr}"  # too short to shorten, but ensure 0x
    return f"0x{addr[:6]}...{addr[-4:]}"
