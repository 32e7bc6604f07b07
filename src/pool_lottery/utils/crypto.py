"""
Cryptographic utilities: secure randomness and signed-request verification
"""

import secrets
from typing import Any, Dict

from eth_account import Account
from eth_account.messages import encode_defunct

from pool_lottery.utils.logger import get_logger

logger = get_logger(__name__)

AUTH_MESSAGE_PREFIX = "pool-lottery"


class SecureRandom:
    """Cryptographically secure random number generator"""

    @staticmethod
    def uniform(low: int, high_exclusive: int) -> int:
        """Return a uniformly distributed integer in [low, high_exclusive)"""
        if high_exclusive <= low:
            raise ValueError(f"Empty range [{low}, {high_exclusive})")
        return low + secrets.randbelow(high_exclusive - low)


def build_auth_message(action: str, address: str, nonce: int, params: Dict[str, Any] = None) -> str:
    """Canonical text a client signs to authenticate one request.

    Parameters are sorted by name so client and server agree on the bytes.
    """
    rendered = ",".join(f"{key}={params[key]}" for key in sorted(params or {}))
    return f"{AUTH_MESSAGE_PREFIX}:{action}:{address}:{rendered}:{nonce}"


def sign_auth_message(private_key: str, message: str) -> str:
    """Sign ``message`` as an EIP-191 personal message; returns 0x-prefixed hex"""
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    return "0x" + bytes(signed.signature).hex()


def recover_signer(message: str, signature: str) -> str:
    """Return the checksummed address that produced ``signature`` over ``message``"""
    return Account.recover_message(encode_defunct(text=message), signature=signature)
