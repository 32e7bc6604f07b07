"""
Lottery exceptions

Business errors raised by the core. The web gateway maps them to HTTP
responses through ``code`` and ``http_status``.
"""


class LotteryError(Exception):
    """Base class for all lottery errors"""
    code = "lottery_error"
    http_status = 400


# ============ Lifecycle ============

class StateNotInitialized(LotteryError):
    """An operation was invoked before the game state was set up"""
    code = "state_not_initialized"
    http_status = 503

    def __init__(self):
        super().__init__("Game state has not been initialized")


class StateAlreadyInitialized(LotteryError):
    """The one-time setup was invoked twice"""
    code = "state_already_initialized"
    http_status = 409

    def __init__(self):
        super().__init__("Game state is already initialized")


# ============ Rounds ============

class RoundTooSoon(LotteryError):
    """The cooldown since the last round closure has not elapsed"""
    code = "round_too_soon"
    http_status = 409

    def __init__(self, now, next_allowed):
        self.now = now
        self.next_allowed = next_allowed
        super().__init__(f"Round cannot start before {next_allowed} (now {now})")


# ============ Entries ============

class InvalidEntry(LotteryError):
    """Round count or stake is out of range"""
    code = "invalid_entry"


class InvalidAddress(LotteryError):
    """Caller or lookup address is not a valid account address"""
    code = "invalid_address"

    def __init__(self, address):
        self.address = address
        super().__init__(f"Invalid address: {address!r}")


# ============ Funds ============

class InsufficientFunds(LotteryError):
    """The treasury cannot satisfy a withdrawal or payout"""
    code = "insufficient_funds"
    http_status = 402

    def __init__(self, address, requested, available):
        self.address = address
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient funds for {address}: requested {requested}, available {available}")


class NoUnclaimedPrize(LotteryError):
    """Claim attempted with a zero unclaimed balance"""
    code = "no_unclaimed_prize"
    http_status = 404

    def __init__(self, address):
        self.address = address
        super().__init__(f"No unclaimed prize for {address}")
