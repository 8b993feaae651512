"""Error taxonomy for the Builder ID claim flow"""
from enum import Enum
from typing import Any, Dict, Optional

class ClaimErrorCode(str, Enum):
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    WALLET_NOT_VERIFIED = "WALLET_NOT_VERIFIED"
    MESSAGE_EXPIRED = "MESSAGE_EXPIRED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    NETWORK_MISMATCH = "NETWORK_MISMATCH"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    USER_CANCELLED = "USER_CANCELLED"
    WALLET_UNAVAILABLE = "WALLET_UNAVAILABLE"
    DUPLICATE_CLAIM = "DUPLICATE_CLAIM"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"

# Codes a caller may retry without changing anything on its side
RETRYABLE_CODES = {
    ClaimErrorCode.PROFILE_NOT_FOUND,
    ClaimErrorCode.MESSAGE_EXPIRED,
    ClaimErrorCode.NETWORK_MISMATCH,
    ClaimErrorCode.WALLET_UNAVAILABLE,
    ClaimErrorCode.STORAGE_UNAVAILABLE,
}

DEFAULT_MESSAGES = {
    ClaimErrorCode.PROFILE_NOT_FOUND: "Could not load a Farcaster profile for this FID.",
    ClaimErrorCode.WALLET_NOT_VERIFIED: "This wallet is not verified for your Farcaster account. Please verify this wallet on Farcaster first.",
    ClaimErrorCode.MESSAGE_EXPIRED: "Signature expired. Please sign again.",
    ClaimErrorCode.INVALID_SIGNATURE: "Invalid signature.",
    ClaimErrorCode.NETWORK_MISMATCH: "Please switch your wallet to the Base network.",
    ClaimErrorCode.INSUFFICIENT_BALANCE: "Insufficient balance to mint the Builder ID.",
    ClaimErrorCode.USER_CANCELLED: "Transaction cancelled.",
    ClaimErrorCode.WALLET_UNAVAILABLE: "Your wallet could not complete the request. Please try again.",
    ClaimErrorCode.DUPLICATE_CLAIM: "A Builder ID was already claimed for this FID.",
    ClaimErrorCode.STORAGE_UNAVAILABLE: "Builder ID storage is temporarily unavailable. Please try again.",
}

class ClaimError(Exception):
    """
    Raised by claim flow components for expected, user-actionable failures.

    The message is safe to show to end users; internal causes are only logged.
    """

    def __init__(self, code: ClaimErrorCode, message: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message or DEFAULT_MESSAGES[code]
        self.details = details or {}
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code.value,
            'message': self.message,
            'retryable': self.retryable,
            'details': self.details,
        }

class WalletProviderError(Exception):
    """EIP-1193 provider error (4001 user rejected, 4902 unrecognized chain, ...)"""

    USER_REJECTED = 4001
    UNRECOGNIZED_CHAIN = 4902

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")
