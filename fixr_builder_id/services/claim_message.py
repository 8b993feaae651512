"""Claim message construction, freshness and signature checks"""
import logging
import re
import time
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from fixr_builder_id.errors import ClaimError, ClaimErrorCode
from fixr_builder_id.models.profile import normalize_address

logger = logging.getLogger(__name__)

CLAIM_MESSAGE_TTL_MS = 5 * 60 * 1000

SIGNATURE_PATTERN = re.compile(r'^[0-9a-fA-F]{130}$')
SECP256K1_N = int('FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141', 16)

CLAIM_MESSAGE_TEMPLATE = (
    "I am claiming my Builder ID NFT on {product}.\n"
    "\n"
    "FID: {fid}\n"
    "Username: @{username}\n"
    "Wallet: {wallet}\n"
    "Timestamp: {timestamp}\n"
    "\n"
    "This signature proves I own this wallet and authorize the Builder ID claim."
)

def now_ms() -> int:
    return int(time.time() * 1000)

def build_claim_message(fid: int, wallet_address: str, username: str, timestamp: int,
                        product: str = "Fixr") -> str:
    """Deterministic text the wallet signs before minting"""
    return CLAIM_MESSAGE_TEMPLATE.format(
        product=product,
        fid=fid,
        username=username,
        wallet=wallet_address.lower(),
        timestamp=timestamp,
    )

def is_message_fresh(timestamp: int, now: int, ttl_ms: int = CLAIM_MESSAGE_TTL_MS) -> bool:
    return abs(now - timestamp) <= ttl_ms

def check_signature_format(signature: Optional[str]) -> bool:
    """Structural check only: 65 bytes of hex with sane r, s and v"""
    if not isinstance(signature, str):
        return False
    sig = signature[2:] if signature.startswith('0x') else signature
    if not SIGNATURE_PATTERN.match(sig):
        logger.error(f"Invalid signature length: {len(sig)}")
        return False

    r = int(sig[0:64], 16)
    s = int(sig[64:128], 16)
    v = int(sig[128:130], 16)
    if v < 27:
        v += 27
    return 0 < r < SECP256K1_N and 0 < s < SECP256K1_N and v in (27, 28)

def recover_signer(message: str, signature: str) -> Optional[str]:
    """EIP-191 personal_sign recovery; returns the lower-cased signer or None"""
    if not check_signature_format(signature):
        return None
    try:
        signer = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as e:
        logger.error(f"Signature recovery failed: {e}")
        return None
    return signer.lower()

def verify_claim_signature(message: str, signature: str, wallet_address: str, timestamp: int,
                           now: Optional[int] = None, strict: bool = True,
                           ttl_ms: int = CLAIM_MESSAGE_TTL_MS) -> None:
    """
    Supplementary check on a signed claim message.

    Raises ClaimError(MESSAGE_EXPIRED) outside the freshness window and
    ClaimError(INVALID_SIGNATURE) when the signature is malformed or, in strict
    mode, was not produced by wallet_address.
    """
    now = now_ms() if now is None else now
    if not is_message_fresh(timestamp, now, ttl_ms):
        raise ClaimError(ClaimErrorCode.MESSAGE_EXPIRED)

    if not check_signature_format(signature):
        raise ClaimError(ClaimErrorCode.INVALID_SIGNATURE, "Invalid signature format.")

    if not strict:
        return

    signer = recover_signer(message, signature)
    if signer is None or signer != normalize_address(wallet_address):
        logger.warning(f"Signature signer {signer} does not match wallet {wallet_address}")
        raise ClaimError(ClaimErrorCode.INVALID_SIGNATURE, "Signature was not made by this wallet.")
