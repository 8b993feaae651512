import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_hex

from fixr_builder_id.errors import ClaimError, ClaimErrorCode
from fixr_builder_id.services.claim_message import (
    CLAIM_MESSAGE_TTL_MS,
    build_claim_message,
    check_signature_format,
    is_message_fresh,
    recover_signer,
    verify_claim_signature,
)

from conftest import NOW_MS, OTHER_WALLET, VERIFIED_WALLET

SIGNER = Account.from_key('0x' + '4c' * 32)

def sign(message: str, account=SIGNER) -> str:
    return to_hex(account.sign_message(encode_defunct(text=message)).signature)

def test_message_layout():
    message = build_claim_message(1234, VERIFIED_WALLET, "alice", NOW_MS)

    assert message == (
        "I am claiming my Builder ID NFT on Fixr.\n"
        "\n"
        "FID: 1234\n"
        "Username: @alice\n"
        f"Wallet: {VERIFIED_WALLET.lower()}\n"
        f"Timestamp: {NOW_MS}\n"
        "\n"
        "This signature proves I own this wallet and authorize the Builder ID claim."
    )

def test_message_is_deterministic():
    first = build_claim_message(1234, VERIFIED_WALLET, "alice", NOW_MS)
    second = build_claim_message(1234, VERIFIED_WALLET.lower(), "alice", NOW_MS)

    assert first == second

def test_message_changes_with_every_input():
    base = build_claim_message(1234, VERIFIED_WALLET, "alice", NOW_MS)

    assert build_claim_message(1235, VERIFIED_WALLET, "alice", NOW_MS) != base
    assert build_claim_message(1234, OTHER_WALLET, "alice", NOW_MS) != base
    assert build_claim_message(1234, VERIFIED_WALLET, "bob", NOW_MS) != base
    assert build_claim_message(1234, VERIFIED_WALLET, "alice", NOW_MS + 1) != base
    assert build_claim_message(1234, VERIFIED_WALLET, "alice", NOW_MS, product="Shipyard") != base

@pytest.mark.parametrize("offset,fresh", [
    (0, True),
    (CLAIM_MESSAGE_TTL_MS, True),
    (CLAIM_MESSAGE_TTL_MS + 1, False),
    (-CLAIM_MESSAGE_TTL_MS, True),
    (-CLAIM_MESSAGE_TTL_MS - 1, False),
])
def test_freshness_window_boundaries(offset, fresh):
    assert is_message_fresh(NOW_MS, NOW_MS + offset) is fresh

def test_message_signed_six_minutes_ago_is_expired():
    message = build_claim_message(1234, SIGNER.address, "alice", NOW_MS)

    with pytest.raises(ClaimError) as exc_info:
        verify_claim_signature(message, sign(message), SIGNER.address, NOW_MS, now=NOW_MS + 6 * 60 * 1000)

    assert exc_info.value.code == ClaimErrorCode.MESSAGE_EXPIRED
    assert exc_info.value.retryable is True

def test_signature_format():
    signature = sign("hello")

    assert check_signature_format(signature) is True
    assert check_signature_format(signature[2:]) is True
    assert check_signature_format(signature[:-2]) is False
    assert check_signature_format("0x" + "00" * 65) is False
    assert check_signature_format(None) is False
    assert check_signature_format("0x" + "zz" * 65) is False

def test_signature_format_accepts_zero_based_recovery_id():
    signature = sign("hello")
    v = int(signature[-2:], 16)

    assert check_signature_format(signature[:-2] + format(v - 27, '02x')) is True
    assert check_signature_format(signature[:-2] + '1d') is False

def test_recover_signer_returns_lowercase_address():
    message = build_claim_message(1234, SIGNER.address, "alice", NOW_MS)

    assert recover_signer(message, sign(message)) == SIGNER.address.lower()

def test_strict_verification_accepts_matching_wallet():
    message = build_claim_message(1234, SIGNER.address, "alice", NOW_MS)

    verify_claim_signature(message, sign(message), SIGNER.address.upper().replace('0X', '0x'), NOW_MS, now=NOW_MS + 1000)

def test_strict_verification_rejects_other_signer():
    message = build_claim_message(1234, SIGNER.address, "alice", NOW_MS)
    intruder = Account.from_key('0x' + '7e' * 32)

    with pytest.raises(ClaimError) as exc_info:
        verify_claim_signature(message, sign(message, intruder), SIGNER.address, NOW_MS, now=NOW_MS)

    assert exc_info.value.code == ClaimErrorCode.INVALID_SIGNATURE

def test_strict_verification_rejects_tampered_message():
    message = build_claim_message(1234, SIGNER.address, "alice", NOW_MS)
    tampered = build_claim_message(9999, SIGNER.address, "alice", NOW_MS)

    with pytest.raises(ClaimError) as exc_info:
        verify_claim_signature(tampered, sign(message), SIGNER.address, NOW_MS, now=NOW_MS)

    assert exc_info.value.code == ClaimErrorCode.INVALID_SIGNATURE

def test_format_only_mode_accepts_any_well_formed_signature():
    message = build_claim_message(1234, SIGNER.address, "alice", NOW_MS)
    intruder = Account.from_key('0x' + '7e' * 32)

    verify_claim_signature(message, sign(message, intruder), SIGNER.address, NOW_MS, now=NOW_MS, strict=False)

def test_format_only_mode_still_rejects_malformed_signature():
    message = build_claim_message(1234, SIGNER.address, "alice", NOW_MS)

    with pytest.raises(ClaimError) as exc_info:
        verify_claim_signature(message, "0x1234", SIGNER.address, NOW_MS, now=NOW_MS, strict=False)

    assert exc_info.value.code == ClaimErrorCode.INVALID_SIGNATURE
