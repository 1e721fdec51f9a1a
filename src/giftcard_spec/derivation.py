"""Content-addressed derivation of voucher, vault and holding addresses.

A voucher record lives at an address computed from its ownership token, so
any party can locate it without an index. The escrow vault's spending
authority is likewise computed, never held: `derive_authority` produces a
`VaultAuthority` whose proof only matches the record it was derived for.
"""

from __future__ import annotations

import hmac

from blake3 import blake3

from .config import ADDRESS_LEN, HOLDING_SEED, PROGRAM_ID, VAULT_SEED, VOUCHER_SEED
from .errors import ErrorCode, SpecError
from .types import VaultAuthority, VoucherRecord


def _expect_address(name: str, value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray)) or len(value) != ADDRESS_LEN:
        raise SpecError(ErrorCode.INVALID_ADDRESS, f"{name} must be {ADDRESS_LEN} bytes")


def voucher_address(token: bytes) -> bytes:
    _expect_address("token", token)
    buf = bytearray()
    buf += PROGRAM_ID
    buf += VOUCHER_SEED
    buf += token
    return blake3(buf).digest()


def vault_address(voucher: bytes) -> bytes:
    _expect_address("voucher", voucher)
    buf = bytearray()
    buf += PROGRAM_ID
    buf += VAULT_SEED
    buf += voucher
    return blake3(buf).digest()


def holding_address(owner: bytes, token: bytes) -> bytes:
    _expect_address("owner", owner)
    _expect_address("token", token)
    buf = bytearray()
    buf += HOLDING_SEED
    buf += owner
    buf += token
    return blake3(buf).digest()


def authority_proof(token: bytes) -> bytes:
    """Keyed hash binding the vault authority to this program and token."""
    _expect_address("token", token)
    return blake3(VOUCHER_SEED + token, key=PROGRAM_ID).digest()


def derive_authority(record: VoucherRecord) -> VaultAuthority:
    """Build the vault authority for `record`.

    Fails when the stored proof does not match the record's token, so a
    record cannot be pointed at another voucher's vault.
    """
    expected = authority_proof(record.token)
    if not hmac.compare_digest(expected, record.authority_proof):
        raise SpecError(ErrorCode.INVALID_AUTHORITY, "authority proof does not match record")
    voucher = voucher_address(record.token)
    if vault_address(voucher) != record.escrow_vault:
        raise SpecError(ErrorCode.INVALID_AUTHORITY, "escrow vault does not belong to record")
    return VaultAuthority(voucher=voucher, token=record.token, proof=expected)


def authority_controls(authority: VaultAuthority, voucher: bytes) -> bool:
    """Structural check that `authority` was derived for `voucher`."""
    if not isinstance(authority, VaultAuthority):
        return False
    if authority.voucher != voucher:
        return False
    if voucher_address(authority.token) != voucher:
        return False
    return hmac.compare_digest(authority_proof(authority.token), authority.proof)
