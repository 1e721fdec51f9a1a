"""Helpers shared by the voucher transaction handlers."""

from __future__ import annotations

from ..config import ADDRESS_LEN
from ..derivation import voucher_address
from ..encoding import record_hash
from ..errors import ErrorCode, SpecError
from ..types import ChainState, Transaction, VoucherRecord, VoucherStatus


def to_address(name: str, v: object) -> bytes:
    if isinstance(v, (list, tuple)):
        v = bytes(v)
    if not isinstance(v, (bytes, bytearray)) or len(v) != ADDRESS_LEN:
        raise SpecError(ErrorCode.INVALID_ADDRESS, f"{name} must be {ADDRESS_LEN} bytes")
    return bytes(v)


def payload_of(tx: Transaction) -> dict:
    if not isinstance(tx.payload, dict):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, f"{tx.tx_type.value} payload must be dict")
    return tx.payload


def load_voucher(state: ChainState, tx: Transaction) -> tuple[bytes, VoucherRecord]:
    token = to_address("token", payload_of(tx).get("token"))
    addr = voucher_address(token)
    record = state.vouchers.get(addr)
    if record is None:
        raise SpecError(ErrorCode.VOUCHER_NOT_FOUND, "voucher not found")
    if tx.record_hash is not None and tx.record_hash != record_hash(record):
        raise SpecError(ErrorCode.STALE_RECORD, "voucher changed since it was read")
    return addr, record


def require_active(record: VoucherRecord) -> None:
    if record.status != VoucherStatus.ACTIVE:
        raise SpecError(ErrorCode.GIFT_CARD_NOT_ACTIVE, "gift card is not active")


def require_unexpired(record: VoucherRecord, now: int) -> None:
    if now >= record.expiry_at:
        raise SpecError(ErrorCode.GIFT_CARD_EXPIRED, "gift card has expired")
