"""Persisted voucher record layout.

An 8-byte discriminator followed by the record fields in declaration order,
big-endian integers, strings as u32 length + UTF-8.
"""

from __future__ import annotations

from dataclasses import dataclass

from blake3 import blake3

from .config import (
    ACCOUNT_DISCRIMINATOR_PREIMAGE,
    ADDRESS_LEN,
    I64_MAX,
    I64_MIN,
    MAX_MERCHANT_NAME_LEN,
    U64_MAX,
)
from .errors import ErrorCode, SpecError
from .types import VoucherRecord, VoucherStatus

DISCRIMINATOR = blake3(ACCOUNT_DISCRIMINATOR_PREIMAGE).digest()[:8]


@dataclass
class Writer:
    buf: bytearray

    def write_u8(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(1, "big", signed=False))

    def write_u32(self, v: int) -> None:
        self.buf.extend(int(v).to_bytes(4, "big", signed=False))

    def write_u64(self, v: int) -> None:
        if v < 0 or v > U64_MAX:
            raise SpecError(ErrorCode.OVERFLOW, "u64 out of range")
        self.buf.extend(int(v).to_bytes(8, "big", signed=False))

    def write_i64(self, v: int) -> None:
        if v < I64_MIN or v > I64_MAX:
            raise SpecError(ErrorCode.OVERFLOW, "i64 out of range")
        self.buf.extend(int(v).to_bytes(8, "big", signed=True))

    def write_bytes(self, b: bytes) -> None:
        self.buf.extend(b)

    def write_str(self, s: str) -> None:
        raw = s.encode("utf-8")
        self.write_u32(len(raw))
        self.write_bytes(raw)


@dataclass
class Reader:
    data: bytes
    pos: int = 0

    def read_bytes(self, n: int) -> bytes:
        end = self.pos + n
        if end > len(self.data):
            raise SpecError(ErrorCode.INVALID_FORMAT, "unexpected end of data")
        out = self.data[self.pos:end]
        self.pos = end
        return out

    def read_u8(self) -> int:
        return self.read_bytes(1)[0]

    def read_u32(self) -> int:
        return int.from_bytes(self.read_bytes(4), "big", signed=False)

    def read_u64(self) -> int:
        return int.from_bytes(self.read_bytes(8), "big", signed=False)

    def read_i64(self) -> int:
        return int.from_bytes(self.read_bytes(8), "big", signed=True)

    def read_str(self) -> str:
        size = self.read_u32()
        try:
            return self.read_bytes(size).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SpecError(ErrorCode.INVALID_FORMAT, "string is not utf-8") from exc

    def done(self) -> bool:
        return self.pos == len(self.data)


def _write_address(w: Writer, name: str, value: bytes) -> None:
    if len(value) != ADDRESS_LEN:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"{name} must be {ADDRESS_LEN} bytes")
    w.write_bytes(value)


def encode_voucher(record: VoucherRecord) -> bytes:
    if len(record.merchant_name) > MAX_MERCHANT_NAME_LEN:
        raise SpecError(ErrorCode.NAME_TOO_LONG, "merchant_name too long")
    w = Writer(bytearray())
    w.write_bytes(DISCRIMINATOR)
    _write_address(w, "issuer", record.issuer)
    _write_address(w, "current_owner", record.current_owner)
    _write_address(w, "merchant", record.merchant)
    w.write_str(record.merchant_name)
    w.write_u64(record.original_amount)
    w.write_u64(record.remaining_balance)
    _write_address(w, "token", record.token)
    _write_address(w, "escrow_vault", record.escrow_vault)
    w.write_i64(record.created_at)
    w.write_i64(record.expiry_at)
    w.write_u8(int(record.status))
    _write_address(w, "authority_proof", record.authority_proof)
    return bytes(w.buf)


def decode_voucher(data: bytes) -> VoucherRecord:
    r = Reader(bytes(data))
    if r.read_bytes(len(DISCRIMINATOR)) != DISCRIMINATOR:
        raise SpecError(ErrorCode.INVALID_FORMAT, "account discriminator mismatch")

    issuer = r.read_bytes(ADDRESS_LEN)
    current_owner = r.read_bytes(ADDRESS_LEN)
    merchant = r.read_bytes(ADDRESS_LEN)
    merchant_name = r.read_str()
    if len(merchant_name) > MAX_MERCHANT_NAME_LEN:
        raise SpecError(ErrorCode.INVALID_FORMAT, "merchant_name too long")
    original_amount = r.read_u64()
    remaining_balance = r.read_u64()
    token = r.read_bytes(ADDRESS_LEN)
    escrow_vault = r.read_bytes(ADDRESS_LEN)
    created_at = r.read_i64()
    expiry_at = r.read_i64()
    raw_status = r.read_u8()
    try:
        status = VoucherStatus(raw_status)
    except ValueError as exc:
        raise SpecError(ErrorCode.INVALID_FORMAT, f"unknown status {raw_status}") from exc
    proof = r.read_bytes(ADDRESS_LEN)
    if not r.done():
        raise SpecError(ErrorCode.INVALID_FORMAT, "trailing bytes after record")

    return VoucherRecord(
        issuer=issuer,
        current_owner=current_owner,
        merchant=merchant,
        merchant_name=merchant_name,
        original_amount=original_amount,
        remaining_balance=remaining_balance,
        token=token,
        escrow_vault=escrow_vault,
        created_at=created_at,
        expiry_at=expiry_at,
        status=status,
        authority_proof=proof,
    )


def record_hash(record: VoucherRecord) -> bytes:
    """Hash of the persisted encoding, used as an optimistic lock."""
    return blake3(encode_voucher(record)).digest()
