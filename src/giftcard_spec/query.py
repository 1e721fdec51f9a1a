"""Read path: stateless inspection of voucher records."""

from __future__ import annotations

from copy import deepcopy
from typing import Iterator, Optional

from .derivation import voucher_address
from .errors import ErrorCode, SpecError
from .types import ChainState, VoucherRecord, VoucherStatus


def find_voucher(state: ChainState, token: bytes) -> Optional[VoucherRecord]:
    return state.vouchers.get(voucher_address(token))


def inspect(state: ChainState, token: bytes) -> VoucherRecord:
    """Return a copy of the full voucher record for `token`."""
    record = find_voucher(state, token)
    if record is None:
        raise SpecError(ErrorCode.VOUCHER_NOT_FOUND, "voucher not found")
    return deepcopy(record)


def is_expired(record: VoucherRecord, now: int) -> bool:
    return now >= record.expiry_at


def status_lines(record: VoucherRecord) -> list[str]:
    return [
        "Gift Card Status:",
        f"  Token: {record.token.hex()}",
        f"  Issuer: {record.issuer.hex()}",
        f"  Current Owner: {record.current_owner.hex()}",
        f"  Merchant: {record.merchant.hex()}",
        f"  Merchant Name: {record.merchant_name}",
        f"  Original Amount: {record.original_amount}",
        f"  Remaining Balance: {record.remaining_balance}",
        f"  Status: {record.status.name.title()}",
        f"  Created At: {record.created_at}",
        f"  Expiry: {record.expiry_at}",
    ]


def list_vouchers(
    state: ChainState,
    owner: Optional[bytes] = None,
    merchant: Optional[bytes] = None,
    issuer: Optional[bytes] = None,
    status: Optional[VoucherStatus] = None,
) -> Iterator[tuple[bytes, VoucherRecord]]:
    """Yield (address, record) pairs matching every given filter."""
    for addr, record in sorted(state.vouchers.items()):
        if owner is not None and record.current_owner != owner:
            continue
        if merchant is not None and record.merchant != merchant:
            continue
        if issuer is not None and record.issuer != issuer:
            continue
        if status is not None and record.status != status:
            continue
        yield addr, record
