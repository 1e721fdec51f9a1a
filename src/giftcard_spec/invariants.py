"""Post-transition invariant checks for voucher records."""

from __future__ import annotations

from .errors import ErrorCode, SpecError
from .token_model import holder_of, supply_of
from .types import ChainState, VoucherRecord, VoucherStatus


def _fail(message: str) -> SpecError:
    return SpecError(ErrorCode.INTERNAL_ERROR, f"invariant violated: {message}")


def check_voucher(state: ChainState, record: VoucherRecord) -> None:
    if record.remaining_balance < 0:
        raise _fail("remaining_balance negative")
    if record.remaining_balance > record.original_amount:
        raise _fail("remaining_balance exceeds original_amount")
    if record.expiry_at <= record.created_at:
        raise _fail("expiry_at not after created_at")

    supply = supply_of(state, record.token)
    if record.status == VoucherStatus.ACTIVE:
        if supply != 1:
            raise _fail("active voucher must have exactly one token")
        if holder_of(state, record.token) != record.current_owner:
            raise _fail("current_owner does not hold the token")
    else:
        if record.remaining_balance != 0:
            raise _fail(f"{record.status.name} voucher has remaining balance")
        if supply != 0:
            raise _fail(f"{record.status.name} voucher token not burned")


_FIXED_TERMS = (
    "issuer",
    "merchant",
    "merchant_name",
    "original_amount",
    "expiry_at",
    "token",
    "escrow_vault",
    "created_at",
)


def check_unchanged_terms(
    before: VoucherRecord, after: VoucherRecord, owner_may_change: bool = False
) -> None:
    """Terms are fixed at issuance; only Transfer moves `current_owner`."""
    for name in _FIXED_TERMS:
        if getattr(before, name) != getattr(after, name):
            raise _fail(f"{name} changed after issue")
    if not owner_may_change and before.current_owner != after.current_owner:
        raise _fail("current_owner changed outside transfer")
    if before.remaining_balance < after.remaining_balance:
        raise _fail("remaining_balance increased")
    if before.status != VoucherStatus.ACTIVE and before != after:
        raise _fail("terminal voucher mutated")
