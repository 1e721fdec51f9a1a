"""Redeem: release escrowed value to the merchant, partially or fully.

The merchant redeems at the till holding the ownership token, so the card must
have been transferred to it first. A program configured with `redeem_by_role`
lets the merchant redeem on its role alone; it can then drain the balance
without holding title. On full redemption the token is burned from whoever
holds it, using the voucher authority registered as the mint's burn delegate.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Optional

from .. import account_model, token_model
from ..derivation import derive_authority
from ..errors import ErrorCode, SpecError
from ..types import ChainState, Transaction, TxContext, VoucherRecord, VoucherRedeemed, VoucherStatus
from .common import load_voucher, payload_of, require_active, require_unexpired

logger = logging.getLogger(__name__)


def _requested_amount(p: dict, record: VoucherRecord) -> int:
    amount: Optional[int] = p.get("amount")
    if amount is None:
        return record.remaining_balance
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "redeem amount must be a non-negative integer")
    return amount


def verify(state: ChainState, tx: Transaction, ctx: TxContext) -> None:
    p = payload_of(tx)
    _, record = load_voucher(state, tx)

    if tx.source != record.merchant:
        raise SpecError(ErrorCode.UNAUTHORIZED_MERCHANT, "unauthorized merchant")
    ctx.signer(tx.source)

    require_active(record)
    require_unexpired(record, ctx.now)

    if not state.program.redeem_by_role and record.current_owner != record.merchant:
        raise SpecError(ErrorCode.NOT_OWNED_BY_MERCHANT, "not owned by merchant")

    amount = _requested_amount(p, record)
    if amount > record.remaining_balance:
        raise SpecError(ErrorCode.INSUFFICIENT_BALANCE, "insufficient balance")


def apply(state: ChainState, tx: Transaction, ctx: TxContext) -> ChainState:
    ns = deepcopy(state)
    addr, record = load_voucher(ns, tx)
    amount = _requested_amount(tx.payload, record)
    merchant = ctx.signer(record.merchant)
    authority = derive_authority(record)

    if amount > 0:
        account_model.move(ns, amount, record.escrow_vault, merchant.address, authority)
    record.remaining_balance -= amount

    if record.remaining_balance == 0:
        token_model.burn(ns, record.token, record.current_owner, authority)
        record.status = VoucherStatus.REDEEMED

    ns.events.append(
        VoucherRedeemed(
            voucher=addr,
            merchant=merchant.address,
            amount=amount,
            remaining_balance=record.remaining_balance,
            token=record.token,
        )
    )
    logger.debug(
        "redeemed %d from voucher %s, remaining=%d",
        amount,
        addr.hex(),
        record.remaining_balance,
    )
    return ns
