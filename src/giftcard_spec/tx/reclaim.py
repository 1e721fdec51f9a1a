"""Reclaim: settle an expired voucher, returning unredeemed value to the issuer."""

from __future__ import annotations

import logging
from copy import deepcopy

from .. import account_model, token_model
from ..derivation import derive_authority
from ..errors import ErrorCode, SpecError
from ..types import ChainState, Transaction, TxContext, VoucherExpired, VoucherStatus
from .common import load_voucher, payload_of, require_active

logger = logging.getLogger(__name__)


def verify(state: ChainState, tx: Transaction, ctx: TxContext) -> None:
    payload_of(tx)
    _, record = load_voucher(state, tx)
    ctx.signer(tx.source)

    require_active(record)
    if ctx.now < record.expiry_at:
        raise SpecError(ErrorCode.GIFT_CARD_NOT_EXPIRED, "gift card has not expired yet")

    # The holder presents the expired card; the burn needs their holding.
    if tx.source != record.current_owner:
        raise SpecError(ErrorCode.NOT_CURRENT_OWNER, "only the holder can close the gift card")


def apply(state: ChainState, tx: Transaction, ctx: TxContext) -> ChainState:
    ns = deepcopy(state)
    addr, record = load_voucher(ns, tx)
    holder = ctx.signer(tx.source)
    authority = derive_authority(record)

    reclaimed = record.remaining_balance
    if reclaimed > 0:
        account_model.move(ns, reclaimed, record.escrow_vault, record.issuer, authority)

    token_model.burn(ns, record.token, holder.address, holder)
    record.remaining_balance = 0
    record.status = VoucherStatus.EXPIRED

    ns.events.append(
        VoucherExpired(
            voucher=addr,
            issuer=record.issuer,
            reclaimed_amount=reclaimed,
            token=record.token,
        )
    )
    logger.debug("reclaimed %d from voucher %s to issuer", reclaimed, addr.hex())
    return ns
