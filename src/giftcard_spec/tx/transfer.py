"""Transfer: convey title to a new owner. Balance and merchant are untouched."""

from __future__ import annotations

import logging
from copy import deepcopy

from .. import token_model
from ..errors import ErrorCode, SpecError
from ..types import ChainState, Transaction, TxContext, VoucherTransferred
from .common import load_voucher, payload_of, require_active, require_unexpired, to_address

logger = logging.getLogger(__name__)


def verify(state: ChainState, tx: Transaction, ctx: TxContext) -> None:
    p = payload_of(tx)
    to_address("new_owner", p.get("new_owner"))
    _, record = load_voucher(state, tx)

    if tx.source != record.current_owner:
        raise SpecError(ErrorCode.NOT_CURRENT_OWNER, "not the current owner")
    ctx.signer(tx.source)

    require_active(record)
    require_unexpired(record, ctx.now)


def apply(state: ChainState, tx: Transaction, ctx: TxContext) -> ChainState:
    ns = deepcopy(state)
    addr, record = load_voucher(ns, tx)
    new_owner = to_address("new_owner", tx.payload.get("new_owner"))
    owner = ctx.signer(record.current_owner)

    token_model.move(ns, record.token, owner.address, new_owner, owner)
    old_owner = record.current_owner
    record.current_owner = new_owner

    ns.events.append(
        VoucherTransferred(
            voucher=addr,
            from_owner=old_owner,
            to_owner=new_owner,
            token=record.token,
        )
    )
    logger.debug("transferred voucher %s to %s", addr.hex(), new_owner.hex())
    return ns
