"""State transition entrypoints for the gift card model."""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Optional

from .derivation import voucher_address
from .errors import ErrorCode, SpecError
from .invariants import check_unchanged_terms, check_voucher
from .types import ChainState, Event, Transaction, TransactionType, TxContext
from .tx import issue as tx_issue
from .tx import reclaim as tx_reclaim
from .tx import redeem as tx_redeem
from .tx import transfer as tx_transfer
from .tx.common import to_address

logger = logging.getLogger(__name__)

_HANDLERS = {
    TransactionType.ISSUE: tx_issue,
    TransactionType.TRANSFER: tx_transfer,
    TransactionType.REDEEM: tx_redeem,
    TransactionType.RECLAIM: tx_reclaim,
}


class TransitionResult:
    """Thin wrapper for verify/apply results."""

    def __init__(
        self,
        ok: bool,
        error: Optional[SpecError] = None,
        events: Optional[list[Event]] = None,
    ):
        self.ok = ok
        self.error = error
        self.events = events or []

    @classmethod
    def success(cls, events: Optional[list[Event]] = None) -> "TransitionResult":
        return cls(True, None, events)

    @classmethod
    def failure(cls, error: SpecError) -> "TransitionResult":
        return cls(False, error)


def context_for(state: ChainState, tx: Transaction) -> TxContext:
    """Ambient context: ledger clock and the authenticated signer set."""
    return TxContext(
        now=state.global_state.timestamp,
        signers=frozenset([tx.source, *tx.signers]),
    )


def _handler(tx: Transaction):
    handler = _HANDLERS.get(tx.tx_type)
    if handler is None:
        raise SpecError(ErrorCode.NOT_IMPLEMENTED, f"unsupported tx type: {tx.tx_type}")
    return handler


def _touched_voucher(tx: Transaction) -> Optional[bytes]:
    if not isinstance(tx.payload, dict):
        return None
    try:
        token = to_address("token", tx.payload.get("token"))
    except SpecError:
        return None
    return voucher_address(token)


def _check_post_state(pre: ChainState, post: ChainState, tx: Transaction) -> None:
    addr = _touched_voucher(tx)
    if addr is None or addr not in post.vouchers:
        raise SpecError(ErrorCode.INTERNAL_ERROR, "transition left no voucher record")
    record = post.vouchers[addr]
    check_voucher(post, record)
    before = pre.vouchers.get(addr)
    if before is not None:
        check_unchanged_terms(
            before, record, owner_may_change=tx.tx_type == TransactionType.TRANSFER
        )


def verify_tx(state: ChainState, tx: Transaction) -> TransitionResult:
    """Stateful verification for a single tx, without applying it."""
    try:
        _handler(tx).verify(state, tx, context_for(state, tx))
        return TransitionResult.success()
    except SpecError as exc:
        return TransitionResult.failure(exc)


def apply_tx(state: ChainState, tx: Transaction) -> tuple[ChainState, TransitionResult]:
    """Apply tx to state after verification.

    Failed-tx semantics: every precondition is checked before any value or
    token movement, and execution works on a copy, so a failure at any point
    returns the input state unchanged.
    """
    ctx = context_for(state, tx)
    try:
        handler = _handler(tx)
        handler.verify(state, tx, ctx)
    except SpecError as exc:
        logger.info("rejected %s from %s: %s", tx.tx_type.value, tx.source.hex(), exc)
        return state, TransitionResult.failure(exc)

    working = deepcopy(state)
    try:
        working = handler.apply(working, tx, ctx)
        _check_post_state(state, working, tx)
    except SpecError as exc:
        logger.info("execution of %s failed: %s", tx.tx_type.value, exc)
        return state, TransitionResult.failure(exc)

    events = working.events[len(state.events):]
    logger.debug("applied %s (%d events)", tx.tx_type.value, len(events))
    return working, TransitionResult.success(list(events))


def apply_block(
    state: ChainState,
    txs: list[Transaction],
    timestamp: Optional[int] = None,
) -> tuple[ChainState, TransitionResult]:
    """Apply a block worth of transactions in order (block-atomic semantics).

    If any transaction fails, the entire block is rejected and the state is
    unchanged. `timestamp`, when given, becomes the ledger clock for the
    block and may not move backwards.
    """
    if timestamp is not None and timestamp < state.global_state.timestamp:
        return state, TransitionResult.failure(
            SpecError(ErrorCode.INVALID_PAYLOAD, "block timestamp moves backwards")
        )
    working = deepcopy(state)
    if timestamp is not None:
        working.global_state.timestamp = timestamp

    events: list[Event] = []
    for tx in txs:
        working, result = apply_tx(working, tx)
        if not result.ok:
            return state, result
        events.extend(result.events)

    working.global_state.block_height += 1
    return working, TransitionResult.success(events)


def advance_clock(state: ChainState, seconds: int) -> ChainState:
    """Return a copy of `state` with the ledger clock moved forward."""
    if seconds < 0:
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "clock cannot move backwards")
    ns = deepcopy(state)
    ns.global_state.timestamp += seconds
    return ns
