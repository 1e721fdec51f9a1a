"""Canonical state digest implementation (v1)."""
from __future__ import annotations

from blake3 import blake3

from .encoding import encode_voucher
from .types import ChainState


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def compute_state_digest(state: ChainState) -> str:
    """Compute state digest v1.

    Global state, accounts, token holdings and encoded voucher records are
    hashed in canonical (address-sorted) order with BLAKE3-256. The event log
    is not part of the digest.
    """
    buf = bytearray()
    buf += _u64_be(state.global_state.block_height)
    buf += _u64_be(state.global_state.timestamp)

    for addr, acct in sorted(state.accounts.items()):
        buf += addr
        buf += _u64_be(acct.balance)
        buf += acct.owner if acct.owner is not None else bytes(32)

    for addr, holding in sorted(state.token_holdings.items()):
        buf += addr
        buf += holding.token
        buf += holding.owner
        buf += _u64_be(holding.amount)

    for addr, record in sorted(state.vouchers.items()):
        data = encode_voucher(record)
        buf += addr
        buf += _u64_be(len(data))
        buf += data

    return blake3(buf).hexdigest()
