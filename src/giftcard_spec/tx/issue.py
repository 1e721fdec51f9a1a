"""Issue: lock value in a fresh escrow vault and mint the ownership token."""

from __future__ import annotations

import logging
from copy import deepcopy

from .. import account_model, token_model
from ..config import (
    I64_MAX,
    MAX_MERCHANT_NAME_LEN,
    METADATA_NAME_PREFIX,
    METADATA_SYMBOL,
    U64_MAX,
)
from ..derivation import authority_proof, derive_authority, vault_address, voucher_address
from ..errors import ErrorCode, SpecError
from ..types import (
    ChainState,
    Transaction,
    TxContext,
    VoucherIssued,
    VoucherRecord,
    VoucherStatus,
)
from .common import payload_of, to_address

logger = logging.getLogger(__name__)


def verify(state: ChainState, tx: Transaction, ctx: TxContext) -> None:
    p = payload_of(tx)

    amount = p.get("amount", 0)
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "amount must be greater than 0")
    if amount > U64_MAX:
        raise SpecError(ErrorCode.OVERFLOW, "amount exceeds u64 max")

    expiry_at = p.get("expiry_at", 0)
    if not isinstance(expiry_at, int) or expiry_at <= ctx.now:
        raise SpecError(ErrorCode.INVALID_EXPIRY, "expiry must be in the future")
    if expiry_at > I64_MAX:
        raise SpecError(ErrorCode.OVERFLOW, "expiry exceeds i64 max")

    merchant_name = p.get("merchant_name", "")
    if not isinstance(merchant_name, str):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "merchant_name must be a string")
    if len(merchant_name) > MAX_MERCHANT_NAME_LEN:
        raise SpecError(ErrorCode.NAME_TOO_LONG, "merchant name too long")

    if not isinstance(p.get("uri", ""), str):
        raise SpecError(ErrorCode.INVALID_PAYLOAD, "uri must be a string")

    to_address("merchant", p.get("merchant"))
    token = to_address("token", p.get("token"))

    # The issuer funds the escrow; the fresh token identity proves it is unused.
    ctx.signer(tx.source)
    ctx.signer(token)

    if voucher_address(token) in state.vouchers:
        raise SpecError(ErrorCode.VOUCHER_EXISTS, "voucher already issued for token")
    if token in state.token_mints:
        raise SpecError(ErrorCode.TOKEN_EXISTS, "token already exists")

    issuer = state.accounts.get(tx.source)
    if issuer is None:
        raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "issuer account not found")
    if issuer.balance < amount:
        raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "issuer cannot fund the voucher")


def apply(state: ChainState, tx: Transaction, ctx: TxContext) -> ChainState:
    ns = deepcopy(state)
    p = tx.payload
    amount = p["amount"]
    merchant = to_address("merchant", p.get("merchant"))
    token = to_address("token", p.get("token"))
    merchant_name = p.get("merchant_name", "")
    issuer = ctx.signer(tx.source)

    addr = voucher_address(token)
    record = VoucherRecord(
        issuer=issuer.address,
        current_owner=issuer.address,
        merchant=merchant,
        merchant_name=merchant_name,
        original_amount=amount,
        remaining_balance=amount,
        token=token,
        escrow_vault=vault_address(addr),
        created_at=ctx.now,
        expiry_at=p["expiry_at"],
        status=VoucherStatus.ACTIVE,
        authority_proof=authority_proof(token),
    )
    authority = derive_authority(record)
    ns.vouchers[addr] = record

    account_model.open_vault(ns, record.escrow_vault, addr)
    account_model.move(ns, amount, issuer.address, record.escrow_vault, issuer)

    token_model.create_mint(ns, token, issuer, burn_delegate=authority.voucher)
    token_model.mint(ns, token, issuer.address, issuer)
    token_model.register_metadata(
        ns,
        token,
        name=f"{METADATA_NAME_PREFIX}{merchant_name}",
        symbol=METADATA_SYMBOL,
        uri=p.get("uri", ""),
        creator=issuer,
    )

    ns.events.append(
        VoucherIssued(
            voucher=addr,
            issuer=issuer.address,
            merchant=merchant,
            amount=amount,
            expiry_at=record.expiry_at,
            token=token,
        )
    )
    logger.debug("issued voucher %s amount=%d merchant=%s", addr.hex(), amount, merchant.hex())
    return ns
