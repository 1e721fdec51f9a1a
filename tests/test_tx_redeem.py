"""Redeem transaction tests."""

from __future__ import annotations

from typing import Optional

import pytest
from conftest import TOKEN, issue_tx, make_state

from giftcard_spec.account_model import balance_of
from giftcard_spec.derivation import voucher_address
from giftcard_spec.errors import ErrorCode
from giftcard_spec.state_transition import advance_clock, apply_tx
from giftcard_spec.test_accounts import ALICE, BOB, CAROL
from giftcard_spec.token_model import holder_of, supply_of
from giftcard_spec.types import Transaction, TransactionType, VoucherRedeemed, VoucherStatus

FIXTURE = "transactions/redeem.json"


def _mk_redeem(source: bytes, amount: Optional[int] = None) -> Transaction:
    payload: dict = {"token": TOKEN}
    if amount is not None:
        payload["amount"] = amount
    return Transaction(tx_type=TransactionType.REDEEM, source=source, payload=payload)


def _record(state):
    return state.vouchers[voucher_address(TOKEN)]


def test_redeem_partial(state_test_group, merchant_state) -> None:
    post, result = state_test_group(FIXTURE, "redeem_partial", merchant_state, _mk_redeem(BOB, 40))
    assert result.ok

    record = _record(post)
    assert record.remaining_balance == 60
    assert record.original_amount == 100
    assert record.status == VoucherStatus.ACTIVE
    assert balance_of(post, BOB) == 40
    assert balance_of(post, record.escrow_vault) == 60
    assert supply_of(post, TOKEN) == 1
    assert holder_of(post, TOKEN) == BOB
    assert result.events == [
        VoucherRedeemed(
            voucher=voucher_address(TOKEN),
            merchant=BOB,
            amount=40,
            remaining_balance=60,
            token=TOKEN,
        )
    ]


def test_redeem_full_default_amount(state_test_group, merchant_state) -> None:
    post, result = state_test_group(
        FIXTURE, "redeem_full_default", merchant_state, _mk_redeem(BOB)
    )
    assert result.ok

    record = _record(post)
    assert record.remaining_balance == 0
    assert record.status == VoucherStatus.REDEEMED
    assert balance_of(post, BOB) == 100
    assert balance_of(post, record.escrow_vault) == 0
    assert supply_of(post, TOKEN) == 0
    assert holder_of(post, TOKEN) is None


def test_redeem_exact_remaining_burns_token(merchant_state) -> None:
    state, _ = apply_tx(merchant_state, _mk_redeem(BOB, 30))
    state, result = apply_tx(state, _mk_redeem(BOB, 70))
    assert result.ok
    assert _record(state).status == VoucherStatus.REDEEMED
    assert supply_of(state, TOKEN) == 0


def test_redeem_over_balance(state_test_group, merchant_state) -> None:
    post, result = state_test_group(
        FIXTURE, "redeem_over_balance", merchant_state, _mk_redeem(BOB, 101)
    )
    assert result.error.code == ErrorCode.INSUFFICIENT_BALANCE
    assert _record(post).remaining_balance == 100
    assert balance_of(post, BOB) == 0


def test_redeem_over_remaining_after_partial(merchant_state) -> None:
    state, _ = apply_tx(merchant_state, _mk_redeem(BOB, 70))
    post, result = apply_tx(state, _mk_redeem(BOB, 31))
    assert result.error.code == ErrorCode.INSUFFICIENT_BALANCE
    assert post is state


def test_redeem_unauthorized_merchant(state_test_group, merchant_state) -> None:
    post, result = state_test_group(
        FIXTURE, "redeem_unauthorized_merchant", merchant_state, _mk_redeem(CAROL, 10)
    )
    assert result.error.code == ErrorCode.UNAUTHORIZED_MERCHANT
    assert _record(post).remaining_balance == 100
    assert balance_of(post, CAROL) == 10


def test_redeem_by_owner_is_unauthorized(state_test_group, issued_state) -> None:
    _, result = state_test_group(
        FIXTURE, "redeem_by_owner", issued_state, _mk_redeem(ALICE, 10)
    )
    assert result.error.code == ErrorCode.UNAUTHORIZED_MERCHANT


def test_redeem_expired(state_test_group, merchant_state) -> None:
    state = advance_clock(merchant_state, 1000)
    _, result = state_test_group(FIXTURE, "redeem_expired", state, _mk_redeem(BOB, 10))
    assert result.error.code == ErrorCode.GIFT_CARD_EXPIRED


def test_redeem_after_full_redemption(state_test_group, merchant_state) -> None:
    state, _ = apply_tx(merchant_state, _mk_redeem(BOB))
    _, result = state_test_group(FIXTURE, "redeem_not_active", state, _mk_redeem(BOB, 0))
    assert result.error.code == ErrorCode.GIFT_CARD_NOT_ACTIVE


def test_redeem_negative_amount(state_test_group, merchant_state) -> None:
    _, result = state_test_group(FIXTURE, "redeem_negative", merchant_state, _mk_redeem(BOB, -1))
    assert result.error.code == ErrorCode.INVALID_AMOUNT


def test_redeem_zero_amount_is_noop(state_test_group, merchant_state) -> None:
    post, result = state_test_group(FIXTURE, "redeem_zero", merchant_state, _mk_redeem(BOB, 0))
    assert result.ok
    assert _record(post).remaining_balance == 100
    assert _record(post).status == VoucherStatus.ACTIVE
    assert len(result.events) == 1


def test_redeem_requires_merchant_to_hold_token(state_test_group, issued_state) -> None:
    assert holder_of(issued_state, TOKEN) == ALICE
    post, result = state_test_group(
        FIXTURE, "redeem_not_owned_by_merchant", issued_state, _mk_redeem(BOB, 10)
    )
    assert result.error.code == ErrorCode.NOT_OWNED_BY_MERCHANT
    assert post is issued_state
    assert balance_of(post, BOB) == 0
    assert _record(post).remaining_balance == 100


def test_redeem_by_role_when_configured(state_test_group) -> None:
    state = make_state()
    state.program.redeem_by_role = True
    state, _ = apply_tx(state, issue_tx())

    # Alice still holds the token; the merchant role alone is enough.
    post, result = state_test_group(FIXTURE, "redeem_by_role", state, _mk_redeem(BOB))
    assert result.ok
    assert balance_of(post, BOB) == 100
    assert _record(post).current_owner == ALICE
    assert _record(post).status == VoucherStatus.REDEEMED
    assert supply_of(post, TOKEN) == 0


@pytest.mark.parametrize("steps", [[100], [1, 99], [25, 25, 25, 25], [10, 0, 60, 30]])
def test_redeem_sequences_never_exceed_original(merchant_state, steps) -> None:
    state = merchant_state
    redeemed = 0
    for amount in steps:
        state, result = apply_tx(state, _mk_redeem(BOB, amount))
        assert result.ok
        redeemed += amount
        assert _record(state).remaining_balance == 100 - redeemed
    assert _record(state).status == VoucherStatus.REDEEMED

    _, result = apply_tx(state, _mk_redeem(BOB, 1))
    assert not result.ok
    assert balance_of(state, BOB) == 100
