"""State transition entrypoints: verify, apply, blocks and the ledger clock."""

from __future__ import annotations

import pytest
from conftest import NOW, TOKEN, issue_tx, transfer_tx

from giftcard_spec.account_model import balance_of
from giftcard_spec.derivation import voucher_address
from giftcard_spec.errors import ErrorCategory, ErrorCode, SpecError
from giftcard_spec.state_digest import compute_state_digest
from giftcard_spec.state_transition import (
    advance_clock,
    apply_block,
    apply_tx,
    context_for,
    verify_tx,
)
from giftcard_spec.test_accounts import ALICE, BOB, CAROL, token_for
from giftcard_spec.types import Transaction, TransactionType


def _redeem(amount: int) -> Transaction:
    return Transaction(
        tx_type=TransactionType.REDEEM, source=BOB, payload={"token": TOKEN, "amount": amount}
    )


def test_context_uses_ledger_clock_and_signers(base_state) -> None:
    ctx = context_for(base_state, issue_tx())
    assert ctx.now == NOW
    assert ctx.is_signer(ALICE)
    assert ctx.is_signer(TOKEN)
    assert not ctx.is_signer(BOB)


def test_missing_signer_raises(base_state) -> None:
    ctx = context_for(base_state, issue_tx())
    with pytest.raises(SpecError) as exc:
        ctx.signer(BOB)
    assert exc.value.code == ErrorCode.MISSING_SIGNATURE


def test_verify_does_not_mutate(base_state) -> None:
    before = compute_state_digest(base_state)
    result = verify_tx(base_state, issue_tx())
    assert result.ok
    assert compute_state_digest(base_state) == before
    assert not base_state.vouchers


def test_verify_reports_error(base_state) -> None:
    result = verify_tx(base_state, issue_tx(amount=0))
    assert not result.ok
    assert result.error.code == ErrorCode.INVALID_AMOUNT


def test_apply_does_not_touch_input_state(base_state) -> None:
    post, result = apply_tx(base_state, issue_tx())
    assert result.ok
    assert post is not base_state
    assert balance_of(base_state, ALICE) == 1_000
    assert not base_state.vouchers
    assert not base_state.events


def test_events_accumulate_on_state(merchant_state) -> None:
    assert len(merchant_state.events) == 2
    post, result = apply_tx(merchant_state, _redeem(10))
    assert result.ok
    assert len(result.events) == 1
    assert len(post.events) == 3


def test_payload_must_be_mapping(base_state) -> None:
    tx = Transaction(tx_type=TransactionType.TRANSFER, source=ALICE, payload="bad")
    post, result = apply_tx(base_state, tx)
    assert result.error.code == ErrorCode.INVALID_PAYLOAD
    assert post is base_state


def test_missing_address_field(issued_state) -> None:
    tx = Transaction(tx_type=TransactionType.TRANSFER, source=ALICE, payload={"token": TOKEN})
    _, result = apply_tx(issued_state, tx)
    assert result.error.code == ErrorCode.INVALID_ADDRESS


def test_corrupted_record_fails_invariant_check(merchant_state) -> None:
    # A record whose remaining balance exceeds its original amount.
    merchant_state.vouchers[voucher_address(TOKEN)].original_amount = 50
    post, result = apply_tx(merchant_state, _redeem(5))
    assert not result.ok
    assert result.error.code == ErrorCode.INTERNAL_ERROR
    assert post is merchant_state


def test_forged_authority_proof_rejected(merchant_state) -> None:
    record = merchant_state.vouchers[voucher_address(TOKEN)]
    record.authority_proof = bytes(32)
    post, result = apply_tx(merchant_state, _redeem(5))
    assert result.error.code == ErrorCode.INVALID_AUTHORITY
    assert balance_of(post, record.escrow_vault) == 100


def test_apply_block_success(base_state) -> None:
    second = token_for("coffee-shop-002")
    post, result = apply_block(
        base_state,
        [
            issue_tx(),
            issue_tx(token=second, amount=50),
            transfer_tx(ALICE, BOB),
            _redeem(20),
        ],
    )
    assert result.ok
    assert len(result.events) == 4
    assert post.global_state.block_height == base_state.global_state.block_height + 1
    assert balance_of(post, ALICE) == 850
    assert balance_of(post, BOB) == 20


def test_apply_block_is_atomic(base_state) -> None:
    before = compute_state_digest(base_state)
    post, result = apply_block(base_state, [issue_tx(), transfer_tx(ALICE, BOB), _redeem(101)])
    assert result.error.code == ErrorCode.INSUFFICIENT_BALANCE
    assert post is base_state
    assert compute_state_digest(base_state) == before


def test_apply_block_sets_timestamp(issued_state) -> None:
    reclaim = Transaction(tx_type=TransactionType.RECLAIM, source=ALICE, payload={"token": TOKEN})
    post, result = apply_block(issued_state, [reclaim], timestamp=NOW + 1000)
    assert result.ok
    assert post.global_state.timestamp == NOW + 1000
    assert balance_of(post, ALICE) == 1_000


def test_apply_block_rejects_backwards_timestamp(base_state) -> None:
    post, result = apply_block(base_state, [issue_tx()], timestamp=NOW - 1)
    assert result.error.code == ErrorCode.INVALID_PAYLOAD
    assert post is base_state


def test_apply_empty_block(base_state) -> None:
    post, result = apply_block(base_state, [])
    assert result.ok
    assert result.events == []
    assert post.global_state.block_height == 1
    assert base_state.global_state.block_height == 0
    post.accounts[ALICE].balance = 0
    assert balance_of(base_state, ALICE) == 1_000


def test_advance_clock(base_state) -> None:
    post = advance_clock(base_state, 30)
    assert post.global_state.timestamp == NOW + 30
    assert base_state.global_state.timestamp == NOW
    post.accounts[ALICE].balance = 0
    assert balance_of(base_state, ALICE) == 1_000


def test_advance_clock_backwards(base_state) -> None:
    with pytest.raises(SpecError) as exc:
        advance_clock(base_state, -1)
    assert exc.value.code == ErrorCode.INVALID_PAYLOAD


def test_failed_tx_is_not_retryable_unless_stale(base_state) -> None:
    _, result = apply_tx(base_state, issue_tx(issuer=CAROL, amount=500))
    assert result.error.code == ErrorCode.INSUFFICIENT_FUNDS
    assert result.error.code.category == ErrorCategory.RESOURCE
    assert not result.error.code.retryable
    assert str(result.error).startswith("INSUFFICIENT_FUNDS(0x0301): ")


def test_issue_with_token_as_int_sequence(base_state) -> None:
    tx = issue_tx(sign_token=False)
    tx.payload["token"] = list(TOKEN)
    tx.signers = [TOKEN]
    post, result = apply_tx(base_state, tx)
    assert result.ok, result.error
    assert post.vouchers[voucher_address(TOKEN)].token == TOKEN
