"""Post-transition checks on voucher records."""

from __future__ import annotations

from dataclasses import replace

import pytest
from conftest import TOKEN

from giftcard_spec.derivation import voucher_address
from giftcard_spec.errors import ErrorCode, SpecError
from giftcard_spec.invariants import check_unchanged_terms, check_voucher
from giftcard_spec.test_accounts import CAROL


def _record(state):
    return state.vouchers[voucher_address(TOKEN)]


def test_issued_record_passes(issued_state) -> None:
    check_voucher(issued_state, _record(issued_state))


def test_owner_change_allowed_only_for_transfer(issued_state) -> None:
    before = _record(issued_state)
    after = replace(before, current_owner=CAROL)
    check_unchanged_terms(before, after, owner_may_change=True)
    with pytest.raises(SpecError) as exc:
        check_unchanged_terms(before, after)
    assert exc.value.code == ErrorCode.INTERNAL_ERROR
    assert "current_owner" in exc.value.message


@pytest.mark.parametrize(
    "field,value",
    [("merchant_name", "Other Shop"), ("original_amount", 200), ("created_at", 0)],
)
def test_fixed_terms(issued_state, field, value) -> None:
    before = _record(issued_state)
    with pytest.raises(SpecError) as exc:
        check_unchanged_terms(before, replace(before, **{field: value}), owner_may_change=True)
    assert exc.value.code == ErrorCode.INTERNAL_ERROR
    assert field in exc.value.message


def test_balance_may_not_grow(issued_state) -> None:
    before = replace(_record(issued_state), remaining_balance=50)
    with pytest.raises(SpecError):
        check_unchanged_terms(before, replace(before, remaining_balance=60))


def test_active_record_must_match_holder(issued_state) -> None:
    record = replace(_record(issued_state), current_owner=CAROL)
    with pytest.raises(SpecError) as exc:
        check_voucher(issued_state, record)
    assert exc.value.code == ErrorCode.INTERNAL_ERROR
