"""Pytest hooks and shared fixtures; optionally write state fixtures (EEST-style)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from giftcard_spec.state_io import state_to_json, tx_to_json
from giftcard_spec.state_transition import TransitionResult, apply_tx
from giftcard_spec.test_accounts import ALICE, BOB, CAROL, token_for
from giftcard_spec.types import AccountState, ChainState, Transaction, TransactionType

NOW = 1_700_000_000
TOKEN = token_for("coffee-shop-001")

_STATE_CASES: dict[str, list[dict[str, Any]]] = {}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


def issue_tx(
    issuer: bytes = ALICE,
    token: bytes = TOKEN,
    amount: int = 100,
    expiry_at: int = NOW + 1000,
    merchant_name: str = "Coffee Shop",
    merchant: bytes = BOB,
    uri: str = "https://arweave.net/gift-card-metadata",
    sign_token: bool = True,
) -> Transaction:
    return Transaction(
        tx_type=TransactionType.ISSUE,
        source=issuer,
        payload={
            "amount": amount,
            "expiry_at": expiry_at,
            "merchant_name": merchant_name,
            "merchant": merchant,
            "token": token,
            "uri": uri,
        },
        signers=[token] if sign_token else [],
    )


def transfer_tx(source: bytes, new_owner: bytes, token: bytes = TOKEN) -> Transaction:
    return Transaction(
        tx_type=TransactionType.TRANSFER,
        source=source,
        payload={"token": token, "new_owner": new_owner},
    )


def make_state(timestamp: int = NOW) -> ChainState:
    state = ChainState()
    state.global_state.timestamp = timestamp
    state.accounts[ALICE] = AccountState(address=ALICE, balance=1_000)
    state.accounts[BOB] = AccountState(address=BOB, balance=0)
    state.accounts[CAROL] = AccountState(address=CAROL, balance=10)
    return state


@pytest.fixture
def base_state() -> ChainState:
    return make_state()


@pytest.fixture
def issued_state(base_state: ChainState) -> ChainState:
    """Alice has issued a 100-unit voucher redeemable at Bob, expiring at NOW+1000."""
    state, result = apply_tx(base_state, issue_tx())
    assert result.ok, result.error
    return state


@pytest.fixture
def merchant_state(issued_state: ChainState) -> ChainState:
    """The issued voucher has been handed to Bob, its merchant, for redemption."""
    state, result = apply_tx(issued_state, transfer_tx(ALICE, BOB))
    assert result.ok, result.error
    return state


@pytest.fixture
def state_test_group() -> Callable[[str, str, ChainState, Transaction], tuple]:
    """Apply a transaction, collect the case under a fixture path and return the outcome."""

    def _state_test_group(
        rel_path: str, name: str, pre_state: ChainState, tx: Transaction
    ) -> tuple[ChainState, TransitionResult]:
        post_state, result = apply_tx(pre_state, tx)
        _STATE_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "pre_state": state_to_json(pre_state),
                "tx": tx_to_json(tx),
                "expected": {
                    "ok": result.ok,
                    "error": result.error.code.name if result.error else None,
                    "post_state": state_to_json(post_state),
                },
            }
        )
        return post_state, result

    return _state_test_group


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for rel_path, cases in _STATE_CASES.items():
        if not cases:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"cases": cases}, indent=2))
