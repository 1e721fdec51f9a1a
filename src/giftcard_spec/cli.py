"""Command line front end over a local gift card state file.

Identities may be given as 64-character hex addresses or as names, which are
mapped to deterministic addresses (see test_accounts.py). Tokens likewise
accept hex or a label.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click

from .account_model import apply_balance_change, balance_of
from .config import ADDRESS_LEN, RuntimeConfig
from .encoding import record_hash
from .errors import SpecError
from .query import inspect as inspect_voucher
from .query import list_vouchers, status_lines
from .state_digest import compute_state_digest
from .state_io import event_to_json, load_state, save_state
from .state_transition import advance_clock, apply_tx
from .test_accounts import address_for, token_for
from .types import AccountState, ChainState, Transaction, TransactionType, VoucherStatus

logger = logging.getLogger(__name__)


def _parse_hex_or(value: str, fallback) -> bytes:
    if len(value) == ADDRESS_LEN * 2:
        try:
            return bytes.fromhex(value)
        except ValueError:
            pass
    return fallback(value)


def _identity(value: str) -> bytes:
    return _parse_hex_or(value, address_for)


def _token(value: str) -> bytes:
    return _parse_hex_or(value, token_for)


class _Session:
    def __init__(self, path: Path):
        self.path = path
        self.state = load_state(path)

    def save(self, state: ChainState) -> None:
        self.state = state
        save_state(self.path, state)

    def submit(self, tx: Transaction) -> None:
        post, result = apply_tx(self.state, tx)
        if not result.ok:
            raise click.ClickException(str(result.error))
        self.save(post)
        for event in result.events:
            click.echo(json.dumps(event_to_json(event)))


pass_session = click.make_pass_decorator(_Session)


@click.group()
@click.option("--state", "state_path", default=None, help="State file (YAML/JSON)")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, state_path: Optional[str], verbose: bool) -> None:
    """Voucher escrow: issue, transfer, redeem and reclaim gift cards."""
    config = RuntimeConfig.from_env()
    if state_path:
        config.state_path = state_path
    if verbose:
        config.verbose = True

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    session = _Session(Path(config.state_path))
    if not session.path.exists():
        session.state.program.redeem_by_role = config.redeem_by_role
    ctx.obj = session


@main.command()
@click.option("--timestamp", type=int, default=0, help="Initial ledger clock")
@click.option("--redeem-by-role", is_flag=True, help="Merchant may redeem without holding the token")
@pass_session
def init(session: _Session, timestamp: int, redeem_by_role: bool) -> None:
    """Write a fresh, empty state file."""
    state = ChainState()
    state.global_state.timestamp = timestamp
    state.program.redeem_by_role = redeem_by_role
    session.save(state)
    logger.info("initialized %s", session.path)


@main.command()
@click.argument("who")
@click.argument("amount", type=int)
@pass_session
def fund(session: _Session, who: str, amount: int) -> None:
    """Credit AMOUNT to WHO's value account (local genesis funding)."""
    if amount <= 0:
        raise click.BadParameter("amount must be positive")
    addr = _identity(who)
    state = session.state
    acct = state.accounts.setdefault(addr, AccountState(address=addr))
    if acct.owner is not None:
        raise click.ClickException("cannot fund an escrow vault directly")
    try:
        acct.balance = apply_balance_change(acct.balance, amount)
    except SpecError as exc:
        raise click.ClickException(str(exc))
    session.save(state)
    click.echo(f"{addr.hex()} balance={acct.balance}")


@main.command()
@click.argument("seconds", type=int)
@pass_session
def advance(session: _Session, seconds: int) -> None:
    """Move the ledger clock forward by SECONDS."""
    try:
        session.save(advance_clock(session.state, seconds))
    except SpecError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"timestamp={session.state.global_state.timestamp}")


@main.command()
@click.option("--issuer", required=True)
@click.option("--token", "token_label", required=True, help="Fresh token identity or label")
@click.option("--merchant", required=True)
@click.option("--merchant-name", required=True)
@click.option("--amount", type=int, required=True)
@click.option("--expires-in", type=int, required=True, help="Seconds until expiry")
@click.option("--uri", default="")
@pass_session
def issue(
    session: _Session,
    issuer: str,
    token_label: str,
    merchant: str,
    merchant_name: str,
    amount: int,
    expires_in: int,
    uri: str,
) -> None:
    """Lock AMOUNT in escrow and mint the ownership token to the issuer."""
    token = _token(token_label)
    tx = Transaction(
        tx_type=TransactionType.ISSUE,
        source=_identity(issuer),
        payload={
            "amount": amount,
            "expiry_at": session.state.global_state.timestamp + expires_in,
            "merchant_name": merchant_name,
            "merchant": _identity(merchant),
            "token": token,
            "uri": uri,
        },
        signers=[token],
    )
    session.submit(tx)


def _locked(session: _Session, token: bytes) -> Optional[bytes]:
    try:
        return record_hash(inspect_voucher(session.state, token))
    except SpecError:
        return None


@main.command()
@click.option("--owner", required=True)
@click.option("--token", "token_label", required=True)
@click.option("--to", "new_owner", required=True)
@pass_session
def transfer(session: _Session, owner: str, token_label: str, new_owner: str) -> None:
    """Move title of a voucher to a new owner."""
    token = _token(token_label)
    session.submit(
        Transaction(
            tx_type=TransactionType.TRANSFER,
            source=_identity(owner),
            payload={"token": token, "new_owner": _identity(new_owner)},
            record_hash=_locked(session, token),
        )
    )


@main.command()
@click.option("--merchant", required=True)
@click.option("--token", "token_label", required=True)
@click.option("--amount", type=int, default=None, help="Defaults to the full remaining balance")
@pass_session
def redeem(session: _Session, merchant: str, token_label: str, amount: Optional[int]) -> None:
    """Release escrowed value to the merchant."""
    token = _token(token_label)
    payload: dict = {"token": token}
    if amount is not None:
        payload["amount"] = amount
    session.submit(
        Transaction(
            tx_type=TransactionType.REDEEM,
            source=_identity(merchant),
            payload=payload,
            record_hash=_locked(session, token),
        )
    )


@main.command()
@click.option("--caller", required=True, help="Current token holder")
@click.option("--token", "token_label", required=True)
@pass_session
def reclaim(session: _Session, caller: str, token_label: str) -> None:
    """Close an expired voucher and return the remainder to the issuer."""
    token = _token(token_label)
    session.submit(
        Transaction(
            tx_type=TransactionType.RECLAIM,
            source=_identity(caller),
            payload={"token": token},
            record_hash=_locked(session, token),
        )
    )


@main.command()
@click.argument("token_label")
@pass_session
def inspect(session: _Session, token_label: str) -> None:
    """Print the full voucher record."""
    try:
        record = inspect_voucher(session.state, _token(token_label))
    except SpecError as exc:
        raise click.ClickException(str(exc))
    for line in status_lines(record):
        click.echo(line)
    click.echo(f"  Escrow Balance: {balance_of(session.state, record.escrow_vault)}")


@main.command(name="list")
@click.option("--owner", default=None)
@click.option("--merchant", default=None)
@click.option("--issuer", default=None)
@click.option(
    "--status",
    type=click.Choice([s.name.lower() for s in VoucherStatus]),
    default=None,
)
@pass_session
def list_cmd(
    session: _Session,
    owner: Optional[str],
    merchant: Optional[str],
    issuer: Optional[str],
    status: Optional[str],
) -> None:
    """List vouchers matching the given filters."""
    matches = list_vouchers(
        session.state,
        owner=_identity(owner) if owner else None,
        merchant=_identity(merchant) if merchant else None,
        issuer=_identity(issuer) if issuer else None,
        status=VoucherStatus[status.upper()] if status else None,
    )
    for addr, record in matches:
        click.echo(
            f"{addr.hex()} {record.merchant_name!r} "
            f"{record.remaining_balance}/{record.original_amount} {record.status.name.lower()}"
        )


@main.command()
@pass_session
def digest(session: _Session) -> None:
    """Print the canonical state digest."""
    click.echo(compute_state_digest(session.state))


if __name__ == "__main__":
    main()
