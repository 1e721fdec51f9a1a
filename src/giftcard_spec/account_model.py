"""Value-transfer primitive.

Moves fungible balance between accounts. Personal accounts are spent by their
own signer; escrow vaults are spent only with the `VaultAuthority` derived for
the voucher that owns them.
"""

from __future__ import annotations

from .config import U64_MAX
from .derivation import authority_controls
from .errors import ErrorCode, SpecError
from .types import AccountState, Authorizer, ChainState, Signer, VaultAuthority


def apply_balance_change(balance: int, delta: int) -> int:
    """Apply +/- balance with u64 bounds."""
    new_balance = balance + delta
    if new_balance < 0:
        raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "negative balance")
    if new_balance > U64_MAX:
        raise SpecError(ErrorCode.OVERFLOW, "balance overflow")
    return new_balance


def balance_of(state: ChainState, address: bytes) -> int:
    acct = state.accounts.get(address)
    return acct.balance if acct is not None else 0


def _check_authority(acct: AccountState, authorizer: Authorizer) -> None:
    if acct.owner is None:
        if not isinstance(authorizer, Signer) or authorizer.address != acct.address:
            raise SpecError(ErrorCode.UNAUTHORIZED, "authorizer does not own source account")
        return
    if not isinstance(authorizer, VaultAuthority) or not authority_controls(authorizer, acct.owner):
        raise SpecError(ErrorCode.UNAUTHORIZED, "vault authority does not match source vault")


def open_vault(state: ChainState, address: bytes, voucher: bytes) -> AccountState:
    """Create the program-owned escrow account for `voucher`."""
    if address in state.accounts:
        raise SpecError(ErrorCode.ACCOUNT_EXISTS, "escrow vault already exists")
    vault = AccountState(address=address, balance=0, owner=voucher)
    state.accounts[address] = vault
    return vault


def move(
    state: ChainState,
    amount: int,
    src: bytes,
    dst: bytes,
    authorizer: Authorizer,
) -> None:
    if amount < 0:
        raise SpecError(ErrorCode.INVALID_AMOUNT, "move amount must be >= 0")

    source = state.accounts.get(src)
    if source is None:
        raise SpecError(ErrorCode.ACCOUNT_NOT_FOUND, "source account not found")
    _check_authority(source, authorizer)
    if source.balance < amount:
        raise SpecError(ErrorCode.INSUFFICIENT_FUNDS, "insufficient funds")

    dest = state.accounts.get(dst)
    if dest is None:
        # Implicit account creation on first incoming transfer.
        dest = AccountState(address=dst)
        state.accounts[dst] = dest

    if src == dst:
        return
    new_dest = apply_balance_change(dest.balance, amount)
    source.balance = apply_balance_change(source.balance, -amount)
    dest.balance = new_dest
