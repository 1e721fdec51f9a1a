"""Ownership-token and metadata primitives.

Each voucher gets one zero-decimal mint with a supply of exactly one. Holdings
are keyed by `holding_address(owner, token)`, one per owner, created on demand.
"""

from __future__ import annotations

from typing import Optional

from .config import (
    MAX_METADATA_NAME_LEN,
    MAX_METADATA_SYMBOL_LEN,
    MAX_METADATA_URI_LEN,
    SELLER_FEE_BASIS_POINTS,
    TOKEN_DECIMALS,
    TOKEN_SUPPLY,
)
from .derivation import authority_controls, holding_address
from .errors import ErrorCode, SpecError
from .types import (
    Authorizer,
    ChainState,
    Signer,
    TokenHolding,
    TokenMetadata,
    TokenMint,
    VaultAuthority,
)


def _get_mint(state: ChainState, token: bytes) -> TokenMint:
    mint = state.token_mints.get(token)
    if mint is None:
        raise SpecError(ErrorCode.TOKEN_NOT_FOUND, "token mint not found")
    return mint


def _ensure_holding(state: ChainState, owner: bytes, token: bytes) -> TokenHolding:
    addr = holding_address(owner, token)
    holding = state.token_holdings.get(addr)
    if holding is None:
        holding = TokenHolding(address=addr, token=token, owner=owner)
        state.token_holdings[addr] = holding
    return holding


def _held_by(state: ChainState, owner: bytes, token: bytes) -> TokenHolding:
    holding = state.token_holdings.get(holding_address(owner, token))
    if holding is None or holding.amount < TOKEN_SUPPLY:
        raise SpecError(ErrorCode.NOT_TOKEN_HOLDER, "owner does not hold the token")
    return holding


def create_mint(
    state: ChainState,
    token: bytes,
    authority: Signer,
    burn_delegate: Optional[bytes] = None,
) -> TokenMint:
    if token in state.token_mints:
        raise SpecError(ErrorCode.TOKEN_EXISTS, "token mint already exists")
    mint = TokenMint(
        id=token,
        mint_authority=authority.address,
        burn_delegate=burn_delegate,
        decimals=TOKEN_DECIMALS,
    )
    state.token_mints[token] = mint
    return mint


def mint(state: ChainState, token: bytes, to: bytes, authority: Signer) -> None:
    m = _get_mint(state, token)
    if not isinstance(authority, Signer) or authority.address != m.mint_authority:
        raise SpecError(ErrorCode.UNAUTHORIZED, "not the mint authority")
    if m.minted:
        raise SpecError(ErrorCode.TOKEN_ALREADY_MINTED, "token can only be minted once")
    holding = _ensure_holding(state, to, token)
    holding.amount = TOKEN_SUPPLY
    m.supply = TOKEN_SUPPLY
    m.minted = True


def move(state: ChainState, token: bytes, src: bytes, dst: bytes, authority: Signer) -> None:
    _get_mint(state, token)
    if not isinstance(authority, Signer) or authority.address != src:
        raise SpecError(ErrorCode.UNAUTHORIZED, "only the holder can move the token")
    source = _held_by(state, src, token)
    dest = _ensure_holding(state, dst, token)
    if source is dest:
        return
    source.amount -= TOKEN_SUPPLY
    dest.amount += TOKEN_SUPPLY


def burn(state: ChainState, token: bytes, owner: bytes, authority: Authorizer) -> None:
    """Burn the token from `owner`'s holding.

    Accepts the holder's own signer or the voucher authority registered as
    the mint's burn delegate.
    """
    m = _get_mint(state, token)
    if isinstance(authority, VaultAuthority):
        if m.burn_delegate is None or not authority_controls(authority, m.burn_delegate):
            raise SpecError(ErrorCode.UNAUTHORIZED, "not the burn delegate")
    elif not isinstance(authority, Signer) or authority.address != owner:
        raise SpecError(ErrorCode.UNAUTHORIZED, "only the holder can burn the token")
    holding = _held_by(state, owner, token)
    holding.amount -= TOKEN_SUPPLY
    m.supply -= TOKEN_SUPPLY


def holder_of(state: ChainState, token: bytes) -> Optional[bytes]:
    for holding in state.token_holdings.values():
        if holding.token == token and holding.amount > 0:
            return holding.owner
    return None


def supply_of(state: ChainState, token: bytes) -> int:
    m = state.token_mints.get(token)
    return m.supply if m is not None else 0


def register_metadata(
    state: ChainState,
    token: bytes,
    name: str,
    symbol: str,
    uri: str,
    creator: Signer,
) -> TokenMetadata:
    """Attach descriptive fields to `token`. Over-long fields are truncated."""
    m = _get_mint(state, token)
    if creator.address != m.mint_authority:
        raise SpecError(ErrorCode.UNAUTHORIZED, "metadata creator must be the mint authority")
    meta = TokenMetadata(
        token=token,
        name=name[:MAX_METADATA_NAME_LEN],
        symbol=symbol[:MAX_METADATA_SYMBOL_LEN],
        uri=uri[:MAX_METADATA_URI_LEN],
        creator=creator.address,
        seller_fee_basis_points=SELLER_FEE_BASIS_POINTS,
    )
    state.token_metadata[token] = meta
    return meta
