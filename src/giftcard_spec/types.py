"""Core types for the gift card model.

The state tracked here is the minimum the voucher program touches: personal
and escrow value accounts, ownership token mints and holdings, token metadata,
voucher records and the emitted event log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import FrozenSet, List, Optional, Union

from .errors import ErrorCode, SpecError


class TransactionType(Enum):
    ISSUE = "issue"
    TRANSFER = "transfer"
    REDEEM = "redeem"
    RECLAIM = "reclaim"


class VoucherStatus(IntEnum):
    ACTIVE = 0
    REDEEMED = 1
    EXPIRED = 2


@dataclass
class Transaction:
    tx_type: TransactionType
    source: bytes
    payload: dict
    # Co-signers already authenticated by the host platform.
    signers: List[bytes] = field(default_factory=list)
    # Optional optimistic lock on the target record's encoded hash.
    record_hash: Optional[bytes] = None


# --- Capabilities ---


@dataclass(frozen=True)
class Signer:
    """Proof that `address` signed the enclosing transaction."""

    address: bytes


@dataclass(frozen=True)
class VaultAuthority:
    """Signing authority derived from a voucher record, not from a key."""

    voucher: bytes
    token: bytes
    proof: bytes


Authorizer = Union[Signer, VaultAuthority]


@dataclass(frozen=True)
class TxContext:
    now: int
    signers: FrozenSet[bytes]

    def is_signer(self, address: bytes) -> bool:
        return address in self.signers

    def signer(self, address: bytes) -> Signer:
        if address not in self.signers:
            raise SpecError(ErrorCode.MISSING_SIGNATURE, f"missing signature for {address.hex()}")
        return Signer(address)


# --- Value accounts ---


@dataclass
class AccountState:
    address: bytes
    balance: int = 0
    # Set for program-owned escrow vaults: the voucher record address.
    owner: Optional[bytes] = None


# --- Ownership token ---


@dataclass
class TokenMint:
    id: bytes
    mint_authority: bytes
    burn_delegate: Optional[bytes] = None
    decimals: int = 0
    supply: int = 0
    minted: bool = False


@dataclass
class TokenHolding:
    address: bytes
    token: bytes
    owner: bytes
    amount: int = 0


@dataclass
class TokenMetadata:
    token: bytes
    name: str
    symbol: str
    uri: str
    creator: bytes
    seller_fee_basis_points: int = 0
    is_mutable: bool = True


# --- Voucher record ---


@dataclass
class VoucherRecord:
    issuer: bytes
    current_owner: bytes
    merchant: bytes
    merchant_name: str
    original_amount: int
    remaining_balance: int
    token: bytes
    escrow_vault: bytes
    created_at: int
    expiry_at: int
    status: VoucherStatus = VoucherStatus.ACTIVE
    authority_proof: bytes = b""


# --- Events ---


@dataclass
class VoucherIssued:
    voucher: bytes
    issuer: bytes
    merchant: bytes
    amount: int
    expiry_at: int
    token: bytes


@dataclass
class VoucherTransferred:
    voucher: bytes
    from_owner: bytes
    to_owner: bytes
    token: bytes


@dataclass
class VoucherRedeemed:
    voucher: bytes
    merchant: bytes
    amount: int
    remaining_balance: int
    token: bytes


@dataclass
class VoucherExpired:
    voucher: bytes
    issuer: bytes
    reclaimed_amount: int
    token: bytes


Event = Union[VoucherIssued, VoucherTransferred, VoucherRedeemed, VoucherExpired]


# --- ChainState ---


@dataclass
class GlobalState:
    block_height: int = 0
    timestamp: int = 0


@dataclass
class ProgramConfig:
    # When set, the merchant may redeem without holding the ownership token.
    redeem_by_role: bool = False


@dataclass
class ChainState:
    accounts: dict[bytes, AccountState] = field(default_factory=dict)
    global_state: GlobalState = field(default_factory=GlobalState)
    program: ProgramConfig = field(default_factory=ProgramConfig)
    token_mints: dict[bytes, TokenMint] = field(default_factory=dict)
    token_holdings: dict[bytes, TokenHolding] = field(default_factory=dict)
    token_metadata: dict[bytes, TokenMetadata] = field(default_factory=dict)
    # Keyed by the content-addressed record address (see derivation.py).
    vouchers: dict[bytes, VoucherRecord] = field(default_factory=dict)
    events: list[Event] = field(default_factory=list)
