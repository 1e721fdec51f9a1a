"""Gift card error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    VALIDATION = 0x01
    AUTHORIZATION = 0x02
    RESOURCE = 0x03
    STATE = 0x04
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Success
    SUCCESS = 0x0000

    # Validation
    INVALID_FORMAT = 0x0100
    INVALID_AMOUNT = 0x0105
    INVALID_ADDRESS = 0x0106
    INVALID_PAYLOAD = 0x0107
    INVALID_EXPIRY = 0x0108
    NAME_TOO_LONG = 0x0109

    # Authorization
    UNAUTHORIZED = 0x0200
    MISSING_SIGNATURE = 0x0201
    NOT_CURRENT_OWNER = 0x0203
    UNAUTHORIZED_MERCHANT = 0x0204
    NOT_OWNED_BY_MERCHANT = 0x0205
    NOT_TOKEN_HOLDER = 0x0206
    INVALID_AUTHORITY = 0x0207

    # Resource
    INSUFFICIENT_BALANCE = 0x0300
    INSUFFICIENT_FUNDS = 0x0301
    OVERFLOW = 0x0304

    # State
    ACCOUNT_NOT_FOUND = 0x0400
    ACCOUNT_EXISTS = 0x0401
    VOUCHER_NOT_FOUND = 0x0402
    VOUCHER_EXISTS = 0x0403
    GIFT_CARD_NOT_ACTIVE = 0x0410
    GIFT_CARD_EXPIRED = 0x0411
    GIFT_CARD_NOT_EXPIRED = 0x0412
    TOKEN_NOT_FOUND = 0x0420
    TOKEN_EXISTS = 0x0421
    TOKEN_ALREADY_MINTED = 0x0422
    STALE_RECORD = 0x0430

    # Internal
    INTERNAL_ERROR = 0xFF00
    NOT_IMPLEMENTED = 0xFF01

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)

    @property
    def retryable(self) -> bool:
        # A conflicting concurrent transition cleared; re-read and resubmit.
        return self is ErrorCode.STALE_RECORD


@dataclass(frozen=True)
class SpecError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(
    ("__traceback__", "__context__", "__cause__", "__suppress_context__")
)
_frozen_setattr = SpecError.__setattr__


def _spec_error_setattr(self: SpecError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


SpecError.__setattr__ = _spec_error_setattr  # type: ignore[method-assign]
