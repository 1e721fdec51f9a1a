"""Serialize/deserialize gift card state and transactions.

Bytes are hex strings. State files are written as YAML through a plain
SafeDumper; since JSON is a subset of YAML, `load_state` reads either.
"""

from __future__ import annotations

from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

import yaml

from .types import (
    AccountState,
    ChainState,
    Event,
    TokenHolding,
    TokenMetadata,
    TokenMint,
    Transaction,
    TransactionType,
    VoucherExpired,
    VoucherIssued,
    VoucherRecord,
    VoucherRedeemed,
    VoucherStatus,
    VoucherTransferred,
)

_EVENT_KINDS: dict[str, type] = {
    "issued": VoucherIssued,
    "transferred": VoucherTransferred,
    "redeemed": VoucherRedeemed,
    "expired": VoucherExpired,
}
_EVENT_NAMES = {cls: name for name, cls in _EVENT_KINDS.items()}

_BYTES_FIELDS: set[str] = {
    "token", "merchant", "new_owner",
}


class PlainDumper(yaml.SafeDumper):
    pass


def _str_representer(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", data, style=None)


PlainDumper.add_representer(str, _str_representer)


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


def _to_json(value: Any) -> Any:
    """Recursively convert a value, turning bytes into hex strings."""
    if isinstance(value, (bytes, bytearray)):
        return _bytes_to_hex(bytes(value))
    if isinstance(value, VoucherStatus):
        return value.name.lower()
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_json(item) for item in value]
    return value


def _record_from_json(cls: type, data: dict[str, Any], bytes_fields: set[str]) -> Any:
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.name in bytes_fields and isinstance(value, str):
            value = _hex_to_bytes(value)
        kwargs[f.name] = value
    return cls(**kwargs)


def event_to_json(event: Event) -> dict[str, Any]:
    out = {"kind": _EVENT_NAMES[type(event)]}
    out.update(_to_json(asdict(event)))
    return out


def event_from_json(data: dict[str, Any]) -> Event:
    cls = _EVENT_KINDS[data["kind"]]
    amount_fields = {"amount", "expiry_at", "remaining_balance", "reclaimed_amount"}
    byte_fields = {f.name for f in fields(cls)} - amount_fields
    return _record_from_json(cls, data, byte_fields)


def voucher_to_json(record: VoucherRecord) -> dict[str, Any]:
    return _to_json(asdict(record))


def voucher_from_json(data: dict[str, Any]) -> VoucherRecord:
    record = _record_from_json(
        VoucherRecord,
        data,
        {"issuer", "current_owner", "merchant", "token", "escrow_vault", "authority_proof"},
    )
    record.status = VoucherStatus[str(data.get("status", "active")).upper()]
    return record


def state_to_json(state: ChainState) -> dict[str, Any]:
    result: dict[str, Any] = {
        "global_state": {
            "block_height": state.global_state.block_height,
            "timestamp": state.global_state.timestamp,
        },
        "program": {
            "redeem_by_role": state.program.redeem_by_role,
        },
        "accounts": [_to_json(asdict(a)) for a in state.accounts.values()],
    }

    if state.token_mints:
        result["token_mints"] = [_to_json(asdict(m)) for m in state.token_mints.values()]
    if state.token_holdings:
        result["token_holdings"] = [_to_json(asdict(h)) for h in state.token_holdings.values()]
    if state.token_metadata:
        result["token_metadata"] = [_to_json(asdict(m)) for m in state.token_metadata.values()]
    if state.vouchers:
        result["vouchers"] = [
            {"address": _bytes_to_hex(addr), "record": voucher_to_json(rec)}
            for addr, rec in state.vouchers.items()
        ]
    if state.events:
        result["events"] = [event_to_json(e) for e in state.events]
    return result


def state_from_json(data: dict[str, Any]) -> ChainState:
    state = ChainState()
    gs = data.get("global_state", {})
    state.global_state.block_height = gs.get("block_height", 0)
    state.global_state.timestamp = gs.get("timestamp", 0)
    state.program.redeem_by_role = bool(
        data.get("program", {}).get("redeem_by_role", False)
    )

    for a in data.get("accounts", []):
        acct = _record_from_json(AccountState, a, {"address", "owner"})
        state.accounts[acct.address] = acct

    for m in data.get("token_mints", []):
        mint = _record_from_json(TokenMint, m, {"id", "mint_authority", "burn_delegate"})
        state.token_mints[mint.id] = mint

    for h in data.get("token_holdings", []):
        holding = _record_from_json(TokenHolding, h, {"address", "token", "owner"})
        state.token_holdings[holding.address] = holding

    for m in data.get("token_metadata", []):
        meta = _record_from_json(TokenMetadata, m, {"token", "creator"})
        state.token_metadata[meta.token] = meta

    for v in data.get("vouchers", []):
        state.vouchers[_hex_to_bytes(v["address"])] = voucher_from_json(v["record"])

    state.events = [event_from_json(e) for e in data.get("events", [])]
    return state


def _payload_from_json(payload: Any) -> Any:
    if not isinstance(payload, dict):
        return payload
    return {
        k: _hex_to_bytes(v) if k in _BYTES_FIELDS and isinstance(v, str) and v else v
        for k, v in payload.items()
    }


def tx_to_json(tx: Transaction) -> dict[str, Any]:
    return {
        "tx_type": tx.tx_type.value,
        "source": _bytes_to_hex(tx.source),
        "payload": _to_json(tx.payload),
        "signers": [_bytes_to_hex(s) for s in tx.signers],
        "record_hash": _bytes_to_hex(tx.record_hash) if tx.record_hash else None,
    }


def tx_from_json(data: dict[str, Any]) -> Transaction:
    return Transaction(
        tx_type=TransactionType(data["tx_type"]),
        source=_hex_to_bytes(data["source"]),
        payload=_payload_from_json(data.get("payload")),
        signers=[_hex_to_bytes(s) for s in data.get("signers", []) or []],
        record_hash=_hex_to_bytes(data["record_hash"]) if data.get("record_hash") else None,
    )


def dump_yaml(data: dict) -> str:
    return yaml.dump(data, Dumper=PlainDumper, sort_keys=False, width=4096)


def load_state(path: Path) -> ChainState:
    if not path.exists():
        return ChainState()
    data = yaml.safe_load(path.read_text()) or {}
    return state_from_json(data)


def save_state(path: Path, state: ChainState) -> None:
    path.write_text(dump_yaml(state_to_json(state)))
