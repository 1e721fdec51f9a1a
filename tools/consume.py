"""Replay generated fixtures and check outcomes and post-state digests."""

from __future__ import annotations

import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from giftcard_spec.state_digest import compute_state_digest  # noqa: E402
from giftcard_spec.state_io import state_from_json, tx_from_json  # noqa: E402
from giftcard_spec.state_transition import apply_tx  # noqa: E402


def _check_state_cases(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())

    for case in data.get("cases", []):
        pre_state = state_from_json(case["pre_state"])
        tx = tx_from_json(case["tx"])
        post_state, result = apply_tx(pre_state, tx)

        expected = case["expected"]
        if result.ok != expected["ok"]:
            failures.append(f"{case['name']}: ok_mismatch")
            continue

        actual_err = result.error.code.name if result.error else None
        if actual_err != expected["error"]:
            failures.append(f"{case['name']}: error_mismatch")
            continue

        expected_state = state_from_json(expected["post_state"])
        if compute_state_digest(post_state) != compute_state_digest(expected_state):
            failures.append(f"{case['name']}: state_digest_mismatch")

    return failures


def main() -> None:
    fixtures = ROOT / "fixtures"

    failures: list[str] = []
    for path in sorted(fixtures.rglob("*.json")):
        failures.extend(_check_state_cases(path))

    if failures:
        for f in failures:
            print("FAIL", f)
        raise SystemExit(1)

    print("All fixtures passed")


if __name__ == "__main__":
    main()
