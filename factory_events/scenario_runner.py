#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import re
import sys
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
import yaml

from factory_events.util.time import format_instant, utcnow_ms

# Keys whose values are namespaced per run so scenarios can be replayed
# against a database that already holds earlier runs.
_PREFIXED_KEYS = ("eventId", "machineId", "factoryId")

_RELATIVE_TIME = re.compile(r"^now(?:\s*([+-])\s*(\d+)\s*([smhd]))?$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


@dataclass
class Scenario:
    id: str
    description: str
    steps: List[Dict[str, Any]]
    path: Path


def load_scenario(path: Path) -> Scenario:
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(raw)
    elif path.suffix.lower() == ".json":
        data = json.loads(raw)
    else:
        raise ValueError(
            f"Unsupported scenario extension: {path.suffix} (use .yaml/.yml/.json)"
        )

    for k in ("id", "steps"):
        if k not in data:
            raise ValueError(f"Scenario missing required field '{k}' in {path}")

    steps = list(data["steps"])
    for i, step in enumerate(steps):
        kinds = [k for k in ("batch", "stats", "top_lines") if k in step]
        if len(kinds) != 1:
            raise ValueError(
                f"Step #{i} in {path} must have exactly one of batch/stats/top_lines"
            )

    return Scenario(
        id=str(data["id"]),
        description=str(data.get("description", "")),
        steps=steps,
        path=path,
    )


def resolve_relative_time(value: str, now: datetime) -> str:
    """
    'now', 'now-1h', 'now+20m' -> wire timestamp; anything else is returned unchanged.
    """
    m = _RELATIVE_TIME.match(value.strip())
    if not m:
        return value
    sign, n, unit = m.groups()
    if sign is None:
        return format_instant(now)
    delta = timedelta(seconds=int(n) * _UNIT_SECONDS[unit])
    return format_instant(now + delta if sign == "+" else now - delta)


def _materialize(obj: Any, now: datetime, prefix: str) -> Any:
    if isinstance(obj, dict):
        out: Dict[str, Any] = {}
        for k, v in obj.items():
            if k in _PREFIXED_KEYS and isinstance(v, str):
                out[k] = f"{prefix}{v}"
            else:
                out[k] = _materialize(v, now, prefix)
        return out
    if isinstance(obj, list):
        return [_materialize(x, now, prefix) for x in obj]
    if isinstance(obj, str):
        return resolve_relative_time(obj, now)
    return obj


def check_expectations(expect: Dict[str, Any], actual: Any) -> List[str]:
    """
    Compares a step's `expect` block to the API response.

    - plain keys: exact match against the response object
    - rejection_reasons_contain: every needle appears in some rejection reason
    - line_ids: exact ordered list of lineId in a top-lines response
    - rows: per-index subset match against a list response
    """
    errors: List[str] = []

    for k, exp in expect.items():
        if k == "rejection_reasons_contain":
            reasons = [str(r.get("reason", "")) for r in (actual.get("rejections") or [])]
            for needle in exp:
                if not any(str(needle) in r for r in reasons):
                    errors.append(f"no rejection reason contains {needle!r} (got {reasons})")
        elif k == "line_ids":
            got = [row.get("lineId") for row in actual]
            if got != list(exp):
                errors.append(f"line_ids mismatch: expected {list(exp)}, got {got}")
        elif k == "rows":
            for i, exp_row in enumerate(exp):
                if i >= len(actual):
                    errors.append(f"rows[{i}] missing")
                    continue
                for rk, rv in exp_row.items():
                    if actual[i].get(rk) != rv:
                        errors.append(
                            f"rows[{i}].{rk} mismatch: expected {rv!r}, got {actual[i].get(rk)!r}"
                        )
        else:
            if not isinstance(actual, dict) or actual.get(k) != exp:
                got = actual.get(k) if isinstance(actual, dict) else actual
                errors.append(f"{k} mismatch: expected {exp!r}, got {got!r}")

    return errors


def _call(http: Any, method: str, url: str, timeout_s: int, **kwargs: Any) -> Any:
    r = getattr(http, method)(url, timeout=timeout_s, **kwargs)
    if r.status_code >= 400:
        raise RuntimeError(f"{method.upper()} {url} failed ({r.status_code}): {r.text}")
    return r.json()


def run_scenario(
    scenario: Scenario,
    http: Any,
    base_url: str,
    *,
    timeout_s: int = 10,
    prefix: str = "",
    now_fn: Callable[[], datetime] = utcnow_ms,
) -> Tuple[bool, List[str]]:
    """
    Runs every step in order; `http` is anything with requests-style get/post
    (a requests.Session, or a FastAPI TestClient in tests).
    """
    base = base_url.rstrip("/")
    errors: List[str] = []
    # One clock reading per run so relative times resolve identically in every step.
    now = now_fn()

    for i, step in enumerate(scenario.steps):
        expect = dict(step.get("expect") or {})

        if "batch" in step:
            body = _materialize(step["batch"], now, prefix)
            actual = _call(http, "post", f"{base}/events/batch", timeout_s, json=body)
        elif "stats" in step:
            params = _materialize(step["stats"], now, prefix)
            actual = _call(http, "get", f"{base}/stats", timeout_s, params=params)
        else:
            params = _materialize(step["top_lines"], now, prefix)
            actual = _call(
                http, "get", f"{base}/stats/top-defect-lines", timeout_s, params=params
            )

        for e in check_expectations(expect, actual):
            errors.append(f"step #{i}: {e}")

    return not errors, errors


def _fail_report(scenario: Scenario, base_url: str, errors: List[str]) -> str:
    lines = []
    lines.append(f"SCENARIO FAIL: {scenario.id}")
    if scenario.description:
        lines.append(f"Description: {scenario.description}")
    lines.append(f"File: {scenario.path}")
    lines.append(f"Base URL: {base_url}")
    lines.append("")
    lines.append("Reasons:")
    for e in errors:
        lines.append(f"- {e}")
    lines.append("")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        description="Factory events scenario runner (posts batches + verifies stats)"
    )
    ap.add_argument("scenarios", nargs="+", help="Scenario files (.yaml/.yml/.json)")
    ap.add_argument(
        "--base-url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    ap.add_argument(
        "--prefix",
        default=None,
        help="Prefix for eventId/machineId/factoryId (default: random per run)",
    )
    ap.add_argument(
        "--timeout", type=int, default=10, help="HTTP timeout seconds (default: 10)"
    )
    args = ap.parse_args(argv)

    prefix = args.prefix if args.prefix is not None else f"run-{uuid.uuid4().hex[:8]}-"

    failed = 0
    with requests.Session() as http:
        for p in args.scenarios:
            scenario = load_scenario(Path(p))
            ok, errors = run_scenario(
                scenario, http, args.base_url, timeout_s=args.timeout, prefix=prefix
            )
            if ok:
                print(f"SCENARIO PASS: {scenario.id}")
            else:
                failed += 1
                print(_fail_report(scenario, args.base_url, errors), file=sys.stderr)

    return 2 if failed else 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as e:
        print(f"SCENARIO ERROR: {e}", file=sys.stderr)
        raise
