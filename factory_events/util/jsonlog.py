from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

from factory_events.util.time import format_instant, utcnow


# Field names whose values never reach the log (event bodies, credentials).
_DENY_KEYS = frozenset({"events", "body", "headers", "authorization", "password", "database_url"})

_DEBUG_LOG_PAYLOADS = os.getenv("FACTORY_DEBUG_LOG_PAYLOADS", "").lower() in ("1", "true", "yes", "on")


def get_json_logger(component: str) -> logging.Logger:
    """
    JSONL (message-only) logger on stdout, without duplicate propagation.
    """
    logger = logging.getLogger(f"factory_events.{component}")
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(h)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def sanitize_value(v: Any) -> Any:
    """Redacts deny-listed keys at any nesting level; other values become JSON-safe."""
    if v is None or isinstance(v, (str, int, float, bool)):
        return v

    if isinstance(v, (list, tuple)):
        return [sanitize_value(x) for x in v]

    if isinstance(v, dict):
        out: dict[str, Any] = {}
        for k, vv in v.items():
            if str(k).lower() in _DENY_KEYS:
                out[str(k)] = "<redacted>"
            else:
                out[str(k)] = sanitize_value(vv)
        return out

    return str(v)


def build_log_line(
    *,
    level: str,
    component: str,
    event: str,
    run_id: str,
    msg: str,
    **fields: Any,
) -> str:
    payload: dict[str, Any] = {
        "ts": format_instant(utcnow()),
        "level": level,
        "component": component,
        "event": event,
        "run_id": run_id,
        "msg": msg,
    }

    for k, v in fields.items():
        if str(k).lower() not in _DENY_KEYS:
            payload[k] = sanitize_value(v)
        elif _DEBUG_LOG_PAYLOADS:
            # Debug mode shows that the field was present, never its value.
            payload[k] = "<redacted>"

    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def log_event(
    logger: logging.Logger,
    *,
    level: str,
    event: str,
    run_id: str,
    msg: str,
    **fields: Any,
) -> None:
    component = logger.name.rsplit(".", 1)[-1]
    line = build_log_line(
        level=level, component=component, event=event, run_id=run_id, msg=msg, **fields
    )

    lvl = (level or "").upper()
    if lvl == "ERROR":
        logger.error(line)
    elif lvl in ("WARN", "WARNING"):
        logger.warning(line)
    else:
        logger.info(line)
