"""Compact JSON encoding for frames sent over the relay."""

from __future__ import annotations

from typing import Any

import orjson


def dumps(payload: Any) -> str:
    """Return *payload* as compact UTF-8 JSON text."""

    return orjson.dumps(payload).decode("utf-8")


def loads(data: str | bytes) -> Any:
    return orjson.loads(data)


__all__ = ["dumps", "loads"]
