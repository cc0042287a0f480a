"""JSON-ready rendering of engine results: Decimals become strings so no precision is lost."""

import hashlib
import json
from dataclasses import fields, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum


def to_jsonable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def canonical_json(data) -> str:
    return json.dumps(to_jsonable(data), sort_keys=True, separators=(",", ":"))


def fingerprint(data) -> str:
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()
