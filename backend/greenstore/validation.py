from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import InvalidRequestError, ValidationError


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Maximum money amount accepted from clients: 9,999,999,999.99
MAX_AMOUNT = Decimal("9999999999.99")

# Maximum stock quantity accepted from clients, matching Numeric(12, 3)
MAX_QUANTITY = Decimal("999999999.999")


@dataclass(frozen=True)
class FieldRule:
    """
    One accepted request field.

    kind: "int" | "decimal" | "str" | "email" | "bool" | "json" | "list"
    """
    kind: str
    required: bool = False
    nullable: bool = False
    min_value: Any = None
    max_value: Any = None
    choices: frozenset | None = None
    max_length: int | None = None
    nonzero: bool = False


@dataclass(frozen=True)
class RequestPolicy:
    """
    Central policy layer for a request body:
    - fields: what clients are allowed to send (security boundary)
    - unknown fields are rejected rather than silently dropped
    """
    fields: dict[str, FieldRule]


class _FieldError(Exception):
    pass


def _coerce_int(value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise _FieldError("must be an integer")
        if "e" in stripped.lower():
            raise _FieldError("must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise _FieldError("must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise _FieldError("must be an integer")
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise _FieldError("must be an integer, not a decimal")
    raise _FieldError("must be an integer")


def _coerce_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise _FieldError("must be a number")
    if isinstance(value, (int, Decimal)):
        result = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            # str() first so 0.1 stays 0.1 instead of its binary expansion
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise _FieldError("must be a number")
    else:
        raise _FieldError("must be a number")
    if not result.is_finite():
        raise _FieldError("must be a finite number")
    return result


def _coerce_value(rule: FieldRule, value: Any):
    kind = rule.kind

    if kind == "int":
        val = _coerce_int(value)
    elif kind == "decimal":
        val = _coerce_decimal(value)
    elif kind == "bool":
        if isinstance(value, bool):
            val = value
        elif value in (0, 1, "0", "1", "true", "false"):
            val = value in (1, "1", "true")
        else:
            raise _FieldError("must be a boolean")
    elif kind in ("str", "email"):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise _FieldError("must be a string")
        val = str(value).strip()
        if val == "":
            raise _FieldError("cannot be blank")
        if kind == "email" and not EMAIL_RE.match(val):
            raise _FieldError("must be a valid email")
        if rule.max_length and len(val) > rule.max_length:
            raise _FieldError(f"exceeds max length {rule.max_length}")
    elif kind == "list":
        if not isinstance(value, list):
            raise _FieldError("must be a list")
        val = value
    elif kind == "json":
        if not isinstance(value, (dict, list)):
            raise _FieldError("must be an object")
        val = value
    else:
        val = value

    if rule.choices is not None and val not in rule.choices:
        raise _FieldError(f"must be one of: {', '.join(sorted(str(c) for c in rule.choices))}")

    if kind in ("int", "decimal"):
        if rule.nonzero and val == 0:
            raise _FieldError("must be non-zero")
        if rule.min_value is not None and val < rule.min_value:
            raise _FieldError(f"must be >= {rule.min_value}")
        if rule.max_value is not None and val > rule.max_value:
            raise _FieldError(f"must be <= {rule.max_value}")

    return val


def validate_payload(*, payload: Any, policy: RequestPolicy, partial: bool = False) -> dict:
    """
    Validates + normalizes incoming JSON against a RequestPolicy.

    partial=False: create semantics (enforce required fields)
    partial=True: patch semantics (validate only provided keys)

    All field problems are collected and raised together as one ValidationError.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidRequestError("Invalid JSON payload")

    errors: list[dict] = []

    for key in payload.keys():
        if key not in policy.fields:
            errors.append({"field": key, "message": "field not allowed"})

    if not partial:
        for key, rule in policy.fields.items():
            if rule.required and payload.get(key) is None:
                errors.append({"field": key, "message": "is required"})

    patch: dict = {}
    for key, raw in payload.items():
        rule = policy.fields.get(key)
        if rule is None:
            continue
        if raw is None:
            if rule.nullable:
                patch[key] = None
            elif not rule.required or partial:
                errors.append({"field": key, "message": "cannot be null"})
            continue
        try:
            patch[key] = _coerce_value(rule, raw)
        except _FieldError as e:
            errors.append({"field": key, "message": str(e)})

    if errors:
        raise ValidationError(errors)

    return patch
