from __future__ import annotations
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping
from urllib.parse import urlparse

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_datetime


# Numeric(12, 2) upper bound. Keeps nonsense prices out of reports.
MAX_MONEY = Decimal("9999999999.99")

TABLE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - defaults_on_create: values filled in for omitted fields on POST
    - choices: enum-like fields and their allowed values
    - uuid_fields / url_fields: string fields with a format
    - min_values: inclusive lower bounds for numeric fields
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    defaults_on_create: dict[str, Any] = field(default_factory=dict)
    choices: dict[str, set[str]] = field(default_factory=dict)
    uuid_fields: set[str] = field(default_factory=set)
    url_fields: set[str] = field(default_factory=set)
    min_values: dict[str, int] = field(default_factory=dict)


def payload_columns(*columns: Column) -> dict[str, Column]:
    """
    Column metadata for payloads that are not a single table's row
    (inventory adjustments, transfers, reservations).
    """
    return {c.key: c for c in columns}


def _columns_by_key(model: DeclarativeMeta | Mapping[str, Column]) -> dict[str, Any]:
    if isinstance(model, Mapping):
        return dict(model)
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Whole-number floats from JSON clients (1.0) are accepted; 1.5 is not
        if isinstance(value, float):
            if value.is_integer():
                return int(value)
            raise ValidationError(f"{col.key} must be a whole number")
        raise ValidationError(f"{col.key} must be an integer")

    # Money / decimals
    if isinstance(coltype, Numeric):
        if isinstance(value, bool) or not isinstance(value, (int, float, Decimal, str)):
            raise ValidationError(f"{col.key} must be a number")
        try:
            dec = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{col.key} must be a number")
        if not dec.is_finite():
            raise ValidationError(f"{col.key} must be a finite number")
        scale = coltype.scale if coltype.scale is not None else 2
        return dec.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip()[:10])
            except ValueError:
                raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
        raise ValidationError(f"{col.key} must be a date")

    # JSON columns are shape-checked by the enforce_rules_* helpers
    if isinstance(coltype, JSON):
        return value

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def _check_format(key: str, val: Any, policy: ModelValidationPolicy) -> None:
    if val is None:
        return

    allowed = policy.choices.get(key)
    if allowed is not None and val not in allowed:
        raise ValidationError(f"{key} must be one of: {', '.join(sorted(allowed))}")

    if key in policy.uuid_fields:
        try:
            uuid.UUID(str(val))
        except ValueError:
            raise ValidationError(f"{key} must be a valid UUID")

    if key in policy.url_fields:
        parsed = urlparse(str(val))
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValidationError(f"{key} must be a valid URL")

    minimum = policy.min_values.get(key)
    if minimum is not None and val < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")


def validate_payload(
    *,
    model: DeclarativeMeta | Mapping[str, Column],
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    - choices / uuid / url / min_values format rules
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create, fill defaults)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable or k in policy.required_on_create:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for required text fields
        if isinstance(col.type, (String, Text)) and (not col.nullable or k in policy.required_on_create):
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        _check_format(k, val, policy)
        patch[k] = val

    if not partial:
        for k, default in policy.defaults_on_create.items():
            patch.setdefault(k, default)

    return patch


def normalize_keys(payload: dict, aliases: Mapping[str, str]) -> dict:
    """
    Map camelCase keys sent by the dashboard client onto snake_case fields.

    When both spellings are present the snake_case value wins.
    """
    if not isinstance(payload, dict):
        return payload
    out = {}
    for k, v in payload.items():
        target = aliases.get(k, k)
        if target in out and target != k:
            continue
        out[target] = v
    return out


def _require_money_range(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        if patch[key] < 0:
            raise ValidationError(f"{key} must be non-negative")
        if patch[key] > MAX_MONEY:
            raise ValidationError(f"{key} cannot exceed {MAX_MONEY:,}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _require_money_range(patch, "price")
    _require_money_range(patch, "cost")

    photos = patch.get("photo_urls")
    if photos is not None:
        if not isinstance(photos, list) or not all(isinstance(p, str) and p.strip() for p in photos):
            raise ValidationError("photo_urls must be a list of non-empty strings")


def enforce_rules_feature_definition(patch: dict, *, partial: bool) -> None:
    if not partial and not patch.get("category_id") and not patch.get("subcategory_id"):
        raise ValidationError("Either category_id or subcategory_id must be provided")

    options = patch.get("options")
    if options is not None:
        if not isinstance(options, list) or not all(isinstance(o, str) for o in options):
            raise ValidationError("options must be a list of strings")
        cleaned = [o.strip() for o in options]
        if any(not o for o in cleaned):
            raise ValidationError("options cannot contain blank values")
        if len(set(cleaned)) != len(cleaned):
            raise ValidationError("options must be unique")
        patch["options"] = cleaned

    # Updates are checked against the merged row by the service
    if not partial and patch.get("input_type") == "select":
        if not patch.get("options"):
            raise ValidationError("options are required for select features")


def enforce_rules_inventory_adjust(patch: dict) -> None:
    # Adjustments are signed; zero is a no-op and rejected
    if patch.get("quantity_change") == 0:
        raise ValidationError("quantity_change must be non-zero")


def enforce_rules_positive_quantity(patch: dict, key: str = "quantity") -> None:
    if key in patch and (patch[key] is None or patch[key] <= 0):
        raise ValidationError("Quantity must be a positive number")


def enforce_rules_inventory_transfer(patch: dict) -> None:
    enforce_rules_positive_quantity(patch)
    if patch.get("from_warehouse_id") == patch.get("to_warehouse_id"):
        raise ValidationError("Cannot transfer to the same warehouse")


def enforce_rules_json_object(patch: dict, keys: set[str]) -> None:
    for key in keys:
        if key in patch and patch[key] is not None and not isinstance(patch[key], dict):
            raise ValidationError(f"{key} must be an object")


def require_table_key(table_key: str) -> str:
    if not TABLE_KEY_RE.match(table_key or ""):
        raise ValidationError("Invalid table key")
    return table_key


def enforce_rules_email(patch: dict, key: str = "email") -> None:
    # Blank emails are stored as NULL so uniqueness ignores them
    if key in patch and patch[key] == "":
        patch[key] = None
    if patch.get(key) and not EMAIL_RE.match(patch[key]):
        raise ValidationError("Invalid email format")


def enforce_rules_tags(patch: dict) -> None:
    tags = patch.get("tags")
    if tags is None:
        if "tags" in patch:
            patch["tags"] = []
        return
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ValidationError("tags must be a list of strings")
    cleaned = []
    for t in (t.strip() for t in tags):
        if t and t not in cleaned:
            cleaned.append(t)
    patch["tags"] = cleaned


def enforce_rules_discount(patch: dict) -> None:
    """Discounts on quotes and quote items: percentages stay within 0-100."""
    _require_money_range(patch, "discount_value")
    if patch.get("discount_type") == "percentage" and (patch.get("discount_value") or 0) > 100:
        raise ValidationError("Percentage discount cannot exceed 100")
