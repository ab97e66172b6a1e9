from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, ConflictError  # noqa: F401  (re-exported)
from .models import Item, User, ITEM_STATUSES
from .models.users import BILLING_FIELDS
from .money import AmountError, parse_amount


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST/PUT

    Keys outside writable_fields are ignored, not rejected, so older and newer
    clients keep working against the same endpoints.
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


ITEM_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "title", "description", "amount", "status", "image",
        "customer_email", "customer_name", "customer_address",
    }),
    required_on_create=frozenset({"title", "amount"}),
)

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "email", "phone", "avatar"}),
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _clean_string(col, value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{col.key} must be a string")
    val = str(value).strip()

    if val == "":
        if not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        return None

    # Max length check for String(n)
    if isinstance(col.type, String) and col.type.length and len(val) > col.type.length:
        raise ValidationError(f"{col.key} exceeds max length {col.type.length}")
    return val


def _require_json_object(payload) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _normalize_email(value: str | None, field: str) -> str | None:
    if value is None:
        return None
    email = value.lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError(f"{field} must be a valid email address")
    return email


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON string fields against:
    - SQLAlchemy column metadata (nullable, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields that map to columns.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    payload = _require_json_object(payload)

    if not partial:
        missing = sorted(
            f for f in policy.required_on_create
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    patch: dict = {}
    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            continue
        col = cols[k]
        if isinstance(col.type, (String, Text)):
            patch[k] = _clean_string(col, raw)
        else:
            patch[k] = raw
    return patch


def parse_item_payload(payload: dict | None) -> dict:
    """
    Explicit input for item create and update.

    title and amount are required on both operations. Optional keys that are
    absent stay absent in the result so update leaves those columns alone.
    """
    payload = _require_json_object(payload)
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)

    try:
        patch["amount_cents"] = parse_amount(payload.get("amount"))
    except AmountError as e:
        raise ValidationError(str(e))

    if "status" in patch:
        status = (patch["status"] or "pending").lower()
        if status not in ITEM_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(ITEM_STATUSES)}")
        patch["status"] = status

    if "customer_email" in patch:
        patch["customer_email"] = _normalize_email(patch["customer_email"], "customer_email")

    return patch


def parse_profile_payload(payload: dict | None) -> dict:
    """
    Profile update input.

    Empty name/email are skipped rather than rejected; phone and avatar may be
    cleared by sending an empty string or null.
    """
    payload = _require_json_object(payload)
    trimmed = {
        k: v for k, v in payload.items()
        if not (k in {"name", "email"} and (v is None or (isinstance(v, str) and not v.strip())))
    }
    patch = validate_payload(model=User, payload=trimmed, policy=PROFILE_POLICY, partial=True)
    if "email" in patch:
        patch["email"] = _normalize_email(patch["email"], "email")
    if "billing_address" in payload and payload["billing_address"] is not None:
        patch["billing_address"] = parse_billing_address(payload["billing_address"])
    return patch


def parse_billing_address(address) -> dict:
    """Returns {column_name: value} for the provided billing keys only."""
    if not isinstance(address, dict):
        raise ValidationError("billing_address must be an object")

    # Accept the camelCase key the web client sends for the zip code
    if "zipCode" in address and "zip_code" not in address:
        address = {**address, "zip_code": address["zipCode"]}

    cols = _columns_by_key(User)
    patch = {}
    for field in BILLING_FIELDS:
        if field in address:
            key = f"billing_{field}"
            patch[key] = _clean_string(cols[key], address[field])
    return patch
