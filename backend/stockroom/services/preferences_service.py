"""
Per-user UI preferences.

One row per user. Reads return defaults without creating a row; writes
upsert. A user without an active organization (mid-onboarding) still has
preferences; organization_id is filled in once a session carries one.
JSON columns are always reassigned (never mutated in place) so the ORM
sees the change.
"""
from __future__ import annotations

from ..extensions import db
from ..models import UserPreference
from ..validation import require_table_key

PREFERENCE_SECTIONS = ("table_preferences", "ui_preferences", "feature_settings", "navigation_state")


def default_preferences(user_id: str, org_id: str | None) -> dict:
    return {
        "id": None,
        "user_id": user_id,
        "organization_id": org_id,
        "table_preferences": {},
        "ui_preferences": {},
        "feature_settings": {},
        "navigation_state": None,
        "created_at": None,
        "updated_at": None,
    }


def _get_row(user_id: str) -> UserPreference | None:
    return db.session.query(UserPreference).filter_by(user_id=user_id).first()


def _get_or_create_row(user_id: str, org_id: str | None) -> UserPreference:
    row = _get_row(user_id)
    if row is None:
        row = UserPreference(
            user_id=user_id,
            organization_id=org_id,
            table_preferences={},
            ui_preferences={},
            feature_settings={},
        )
        db.session.add(row)
    if org_id:
        row.organization_id = org_id
    return row


def get_preferences(user_id: str, org_id: str | None) -> dict:
    row = _get_row(user_id)
    return row.to_dict() if row else default_preferences(user_id, org_id)


def update_preferences(user_id: str, org_id: str | None, patch: dict) -> dict:
    """Upsert. Sections present in patch replace the stored ones."""
    row = _get_or_create_row(user_id, org_id)
    for key in PREFERENCE_SECTIONS:
        if key in patch:
            value = patch[key]
            if key != "navigation_state" and value is None:
                value = {}
            setattr(row, key, dict(value) if isinstance(value, dict) else value)
    db.session.commit()
    return row.to_dict()


def get_table_preferences(user_id: str, org_id: str | None, table_key: str) -> dict:
    require_table_key(table_key)
    row = _get_row(user_id)
    tables = (row.table_preferences or {}) if row else {}
    return dict(tables.get(table_key) or {})


def update_table_preferences(user_id: str, org_id: str | None, table_key: str, values: dict) -> dict:
    """Shallow-merge values into one table's stored preferences."""
    require_table_key(table_key)
    row = _get_or_create_row(user_id, org_id)
    tables = dict(row.table_preferences or {})
    merged = {**dict(tables.get(table_key) or {}), **values}
    tables[table_key] = merged
    row.table_preferences = tables
    db.session.commit()
    return merged


def reset_table_preferences(user_id: str, org_id: str | None, table_key: str) -> None:
    require_table_key(table_key)
    row = _get_row(user_id)
    if row is None:
        return
    tables = dict(row.table_preferences or {})
    if tables.pop(table_key, None) is not None:
        row.table_preferences = tables
        db.session.commit()
