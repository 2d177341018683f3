from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .tenancy import new_id


class UserPreference(db.Model):
    """
    Per-user UI state: table layouts, theme, feature flags, navigation.

    One row per user. JSON columns are replaced wholesale on update
    (assigning a new dict) so SQLAlchemy detects the change.
    """
    __tablename__ = "user_preferences"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    organization_id = db.Column(db.String(64), nullable=True, index=True)

    table_preferences = db.Column(db.JSON, nullable=False, default=dict)
    ui_preferences = db.Column(db.JSON, nullable=False, default=dict)
    feature_settings = db.Column(db.JSON, nullable=False, default=dict)
    navigation_state = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "table_preferences": dict(self.table_preferences or {}),
            "ui_preferences": dict(self.ui_preferences or {}),
            "feature_settings": dict(self.feature_settings or {}),
            "navigation_state": self.navigation_state,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
