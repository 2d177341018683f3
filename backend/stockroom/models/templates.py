from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .tenancy import new_id


IMPORT_MODES = {"merge", "replace"}
IMPORT_JOB_STATUSES = {"importing", "completed", "error", "cancelled"}


class CategoryTemplate(db.Model):
    """
    A ready-made taxonomy for one kind of business (e.g. "Electrician").

    Templates are shared by every organization; importing one copies the
    selected parts into the organization's own categories.
    """
    __tablename__ = "category_templates"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(255), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    business_type = db.Column(db.String(100), nullable=False)
    icon = db.Column(db.String(50), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    categories = db.relationship(
        "TemplateCategory",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TemplateCategory.display_order",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "business_type": self.business_type,
            "icon": self.icon,
            "is_active": self.is_active,
            "usage_count": self.usage_count,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class TemplateCategory(db.Model):
    __tablename__ = "template_categories"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    template_id = db.Column(
        db.String(36), db.ForeignKey("category_templates.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    template = db.relationship("CategoryTemplate", back_populates="categories")
    subcategories = db.relationship(
        "TemplateSubcategory",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="TemplateSubcategory.display_order",
        lazy=True,
    )
    features = db.relationship(
        "TemplateFeature",
        cascade="all, delete-orphan",
        order_by="TemplateFeature.display_order",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "name": self.name,
            "description": self.description,
            "display_order": self.display_order,
            "subcategories": [s.to_dict() for s in self.subcategories],
            "features": [f.to_dict() for f in self.features],
        }


class TemplateSubcategory(db.Model):
    __tablename__ = "template_subcategories"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    template_category_id = db.Column(
        db.String(36), db.ForeignKey("template_categories.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    category = db.relationship("TemplateCategory", back_populates="subcategories")
    features = db.relationship(
        "TemplateFeature",
        cascade="all, delete-orphan",
        order_by="TemplateFeature.display_order",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_category_id": self.template_category_id,
            "name": self.name,
            "description": self.description,
            "display_order": self.display_order,
            "features": [f.to_dict() for f in self.features],
        }


class TemplateFeature(db.Model):
    """
    A feature definition blueprint. Exactly one of template_category_id and
    template_subcategory_id is set.
    """
    __tablename__ = "template_features"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    template_category_id = db.Column(
        db.String(36), db.ForeignKey("template_categories.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    template_subcategory_id = db.Column(
        db.String(36), db.ForeignKey("template_subcategories.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    input_type = db.Column(db.String(16), nullable=False)
    options = db.Column(db.JSON, nullable=True)
    unit = db.Column(db.String(32), nullable=True)
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_category_id": self.template_category_id,
            "template_subcategory_id": self.template_subcategory_id,
            "name": self.name,
            "input_type": self.input_type,
            "options": self.options,
            "unit": self.unit,
            "is_required": self.is_required,
            "display_order": self.display_order,
        }


class TemplateImportJob(db.Model):
    """
    One template import into one organization.

    The selection is expanded into an ordered list of steps when the job
    starts; cursor is the index of the next step to run. Steps run in
    chunks, so a large import advances each time its progress is polled.
    """
    __tablename__ = "template_import_jobs"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    organization_id = db.Column(db.String(64), nullable=False, index=True)
    template_id = db.Column(db.String(36), db.ForeignKey("category_templates.id"), nullable=False)
    created_by_user_id = db.Column(db.String(64), nullable=False)
    created_by_name = db.Column(db.String(255), nullable=True)

    import_mode = db.Column(db.String(16), nullable=False, default="merge")
    status = db.Column(db.String(16), nullable=False, default="importing")

    steps = db.Column(db.JSON, nullable=False, default=list)
    cursor = db.Column(db.Integer, nullable=False, default=0)
    completed_items = db.Column(db.Integer, nullable=False, default=0)
    current_item = db.Column(db.String(255), nullable=True)
    current_item_type = db.Column(db.String(16), nullable=True)
    # template row id -> local row id, for parents created by earlier steps
    id_map = db.Column(db.JSON, nullable=False, default=dict)
    errors = db.Column(db.JSON, nullable=False, default=list)
    result = db.Column(db.JSON, nullable=False, default=dict)
    # set while a progress poll is running a chunk
    claimed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def total_items(self) -> int:
        return len(self.steps or [])

    def to_progress(self) -> dict:
        total = self.total_items
        percentage = round(self.completed_items / total * 100) if total else 0
        if self.status == "completed":
            percentage = 100
        return {
            "jobId": self.id,
            "templateId": self.template_id,
            "importMode": self.import_mode,
            "status": self.status,
            "totalItems": total,
            "completedItems": self.completed_items,
            "currentItem": self.current_item,
            "currentItemType": self.current_item_type,
            "percentage": percentage,
            "errors": list(self.errors or []),
            "result": dict(self.result or {}) if self.status == "completed" else None,
            "startedAt": to_utc_z(self.created_at),
            "completedAt": to_utc_z(self.completed_at),
        }
