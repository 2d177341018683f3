"""
Category template library and template imports.

An import copies the selected template categories, subcategories and
feature definitions into one organization. The selection is expanded
into an ordered list of steps stored on a TemplateImportJob; steps run
in chunks of TEMPLATE_IMPORT_CHUNK_SIZE, the first chunk when the import
starts and one more chunk each time its progress is read.

Import modes:
- merge: rows whose name already exists are skipped (and reused as the
  parent of their selected children)
- replace: existing categories and subcategories are kept but take the
  template's description and display order

Feature definitions that already exist are skipped in both modes.
"""
from __future__ import annotations

import logging
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import (
    Category,
    CategoryTemplate,
    Subcategory,
    TemplateCategory,
    TemplateFeature,
    TemplateImportJob,
    TemplateSubcategory,
)
from ..time_utils import as_utc_naive, utcnow
from ..validation import ConflictError, ValidationError
from . import category_service, feature_service
from .concurrency import lock_for_update
from .tenant_service import NotFoundError, scoped

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50
CLAIM_TIMEOUT = timedelta(minutes=5)

RESULT_KEYS = (
    "categoriesCreated", "categoriesUpdated", "categoriesSkipped",
    "subcategoriesCreated", "subcategoriesUpdated", "subcategoriesSkipped",
    "featuresCreated", "featuresSkipped",
)


# Library

def list_templates() -> dict:
    rows = (
        db.session.query(CategoryTemplate)
        .filter(CategoryTemplate.is_active.is_(True))
        .order_by(CategoryTemplate.business_type.asc(), CategoryTemplate.name.asc())
        .all()
    )
    return {"templates": [t.to_dict() for t in rows], "totalCount": len(rows)}


def _require_template(template_id: str) -> CategoryTemplate:
    template = db.session.get(CategoryTemplate, template_id)
    if template is None or not template.is_active:
        raise NotFoundError("Template not found")
    return template


def get_template(template_id: str) -> dict:
    """Template with its categories, their subcategories, and features at both levels."""
    template = _require_template(template_id)
    data = template.to_dict()
    data["categories"] = [c.to_dict() for c in template.categories]
    return data


# Import planning

def _as_id_list(value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError("featureIds must be a list of ids")
    return value


def plan_import(template: CategoryTemplate, selections: dict) -> list[dict]:
    """
    Expand a selection into ordered steps. Each step names one template
    row; unknown ids become error steps so they show up in the job's errors.
    """
    if not isinstance(selections, dict) or not isinstance(selections.get("categories"), list):
        raise ValidationError("Invalid import request: selections are required")

    by_id = {c.id: c for c in template.categories}
    steps: list[dict] = []
    for cat_sel in selections["categories"]:
        if not isinstance(cat_sel, dict):
            raise ValidationError("Each category selection must be an object")
        tcat_id = cat_sel.get("templateCategoryId")
        tcat = by_id.get(tcat_id)
        if tcat is None:
            steps.append({"kind": "missing", "itemType": "category", "ref": tcat_id})
            continue

        steps.append({"kind": "category", "ref": tcat.id})
        if cat_sel.get("includeFeatures"):
            known = {f.id for f in tcat.features}
            for fid in _as_id_list(cat_sel.get("featureIds")):
                if fid in known:
                    steps.append({"kind": "feature", "ref": fid, "parent": tcat.id, "level": "category"})

        subs = {s.id: s for s in tcat.subcategories}
        for sub_sel in cat_sel.get("subcategories") or []:
            if not isinstance(sub_sel, dict):
                raise ValidationError("Each subcategory selection must be an object")
            tsub = subs.get(sub_sel.get("templateSubcategoryId"))
            if tsub is None:
                steps.append({"kind": "missing", "itemType": "subcategory", "ref": sub_sel.get("templateSubcategoryId")})
                continue
            steps.append({"kind": "subcategory", "ref": tsub.id, "parent": tcat.id})
            if sub_sel.get("includeFeatures"):
                known = {f.id for f in tsub.features}
                for fid in _as_id_list(sub_sel.get("featureIds")):
                    if fid in known:
                        steps.append({"kind": "feature", "ref": fid, "parent": tsub.id, "level": "subcategory"})
    return steps


def start_import(
    *,
    org_id: str,
    user_id: str,
    user_name: str,
    template_id: str,
    selections,
    import_mode: str = "merge",
) -> dict:
    template = _require_template(template_id)
    steps = plan_import(template, selections)

    job = TemplateImportJob(
        organization_id=org_id,
        template_id=template.id,
        created_by_user_id=user_id,
        created_by_name=user_name,
        import_mode=import_mode,
        status="importing",
        steps=steps,
        result={k: 0 for k in RESULT_KEYS},
    )
    db.session.add(job)
    db.session.commit()
    logger.info("Template import %s started: %s steps from %s", job.id, len(steps), template.name)

    run_import_chunk(job)
    return {"jobId": job.id, "message": "Import started successfully"}


# Import execution

def _chunk_size() -> int:
    return int(current_app.config.get("TEMPLATE_IMPORT_CHUNK_SIZE", DEFAULT_CHUNK_SIZE))


def _find_template_row(model, row_id: str):
    return db.session.get(model, row_id)


def _existing_category(org_id: str, name: str) -> Category | None:
    return scoped(Category, org_id).filter(Category.name == name).first()


def _existing_subcategory(category_id: str, name: str) -> Subcategory | None:
    return db.session.query(Subcategory).filter_by(category_id=category_id, name=name).first()


def _run_category(job: TemplateImportJob, step: dict, id_map: dict, result: dict) -> str:
    tcat = _find_template_row(TemplateCategory, step["ref"])
    job.current_item, job.current_item_type = f"Category: {tcat.name}", "category"

    existing = _existing_category(job.organization_id, tcat.name)
    if existing is not None:
        id_map[tcat.id] = existing.id
        if job.import_mode == "replace":
            category_service.update_category(
                org_id=job.organization_id,
                category_id=existing.id,
                patch={"description": tcat.description, "display_order": tcat.display_order},
            )
            result["categoriesUpdated"] += 1
        else:
            result["categoriesSkipped"] += 1
        return tcat.name

    created = category_service.create_category(
        org_id=job.organization_id,
        user_id=job.created_by_user_id,
        user_name=job.created_by_name,
        patch={
            "name": tcat.name,
            "description": tcat.description,
            "status": "active",
            "display_order": tcat.display_order,
        },
    )
    id_map[tcat.id] = created["id"]
    result["categoriesCreated"] += 1
    return tcat.name


def _run_subcategory(job: TemplateImportJob, step: dict, id_map: dict, result: dict) -> str:
    tsub = _find_template_row(TemplateSubcategory, step["ref"])
    job.current_item, job.current_item_type = f"Subcategory: {tsub.name}", "subcategory"
    category_id = id_map.get(step["parent"])
    if category_id is None:
        raise ValidationError("Parent category was not imported")

    existing = _existing_subcategory(category_id, tsub.name)
    if existing is not None:
        id_map[tsub.id] = existing.id
        if job.import_mode == "replace":
            category_service.update_subcategory(
                org_id=job.organization_id,
                subcategory_id=existing.id,
                patch={"description": tsub.description, "display_order": tsub.display_order},
            )
            result["subcategoriesUpdated"] += 1
        else:
            result["subcategoriesSkipped"] += 1
        return tsub.name

    created = category_service.create_subcategory(
        org_id=job.organization_id,
        user_id=job.created_by_user_id,
        user_name=job.created_by_name,
        patch={
            "category_id": category_id,
            "name": tsub.name,
            "description": tsub.description,
            "status": "active",
            "display_order": tsub.display_order,
        },
    )
    id_map[tsub.id] = created["id"]
    result["subcategoriesCreated"] += 1
    return tsub.name


def _run_feature(job: TemplateImportJob, step: dict, id_map: dict, result: dict) -> str:
    tfeat = _find_template_row(TemplateFeature, step["ref"])
    job.current_item, job.current_item_type = f"Feature: {tfeat.name}", "feature"
    parent_id = id_map.get(step["parent"])
    if parent_id is None:
        raise ValidationError(f"Parent {step['level']} was not imported")

    owner = {"category_id": parent_id} if step["level"] == "category" else {"subcategory_id": parent_id}
    try:
        feature_service.create_feature_definition(
            org_id=job.organization_id,
            user_id=job.created_by_user_id,
            user_name=job.created_by_name,
            patch={
                **owner,
                "name": tfeat.name,
                "input_type": tfeat.input_type,
                "options": list(tfeat.options) if tfeat.options else None,
                "unit": tfeat.unit,
                "is_required": tfeat.is_required,
                "display_order": tfeat.display_order,
            },
        )
    except ConflictError:
        result["featuresSkipped"] += 1
        return tfeat.name
    result["featuresCreated"] += 1
    return tfeat.name


STEP_RUNNERS = {
    "category": _run_category,
    "subcategory": _run_subcategory,
    "feature": _run_feature,
}


def _claim(job_id: str) -> TemplateImportJob | None:
    """
    Lock the job row and mark it as running a chunk.

    Steps commit as they go, which releases the row lock, so the claim is
    what keeps two overlapping polls from running the same steps. A claim
    older than CLAIM_TIMEOUT is taken to be from a poll that died.
    None when the job is finished or another poll holds the claim.
    """
    job = lock_for_update(db.session.query(TemplateImportJob).filter_by(id=job_id)).first()
    now = utcnow()
    held = job.claimed_at is not None and now - as_utc_naive(job.claimed_at) < CLAIM_TIMEOUT
    if job.status != "importing" or held:
        db.session.commit()
        return None
    job.claimed_at = now
    db.session.commit()
    return job


def run_import_chunk(job: TemplateImportJob) -> None:
    """
    Run up to one chunk of pending steps. A failing step is recorded in the
    job's errors and the import moves on to the next step.
    """
    job = _claim(job.id)
    if job is None:
        return
    try:
        _run_claimed_chunk(job)
    except Exception:
        db.session.rollback()
        job.claimed_at = None
        db.session.commit()
        raise


def _run_claimed_chunk(job: TemplateImportJob) -> None:
    steps = list(job.steps or [])
    id_map = dict(job.id_map or {})
    result = dict(job.result or {})
    errors = list(job.errors or [])
    completed = job.completed_items or 0
    end = min(job.cursor + _chunk_size(), len(steps))

    for index in range(job.cursor, end):
        step = steps[index]
        if step["kind"] == "missing":
            errors.append({
                "item": step["ref"],
                "itemType": step["itemType"],
                "error": f"Template {step['itemType']} not found",
                "timestamp": utcnow().isoformat() + "Z",
            })
            continue
        try:
            STEP_RUNNERS[step["kind"]](job, step, id_map, result)
        except (ValidationError, ConflictError, NotFoundError) as e:
            label = job.current_item
            db.session.rollback()
            errors.append({
                "item": label or step["ref"],
                "itemType": step["kind"],
                "error": str(e),
                "timestamp": utcnow().isoformat() + "Z",
            })
            continue
        completed += 1

    job.cursor = end
    job.completed_items = completed
    job.id_map = id_map
    job.result = result
    job.errors = errors
    job.claimed_at = None
    if job.cursor >= len(steps):
        job.status = "completed"
        job.current_item = None
        job.current_item_type = None
        job.completed_at = utcnow()
        template = db.session.get(CategoryTemplate, job.template_id)
        template.usage_count = (template.usage_count or 0) + 1
        logger.info("Template import %s completed: %s", job.id, result)
    db.session.commit()


def _require_job(org_id: str, job_id: str) -> TemplateImportJob:
    job = db.session.get(TemplateImportJob, job_id)
    if job is None or job.organization_id != org_id:
        raise NotFoundError("Import job not found")
    return job


def get_progress(org_id: str, job_id: str) -> dict:
    job = _require_job(org_id, job_id)
    run_import_chunk(job)
    return job.to_progress()


def cancel_import(org_id: str, job_id: str) -> dict:
    job = db.session.get(TemplateImportJob, job_id)
    if job is None or job.organization_id != org_id or job.status != "importing":
        raise NotFoundError("Import job not found or already completed")
    job.status = "cancelled"
    job.current_item = None
    job.current_item_type = None
    job.completed_at = utcnow()
    db.session.commit()
    logger.info("Template import %s cancelled after %s of %s steps", job.id, job.cursor, job.total_items)
    return {"success": True, "message": "Import cancelled"}


# Library seeding

def seed_library(library: list[dict]) -> int:
    """Insert templates from library that are not present yet (matched by name). Returns how many were added."""
    added = 0
    for entry in library:
        if db.session.query(CategoryTemplate).filter_by(name=entry["name"]).first() is not None:
            continue
        template = CategoryTemplate(
            name=entry["name"],
            description=entry.get("description"),
            business_type=entry["business_type"],
            icon=entry.get("icon"),
        )
        for cat_order, cat in enumerate(entry.get("categories", [])):
            tcat = TemplateCategory(name=cat["name"], description=cat.get("description"), display_order=cat_order)
            tcat.features = _template_features(cat.get("features", []))
            for sub_order, sub in enumerate(cat.get("subcategories", [])):
                tsub = TemplateSubcategory(name=sub["name"], description=sub.get("description"), display_order=sub_order)
                tsub.features = _template_features(sub.get("features", []))
                tcat.subcategories.append(tsub)
            template.categories.append(tcat)
        db.session.add(template)
        added += 1
    db.session.commit()
    return added


def _template_features(specs: list[dict]) -> list:
    return [
        TemplateFeature(
            name=f["name"],
            input_type=f.get("input_type", "text"),
            options=f.get("options"),
            unit=f.get("unit"),
            is_required=f.get("is_required", False),
            display_order=order,
        )
        for order, f in enumerate(specs)
    ]
