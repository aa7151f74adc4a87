"""Admin endpoints for the availability display rules and calculated fields.

Every mutation clears the in-memory rule set so product listings and exports
pick up the change on their next request.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from backoffice.auth.dependencies import get_admin_user
from backoffice.availability.formula import RESERVED_NAMES, is_known_field_source, validate_formula
from backoffice.availability.loader import clear_display_rules_cache, load_display_rules_data
from backoffice.availability.rules import SYSTEM_CALCULATED_FIELDS, compute_display, default_rules, scenario_from_collection_type
from backoffice.common.enums import RowBehavior, Scenario, View
from backoffice.common.utils import field_of, normalize_field_name
from backoffice.db.prisma_client import get_db
from backoffice.inventory.service import sku_inputs, sku_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Display Rules"])

PREVIEW_SAMPLE_SIZE = 5
PREVIEW_SCAN_LIMIT = 300


class DisplayRuleInput(BaseModel):
    scenario: Scenario
    view: View
    fieldSource: str = Field(min_length=1)
    label: str = ""
    rowBehavior: RowBehavior = RowBehavior.SHOW


class DisplayRulesUpdate(BaseModel):
    rules: List[DisplayRuleInput] = Field(default_factory=list)
    reset: bool = False


class CalculatedFieldCreate(BaseModel):
    name: str
    formula: str
    description: Optional[str] = None


class CalculatedFieldUpdate(BaseModel):
    name: Optional[str] = None
    formula: Optional[str] = None
    description: Optional[str] = None


class FormulaCheck(BaseModel):
    formula: str


def _rule_payload(rule: Any) -> Dict[str, Any]:
    return {
        "id": field_of(rule, "id"),
        "scenario": field_of(rule, "scenario"),
        "view": field_of(rule, "view"),
        "fieldSource": field_of(rule, "fieldSource"),
        "label": field_of(rule, "label"),
        "rowBehavior": field_of(rule, "rowBehavior"),
    }


def _field_payload(calculated: Any) -> Dict[str, Any]:
    return {
        "id": field_of(calculated, "id"),
        "name": field_of(calculated, "name"),
        "formula": field_of(calculated, "formula"),
        "description": field_of(calculated, "description"),
        "isSystem": bool(field_of(calculated, "isSystem", False)),
    }


async def _formula_map(db: Any) -> Dict[str, str]:
    fields = await db.calculatedfield.find_many()
    return {field_of(f, "name"): field_of(f, "formula") for f in fields}


async def _name_taken(db: Any, name: str, exclude_id: Optional[int] = None) -> bool:
    where: Dict[str, Any] = {"name": name}
    if exclude_id is not None:
        where["NOT"] = {"id": exclude_id}
    return await db.calculatedfield.find_first(where=where) is not None


def _checked_name(raw: str) -> str:
    name = normalize_field_name(raw or "")
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")
    if name in RESERVED_NAMES:
        raise HTTPException(status_code=400, detail=f"'{name}' is a reserved field name")
    return name


def _checked_formula(formula: str) -> str:
    result = validate_formula(formula)
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)
    return formula.strip()


async def ensure_system_fields(db: Any) -> None:
    for name, definition in SYSTEM_CALCULATED_FIELDS.items():
        await db.calculatedfield.upsert(
            where={"name": name},
            data={
                "create": {
                    "name": name,
                    "formula": definition["formula"],
                    "description": definition["description"],
                    "isSystem": True,
                },
                "update": {"formula": definition["formula"], "isSystem": True},
            },
        )


# Display rule matrix
@router.get("/display-rules")
async def list_display_rules(db: Any = Depends(get_db), user: Any = Depends(get_admin_user)):
    rules = await db.displayrule.find_many(order=[{"scenario": "asc"}, {"view": "asc"}])
    return {"rules": [_rule_payload(rule) for rule in rules]}


@router.put("/display-rules")
async def update_display_rules(
    payload: DisplayRulesUpdate,
    db: Any = Depends(get_db),
    user: Any = Depends(get_admin_user),
):
    if payload.reset:
        await ensure_system_fields(db)
        rules = default_rules()
    elif payload.rules:
        rules = [rule.model_dump(mode="json") for rule in payload.rules]
    else:
        raise HTTPException(status_code=400, detail="No display rules supplied")

    formulas = await _formula_map(db)
    for rule in rules:
        if not is_known_field_source(rule["fieldSource"], formulas):
            raise HTTPException(status_code=400, detail=f"Unknown field source: {rule['fieldSource']}")

    updated = 0
    async with db.tx() as transaction:
        for rule in rules:
            values = {
                "fieldSource": rule["fieldSource"],
                "label": rule["label"],
                "rowBehavior": rule["rowBehavior"],
            }
            await transaction.displayrule.upsert(
                where={"scenario_view": {"scenario": rule["scenario"], "view": rule["view"]}},
                data={
                    "create": {"scenario": rule["scenario"], "view": rule["view"], **values},
                    "update": values,
                },
            )
            updated += 1

    clear_display_rules_cache()
    logger.info("Display rules %s by %s (%d rows)", "reset" if payload.reset else "updated", field_of(user, "email"), updated)
    return {"success": True, "updated": updated}


@router.get("/display-rules/preview")
async def preview_display_rules(db: Any = Depends(get_db), user: Any = Depends(get_admin_user)):
    """Sample the most recent SKUs of each scenario and show every view's value."""

    skus = await db.sku.find_many(
        where={"collectionId": {"not": None}},
        include={"collection": True},
        order={"id": "desc"},
        take=PREVIEW_SCAN_LIMIT,
    )
    data = await load_display_rules_data(db)

    samples: Dict[str, List[Dict[str, Any]]] = {scenario.value: [] for scenario in Scenario}
    for sku in skus:
        scenario = scenario_from_collection_type(field_of(field_of(sku, "collection"), "type"))
        bucket = samples[scenario.value]
        if len(bucket) >= PREVIEW_SAMPLE_SIZE:
            continue
        inputs = sku_inputs(sku)
        row = sku_summary(sku)
        row["displays"] = {
            view.value: compute_display(scenario, view, inputs, data).to_dict() for view in View
        }
        bucket.append(row)

    return {"samples": samples}


# Calculated fields
@router.get("/calculated-fields")
async def list_calculated_fields(db: Any = Depends(get_db), user: Any = Depends(get_admin_user)):
    fields = await db.calculatedfield.find_many(order={"name": "asc"})
    return {"fields": [_field_payload(f) for f in fields]}


@router.post("/calculated-fields")
async def create_calculated_field(
    data: CalculatedFieldCreate,
    db: Any = Depends(get_db),
    user: Any = Depends(get_admin_user),
):
    name = _checked_name(data.name)
    if await _name_taken(db, name):
        raise HTTPException(status_code=409, detail="A field with this name already exists")
    formula = _checked_formula(data.formula)

    created = await db.calculatedfield.create(
        data={
            "name": name,
            "formula": formula,
            "description": (data.description or "").strip() or None,
            "isSystem": False,
        }
    )
    clear_display_rules_cache()
    return {"success": True, "id": field_of(created, "id")}


@router.patch("/calculated-fields/{field_id}")
async def update_calculated_field(
    field_id: int,
    data: CalculatedFieldUpdate,
    db: Any = Depends(get_db),
    user: Any = Depends(get_admin_user),
):
    existing = await db.calculatedfield.find_unique(where={"id": field_id})
    if not existing:
        raise HTTPException(status_code=404, detail="Calculated field not found")
    if field_of(existing, "isSystem"):
        raise HTTPException(status_code=400, detail="System fields cannot be modified")

    updates: Dict[str, Any] = {}
    if data.name is not None:
        name = _checked_name(data.name)
        if name != field_of(existing, "name"):
            if await _name_taken(db, name, exclude_id=field_id):
                raise HTTPException(status_code=409, detail="A field with this name already exists")
            if await db.displayrule.find_first(where={"fieldSource": field_of(existing, "name")}):
                raise HTTPException(status_code=400, detail="This field is in use by display rules and cannot be renamed")
            updates["name"] = name
    if data.formula is not None:
        updates["formula"] = _checked_formula(data.formula)
    if data.description is not None:
        updates["description"] = data.description.strip() or None

    if updates:
        await db.calculatedfield.update(where={"id": field_id}, data=updates)
        clear_display_rules_cache()

    return {"success": True}


@router.delete("/calculated-fields/{field_id}")
async def delete_calculated_field(field_id: int, db: Any = Depends(get_db), user: Any = Depends(get_admin_user)):
    existing = await db.calculatedfield.find_unique(where={"id": field_id})
    if not existing:
        raise HTTPException(status_code=404, detail="Calculated field not found")
    if field_of(existing, "isSystem"):
        raise HTTPException(status_code=400, detail="System fields cannot be deleted")
    if await db.displayrule.find_first(where={"fieldSource": field_of(existing, "name")}):
        raise HTTPException(status_code=400, detail="This field is in use by display rules and cannot be deleted")

    await db.calculatedfield.delete(where={"id": field_id})
    clear_display_rules_cache()
    return {"success": True}


@router.post("/calculated-fields/validate")
async def check_formula(data: FormulaCheck, user: Any = Depends(get_admin_user)):
    result = validate_formula(data.formula)
    return {"valid": result.valid, "error": result.error}
