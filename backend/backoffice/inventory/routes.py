# backend/backoffice/inventory/routes.py
# This file contains the availability endpoints consumed by the product, inventory and export screens.

import io
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from jinja2 import Template

from backoffice.auth.dependencies import get_current_user
from backoffice.availability.formula import FormulaInputs
from backoffice.availability.loader import load_display_rules_data
from backoffice.availability.rules import compute_display
from backoffice.common.enums import Scenario, View
from backoffice.db.prisma_client import get_db
from backoffice.inventory.service import availability_rows

router = APIRouter(tags=["Inventory"])

EXPORT_COLUMNS = ["SKU", "Description", "Collection", "Availability", "Label"]

PDF_TEMPLATE = Template(
    """
<h1>Inventory Availability</h1>
<p>Generated {{ generated_at }}</p>
<table border="1" cellpadding="4">
    <tr>{% for column in columns %}<th>{{ column }}</th>{% endfor %}</tr>
    {% for row in rows %}
    <tr>
        <td>{{ row["SKU"] }}</td>
        <td>{{ row["Description"] }}</td>
        <td>{{ row["Collection"] }}</td>
        <td>{{ row["Availability"] }}</td>
        <td>{{ row["Label"] }}</td>
    </tr>
    {% endfor %}
</table>
""",
    autoescape=True,
)


async def _load_skus(db: Any, collection_id: Optional[int] = None):
    where = {"collectionId": collection_id} if collection_id is not None else {}
    return await db.sku.find_many(where=where, include={"collection": True}, order={"skuId": "asc"})


async def _export_rows(db: Any, view: View):
    skus = await _load_skus(db)
    data = await load_display_rules_data(db)
    return [
        {
            "SKU": row["skuId"],
            "Description": row["description"],
            "Collection": row["collectionName"] or "",
            "Availability": row["availability"]["display"],
            "Label": row["availability"]["label"],
        }
        for row in availability_rows(skus, view, data)
    ]


def render_availability_html(rows, generated_at: datetime) -> str:
    return PDF_TEMPLATE.render(
        columns=EXPORT_COLUMNS,
        rows=rows,
        generated_at=generated_at.strftime("%Y-%m-%d %H:%M UTC"),
    )


@router.get("/availability/resolve")
async def resolve_availability(
    scenario: Scenario,
    view: View,
    on_hand: float = Query(0, ge=0, allow_inf_nan=False),
    incoming: float = Query(0, ge=0, allow_inf_nan=False),
    committed: float = Query(0, ge=0, allow_inf_nan=False),
    db: Any = Depends(get_db),
    user: Any = Depends(get_current_user),
):
    data = await load_display_rules_data(db)
    inputs = FormulaInputs(on_hand=on_hand, incoming=incoming, committed=committed)
    return compute_display(scenario, view, inputs, data).to_dict()


@router.get("/inventory/skus")
async def list_sku_availability(
    view: View = View.ADMIN_INVENTORY,
    collection_id: Optional[int] = Query(default=None),
    db: Any = Depends(get_db),
    user: Any = Depends(get_current_user),
):
    skus = await _load_skus(db, collection_id)
    data = await load_display_rules_data(db)
    return {"view": view.value, "items": availability_rows(skus, view, data)}


@router.get("/inventory/export.xlsx")
async def export_availability_xlsx(db: Any = Depends(get_db), user: Any = Depends(get_current_user)):
    rows = await _export_rows(db, View.XLSX)

    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    buf = io.BytesIO()
    df.to_excel(buf, index=False, sheet_name="Availability", engine="openpyxl")
    buf.seek(0)

    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=availability.xlsx"},
    )


@router.get("/inventory/export.pdf")
async def export_availability_pdf(db: Any = Depends(get_db), user: Any = Depends(get_current_user)):
    rows = await _export_rows(db, View.PDF)
    html = render_availability_html(rows, datetime.now(timezone.utc))

    from weasyprint import HTML
    pdf = HTML(string=html).write_pdf()

    return StreamingResponse(
        io.BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=availability.pdf"},
    )
