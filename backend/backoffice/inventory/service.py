"""Helpers that turn SKU rows into availability rows for listings and exports."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from backoffice.availability.formula import FormulaInputs
from backoffice.availability.rules import DisplayRulesData, compute_display, scenario_from_collection_type
from backoffice.common.enums import View
from backoffice.common.utils import field_of


def sku_inputs(sku: Any) -> FormulaInputs:
    return FormulaInputs.from_values(
        on_hand=field_of(sku, "quantity"),
        incoming=field_of(sku, "incoming"),
        committed=field_of(sku, "committed"),
    )


def sku_summary(sku: Any) -> Dict[str, Any]:
    collection = field_of(sku, "collection")
    return {
        "skuId": field_of(sku, "skuId"),
        "description": field_of(sku, "orderEntryDescription")
        or field_of(sku, "description")
        or field_of(sku, "skuId"),
        "collectionName": field_of(collection, "name"),
        "collectionType": field_of(collection, "type"),
        "quantity": field_of(sku, "quantity") or 0,
        "incoming": field_of(sku, "incoming"),
        "committed": field_of(sku, "committed"),
    }


def availability_rows(
    skus: Iterable[Any],
    view: View,
    data: DisplayRulesData,
    include_hidden: bool = False,
) -> List[Dict[str, Any]]:
    """Compute the availability cell of every SKU for ``view``.

    Rows whose rule hides them are dropped unless ``include_hidden`` is set.
    """

    rows = []
    for sku in skus:
        collection = field_of(sku, "collection")
        scenario = scenario_from_collection_type(field_of(collection, "type"))
        availability = compute_display(scenario, view, sku_inputs(sku), data)
        if availability.hidden and not include_hidden:
            continue
        row = sku_summary(sku)
        row["scenario"] = scenario.value
        row["availability"] = availability.to_dict()
        rows.append(row)
    return rows
