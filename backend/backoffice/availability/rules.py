"""Display rules: which number a product shows, per scenario and per view."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from backoffice.availability.formula import BLANK_SOURCES, FormulaInputs, get_field_value
from backoffice.common.enums import RowBehavior, Scenario, View
from backoffice.common.utils import field_of

FALLBACK_LABEL = "Available"

SYSTEM_CALCULATED_FIELDS = {
    "net_po": {
        "formula": "incoming - committed",
        "description": "Incoming PO quantity not yet committed to orders",
    },
}

_DEFAULT_RULES = {
    Scenario.ATS: ("on_hand", "Available"),
    Scenario.PREORDER_PO: ("net_po", "Available"),
    Scenario.PREORDER_NO_PO: ("(blank)", ""),
}

_COLLECTION_TYPE_SCENARIOS = {
    "ats": Scenario.ATS,
    "preorder_po": Scenario.PREORDER_PO,
    "preorder_no_po": Scenario.PREORDER_NO_PO,
    # legacy collection types
    "ATS": Scenario.ATS,
    "PreOrder": Scenario.PREORDER_PO,
}


@dataclass(frozen=True)
class DisplayRuleConfig:
    field_source: str
    label: str
    row_behavior: str = RowBehavior.SHOW.value


@dataclass
class DisplayRulesData:
    rules: Dict[str, Dict[str, DisplayRuleConfig]] = field(default_factory=dict)
    formulas: Dict[str, str] = field(default_factory=dict)

    def rule_for(self, scenario: str, view: str) -> Optional[DisplayRuleConfig]:
        return self.rules.get(_key(scenario), {}).get(_key(view))


@dataclass(frozen=True)
class AvailabilityDisplay:
    display: str
    numeric_value: Optional[float]
    is_blank: bool
    label: str
    hidden: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display": self.display,
            "numericValue": self.numeric_value,
            "isBlank": self.is_blank,
            "label": self.label,
            "hidden": self.hidden,
        }


def _key(value: Any) -> str:
    # enum members hash by name, so lookups go through the plain value
    return getattr(value, "value", value)


def scenario_from_collection_type(collection_type: Optional[str]) -> Scenario:
    """Map a collection's type column to its availability scenario; unknown types are ATS."""
    if not collection_type:
        return Scenario.ATS
    return _COLLECTION_TYPE_SCENARIOS.get(collection_type, Scenario.ATS)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def build_rules_data(
    display_rules: Iterable[Any],
    calculated_fields: Iterable[Any],
) -> DisplayRulesData:
    """Fold ``DisplayRule`` and ``CalculatedField`` rows into lookup maps."""

    data = DisplayRulesData()
    for rule in display_rules:
        scenario = field_of(rule, "scenario")
        view = field_of(rule, "view")
        data.rules.setdefault(scenario, {})[view] = DisplayRuleConfig(
            field_source=field_of(rule, "fieldSource") or "",
            label=field_of(rule, "label") or "",
            row_behavior=field_of(rule, "rowBehavior") or RowBehavior.SHOW.value,
        )
    for calculated in calculated_fields:
        data.formulas[field_of(calculated, "name")] = field_of(calculated, "formula")
    return data


def compute_display(
    scenario: str,
    view: str,
    inputs: FormulaInputs,
    data: DisplayRulesData,
) -> AvailabilityDisplay:
    """Resolve what a product shows for ``scenario`` in ``view``."""

    rule = data.rule_for(scenario, view)
    if rule is None:
        return _display(inputs.on_hand, FALLBACK_LABEL)

    hidden = rule.row_behavior == RowBehavior.HIDE.value
    if rule.field_source in BLANK_SOURCES:
        value = None
    else:
        value = get_field_value(rule.field_source, inputs, data.formulas)
    return _display(value, rule.label, hidden)


def _display(value: Optional[float], label: str, hidden: bool = False) -> AvailabilityDisplay:
    # NaN and infinities render blank like a missing value
    if value is None or not math.isfinite(value):
        return AvailabilityDisplay(
            display="",
            numeric_value=None,
            is_blank=True,
            label=label,
            hidden=hidden,
        )

    return AvailabilityDisplay(
        display=str(round_half_up(value)),
        numeric_value=value,
        is_blank=False,
        label=label,
        hidden=hidden,
    )


def default_rules() -> List[Dict[str, str]]:
    """The full scenario x view table restored by a reset."""

    rules = []
    for scenario in Scenario:
        field_source, label = _DEFAULT_RULES[scenario]
        for view in View:
            rules.append(
                {
                    "scenario": scenario.value,
                    "view": view.value,
                    "fieldSource": field_source,
                    "label": label,
                    "rowBehavior": RowBehavior.SHOW.value,
                }
            )
    return rules
