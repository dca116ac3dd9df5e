"""
Rule body normalization.

Two body shapes are stored in the catalog:

- canonical: ``{"basePrice", "minPrice"?, "adjustments": [{"if": ..., "then": n}]}``
- legacy: ``{"basePrice", "minPrice"?, "adjustments": {field: {option: n} | {"perUnit": n}}}``

Either may arrive wrapped in ``{"formula": {...}}``. Both are folded into a
``CanonicalComputationModel`` here, once, so nothing downstream branches on
the stored shape. Normalization is pure and never raises; malformed legacy
entries are dropped.
"""

from typing import Any, Dict, List, Optional, Mapping

from .models import (
    CanonicalRuleBody, LegacyRuleBody, RuleBody, CanonicalComputationModel, to_number
)


def _unwrap(raw: Any) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        return {}
    formula = raw.get("formula")
    if isinstance(formula, Mapping):
        return formula
    return raw


def parse_rule_body(raw: Any) -> RuleBody:
    """Tag a stored body as canonical or legacy."""
    container = _unwrap(raw)
    base_price = container.get("basePrice")
    min_price = container.get("minPrice")
    adjustments = container.get("adjustments")

    if isinstance(adjustments, list):
        return CanonicalRuleBody(base_price, min_price, adjustments)
    if isinstance(adjustments, Mapping):
        return LegacyRuleBody(base_price, min_price, dict(adjustments))
    return CanonicalRuleBody(base_price, min_price, [])


def coerce_option(option: str) -> Any:
    """Legacy option keys "true"/"false" stand for booleans."""
    if option == "true":
        return True
    if option == "false":
        return False
    return option


def _convert_legacy(adjustments: Dict[str, Any]):
    converted: List[Dict[str, Any]] = []
    per_unit: Dict[str, Any] = {}

    for field_key, definition in adjustments.items():
        if not isinstance(definition, Mapping):
            continue

        if "perUnit" in definition:
            per = to_number(definition["perUnit"])
            if per is None:
                continue
            per_unit[field_key] = per
            # Neutral entry keeps every field represented in one adjustments list
            converted.append({"if": {"var": field_key}, "then": 0})
            continue

        for option, delta in definition.items():
            amount = to_number(delta)
            if amount is None:
                continue
            converted.append({
                "if": {"==": [{"var": field_key}, coerce_option(str(option))]},
                "then": amount
            })

    return converted, per_unit


def _version_of(raw: Any, version: Optional[int]) -> int:
    if version is None and isinstance(raw, Mapping):
        version = raw.get("version", _unwrap(raw).get("version"))
    try:
        return max(1, int(version))
    except (TypeError, ValueError):
        return 1


def normalize_rule(raw: Any, version: Optional[int] = None) -> CanonicalComputationModel:
    """Fold a stored rule body into the canonical computation model."""
    body = parse_rule_body(raw)

    # Absent prices default to 0; present but non-numeric ones invalidate basePrice
    base_price = 0 if body.base_price is None else to_number(body.base_price)
    min_price = 0 if body.min_price is None else to_number(body.min_price)

    if isinstance(body, LegacyRuleBody):
        adjustments, per_unit = _convert_legacy(body.adjustments)
    else:
        adjustments, per_unit = list(body.adjustments), {}

    return CanonicalComputationModel(
        base_price=base_price if base_price is not None else 0,
        min_price=min_price if min_price is not None else 0,
        adjustments=adjustments,
        per_unit=per_unit,
        version=_version_of(raw, version),
        base_price_valid=base_price is not None
    )
