"""
Price calculation over a canonical computation model.
"""

import math
from typing import Dict, Any, Mapping, Optional, Union

from shared.logging import get_logger
from shared.errors import InvalidRuleError
from .models import CanonicalComputationModel, PriceComputationResult, to_number
from .predicates import evaluate


class MalformedAdjustmentError(ValueError):
    """An adjustment entry without a usable predicate or delta."""


def answer_number(value: Any) -> Union[int, float]:
    """Numeric value of an answer for per-unit terms; 0 when not numeric."""
    if isinstance(value, bool):
        return int(value)
    number = to_number(value)
    return number if number is not None else 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PriceCalculator:
    """Stateless price calculator.

    Every matching adjustment is summed (not first match), in storage order.
    A malformed adjustment is skipped and logged; it never aborts the rest.
    """

    def __init__(self):
        self.logger = get_logger("pricing.calculator")

    def compute(self, model: CanonicalComputationModel, answers: Optional[Mapping[str, Any]] = None) -> PriceComputationResult:
        if not model.base_price_valid:
            raise InvalidRuleError(details={"ruleVersion": model.version})

        answers = answers if isinstance(answers, Mapping) else {}
        price: float = model.base_price
        skipped = 0

        for index, adjustment in enumerate(model.adjustments):
            try:
                price += self._apply_adjustment(adjustment, answers)
            except Exception as e:
                skipped += 1
                self.logger.warning(
                    "Bad adjustment ignored",
                    index=index,
                    adjustment=repr(adjustment)[:200],
                    error=str(e)
                )

        for field_key, per_unit in model.per_unit.items():
            price += per_unit * answer_number(answers.get(field_key))

        price = max(price, model.min_price)
        prelim_price = round_half_up(price)
        if prelim_price < model.min_price:
            # rounding must not undercut a fractional floor
            prelim_price = math.ceil(model.min_price)
        prelim_price = max(0, prelim_price)

        return PriceComputationResult(
            prelim_price=prelim_price,
            rule_version=model.version,
            rule_snapshot=model.to_snapshot(),
            skipped_adjustments=skipped
        )

    def _apply_adjustment(self, adjustment: Any, answers: Mapping[str, Any]) -> Union[int, float]:
        """Delta contributed by one adjustment; raises for malformed entries."""
        if not isinstance(adjustment, Mapping) or "if" not in adjustment:
            raise MalformedAdjustmentError("adjustment must be an object with an 'if' predicate")

        if not evaluate(adjustment["if"], answers):
            return 0

        raw_delta = adjustment.get("then")
        if raw_delta is None:
            return 0
        delta = to_number(raw_delta)
        if delta is None:
            raise MalformedAdjustmentError(f"non-numeric adjustment delta: {raw_delta!r}")
        return delta


def compute_price(model: CanonicalComputationModel, answers: Optional[Mapping[str, Any]] = None) -> PriceComputationResult:
    """Module-level shortcut over a default ``PriceCalculator``."""
    return _default_calculator.compute(model, answers)


_default_calculator = PriceCalculator()


def recompute_from_snapshot(snapshot: Dict[str, Any], answers: Mapping[str, Any], version: int = 1) -> PriceComputationResult:
    """Recompute a stored quote from its audit snapshot alone."""
    return compute_price(CanonicalComputationModel.from_snapshot(snapshot, version), answers)
