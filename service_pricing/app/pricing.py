"""
Price computation pipeline: reference -> active rule -> normalized model -> price.
"""

import time
from typing import Any, Dict, Optional, Protocol

from shared.logging import get_logger
from shared.errors import PricingLayerException
from shared.metrics import MetricsCollector
from shared.tracing import trace_operation
from .catalog.models import RuleRecord
from .cache.redis_cache import ActiveRuleCache
from .rules.calculator import PriceCalculator
from .rules.models import PriceComputationResult
from .rules.normalizer import normalize_rule
from .rules.reference import parse_rule_reference


class RuleSource(Protocol):
    """Anything that can serve the active rule for (type reference, kind)."""

    async def get_active(self, type_alias: str, kind: str) -> RuleRecord:
        ...


class PricingEngine:
    """Computes preliminary prices for questionnaire answers."""

    def __init__(self, rule_source: RuleSource, source_name: str = "catalog",
                 calculator: Optional[PriceCalculator] = None,
                 cache: Optional[ActiveRuleCache] = None,
                 metrics: Optional[MetricsCollector] = None,
                 default_kind: str = "pricing"):
        self.rule_source = rule_source
        self.source_name = source_name
        self.calculator = calculator or PriceCalculator()
        self.cache = cache
        self.metrics = metrics
        self.default_kind = default_kind
        self.logger = get_logger("pricing.engine")

    async def resolve_rule(self, type_alias: str, kind: str) -> RuleRecord:
        """Active rule for (type, kind), served from the cache when possible."""
        if self.cache is not None:
            cached = await self.cache.get(type_alias, kind)
            self._count("rule_cache_total", result="hit" if cached else "miss")
            if cached is not None:
                return cached

        record = await self.rule_source.get_active(type_alias, kind)

        if self.cache is not None:
            await self.cache.set(type_alias, kind, record)
        return record

    async def compute_price(self, answers: Optional[Dict[str, Any]], reference: Any) -> PriceComputationResult:
        """Price ``answers`` with the rule ``reference`` points at."""
        start_time = time.time()
        lookup = parse_rule_reference(reference, self.default_kind)

        with trace_operation("compute_price", type_alias=lookup.type_alias, kind=lookup.kind):
            try:
                record = await self.resolve_rule(lookup.type_alias, lookup.kind)
                model = normalize_rule(record.body, record.version)
                result = self.calculator.compute(model, answers or {})
            except PricingLayerException as e:
                self._count("price_computations_total", outcome=e.code.lower())
                raise

        duration = time.time() - start_time
        self._count("price_computations_total", outcome="ok")
        if result.skipped_adjustments:
            self._count("adjustments_skipped_total", amount=result.skipped_adjustments)
        if self.metrics is not None:
            self.metrics.observe_histogram("price_computation_duration_seconds", duration, source=self.source_name)

        self.logger.info(
            "Price computed",
            type_alias=lookup.type_alias,
            kind=lookup.kind,
            rule_id=record.id,
            rule_version=result.rule_version,
            prelim_price=result.prelim_price,
            skipped_adjustments=result.skipped_adjustments,
            duration_ms=round(duration * 1000, 2)
        )
        return result

    async def invalidate(self, kind: str):
        """Forget cached lookups for ``kind`` after a local catalog change."""
        if self.cache is not None:
            await self.cache.invalidate_kind(kind)

    def _count(self, metric_name: str, amount: float = 1, **labels):
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, amount, **labels)
