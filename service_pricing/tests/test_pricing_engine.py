"""
Unit tests for the price computation pipeline.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from prometheus_client import CollectorRegistry

from shared.errors import InvalidRuleError, RuleNotFoundError, UpstreamUnavailableError, ValidationError
from shared.metrics import MetricsCollector
from service_pricing.app.catalog.models import DeviceType, RuleRecord
from service_pricing.app.catalog.rules import RuleCatalog
from service_pricing.app.catalog.store import InMemoryCatalogStore
from service_pricing.app.pricing import PricingEngine


LEGACY_RULE = {
    "basePrice": 500,
    "adjustments": {
        "pantalla": {"intacta": 0, "quebrada": -150},
        "almacenamiento_gb": {"perUnit": 2},
    },
}


def sample(metrics, name, **labels):
    return metrics.registry.get_sample_value(name, labels or None)


class TestPricingEngine:
    """Test cases for PricingEngine."""

    @pytest.fixture
    def store(self):
        """Create InMemoryCatalogStore instance."""
        return InMemoryCatalogStore()

    @pytest.fixture
    def catalog(self, store):
        """Create RuleCatalog instance."""
        return RuleCatalog(store)

    @pytest.fixture
    def metrics(self):
        """Pricing metrics on a private registry."""
        return MetricsCollector("pricing", CollectorRegistry())

    @pytest.fixture
    def engine(self, catalog, metrics):
        """Create PricingEngine over the local catalog."""
        return PricingEngine(catalog, metrics=metrics)

    @pytest.mark.asyncio
    async def test_compute_price_via_url_reference(self, store, catalog, engine, metrics):
        """Test the full path from a gateway URL to a price."""
        await store.upsert_device_type(DeviceType(id="t1", code="PHONE", name="Teléfonos"))
        await catalog.create("PHONE", "pricing", LEGACY_RULE, version=4)

        result = await engine.compute_price(
            {"pantalla": "quebrada", "almacenamiento_gb": 128},
            "http://gateway/api/rules/active?type_id=t1&kind=pricing"
        )

        assert result.prelim_price == 606
        assert result.rule_version == 4
        assert result.rule_snapshot["perUnit"] == {"almacenamiento_gb": 2}
        assert sample(metrics, "price_computations_total", outcome="ok") == 1.0

    @pytest.mark.asyncio
    async def test_formula_wrapped_rule(self, catalog, engine):
        """Test a rule stored in the flattened formula shape."""
        await catalog.create("PHONE", "pricing", {"formula": {"basePrice": 300, "adjustments": []}})

        result = await engine.compute_price({}, "PHONE")

        assert result.prelim_price == 300

    @pytest.mark.asyncio
    async def test_missing_rule(self, engine, metrics):
        """Test a lookup miss raises and is counted."""
        with pytest.raises(RuleNotFoundError):
            await engine.compute_price({}, {"typeAlias": "LAPTOP"})

        assert sample(metrics, "price_computations_total", outcome="rule_not_found") == 1.0

    @pytest.mark.asyncio
    async def test_invalid_rule(self, catalog, engine):
        """Test a rule with a non-numeric basePrice raises InvalidRuleError."""
        await catalog.create("PHONE", "pricing", {"basePrice": "n/a", "adjustments": []})

        with pytest.raises(InvalidRuleError):
            await engine.compute_price({}, "PHONE")

    @pytest.mark.asyncio
    async def test_missing_reference(self, engine):
        """Test a missing reference is a validation error."""
        with pytest.raises(ValidationError):
            await engine.compute_price({}, None)

    @pytest.mark.asyncio
    async def test_skipped_adjustments_counted(self, catalog, engine, metrics):
        """Test malformed adjustments feed the skipped counter."""
        await catalog.create("PHONE", "pricing", {
            "basePrice": 100,
            "adjustments": [{"then": 5}, {"if": {"var": "a"}, "then": "x"}],
        })

        result = await engine.compute_price({"a": True}, "PHONE")

        assert result.prelim_price == 100
        assert sample(metrics, "adjustments_skipped_total") == 2.0

    @pytest.mark.asyncio
    async def test_registry_failure_propagates(self, metrics):
        """Test upstream failures from a remote source surface unchanged."""
        source = MagicMock()
        source.get_active = AsyncMock(side_effect=UpstreamUnavailableError("registry", "Registry unavailable"))
        engine = PricingEngine(source, source_name="registry", metrics=metrics)

        with pytest.raises(UpstreamUnavailableError):
            await engine.compute_price({}, "PHONE")

        assert sample(metrics, "price_computations_total", outcome="upstream_unavailable") == 1.0

    @pytest.mark.asyncio
    async def test_cache_hit_skips_source(self, metrics):
        """Test a cached active rule is served without asking the source."""
        record = RuleRecord(id="r-1", type_alias="PHONE", kind="pricing", body={"basePrice": 80}, version=2)
        source = MagicMock()
        source.get_active = AsyncMock()
        cache = MagicMock()
        cache.get = AsyncMock(return_value=record)
        cache.set = AsyncMock()
        engine = PricingEngine(source, cache=cache, metrics=metrics)

        result = await engine.compute_price({}, "PHONE")

        assert result.prelim_price == 80
        assert result.rule_version == 2
        source.get_active.assert_not_called()
        cache.set.assert_not_called()
        assert sample(metrics, "rule_cache_total", result="hit") == 1.0

    @pytest.mark.asyncio
    async def test_cache_miss_fills_cache(self, catalog, metrics):
        """Test a miss reads the source and stores the record."""
        created = await catalog.create("PHONE", "pricing", {"basePrice": 80})
        cache = MagicMock()
        cache.get = AsyncMock(return_value=None)
        cache.set = AsyncMock(return_value=True)
        cache.invalidate_kind = AsyncMock(return_value=1)
        engine = PricingEngine(catalog, cache=cache, metrics=metrics)

        await engine.compute_price({}, "PHONE")
        await engine.invalidate("pricing")

        cache.set.assert_called_once()
        assert cache.set.call_args.args[2].id == created.id
        cache.invalidate_kind.assert_called_once_with("pricing")
        assert sample(metrics, "rule_cache_total", result="miss") == 1.0
