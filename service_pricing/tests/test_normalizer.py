"""
Unit tests for rule body normalization.
"""

import pytest

from service_pricing.app.rules.models import CanonicalRuleBody, LegacyRuleBody
from service_pricing.app.rules.normalizer import (
    parse_rule_body, normalize_rule, coerce_option
)


class TestParseRuleBody:
    """Test cases for stored shape detection."""

    def test_canonical_shape(self):
        """Test a list of adjustments is canonical."""
        body = parse_rule_body({"basePrice": 100, "adjustments": []})

        assert isinstance(body, CanonicalRuleBody)

    def test_legacy_shape(self):
        """Test a map of adjustments is legacy."""
        body = parse_rule_body({"basePrice": 100, "adjustments": {"pantalla": {"intacta": 0}}})

        assert isinstance(body, LegacyRuleBody)

    def test_formula_wrapper(self):
        """Test bodies wrapped in a formula key are unwrapped."""
        body = parse_rule_body({"formula": {"basePrice": 250, "adjustments": []}})

        assert isinstance(body, CanonicalRuleBody)
        assert body.base_price == 250

    def test_formula_wrapper_legacy(self):
        """Test a wrapped legacy body is still detected and converted."""
        raw = {"formula": {"basePrice": 500, "adjustments": {"pantalla": {"quebrada": -150}}}}

        assert isinstance(parse_rule_body(raw), LegacyRuleBody)
        model = normalize_rule(raw)
        assert model.base_price == 500
        assert model.adjustments == [{"if": {"==": [{"var": "pantalla"}, "quebrada"]}, "then": -150}]

    @pytest.mark.parametrize("raw", [None, "nope", {"basePrice": 1}, {"adjustments": 3}])
    def test_missing_adjustments(self, raw):
        """Test absent or unusable adjustments read as an empty canonical list."""
        body = parse_rule_body(raw)

        assert isinstance(body, CanonicalRuleBody)
        assert body.adjustments == []


class TestNormalizeRule:
    """Test cases for normalize_rule."""

    @pytest.fixture
    def canonical_body(self):
        """Canonical rule body."""
        return {
            "basePrice": 800,
            "minPrice": 100,
            "adjustments": [
                {"if": {"==": [{"var": "pantalla"}, "quebrada"]}, "then": -200},
                {"if": {"var": "cargador"}, "then": 20},
            ],
        }

    @pytest.fixture
    def legacy_body(self):
        """Legacy rule body."""
        return {
            "basePrice": 500,
            "adjustments": {
                "pantalla": {"intacta": 0, "quebrada": -150},
                "almacenamiento_gb": {"perUnit": 2},
            },
        }

    def test_canonical_round_trip(self, canonical_body):
        """Test canonical bodies normalize without loss."""
        model = normalize_rule(canonical_body, version=3)

        assert model.base_price == 800
        assert model.min_price == 100
        assert model.adjustments == canonical_body["adjustments"]
        assert model.per_unit == {}
        assert model.version == 3
        assert model.to_snapshot() == {
            "basePrice": 800,
            "minPrice": 100,
            "adjustments": canonical_body["adjustments"],
            "perUnit": {},
        }

    def test_legacy_conversion(self, legacy_body):
        """Test legacy options become equality adjustments and perUnit is split out."""
        model = normalize_rule(legacy_body)

        assert model.adjustments == [
            {"if": {"==": [{"var": "pantalla"}, "intacta"]}, "then": 0},
            {"if": {"==": [{"var": "pantalla"}, "quebrada"]}, "then": -150},
            {"if": {"var": "almacenamiento_gb"}, "then": 0},
        ]
        assert model.per_unit == {"almacenamiento_gb": 2}
        assert model.min_price == 0

    def test_legacy_conversion_is_deterministic(self, legacy_body):
        """Test two normalizations of the same body agree."""
        assert normalize_rule(legacy_body) == normalize_rule(legacy_body)

    def test_legacy_boolean_options(self):
        """Test "true"/"false" option keys compare as booleans."""
        model = normalize_rule({
            "basePrice": 100,
            "adjustments": {"cargador": {"true": 10, "false": -10}},
        })

        assert model.adjustments == [
            {"if": {"==": [{"var": "cargador"}, True]}, "then": 10},
            {"if": {"==": [{"var": "cargador"}, False]}, "then": -10},
        ]

    def test_legacy_malformed_entries_dropped(self):
        """Test non-numeric legacy deltas and non-map definitions are skipped."""
        model = normalize_rule({
            "basePrice": 100,
            "adjustments": {
                "pantalla": {"quebrada": "mucho", "rayada": "-20"},
                "color": "rojo",
                "memoria": {"perUnit": "x"},
            },
        })

        assert model.adjustments == [
            {"if": {"==": [{"var": "pantalla"}, "rayada"]}, "then": -20},
        ]
        assert model.per_unit == {}

    def test_numeric_string_prices(self):
        """Test numeric strings are accepted as prices."""
        model = normalize_rule({"basePrice": "450", "minPrice": "50.5", "adjustments": []})

        assert model.base_price == 450
        assert model.min_price == 50.5
        assert model.base_price_valid is True

    def test_missing_base_price_defaults_to_zero(self):
        """Test an absent basePrice is 0 and valid."""
        model = normalize_rule({"adjustments": []})

        assert model.base_price == 0
        assert model.base_price_valid is True

    @pytest.mark.parametrize("base_price", ["abc", True, [1], {"a": 1}])
    def test_non_numeric_base_price_invalid(self, base_price):
        """Test a present but non-numeric basePrice marks the model invalid."""
        model = normalize_rule({"basePrice": base_price, "adjustments": []})

        assert model.base_price_valid is False

    def test_non_numeric_min_price_ignored(self):
        """Test a non-numeric minPrice reads as no floor."""
        model = normalize_rule({"basePrice": 10, "minPrice": "n/a", "adjustments": []})

        assert model.min_price == 0

    def test_version_from_body(self):
        """Test the body's own version is used when none is passed."""
        assert normalize_rule({"basePrice": 1, "version": 4}).version == 4
        assert normalize_rule({"formula": {"basePrice": 1, "version": 5}}).version == 5
        assert normalize_rule({"basePrice": 1}).version == 1

    def test_coerce_option(self):
        """Test option key coercion."""
        assert coerce_option("true") is True
        assert coerce_option("false") is False
        assert coerce_option("128") == "128"
