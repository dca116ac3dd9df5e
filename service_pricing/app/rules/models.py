"""
Rule computation models for the Pricing Service.
"""

from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field
import math

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def to_number(value: Any) -> Optional[Union[int, float]]:
    """Finite number from an int, float or numeric string; ``None`` otherwise.

    Booleans are not numbers here.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return int(number) if number.is_integer() else number
    return None


@dataclass
class CanonicalRuleBody:
    """Stored body whose adjustments are a list of ``{if, then}`` entries."""
    base_price: Any
    min_price: Any
    adjustments: List[Any]


@dataclass
class LegacyRuleBody:
    """Stored body whose adjustments are keyed by answer field."""
    base_price: Any
    min_price: Any
    adjustments: Dict[str, Any]


RuleBody = Union[CanonicalRuleBody, LegacyRuleBody]


@dataclass
class CanonicalComputationModel:
    """Normalized rule, independent of the stored shape. Never persisted."""
    base_price: Union[int, float] = 0
    min_price: Union[int, float] = 0
    adjustments: List[Any] = field(default_factory=list)
    per_unit: Dict[str, Union[int, float]] = field(default_factory=dict)
    version: int = 1
    base_price_valid: bool = True

    def to_snapshot(self) -> Dict[str, Any]:
        """Audit snapshot; enough to recompute the price without the rule."""
        return {
            "basePrice": self.base_price,
            "minPrice": self.min_price,
            "adjustments": self.adjustments,
            "perUnit": dict(self.per_unit),
        }

    @classmethod
    def from_snapshot(cls, snapshot: Dict[str, Any], version: int = 1) -> "CanonicalComputationModel":
        return cls(
            base_price=snapshot.get("basePrice", 0),
            min_price=snapshot.get("minPrice", 0),
            adjustments=list(snapshot.get("adjustments") or []),
            per_unit=dict(snapshot.get("perUnit") or {}),
            version=version
        )


@dataclass
class PriceComputationResult:
    """Result of a price computation."""
    prelim_price: int
    rule_version: int
    rule_snapshot: Dict[str, Any]
    skipped_adjustments: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prelimPrice": self.prelim_price,
            "ruleVersion": self.rule_version,
            "ruleSnapshot": self.rule_snapshot,
        }


@dataclass
class RuleLookup:
    """(type reference, kind) pair a rule lookup reference resolves to."""
    type_alias: str
    kind: str


class PriceRequest(BaseModel):
    """Request model for price computation."""
    model_config = ConfigDict(populate_by_name=True)

    answers: Optional[Dict[str, Any]] = Field(None, description="Questionnaire answers; null prices at the base")
    rule_lookup_reference: Optional[Union[str, Dict[str, Any]]] = Field(
        None,
        validation_alias=AliasChoices(
            "ruleLookupReference", "rule_lookup_reference", "registryRuleUrl"
        ),
        description="URL, type reference or {typeAlias, kind} locating the active rule"
    )
    quote_ref: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("quoteRef", "quote_ref"),
        description="Caller's quote reference, for log correlation only"
    )


class PriceResponse(BaseModel):
    """Response model for price computation."""
    prelimPrice: int = Field(..., ge=0)
    ruleVersion: int
    ruleSnapshot: Dict[str, Any]
