"""
Catalog data models for the Pricing Service.
"""

from typing import Dict, Any, Optional, List, FrozenSet
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DeviceType:
    """Catalog device type, referenced by id, short code or display name."""
    id: str
    name: str
    code: Optional[str] = None
    status: str = "active"
    created_at: datetime = field(default_factory=utcnow)

    def aliases(self) -> FrozenSet[str]:
        """Non-empty identifiers a stored record may use to reference this type."""
        return frozenset(a for a in (self.id, self.code, self.name) if a)

    def matches(self, reference: str) -> bool:
        return reference in self.aliases()


@dataclass
class RuleRecord:
    """Versioned rule document.

    Immutable after creation except for ``is_active``.
    """
    id: str
    type_alias: str
    kind: str
    body: Dict[str, Any]
    version: int = 1
    is_active: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "RuleRecord":
        """Build a record from a registry payload.

        Accepts this service's own camelCase documents as well as the
        flattened ``{..., "formula": {...}}`` shape some gateways return,
        optionally wrapped in ``{"item": ...}`` or ``{"items": [...]}``.
        """
        if isinstance(doc.get("item"), dict):
            doc = doc["item"]
        elif isinstance(doc.get("items"), list) and doc["items"]:
            doc = doc["items"][0]

        body = doc.get("body")
        if not isinstance(body, dict):
            body = {"formula": doc["formula"]} if isinstance(doc.get("formula"), dict) else {}

        version = doc.get("version")
        if version is None:
            version = body.get("version", 1)
        try:
            version = max(1, int(version))
        except (TypeError, ValueError):
            version = 1

        created_at = doc.get("createdAt") or doc.get("created_at")
        if isinstance(created_at, str):
            try:
                created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
            except ValueError:
                created_at = None

        return cls(
            id=str(doc.get("id") or doc.get("_id") or ""),
            type_alias=str(doc.get("typeAlias") or doc.get("type_alias") or doc.get("typeId") or ""),
            kind=str(doc.get("kind") or ""),
            body=body,
            version=version,
            is_active=bool(doc.get("isActive", doc.get("active", False))),
            created_at=created_at if isinstance(created_at, datetime) else utcnow()
        )


class CamelModel(BaseModel):
    """Base for API models: camelCase on the wire, snake_case accepted."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceTypeUpsertRequest(CamelModel):
    """Request model for registering a device type."""
    id: str = Field(..., min_length=1, description="Opaque type id")
    name: str = Field(..., min_length=1, description="Display name")
    code: Optional[str] = Field(None, description="Short code")
    status: str = Field("active", description="Type status")


class DeviceTypeResponse(CamelModel):
    """Response model for a device type."""
    id: str
    name: str
    code: Optional[str]
    status: str
    created_at: datetime


class RuleCreateRequest(CamelModel):
    """Request model for creating a rule version."""
    type_alias: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("typeAlias", "type_alias", "typeId", "type_id"),
        description="Device type id, code or name"
    )
    kind: str = Field(..., min_length=1, description="Rule kind, e.g. pricing")
    version: Optional[int] = Field(None, ge=1, description="Explicit version; next free version if omitted")
    is_active: bool = Field(True, description="Activate on creation")
    body: Dict[str, Any] = Field(default_factory=dict, description="Rule body (canonical or legacy shape)")


class RuleCreatedResponse(CamelModel):
    """Response model for rule creation."""
    ok: bool = True
    id: str
    version: int


class RuleResponse(CamelModel):
    """Response model for rule reads."""
    id: str
    type_alias: str
    kind: str
    version: int
    is_active: bool
    body: Dict[str, Any]
    created_at: datetime

    @classmethod
    def from_record(cls, record: RuleRecord) -> "RuleResponse":
        return cls(
            id=record.id,
            type_alias=record.type_alias,
            kind=record.kind,
            version=record.version,
            is_active=record.is_active,
            body=record.body,
            created_at=record.created_at
        )


class RuleActivationResponse(CamelModel):
    """Response model for rule activation."""
    ok: bool = True
    id: str
    type_alias: str
    kind: str
    is_active: bool


class RuleListResponse(CamelModel):
    """Response model for rule list."""
    rules: List[RuleResponse]
    total: int
