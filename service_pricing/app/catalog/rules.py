"""
Rule record catalog: versioned rule documents per (device type, kind).
"""

from typing import Optional, List
import uuid

from shared.logging import get_logger
from shared.errors import NotFoundError, RuleNotFoundError, ValidationError
from .models import RuleRecord, utcnow
from .store import CatalogStore
from .type_keys import TypeKeyResolver
from .activation import ActivationManager


class RuleCatalog:
    """List, create, read and activate rule records.

    Type references are always expanded through the ``TypeKeyResolver``, so
    a rule stored under a type's code is found through its id or name too.
    """

    def __init__(self, store: CatalogStore, resolver: Optional[TypeKeyResolver] = None,
                 activation: Optional[ActivationManager] = None):
        self.store = store
        self.resolver = resolver or TypeKeyResolver(store)
        self.activation = activation or ActivationManager(store, self.resolver)
        self.logger = get_logger("pricing.rule_catalog")

    async def list(self, type_alias: Optional[str] = None, kind: Optional[str] = None) -> List[RuleRecord]:
        """Records matching the optional filters, newest first."""
        aliases = await self.resolver.resolve(type_alias) if type_alias else None
        return await self.store.find_rules(aliases, kind or None)

    async def create(self, type_alias: str, kind: str, body: dict,
                     version: Optional[int] = None, is_active: bool = True) -> RuleRecord:
        """Store a new rule version; an active one displaces its siblings."""
        if not type_alias or not kind:
            raise ValidationError("typeAlias and kind required")
        if version is not None and version < 1:
            raise ValidationError("version must be >= 1", details={"version": version})

        aliases = await self.resolver.resolve(type_alias)

        if version is None:
            siblings = await self.store.find_rules(aliases, kind)
            version = max((r.version for r in siblings), default=0) + 1

        record = RuleRecord(
            id=uuid.uuid4().hex,
            type_alias=type_alias,
            kind=kind,
            body=body,
            version=version,
            is_active=bool(is_active),
            created_at=utcnow()
        )

        await self.store.insert_rule(record)
        await self.activation.enforce_on_create(record, aliases)

        self.logger.info(
            "Rule created",
            rule_id=record.id,
            type_alias=type_alias,
            kind=kind,
            version=version,
            is_active=record.is_active
        )
        return record

    async def get(self, record_id: str) -> RuleRecord:
        record = await self.store.get_rule(record_id)
        if record is None:
            raise NotFoundError("Rule not found", details={"id": record_id})
        return record

    async def activate(self, record_id: str) -> RuleRecord:
        return await self.activation.activate(record_id)

    async def get_active(self, type_alias: str, kind: str) -> RuleRecord:
        """The active record for (type, kind), else the newest matching one.

        Should two siblings be observed active at once, the newest wins.
        """
        aliases = await self.resolver.resolve(type_alias)
        records = await self.store.find_rules(aliases, kind)
        if not records:
            raise RuleNotFoundError(details={"typeAlias": type_alias, "kind": kind})

        for record in records:
            if record.is_active:
                return record

        self.logger.info(
            "No active rule, falling back to newest",
            type_alias=type_alias,
            kind=kind,
            rule_id=records[0].id
        )
        return records[0]
