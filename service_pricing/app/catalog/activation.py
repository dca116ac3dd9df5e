"""
Single-active-rule invariant for (type, kind) pairs.
"""

from typing import FrozenSet

from shared.logging import get_logger
from shared.errors import NotFoundError
from .models import RuleRecord
from .store import CatalogStore
from .type_keys import TypeKeyResolver


class ActivationManager:
    """Owns every write to the ``is_active`` flag.

    The store flips the target and its siblings in one statement, but a
    create is still an insert followed by that flip. Concurrent writers can
    leave a short window with two active siblings; the last flip wins and
    the pair converges to exactly one active record.
    """

    def __init__(self, store: CatalogStore, resolver: TypeKeyResolver):
        self.store = store
        self.resolver = resolver
        self.logger = get_logger("pricing.activation")

    async def activate(self, record_id: str) -> RuleRecord:
        """Make ``record_id`` the active record for its (type, kind)."""
        record = await self.store.get_rule(record_id)
        if record is None:
            raise NotFoundError("Rule not found", details={"id": record_id})

        aliases = await self.resolver.resolve(record.type_alias)
        await self._flip(record, aliases)
        record.is_active = True
        return record

    async def enforce_on_create(self, record: RuleRecord, aliases: FrozenSet[str]):
        """Deactivate siblings of a record that was created active."""
        if record.is_active:
            await self._flip(record, aliases)

    async def _flip(self, record: RuleRecord, aliases: FrozenSet[str]):
        written = await self.store.activate_exclusive(record.id, aliases, record.kind)
        self.logger.info(
            "Rule activated",
            rule_id=record.id,
            type_alias=record.type_alias,
            kind=record.kind,
            aliases=sorted(aliases),
            documents_written=written
        )
