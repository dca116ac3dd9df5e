"""
Catalog store handle for the Pricing Service.

``CatalogStore`` is the persistence seam the catalog components are built
on. Backends only promise per-document atomicity plus the single-statement
``activate_exclusive`` flip; everything above that lives in the catalog.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Iterable
import copy

from shared.logging import get_logger
from .models import DeviceType, RuleRecord


def newest_first(records: Iterable[RuleRecord]) -> List[RuleRecord]:
    """Order records by creation time, newest first; ties broken by id."""
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


class CatalogStore(ABC):
    """Persistence handle for device types and rule records."""

    async def start(self):
        """Open connections. No-op for stores without any."""

    async def stop(self):
        """Release connections."""

    @abstractmethod
    async def find_device_type(self, reference: str) -> Optional[DeviceType]:
        """Find a device type whose id, code or name equals ``reference``."""

    @abstractmethod
    async def list_device_types(self) -> List[DeviceType]:
        """All device types sorted by name."""

    @abstractmethod
    async def upsert_device_type(self, device_type: DeviceType) -> DeviceType:
        """Insert a device type; an existing id keeps its stored document."""

    @abstractmethod
    async def insert_rule(self, record: RuleRecord) -> str:
        """Insert a rule record and return its id."""

    @abstractmethod
    async def get_rule(self, record_id: str) -> Optional[RuleRecord]:
        """Fetch a rule record by id."""

    @abstractmethod
    async def find_rules(self, type_aliases: Optional[Iterable[str]] = None,
                         kind: Optional[str] = None) -> List[RuleRecord]:
        """Records matching any alias and the kind, newest first.

        ``None`` filters are not applied.
        """

    @abstractmethod
    async def activate_exclusive(self, record_id: str, type_aliases: Iterable[str], kind: str) -> int:
        """Flag ``record_id`` active and every sibling inactive.

        Siblings share ``kind`` and have their type alias in
        ``type_aliases``. Returns the number of documents written.
        """

    async def health_check(self) -> bool:
        return True


class InMemoryCatalogStore(CatalogStore):
    """Process-local store used for tests and local development."""

    def __init__(self):
        self.logger = get_logger("pricing.store.memory")
        self.device_types: Dict[str, DeviceType] = {}
        self.rules: Dict[str, RuleRecord] = {}

    async def find_device_type(self, reference: str) -> Optional[DeviceType]:
        if reference in self.device_types:
            return copy.deepcopy(self.device_types[reference])
        for device_type in self.device_types.values():
            if device_type.matches(reference):
                return copy.deepcopy(device_type)
        return None

    async def list_device_types(self) -> List[DeviceType]:
        return [copy.deepcopy(t) for t in sorted(self.device_types.values(), key=lambda t: t.name)]

    async def upsert_device_type(self, device_type: DeviceType) -> DeviceType:
        stored = self.device_types.setdefault(device_type.id, copy.deepcopy(device_type))
        return copy.deepcopy(stored)

    async def insert_rule(self, record: RuleRecord) -> str:
        self.rules[record.id] = copy.deepcopy(record)
        return record.id

    async def get_rule(self, record_id: str) -> Optional[RuleRecord]:
        record = self.rules.get(record_id)
        return copy.deepcopy(record) if record else None

    async def find_rules(self, type_aliases: Optional[Iterable[str]] = None,
                         kind: Optional[str] = None) -> List[RuleRecord]:
        aliases = set(type_aliases) if type_aliases is not None else None
        matches = [
            r for r in self.rules.values()
            if (aliases is None or r.type_alias in aliases) and (kind is None or r.kind == kind)
        ]
        return [copy.deepcopy(r) for r in newest_first(matches)]

    async def activate_exclusive(self, record_id: str, type_aliases: Iterable[str], kind: str) -> int:
        aliases = set(type_aliases)
        written = 0
        for record in self.rules.values():
            if record.id == record_id:
                record.is_active = True
                written += 1
            elif record.kind == kind and record.type_alias in aliases and record.is_active:
                record.is_active = False
                written += 1
        return written
