"""
Device type alias resolution.
"""

from typing import FrozenSet

from shared.logging import get_logger
from .store import CatalogStore


class TypeKeyResolver:
    """Expands a type reference into every alias a rule may be stored under."""

    def __init__(self, store: CatalogStore):
        self.store = store
        self.logger = get_logger("pricing.type_keys")

    async def resolve(self, reference: str) -> FrozenSet[str]:
        """Return the alias set for ``reference``; never raises.

        A known device type contributes its id, code and name. An unknown
        reference, or a catalog failure, leaves only the reference itself,
        which degrades the lookup to an exact match.
        """
        try:
            device_type = await self.store.find_device_type(reference)
        except Exception as e:
            self.logger.warning("Type lookup failed, using exact alias", reference=reference, error=str(e))
            return frozenset([reference])

        if device_type is None:
            return frozenset([reference])

        aliases = device_type.aliases() | {reference}
        self.logger.debug("Type reference resolved", reference=reference, aliases=sorted(aliases))
        return aliases
