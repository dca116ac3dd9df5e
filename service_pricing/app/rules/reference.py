"""
Rule lookup reference parsing.

Quoting clients pass an opaque ``ruleLookupReference``. Accepted forms:

- a URL whose query carries ``typeAlias``/``typeId``/``type_id`` and
  optionally ``kind`` (e.g. ``http://gw/api/rules/active?type_id=t1&kind=pricing``);
- a mapping ``{"typeAlias": ..., "kind": ...}``;
- a bare type reference (id, code or name).
"""

from typing import Any, Mapping, Optional
from urllib.parse import urlsplit, parse_qs

from shared.errors import ValidationError
from .models import RuleLookup

_TYPE_KEYS = ("typeAlias", "type_alias", "typeId", "type_id")


def _first(source: Mapping[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = source.get(key)
        if isinstance(value, list):
            value = value[0] if value else None
        if value:
            return str(value)
    return None


def parse_rule_reference(reference: Any, default_kind: str = "pricing") -> RuleLookup:
    """Resolve a rule lookup reference to a (type reference, kind) pair."""
    if isinstance(reference, Mapping):
        type_alias = _first(reference, _TYPE_KEYS)
        if not type_alias:
            raise ValidationError("Invalid ruleLookupReference (missing typeAlias)")
        return RuleLookup(type_alias, _first(reference, ("kind",)) or default_kind)

    if not isinstance(reference, str) or not reference.strip():
        raise ValidationError("ruleLookupReference required")

    reference = reference.strip()
    parts = urlsplit(reference)

    if (parts.scheme and parts.netloc) or parts.query:
        params = parse_qs(parts.query)
        type_alias = _first(params, _TYPE_KEYS)
        if not type_alias:
            raise ValidationError(
                "Invalid ruleLookupReference (missing typeId/type_id)",
                details={"ruleLookupReference": reference}
            )
        return RuleLookup(type_alias, _first(params, ("kind",)) or default_kind)

    return RuleLookup(reference, default_kind)
