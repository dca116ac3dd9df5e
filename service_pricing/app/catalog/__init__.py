"""
Rule catalog package.

Stores device types and versioned rule records, expands a type reference
(id, code or display name) into every alias a record may be filed under,
and keeps at most one active rule per (type, kind).

Modules of interest:
- models: DeviceType and RuleRecord plus their API models.
- store: Storage interface and the in-memory implementation.
- type_keys: Type reference to alias-set expansion.
- activation: Single-active-rule enforcement.
- rules: The catalog operations (list, create, get, activate, get_active).
"""
