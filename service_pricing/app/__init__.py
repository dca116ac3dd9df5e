"""
Pricing Service package for the Trade-In Pricing Layer.

This package keeps the catalog of versioned pricing rules per device type
and computes preliminary trade-in prices from questionnaire answers. It
provides:

- app.main: API surface for the rule catalog, price computation and health.
- app.pricing: Reference -> active rule -> normalized model -> price pipeline.
- app.catalog: Device types, rule records, alias resolution and activation.
- app.rules: Rule normalization, predicate evaluation and the calculator.
- app.adapters: Client for a remote rule registry.
- app.persistence: PostgreSQL storage for the catalog.
- app.cache: Redis-backed cache of active-rule lookups.

Rule records are immutable once stored except for their active flag;
corrections are new versions.
"""
