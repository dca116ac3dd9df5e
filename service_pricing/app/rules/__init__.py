"""
Pricing rules package.

Turns a stored rule body (canonical or legacy shape) into one canonical
computation model and prices an answer set against it.

Modules of interest:
- models: Rule bodies, the canonical model and price request/response models.
- normalizer: Stored body -> canonical model.
- predicates: The small condition language of canonical adjustments.
- calculator: Base price, adjustments, per-unit terms, floor, rounding.
- reference: Rule lookup reference parsing.
"""
