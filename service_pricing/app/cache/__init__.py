"""
Cache package for the Pricing Service.

Provides a Redis-backed cache of active-rule lookups. Entries expire on a
TTL and are dropped per kind when the local catalog changes.
"""
