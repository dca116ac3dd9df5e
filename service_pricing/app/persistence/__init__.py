"""
Persistence package for the Pricing Service.

Provides the PostgreSQL implementation of the catalog store.
"""
