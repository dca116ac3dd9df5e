"""
Adapters to external services used by the Pricing Service.
"""
