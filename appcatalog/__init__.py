"""
School App Catalog Engine

Reconciliation, categorization and overlap analytics for a catalog of
software applications used across school divisions.

Version: catalog_engine_v1
"""

__version__ = "catalog_engine_v1"
