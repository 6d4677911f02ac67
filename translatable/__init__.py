"""
Row-level translation tables for SQLAlchemy.

Locale-invariant columns live on the main table; locale-varying columns live
in a companion ``<singular>_translations`` table with one row per entity and
locale.
"""

__version__ = "0.1.0"
