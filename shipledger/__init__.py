"""Shipping Ledger: relational data model for shipments, tracking and billing"""

__version__ = "1.0.0"
