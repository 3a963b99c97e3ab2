"""Inventory, wear-part and maintenance tracking for an optical lab."""

__version__ = "0.1.0"
