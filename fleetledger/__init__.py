"""Logistics, invoicing and cash-book accounting service."""

__version__ = "0.1.0"
