"""Furniture rental availability, pricing and reservation backend."""

__version__ = "1.0.0"
