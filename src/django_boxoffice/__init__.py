"""Checkout pricing and order orchestration for Django."""

__version__ = "0.1.0"
