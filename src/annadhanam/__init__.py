"""Operator dashboard core for routing restaurant food surplus to NGOs."""

__version__ = "0.1.0"
