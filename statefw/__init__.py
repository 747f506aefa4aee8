"""Stateful packet-filter model: rules, connection tracking, logging and a control shell."""

__version__ = "0.1.0"
__all__ = ["addresses", "models", "engine", "device", "client"]