"""Concrete provider implementations for the interfaces in ``plantops.interfaces``."""
