"""Utility helpers shared across vidscribe modules."""
