"""Operational scripts (catalog seeding)."""
