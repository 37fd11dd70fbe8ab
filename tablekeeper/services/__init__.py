"""Availability, table assignment and reservation services."""
