"""Operational HTTP routes."""
