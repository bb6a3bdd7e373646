"""Operator and health HTTP routes."""
