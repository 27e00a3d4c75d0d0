"""Scan report renderers."""
