"""Bundled context definitions."""
