"""Bundled lesson module files."""
