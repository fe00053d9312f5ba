"""Cloak Chat backend."""
