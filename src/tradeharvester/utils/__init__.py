"""Shared utilities: the request budget governor and timestamp helpers."""
