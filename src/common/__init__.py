"""Shared helpers: logging utilities and name suggestions."""
