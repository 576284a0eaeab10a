"""Selective update resolution: unlock, bound, resolve, diff and commit."""
