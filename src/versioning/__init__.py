"""Version parsing and requirement matching."""
