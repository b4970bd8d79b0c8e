"""Domain models package."""
