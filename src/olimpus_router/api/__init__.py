"""Read-only HTTP view over recorded routing analytics."""
