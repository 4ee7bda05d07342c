"""Feature modules (relay engine, health)."""
