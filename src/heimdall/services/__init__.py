"""Background services (scheduled publishing, lock release)."""
