"""Live-update sources feeding records into the core."""
