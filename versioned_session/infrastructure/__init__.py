"""Database pool, connection adapter and query building."""
