"""Redis key patterns and builders with namespacing."""


class RedisKeys:
    """Centralized Redis key management."""

    PREFIX = "imgopt"

    @classmethod
    def entry(cls, cache_key: str) -> str:
        """Cached transform (hash: data, content_type, created_at, ttl)."""
        return f"{cls.PREFIX}:entry:{cache_key}"

    @classmethod
    def entry_pattern(cls) -> str:
        """SCAN pattern matching every cached transform."""
        return f"{cls.PREFIX}:entry:*"
