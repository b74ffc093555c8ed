import json
import hashlib
from typing import Any, Dict, Optional

import redis

from siteplan.config.settings import get_settings

settings = get_settings()


class OptimizationCache:
    def __init__(self, redis_url: str = settings.redis_url, ttl_seconds: int = settings.cache_ttl_seconds):
        self.redis_client = redis.from_url(redis_url, decode_responses=True)
        self.ttl_seconds = ttl_seconds

    def get(self, request_hash: str) -> Optional[Dict]:
        """Retrieve a cached optimization result by request hash."""
        cached = self.redis_client.get(f"optimization:{request_hash}")
        if cached:
            return json.loads(cached)
        return None

    def set(self, request_hash: str, result: Dict, ttl_seconds: Optional[int] = None) -> None:
        """Cache a serialized result with TTL (settings.cache_ttl_seconds by default)."""
        self.redis_client.setex(
            f"optimization:{request_hash}",
            ttl_seconds or self.ttl_seconds,
            json.dumps(result, default=str),
        )

    @staticmethod
    def hash_request(payload: Any) -> str:
        """Stable sha256 over a JSON-serializable request payload."""
        data = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(data.encode()).hexdigest()[:16]
