import os
import json
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Optional
import hashlib

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CacheHelper:
    """File-backed key-value cache; every entry carries its own expiry."""

    DEFAULT_CACHE_DIR = "~/.suntimes/cache"

    def __init__(self, cache_dir: Optional[str] = None, component_name: str = ""):
        """Initialize cache helper with specific cache directory
        Args:
            cache_dir: Base cache directory from config, if None uses DEFAULT_CACHE_DIR
            component_name: Component specific subdirectory
        """
        base_dir = os.path.expanduser(cache_dir or self.DEFAULT_CACHE_DIR)
        self.cache_dir = os.path.join(base_dir, component_name) if component_name else base_dir
        os.makedirs(self.cache_dir, exist_ok=True)

    def _get_cache_file(self, key: str) -> str:
        """Generate cache filename from key"""
        key_hash = hashlib.md5(key.encode()).hexdigest()
        return os.path.join(self.cache_dir, f"{key_hash}.json")

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing, expired or unreadable"""
        cache_file = self._get_cache_file(key)
        if not os.path.exists(cache_file):
            return None

        try:
            with open(cache_file, 'r') as f:
                cached = json.load(f)
            expires_at = datetime.fromisoformat(cached['expires_at'])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Error reading cache entry {key}: {e}")
            return None

        if expires_at <= _utc_now():
            logger.debug(f"Cache entry expired: {key}")
            self.delete(key)
            return None

        return cached.get('value')

    def set(self, key: str, value: Any, expires_in: timedelta) -> None:
        """Save a JSON-serializable value that expires after expires_in"""
        cache_data = {
            'key': key,
            'expires_at': (_utc_now() + expires_in).isoformat(),
            'value': value,
        }
        try:
            with open(self._get_cache_file(key), 'w') as f:
                json.dump(cache_data, f)
        except (OSError, TypeError) as e:
            logger.error(f"Error saving cache entry {key}: {e}")

    def delete(self, key: str) -> None:
        cache_file = self._get_cache_file(key)
        try:
            os.remove(cache_file)
        except FileNotFoundError:
            pass

    def clear(self) -> None:
        """Remove every entry in this cache directory"""
        for name in os.listdir(self.cache_dir):
            if name.endswith(".json"):
                os.remove(os.path.join(self.cache_dir, name))
