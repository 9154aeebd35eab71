from scriptflow.cache.content_cache import ContentCache, CacheEntry
from scriptflow.cache.hash_utils import hash_content, estimate_size, format_bytes

__all__ = [
    'ContentCache',
    'CacheEntry',
    'hash_content',
    'estimate_size',
    'format_bytes',
]
