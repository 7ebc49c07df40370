# SPDX-License-Identifier: MIT
"""Cache module for projections and memoised upstream payloads.

- ProjectionCache: enriched collections keyed by domain and unit key
- KeyValueCache: generic key-value caching with TTL
"""

from .key_value_cache import KeyValueCache
from .projection_cache import ProjectionCache, group_key


__all__ = ["KeyValueCache", "ProjectionCache", "group_key"]
