# SPDX-License-Identifier: MIT
"""Constants used throughout matchday-sync.

This module centralizes default values for:

- **Upstream access**: base URL, timeouts, retry and backoff limits, page caps
- **Storage**: connection timeout for the sqlite-backed store and cache
- **Cache lifetimes**: TTLs for projections and memoised upstream payloads
- **Temporal windows**: the after-day cutoff and the selection lock offset
"""

# Upstream API
DEFAULT_UPSTREAM_BASE_URL: str = "https://fantasy.premierleague.com/api"
DEFAULT_UPSTREAM_TIMEOUT: float = 30.0
DEFAULT_UPSTREAM_MAX_RETRIES: int = 3
DEFAULT_UPSTREAM_INITIAL_DELAY: float = 1.0
DEFAULT_UPSTREAM_MAX_DELAY: float = 30.0
DEFAULT_UPSTREAM_JITTER: float = 0.5
DEFAULT_UPSTREAM_MAX_PAGES: int = 50
DEFAULT_USER_AGENT: str = "matchday-sync/1.0"

# Storage
DEFAULT_STORE_TIMEOUT: float = 30.0

# Cache TTL (seconds)
PROJECTION_CACHE_TTL: int = 86400  # 24 hours
BOOTSTRAP_MEMO_TTL: int = 300  # 5 minutes
MAX_CACHE_TTL: int = 31536000  # 365 days
MAX_CACHE_KEY_LENGTH: int = 255

# Sync
DEFAULT_SEASON: str = "2425"
DEFAULT_SYNC_ATTEMPTS: int = 3
CONFLICT_POLICY_REJECT: str = "reject"
CONFLICT_POLICY_WAIT: str = "wait"

# Temporal windows
AFTER_DAY_CUTOFF_HOUR: int = 6
SELECTION_LOCK_OFFSET_MINUTES: int = 30

# Cache key separator for grouped collections
GROUP_KEY_SEPARATOR: str = "::"
