"""Configuration package.

Precedence (highest to lowest):
1. Explicit overrides
2. Environment variables (DEEP_SEARCH_*)
3. Project config (.deep-search.json)
4. Defaults
"""

from .config_loader import PROJECT_CONFIG_FILE, ConfigLoader, load_config
from .models import DEFAULT_EXCLUDE_PATTERNS, SearchConfig

__all__ = [
    "SearchConfig",
    "ConfigLoader",
    "load_config",
    "PROJECT_CONFIG_FILE",
    "DEFAULT_EXCLUDE_PATTERNS",
]
