"""
Configuration Loader - Manages YAML configuration and environment variables
"""
import os
from typing import Any, Dict, Optional

import yaml

CLUSTER_MODES = ('vibe', 'genre')
POPULARITY_SCALING = ('absolute', 'batch')

# Default cluster range per mode; genre mode separates more groups
DEFAULT_CLUSTER_RANGE = {
    'vibe': (2, 6),
    'genre': (2, 8),
}


class Config:
    """Configuration manager for vibe-groups"""

    def __init__(self, config_path: str = "config.yaml", data: Optional[Dict[str, Any]] = None):
        self.config_path = config_path
        self.config = data if data is not None else self._load_config()
        self._validate_config()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Build a configuration without reading a file"""
        return cls(config_path="<dict>", data=data)

    def _load_config(self) -> dict:
        """Load configuration from YAML file"""
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def _validate_config(self):
        """Validate required fields and value ranges"""
        if not isinstance(self.config, dict):
            raise ValueError(f"Configuration in {self.config_path} must be a mapping")

        api_key = self.lastfm_api_key
        if not api_key or str(api_key).startswith('YOUR_'):
            raise ValueError(f"Please set lastfm.api_key in {self.config_path} (or LASTFM_API_KEY)")

        if self.cluster_mode not in CLUSTER_MODES:
            raise ValueError(f"clustering.mode must be one of {CLUSTER_MODES}, got {self.cluster_mode!r}")
        if self.popularity_scaling not in POPULARITY_SCALING:
            raise ValueError(
                f"features.popularity_scaling must be one of {POPULARITY_SCALING}, got {self.popularity_scaling!r}"
            )
        if self.min_clusters < 2 or self.max_clusters < self.min_clusters:
            raise ValueError(f"Invalid cluster range [{self.min_clusters}, {self.max_clusters}]")
        if self.max_iterations < 1:
            raise ValueError("clustering.max_iterations must be at least 1")
        if self.lastfm_min_request_interval < 0:
            raise ValueError("lastfm.min_request_interval_ms must not be negative")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            section: Configuration section
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        values = self.config.get(section) or {}
        if not isinstance(values, dict):
            return default
        value = values.get(key, default)
        return default if value is None else value

    # Spotify
    @property
    def spotify_access_token(self) -> str:
        """Spotify access token (environment variable wins)"""
        return os.getenv('SPOTIFY_ACCESS_TOKEN') or self.get('spotify', 'access_token', '')

    @property
    def spotify_api_base(self) -> str:
        return self.get('spotify', 'api_base', 'https://api.spotify.com/v1')

    @property
    def spotify_timeout(self) -> float:
        return float(self.get('spotify', 'timeout_seconds', 10))

    # Last.FM
    @property
    def lastfm_api_key(self) -> str:
        """Last.FM API key (environment variable wins)"""
        return os.getenv('LASTFM_API_KEY') or self.get('lastfm', 'api_key', '')

    @property
    def lastfm_min_request_interval(self) -> float:
        """Minimum seconds between Last.FM requests"""
        return float(self.get('lastfm', 'min_request_interval_ms', 250)) / 1000.0

    @property
    def lastfm_max_tags(self) -> int:
        return int(self.get('lastfm', 'max_tags', 10))

    @property
    def lastfm_concurrent_lookups(self) -> bool:
        return bool(self.get('lastfm', 'concurrent_lookups', True))

    @property
    def lastfm_max_retries(self) -> int:
        return int(self.get('lastfm', 'max_retries', 2))

    @property
    def lastfm_timeout(self) -> float:
        return float(self.get('lastfm', 'timeout_seconds', 10))

    # Clustering
    @property
    def cluster_mode(self) -> str:
        """'vibe' clusters on energy/mood dims, 'genre' adds a one-hot genre block"""
        return str(self.get('clustering', 'mode', 'vibe')).lower()

    @property
    def min_clusters(self) -> int:
        default = DEFAULT_CLUSTER_RANGE.get(self.cluster_mode, (2, 6))[0]
        return int(self.get('clustering', 'min_clusters', default))

    @property
    def max_clusters(self) -> int:
        default = DEFAULT_CLUSTER_RANGE.get(self.cluster_mode, (2, 6))[1]
        return int(self.get('clustering', 'max_clusters', default))

    @property
    def max_iterations(self) -> int:
        return int(self.get('clustering', 'max_iterations', 100))

    @property
    def cluster_seed(self) -> Optional[int]:
        """Seed for centroid initialization; None means unseeded"""
        seed = self.get('clustering', 'seed', None)
        return int(seed) if seed is not None else None

    # Features
    @property
    def vocabulary_path(self) -> Optional[str]:
        """Custom tag vocabulary YAML (packaged vocabulary when unset)"""
        return self.get('features', 'vocabulary_path', None)

    @property
    def popularity_scaling(self) -> str:
        return str(self.get('features', 'popularity_scaling', 'absolute')).lower()

    # Logging
    @property
    def log_level(self) -> str:
        return str(self.get('logging', 'level', 'INFO')).upper()

    @property
    def log_file(self) -> Optional[str]:
        return self.get('logging', 'file', None)

    def with_overrides(self, section: str, **values: Any) -> 'Config':
        """Copy of this config with some keys of one section replaced"""
        data = {key: dict(value) if isinstance(value, dict) else value for key, value in self.config.items()}
        merged = dict(data.get(section) or {})
        merged.update({k: v for k, v in values.items() if v is not None})
        data[section] = merged
        return Config(config_path=self.config_path, data=data)

    def __repr__(self) -> str:
        """String representation (hides credentials)"""
        return (f"Config(path={self.config_path}, mode={self.cluster_mode}, "
                f"clusters=[{self.min_clusters}, {self.max_clusters}])")
