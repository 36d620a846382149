
import os
import json
import logging
from typing import Dict, Any, Optional
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "benchmark": {
        "iterations": 5,
        "concurrency": 3,
        "chain": "eth-mainnet",
        "request_timeout": 15,
        "run_deadline": 110,
    },
    "scheduled": {
        "wallet": "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045",
        "chain": "eth-mainnet",
        "iterations": 2,
        "concurrency": 1,
        "dedupe_minutes": 15,
    },
    "storage": {
        "database_url": "sqlite:///data/chainbench.db",
    },
}

# CHAINBENCH_<SECTION>_<KEY> environment overrides
ENV_OVERRIDES = {
    "CHAINBENCH_ITERATIONS": ("benchmark.iterations", int),
    "CHAINBENCH_CONCURRENCY": ("benchmark.concurrency", int),
    "CHAINBENCH_CHAIN": ("benchmark.chain", str),
    "CHAINBENCH_REQUEST_TIMEOUT": ("benchmark.request_timeout", float),
    "CHAINBENCH_RUN_DEADLINE": ("benchmark.run_deadline", float),
    "DATABASE_URL": ("storage.database_url", str),
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    Centralized configuration manager.
    Singleton pattern to load and access config settings.

    Values come from built-in defaults, then ``config/config.json``,
    then environment variables.
    """
    _instance = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._load_config()
        return cls._instance

    @classmethod
    def reset(cls):
        """Drop the cached instance so the next access reloads."""
        cls._instance = None

    def _load_config(self, config_path: Optional[Path] = None):
        """Load configuration from JSON file and env vars"""
        self._config = DEFAULTS
        try:
            if config_path is None:
                config_path = Path(os.getenv("CHAINBENCH_CONFIG", "config/config.json"))

            if config_path.exists():
                with open(config_path, "r") as f:
                    self._config = _merge(DEFAULTS, json.load(f))
                logger.info(f"Loaded config from {config_path}")
            else:
                logger.debug(f"Config file not found at {config_path}. Using defaults.")

        except (OSError, ValueError) as e:
            logger.error(f"Error loading config: {e}")
            self._config = DEFAULTS

        self._apply_env()

    def _apply_env(self):
        for var, (key, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(var)
            if raw is None or not raw.strip():
                continue
            try:
                self.set(key, cast(raw.strip()))
            except ValueError:
                logger.warning(f"Ignoring invalid value for {var}: {raw!r}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by key (dot notation supported)"""
        keys = key.split(".")
        value = self._config

        try:
            for k in keys:
                value = value.get(k)
                if value is None:
                    return default
            return value
        except AttributeError:
            return default

    def set(self, key: str, value: Any):
        *parents, leaf = key.split(".")
        node = self._config = _merge(self._config, {})
        for k in parents:
            node[k] = dict(node.get(k) or {})
            node = node[k]
        node[leaf] = value

    # Type-safe getters for specific sections

    @property
    def default_iterations(self) -> int:
        return int(self.get("benchmark.iterations", 5))

    @property
    def default_concurrency(self) -> int:
        return int(self.get("benchmark.concurrency", 3))

    @property
    def default_chain(self) -> str:
        return self.get("benchmark.chain", "eth-mainnet")

    @property
    def request_timeout(self) -> float:
        return float(self.get("benchmark.request_timeout", 15))

    @property
    def run_deadline(self) -> float:
        return float(self.get("benchmark.run_deadline", 110))

    @property
    def scheduled_config(self) -> Dict[str, Any]:
        return self.get("scheduled", {})

    @property
    def database_url(self) -> str:
        return self.get("storage.database_url", "sqlite:///data/chainbench.db")
