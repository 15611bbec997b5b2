"""
Deadswitch Client Configuration
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from deadswitch.constants import (
    NETWORK_MAINNET,
    NETWORK_TESTNET,
    DEFAULT_REGISTRY_URL,
    DEFAULT_REGISTRY_TIMEOUT_SEC,
    BALANCE_TTL_SEC,
    LIVENESS_TICK_INTERVAL_SEC,
    DEFAULT_NTP_SERVER,
    NTP_SYNC_INTERVAL_SEC,
    MIN_HEARTBEAT_INTERVAL_SEC,
)

logger = logging.getLogger(__name__)


@dataclass
class RegistryConfig:
    """Registry gateway configuration."""
    base_url: str = DEFAULT_REGISTRY_URL
    timeout_sec: float = DEFAULT_REGISTRY_TIMEOUT_SEC
    verify_tls: bool = True


@dataclass
class CacheConfig:
    """Cache configuration."""
    backend: str = "memory"          # memory | sqlite
    db_path: str = "./data/deadswitch_cache.db"
    balance_ttl_sec: int = BALANCE_TTL_SEC


@dataclass
class LivenessConfig:
    """Liveness clock configuration."""
    tick_interval_sec: float = LIVENESS_TICK_INTERVAL_SEC
    time_source: str = "system"      # system | ntp
    ntp_server: str = DEFAULT_NTP_SERVER
    ntp_sync_interval_sec: int = NTP_SYNC_INTERVAL_SEC


@dataclass
class WillConfig:
    """Will registration validation."""
    allow_empty_payload: bool = True
    min_heartbeat_interval_sec: int = MIN_HEARTBEAT_INTERVAL_SEC


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass
class ClientConfig:
    """
    Complete client configuration.

    All settings for running the deadswitch client core.
    """
    name: str = "deadswitch-client"
    network: str = NETWORK_TESTNET

    # Sub-configurations
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    liveness: LivenessConfig = field(default_factory=LivenessConfig)
    will: WillConfig = field(default_factory=WillConfig)
    log: LogConfig = field(default_factory=LogConfig)

    @property
    def testnet(self) -> bool:
        return self.network == NETWORK_TESTNET

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.network not in (NETWORK_MAINNET, NETWORK_TESTNET):
            errors.append(f"Invalid network: {self.network}")

        if not self.registry.base_url.startswith(("http://", "https://")):
            errors.append(f"Invalid registry URL: {self.registry.base_url}")
        if self.registry.timeout_sec <= 0:
            errors.append("registry timeout must be positive")

        if self.cache.backend not in ("memory", "sqlite"):
            errors.append(f"Invalid cache backend: {self.cache.backend}")
        if self.cache.backend == "sqlite" and not self.cache.db_path:
            errors.append("db_path cannot be empty for sqlite cache")
        if self.cache.balance_ttl_sec < 0:
            errors.append("balance_ttl_sec cannot be negative")

        if self.liveness.tick_interval_sec <= 0:
            errors.append("tick_interval_sec must be positive")
        if self.liveness.time_source not in ("system", "ntp"):
            errors.append(f"Invalid time source: {self.liveness.time_source}")

        if self.will.min_heartbeat_interval_sec < 1:
            errors.append("min_heartbeat_interval_sec must be at least 1")

        return errors

    def save(self, path: str) -> None:
        """Save configuration to file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Configuration saved to {path}")

    @classmethod
    def load(cls, path: str) -> "ClientConfig":
        """Load configuration from file."""
        with open(path, 'r') as f:
            data = json.load(f)

        config = cls(
            name=data.get("name", "deadswitch-client"),
            network=data.get("network", NETWORK_TESTNET),
        )

        if "registry" in data:
            config.registry = RegistryConfig(**data["registry"])

        if "cache" in data:
            config.cache = CacheConfig(**data["cache"])

        if "liveness" in data:
            config.liveness = LivenessConfig(**data["liveness"])

        if "will" in data:
            config.will = WillConfig(**data["will"])

        if "log" in data:
            config.log = LogConfig(**data["log"])

        logger.info(f"Configuration loaded from {path}")
        return config

    @classmethod
    def default_testnet(cls) -> "ClientConfig":
        """Create default testnet configuration."""
        config = cls(name="deadswitch-testnet", network=NETWORK_TESTNET)
        config.cache.db_path = "./data-testnet/deadswitch_cache.db"
        return config

    @classmethod
    def default_mainnet(cls) -> "ClientConfig":
        """Create default mainnet configuration."""
        config = cls(name="deadswitch-mainnet", network=NETWORK_MAINNET)
        config.cache.backend = "sqlite"
        config.liveness.time_source = "ntp"
        return config

    def to_dict(self) -> dict:
        """Export configuration as dictionary."""
        return {
            "name": self.name,
            "network": self.network,
            "registry": asdict(self.registry),
            "cache": asdict(self.cache),
            "liveness": asdict(self.liveness),
            "will": asdict(self.will),
            "log": asdict(self.log),
        }


def setup_logging(config: LogConfig) -> None:
    """Configure logging based on config."""
    level = getattr(logging, config.level.upper(), logging.INFO)

    handlers = [logging.StreamHandler()]

    if config.file:
        from logging.handlers import RotatingFileHandler
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format=config.format,
        handlers=handlers,
    )
