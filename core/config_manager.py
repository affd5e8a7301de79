#!/usr/bin/env python3
"""
Centralized configuration manager for calendar microservices

Each service builds one ConfigManager with its own name. The manager reads
the environment (after core.config has loaded the matching .env file) and
exposes a typed ServiceConfig plus a small service discovery helper.

Usage:
    from core.config_manager import ConfigManager

    config_manager = ConfigManager("calendar_service")
    config = config_manager.get_service_config()
    host, port = config_manager.discover_service(
        service_name="postgres_service",
        default_host="localhost",
        default_port=5432,
        env_host_key="POSTGRES_HOST",
        env_port_key="POSTGRES_PORT",
    )
"""
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .config import InfraConfig, LoggingConfig

logger = logging.getLogger(__name__)


def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


class Environment(str, Enum):
    """Deployment environment"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Environment":
        aliases = {"dev": cls.DEVELOPMENT, "test": cls.TESTING, "prod": cls.PRODUCTION}
        if not value:
            return cls.DEVELOPMENT
        value = value.lower()
        if value in aliases:
            return aliases[value]
        try:
            return cls(value)
        except ValueError:
            return cls.DEVELOPMENT


# Default ports per service
SERVICE_PORTS = {
    "calendar_service": 8217,
}


@dataclass
class ServiceConfig:
    """Per-service runtime settings"""
    service_name: str
    service_host: str = "0.0.0.0"
    service_port: int = 8000
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    # Event bus
    nats_enabled: bool = True

    # Recurrence expansion
    max_weekly_steps: int = 104
    max_monthly_steps: int = 24
    default_window_days: int = 730

    # Soft delete retention
    deleted_retention_days: int = 30

    infra: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ConfigManager:
    """Configuration manager for one microservice"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.environment = Environment.from_string(
            os.getenv("ENV") or os.getenv("ENVIRONMENT")
        )
        self._config: Optional[ServiceConfig] = None

    def get_service_config(self) -> ServiceConfig:
        """Build (once) and return the service config"""
        if self._config is None:
            self._config = self._load()
        return self._config

    def _load(self) -> ServiceConfig:
        default_port = SERVICE_PORTS.get(self.service_name, 8000)
        infra = InfraConfig.from_env()
        return ServiceConfig(
            service_name=self.service_name,
            service_host=os.getenv("SERVICE_HOST", "0.0.0.0"),
            service_port=_int(os.getenv("SERVICE_PORT", str(default_port)), default_port),
            environment=self.environment,
            debug=_bool(os.getenv("DEBUG", "false")),
            nats_enabled=infra.nats_enabled,
            max_weekly_steps=_int(os.getenv("CALENDAR_MAX_WEEKLY_STEPS", "104"), 104),
            max_monthly_steps=_int(os.getenv("CALENDAR_MAX_MONTHLY_STEPS", "24"), 24),
            default_window_days=_int(os.getenv("CALENDAR_DEFAULT_WINDOW_DAYS", "730"), 730),
            deleted_retention_days=_int(os.getenv("CALENDAR_RETENTION_DAYS", "30"), 30),
            infra=infra,
            logging=LoggingConfig.from_env(),
        )

    def discover_service(
        self,
        service_name: str,
        default_host: str,
        default_port: int,
        env_host_key: Optional[str] = None,
        env_port_key: Optional[str] = None,
    ) -> Tuple[str, int]:
        """
        Resolve host and port for a dependency.

        Priority: environment variables → defaults.
        """
        host = os.getenv(env_host_key) if env_host_key else None
        port_value = os.getenv(env_port_key) if env_port_key else None

        resolved_host = host or default_host
        resolved_port = _int(port_value, default_port) if port_value else default_port

        logger.debug(
            f"{self.service_name}: resolved {service_name} to {resolved_host}:{resolved_port}"
        )
        return resolved_host, resolved_port


def create_config(service_name: str) -> ServiceConfig:
    """Shortcut for ConfigManager(service_name).get_service_config()"""
    return ConfigManager(service_name).get_service_config()


__all__ = ["ConfigManager", "Environment", "ServiceConfig", "create_config"]
