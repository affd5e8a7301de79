#!/usr/bin/env python3
"""
Core Module for Microservices Architecture

Shared infrastructure for every service in the calendar platform.

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment
    - config_manager.py: Per-service configuration and service discovery
    - logger.py: Service logger setup
    - postgres_client.py: asyncpg pool wrapper
    - nats_client.py: NATS JetStream event bus

USAGE:
    from core.config_manager import ConfigManager

    # Initialize configuration for a service
    config = ConfigManager("calendar_service")
"""

from .config_manager import ConfigManager, Environment, ServiceConfig, create_config

__all__ = [
    "ConfigManager",
    "Environment",
    "ServiceConfig",
    "create_config",
]

__version__ = "1.0.0"
