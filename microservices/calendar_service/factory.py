"""
Calendar Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_calendar_service
    service = create_calendar_service(config, event_bus)
"""
from typing import Optional

from core.config_manager import ConfigManager

from .calendar_service import CalendarService
from .expander import OccurrenceExpander


def create_calendar_service(
    config: Optional[ConfigManager] = None,
    event_bus=None,
) -> CalendarService:
    """
    Create CalendarService with real dependencies.

    This function imports the real repository (which has I/O dependencies).
    Use this in production, NOT in tests.

    Args:
        config: Configuration manager for service discovery
        event_bus: Event bus for publishing events

    Returns:
        CalendarService instance with real dependencies
    """
    # Import real repository here (not at module level)
    from .calendar_repository import CalendarRepository

    if config is None:
        config = ConfigManager("calendar_service")
    service_config = config.get_service_config()

    repository = CalendarRepository(config=config)
    expander = OccurrenceExpander(
        max_weekly_steps=service_config.max_weekly_steps,
        max_monthly_steps=service_config.max_monthly_steps,
    )

    return CalendarService(
        repository=repository,
        event_bus=event_bus,
        expander=expander,
        default_window_days=service_config.default_window_days,
        retention_days=service_config.deleted_retention_days,
    )
