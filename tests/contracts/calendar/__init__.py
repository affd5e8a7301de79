"""
Calendar Service Contracts

Test data factory and request builders for calendar_service.
"""

from .data_contract import (
    CalendarTestDataFactory,
    EventCreateRequestBuilder,
)

__all__ = [
    "CalendarTestDataFactory",
    "EventCreateRequestBuilder",
]
