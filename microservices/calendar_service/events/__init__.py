"""
Calendar Service Events

事件发布与订阅
"""

from .handlers import CalendarEventHandlers
from .publishers import CalendarEventPublisher

__all__ = ["CalendarEventHandlers", "CalendarEventPublisher"]
