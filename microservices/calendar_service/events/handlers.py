"""
Calendar Service Event Handlers

处理来自其他服务的事件订阅
"""

import logging
from typing import Callable, Dict

from pydantic import ValidationError

from .models import CalendarSubscribedEventType, UserDeletedEventData

logger = logging.getLogger(__name__)


class CalendarEventHandlers:
    """日历服务事件处理器"""

    def __init__(self, calendar_service):
        """
        初始化事件处理器

        Args:
            calendar_service: CalendarService 实例
        """
        self.service = calendar_service

    def get_event_handler_map(self) -> Dict[str, Callable]:
        """
        获取事件处理器映射

        Returns:
            Dict[event_type, handler_function]
        """
        return {
            CalendarSubscribedEventType.USER_DELETED.value: self.handle_user_deleted,
        }

    async def handle_user_deleted(self, event_data: dict) -> int:
        """
        处理用户删除事件

        当用户被删除时，自动清理该用户的所有日历数据（事件、重复规则、邀请）
        符合 GDPR Article 17: Right to Erasure

        A store failure is re-raised so the bus redelivers the message.

        Args:
            event_data: {
                "user_id": str,
                "timestamp": str,
                ...
            }

        Returns:
            Number of records removed (0 when the payload has no user_id)
        """
        try:
            payload = UserDeletedEventData.model_validate(event_data)
        except ValidationError as e:
            logger.warning(f"Received malformed user.deleted event: {e}")
            return 0

        user_id = payload.user_id
        if not user_id:
            logger.warning("Received user.deleted event without user_id")
            return 0

        logger.info(f"Handling user.deleted event for user: {user_id}")
        try:
            deleted_count = await self.service.delete_user_data(user_id)
        except Exception as e:
            logger.error(
                f"Error handling user.deleted event for user {user_id}: {e}",
                exc_info=True,
            )
            raise

        logger.info(
            f"Deleted {deleted_count} calendar records for user {user_id} (GDPR compliance)"
        )
        return deleted_count


__all__ = ["CalendarEventHandlers"]
