"""
Calendar Service Client

客户端库，供其他微服务调用日历服务
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8217"


class CalendarServiceClient:
    """Calendar Service HTTP客户端"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        """
        初始化Calendar Service客户端

        Args:
            base_url: Calendar服务的基础URL，默认读取 CALENDAR_SERVICE_URL
            transport: Optional httpx transport (e.g. ASGITransport in tests)
            timeout: Request timeout in seconds
        """
        base_url = base_url or os.getenv("CALENDAR_SERVICE_URL", DEFAULT_BASE_URL)
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def close(self):
        """关闭HTTP客户端"""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        try:
            response = await self.client.request(
                method, f"/api/v1/calendar{path}", params=params, json=json
            )
            response.raise_for_status()
            if response.status_code == 204:
                return True
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to {action}: {e.response.status_code} - {e.response.text}")
            return None
        except httpx.RequestError as e:
            logger.error(f"Error trying to {action}: {e}")
            return None

    @staticmethod
    def _window(start: Optional[datetime], end: Optional[datetime]) -> Dict[str, str]:
        params = {}
        if start:
            params["start"] = start.isoformat()
        if end:
            params["end"] = end.isoformat()
        return params

    # =============================================================================
    # Event Management
    # =============================================================================

    async def create_event(
        self,
        user_id: str,
        title: str,
        start_time: datetime,
        end_time: Optional[datetime] = None,
        description: Optional[str] = None,
        color: Optional[str] = None,
        recurrence: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        创建日历事件

        Args:
            user_id: 用户ID
            title: 事件标题
            start_time: 开始时间
            end_time: 结束时间（默认一小时后）
            description: 事件描述
            color: #RRGGBB
            recurrence: {"pattern": "WEEKLY", "weekdays": ["MONDAY"], "end_at": ...}

        Returns:
            事件数据字典

        Example:
            >>> client = CalendarServiceClient()
            >>> event = await client.create_event(
            ...     user_id="user123",
            ...     title="Standup",
            ...     start_time=datetime(2025, 10, 20, 9, 0, tzinfo=timezone.utc),
            ...     recurrence={"pattern": "WEEKLY", "weekdays": ["MONDAY", "WEDNESDAY"]},
            ... )
        """
        data = {
            "user_id": user_id,
            "title": title,
            "start_time": start_time.isoformat(),
            "description": description,
        }
        if end_time:
            data["end_time"] = end_time.isoformat()
        if color:
            data["color"] = color
        if recurrence:
            data["recurrence"] = recurrence
        return await self._request("POST", "/events", "create event", json=data)

    async def get_event(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """获取事件详情"""
        return await self._request(
            "GET", f"/events/{event_id}", f"get event {event_id}", params={"user_id": user_id}
        )

    async def update_event(
        self, event_id: str, user_id: str, **updates
    ) -> Optional[Dict[str, Any]]:
        """更新事件; pass recurrence=None to remove a recurrence"""
        body = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in updates.items()
        }
        return await self._request(
            "PUT", f"/events/{event_id}", f"update event {event_id}",
            params={"user_id": user_id}, json=body,
        )

    async def delete_event(self, event_id: str, user_id: str) -> bool:
        """删除事件"""
        result = await self._request(
            "DELETE", f"/events/{event_id}", f"delete event {event_id}", params={"user_id": user_id}
        )
        return bool(result)

    async def restore_event(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """恢复事件"""
        return await self._request(
            "POST", f"/events/{event_id}/restore", f"restore event {event_id}",
            params={"user_id": user_id},
        )

    async def get_deleted_events(self, user_id: str) -> List[Dict[str, Any]]:
        """回收站"""
        result = await self._request(
            "GET", "/deleted", "list deleted events", params={"user_id": user_id}
        )
        return result or []

    # =============================================================================
    # Queries
    # =============================================================================

    async def list_events(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[Dict[str, Any]]:
        """查询事件列表 (occurrences in a window)"""
        params = {"user_id": user_id, **self._window(start, end)}
        return await self._request("GET", "/events", "list events", params=params)

    async def get_upcoming_events(self, user_id: str, days: int = 7) -> List[Dict[str, Any]]:
        """获取即将到来的事件"""
        result = await self._request(
            "GET", "/upcoming", "get upcoming events", params={"user_id": user_id, "days": days}
        )
        return result["events"] if result else []

    async def get_today_events(self, user_id: str) -> List[Dict[str, Any]]:
        """获取今天的事件"""
        result = await self._request(
            "GET", "/today", "get today's events", params={"user_id": user_id}
        )
        return result["events"] if result else []

    async def get_availability(
        self, user_ids: List[str], start: datetime, end: datetime
    ) -> Optional[Dict[str, Any]]:
        """空闲时间查询"""
        body = {"user_ids": user_ids, "start": start.isoformat(), "end": end.isoformat()}
        return await self._request("POST", "/availability", "get availability", json=body)

    # =============================================================================
    # Invites
    # =============================================================================

    async def invite_users(
        self, event_id: str, owner_id: str, user_ids: List[str]
    ) -> Optional[Dict[str, Any]]:
        """邀请用户"""
        return await self._request(
            "POST", f"/events/{event_id}/invites", f"invite users to {event_id}",
            params={"user_id": owner_id}, json={"user_ids": user_ids},
        )

    async def respond_to_invite(
        self, invite_id: str, user_id: str, action: str
    ) -> Optional[Dict[str, Any]]:
        """action: accept, decline or cancel"""
        if action not in ("accept", "decline", "cancel"):
            raise ValueError(f"Unknown invite action: {action}")
        return await self._request(
            "POST", f"/invites/{invite_id}/{action}", f"{action} invite {invite_id}",
            params={"user_id": user_id},
        )

    # =============================================================================
    # Health Check
    # =============================================================================

    async def health_check(self) -> bool:
        """检查服务健康状态"""
        result = await self._request("GET", "/health", "check health")
        return bool(result and result.get("status") == "healthy")


__all__ = ["CalendarServiceClient"]
