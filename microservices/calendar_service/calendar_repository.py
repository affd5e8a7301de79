"""
Calendar Repository

日历事件数据访问层 - PostgreSQL (asyncpg)
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import asyncpg

from core.config_manager import ConfigManager
from core.postgres_client import PostgresClientWrapper, affected_rows

from .models import CalendarEvent, EventInvite, InviteStatus, Recurrence
from .protocols import UpstreamStoreError

logger = logging.getLogger(__name__)

# Columns a caller may change through update_event
UPDATABLE_COLUMNS = ("title", "description", "color", "start_time", "end_time")


class CalendarRepository:
    """日历事件数据访问层 - PostgreSQL"""

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        db: Optional[PostgresClientWrapper] = None,
    ):
        if db is None:
            if config is None:
                config = ConfigManager("calendar_service")
            infra = config.get_service_config().infra

            # 优先级：环境变量 → localhost fallback
            host, port = config.discover_service(
                service_name="postgres_service",
                default_host=infra.postgres_host,
                default_port=infra.postgres_port,
                env_host_key="POSTGRES_HOST",
                env_port_key="POSTGRES_PORT",
            )
            logger.info(f"Connecting to PostgreSQL at {host}:{port}")
            db = PostgresClientWrapper(
                service_name="calendar_service",
                host=host,
                port=port,
                database=infra.postgres_db,
                username=infra.postgres_user,
                password=infra.postgres_password,
                min_size=infra.postgres_min_pool,
                max_size=infra.postgres_max_pool,
            )
        self.db = db

        self.schema = "calendar"
        self.table_name = "calendar_events"
        self.recurrence_table = "event_recurrences"
        self.invite_table = "event_invites"

    @property
    def _event_select(self) -> str:
        return f"""
            SELECT e.*, r.pattern, r.end_at AS recurrence_end_at, r.weekdays, r.month_days
            FROM {self.schema}.{self.table_name} e
            LEFT JOIN {self.schema}.{self.recurrence_table} r ON r.event_id = e.event_id
        """

    # ====================
    # 事件查询
    # ====================

    async def find_base_events_owned_by(self, user_id: str) -> List[CalendarEvent]:
        """用户拥有的未删除事件"""
        query = f"""
            {self._event_select}
            WHERE e.user_id = $1 AND e.deleted_at IS NULL
            ORDER BY e.start_time ASC
        """
        rows = await self._query(query, [user_id], f"find events owned by {user_id}")
        return [self._to_event(row) for row in rows]

    async def find_accepted_invite_events_for(self, user_id: str) -> List[CalendarEvent]:
        """用户已接受邀请的未删除事件"""
        query = f"""
            {self._event_select}
            JOIN {self.schema}.{self.invite_table} i ON i.event_id = e.event_id
            WHERE i.invited_user_id = $1 AND i.status = $2 AND e.deleted_at IS NULL
            ORDER BY e.start_time ASC
        """
        rows = await self._query(
            query, [user_id, InviteStatus.ACCEPTED.value], f"find invited events for {user_id}"
        )
        return [self._to_event(row) for row in rows]

    async def find_events_for_users_in_range(
        self, user_ids: List[str], start: datetime, end: datetime
    ) -> List[CalendarEvent]:
        """多个用户的事件：所有重复事件，以及开始时间在范围内的单次事件"""
        if not user_ids:
            return []
        query = f"""
            {self._event_select}
            WHERE e.user_id = ANY($1::text[]) AND e.deleted_at IS NULL
              AND (r.event_id IS NOT NULL OR (e.start_time >= $2 AND e.start_time < $3))
            ORDER BY e.start_time ASC
        """
        rows = await self._query(query, [list(user_ids), start, end], "find events for users")
        return [self._to_event(row) for row in rows]

    async def get_event_by_id(
        self, event_id: str, include_deleted: bool = False
    ) -> Optional[CalendarEvent]:
        """获取事件详情"""
        query = f"{self._event_select} WHERE e.event_id = $1"
        if not include_deleted:
            query += " AND e.deleted_at IS NULL"
        row = await self._query_row(query, [event_id], f"get event {event_id}")
        return self._to_event(row) if row else None

    async def find_deleted_events(self, user_id: str) -> List[CalendarEvent]:
        """回收站中的事件"""
        query = f"""
            {self._event_select}
            WHERE e.user_id = $1 AND e.deleted_at IS NOT NULL
            ORDER BY e.deleted_at DESC
        """
        rows = await self._query(query, [user_id], f"find deleted events for {user_id}")
        return [self._to_event(row) for row in rows]

    # ====================
    # 事件写入
    # ====================

    async def create_event(
        self, event_data: Dict[str, Any], recurrence: Optional[Recurrence] = None
    ) -> CalendarEvent:
        """创建日历事件"""
        event_id = f"evt_{uuid.uuid4().hex[:16]}"
        now = datetime.now(timezone.utc)

        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO {self.schema}.{self.table_name} (
                        event_id, user_id, title, description, color,
                        start_time, end_time, created_at, updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    event_id,
                    event_data["user_id"],
                    event_data["title"],
                    event_data.get("description"),
                    event_data["color"],
                    event_data["start_time"],
                    event_data["end_time"],
                    now,
                    now,
                )
                if recurrence is not None:
                    await self._insert_recurrence(conn, event_id, recurrence)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to create event for {event_data.get('user_id')}: {e}", exc_info=True)
            raise UpstreamStoreError(f"Failed to create event: {e}") from e

        event = await self.get_event_by_id(event_id)
        if event is None:
            raise UpstreamStoreError(f"Event {event_id} missing after insert")
        return event

    async def update_event(
        self,
        event_id: str,
        updates: Dict[str, Any],
        recurrence: Optional[Recurrence] = None,
        replace_recurrence: bool = False,
    ) -> Optional[CalendarEvent]:
        """更新事件"""
        set_clauses = []
        params: List[Any] = []
        for key, value in updates.items():
            if key not in UPDATABLE_COLUMNS:
                continue
            params.append(value)
            set_clauses.append(f"{key} = ${len(params)}")

        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")
        params.append(event_id)

        query = f"""
            UPDATE {self.schema}.{self.table_name}
            SET {", ".join(set_clauses)}
            WHERE event_id = ${len(params)} AND deleted_at IS NULL
        """

        try:
            async with self.db.transaction() as conn:
                status = await conn.execute(query, *params)
                if status.endswith(" 0"):
                    return None
                if replace_recurrence:
                    await conn.execute(
                        f"DELETE FROM {self.schema}.{self.recurrence_table} WHERE event_id = $1",
                        event_id,
                    )
                    if recurrence is not None:
                        await self._insert_recurrence(conn, event_id, recurrence)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to update event {event_id}: {e}")
            raise UpstreamStoreError(f"Failed to update event {event_id}: {e}") from e

        return await self.get_event_by_id(event_id)

    async def soft_delete_event(self, event_id: str, deleted_at: datetime) -> bool:
        """移入回收站"""
        query = f"""
            UPDATE {self.schema}.{self.table_name}
            SET deleted_at = $1, updated_at = $1
            WHERE event_id = $2 AND deleted_at IS NULL
        """
        count = await self._execute(query, [deleted_at, event_id], f"soft delete event {event_id}")
        return count > 0

    async def restore_event(self, event_id: str) -> Optional[CalendarEvent]:
        """从回收站恢复"""
        query = f"""
            UPDATE {self.schema}.{self.table_name}
            SET deleted_at = NULL, updated_at = $1
            WHERE event_id = $2 AND deleted_at IS NOT NULL
        """
        count = await self._execute(
            query, [datetime.now(timezone.utc), event_id], f"restore event {event_id}"
        )
        if count == 0:
            return None
        return await self.get_event_by_id(event_id)

    async def hard_delete_event(self, event_id: str) -> bool:
        """永久删除事件及其重复规则和邀请"""
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    f"DELETE FROM {self.schema}.{self.invite_table} WHERE event_id = $1", event_id
                )
                await conn.execute(
                    f"DELETE FROM {self.schema}.{self.recurrence_table} WHERE event_id = $1", event_id
                )
                status = await conn.execute(
                    f"DELETE FROM {self.schema}.{self.table_name} WHERE event_id = $1", event_id
                )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to permanently delete event {event_id}: {e}")
            raise UpstreamStoreError(f"Failed to delete event {event_id}: {e}") from e
        return not status.endswith(" 0")

    # ====================
    # 邀请
    # ====================

    async def create_invite(
        self, event_id: str, invited_by: str, invited_user_id: str, sent_at: datetime
    ) -> Optional[EventInvite]:
        """创建邀请；已存在时返回 None"""
        query = f"""
            INSERT INTO {self.schema}.{self.invite_table} (
                invite_id, event_id, invited_by, invited_user_id, status, sent_at
            ) VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (event_id, invited_user_id) DO NOTHING
            RETURNING *
        """
        params = [
            f"inv_{uuid.uuid4().hex[:16]}",
            event_id,
            invited_by,
            invited_user_id,
            InviteStatus.PENDING.value,
            sent_at,
        ]
        row = await self._query_row(query, params, f"invite {invited_user_id} to {event_id}")
        return EventInvite(**row) if row else None

    async def get_invite_by_id(self, invite_id: str) -> Optional[EventInvite]:
        query = f"SELECT * FROM {self.schema}.{self.invite_table} WHERE invite_id = $1"
        row = await self._query_row(query, [invite_id], f"get invite {invite_id}")
        return EventInvite(**row) if row else None

    async def get_invite_for_user(self, event_id: str, user_id: str) -> Optional[EventInvite]:
        query = f"""
            SELECT * FROM {self.schema}.{self.invite_table}
            WHERE event_id = $1 AND invited_user_id = $2
        """
        row = await self._query_row(query, [event_id, user_id], f"get invite of {user_id} for {event_id}")
        return EventInvite(**row) if row else None

    async def get_event_invites(self, event_id: str) -> List[EventInvite]:
        query = f"""
            SELECT * FROM {self.schema}.{self.invite_table}
            WHERE event_id = $1
            ORDER BY sent_at ASC
        """
        rows = await self._query(query, [event_id], f"list invites for {event_id}")
        return [EventInvite(**row) for row in rows]

    async def get_invites_for_user(
        self, user_id: str, status: Optional[InviteStatus] = None
    ) -> List[EventInvite]:
        conditions = ["invited_user_id = $1"]
        params: List[Any] = [user_id]
        if status is not None:
            params.append(status.value)
            conditions.append(f"status = ${len(params)}")

        query = f"""
            SELECT * FROM {self.schema}.{self.invite_table}
            WHERE {" AND ".join(conditions)}
            ORDER BY sent_at DESC
        """
        rows = await self._query(query, params, f"list invites of {user_id}")
        return [EventInvite(**row) for row in rows]

    async def update_invite_status(
        self, invite_id: str, status: InviteStatus, responded_at: datetime
    ) -> Optional[EventInvite]:
        query = f"""
            UPDATE {self.schema}.{self.invite_table}
            SET status = $1, responded_at = $2
            WHERE invite_id = $3
            RETURNING *
        """
        row = await self._query_row(
            query, [status.value, responded_at, invite_id], f"update invite {invite_id}"
        )
        return EventInvite(**row) if row else None

    # ====================
    # GDPR 数据管理
    # ====================

    async def delete_user_data(self, user_id: str) -> int:
        """删除用户所有日历数据（GDPR Article 17: Right to Erasure）"""
        owned = f"SELECT event_id FROM {self.schema}.{self.table_name} WHERE user_id = $1"
        try:
            async with self.db.transaction() as conn:
                invites_status = await conn.execute(
                    f"""
                    DELETE FROM {self.schema}.{self.invite_table}
                    WHERE invited_user_id = $1 OR invited_by = $1 OR event_id IN ({owned})
                    """,
                    user_id,
                )
                await conn.execute(
                    f"DELETE FROM {self.schema}.{self.recurrence_table} WHERE event_id IN ({owned})",
                    user_id,
                )
                events_status = await conn.execute(
                    f"DELETE FROM {self.schema}.{self.table_name} WHERE user_id = $1", user_id
                )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Error deleting user data for {user_id}: {e}")
            raise UpstreamStoreError(f"Failed to delete data for {user_id}: {e}") from e

        events_count = affected_rows(events_status)
        invites_count = affected_rows(invites_status)
        logger.info(
            f"Deleted user {user_id} calendar data: "
            f"{events_count} events, {invites_count} invites"
        )
        return events_count + invites_count

    # ====================
    # Helpers
    # ====================

    async def _insert_recurrence(
        self, conn: asyncpg.Connection, event_id: str, recurrence: Recurrence
    ) -> None:
        await conn.execute(
            f"""
            INSERT INTO {self.schema}.{self.recurrence_table} (
                event_id, pattern, end_at, weekdays, month_days
            ) VALUES ($1, $2, $3, $4, $5)
            """,
            event_id,
            recurrence.pattern.value,
            recurrence.end_at,
            [day.value for day in recurrence.weekdays],
            list(recurrence.month_days),
        )

    async def _query(self, query: str, params: List[Any], action: str) -> List[Dict[str, Any]]:
        try:
            return await self.db.query(query, params)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to {action}: {e}")
            raise UpstreamStoreError(f"Failed to {action}: {e}") from e

    async def _query_row(
        self, query: str, params: List[Any], action: str
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.db.query_row(query, params)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to {action}: {e}")
            raise UpstreamStoreError(f"Failed to {action}: {e}") from e

    async def _execute(self, query: str, params: List[Any], action: str) -> int:
        try:
            return await self.db.execute(query, params)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to {action}: {e}")
            raise UpstreamStoreError(f"Failed to {action}: {e}") from e

    @staticmethod
    def _to_event(row: Dict[str, Any]) -> CalendarEvent:
        recurrence = None
        if row.get("pattern"):
            recurrence = Recurrence(
                pattern=row["pattern"],
                end_at=row.get("recurrence_end_at"),
                weekdays=row.get("weekdays") or [],
                month_days=row.get("month_days") or [],
            )
        return CalendarEvent(
            event_id=row["event_id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row.get("description"),
            color=row["color"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            deleted_at=row.get("deleted_at"),
            recurrence=recurrence,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )
