from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

import asyncpg

from eventsplit.db.models import (
    Attendance,
    AttendanceResponse,
    AttendanceStatus,
    DateOption,
    Event,
    Expense,
    policy_from_storage,
)
from eventsplit.logging import get_logger, sql_logger


class Database:
    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = None
        self._log = get_logger(__name__)

    async def connect(self) -> None:
        if self._pool is None:
            # asyncpg ожидает схему postgresql/postgres, без "+asyncpg"
            dsn = self._dsn.replace("+asyncpg", "")
            self._pool = await asyncpg.create_pool(dsn)
            self._log.info("db.pool.created")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            self._log.info("db.pool.closed")

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        pool = await self._ensure_pool()
        sql_logger.info("sql.fetch", query=query, args=args)
        return await pool.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        pool = await self._ensure_pool()
        sql_logger.info("sql.fetchrow", query=query, args=args)
        return await pool.fetchrow(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        pool = await self._ensure_pool()
        sql_logger.info("sql.execute", query=query, args=args)
        return await pool.execute(query, *args)

    async def executemany(self, command: str, args: Iterable[Iterable[Any]]) -> None:
        pool = await self._ensure_pool()
        sql_logger.info("sql.executemany", query=command)
        await pool.executemany(command, args)

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            await self.connect()
        assert self._pool
        return self._pool


def _event_from_row(row: Any) -> Event:
    return Event(
        id=row["id"],
        title=row["title"],
        creator_name=row["creator_name"],
        description=row["description"],
        default_start_time=row["default_start_time"],
        default_end_time=row["default_end_time"],
        selected_date=row["selected_date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        participants=list(row["participants"] or []),
        participants_count=row["participants_count"] or 0,
        created_at=row["created_at"],
    )


def _date_option_from_row(row: Any) -> DateOption:
    return DateOption(
        id=row["id"],
        event_id=row["event_id"],
        date=row["date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
    )


def _expense_from_row(row: Any) -> Expense:
    members = list(row["participants"] or [])
    return Expense(
        id=row["id"],
        event_id=row["event_id"],
        payer=row["payer_name"],
        description=row["description"],
        amount=int(row["amount"]),
        policy=policy_from_storage(members, row["is_shared_with_all"]),
        members=members,
        created_at=row["created_at"],
    )


class EventSplitRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def create_event(
        self,
        title: str,
        creator_name: str,
        description: Optional[str],
        default_start_time: Optional[str],
        default_end_time: Optional[str],
    ) -> Event:
        row = await self.db.fetchrow(
            """
            INSERT INTO events (title, creator_name, description, default_start_time, default_end_time, participants)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            title,
            creator_name,
            description,
            default_start_time,
            default_end_time,
            [creator_name],
        )
        assert row is not None
        return _event_from_row(row)

    async def get_event(self, event_id: int) -> Event | None:
        row = await self.db.fetchrow("SELECT * FROM events WHERE id = $1", event_id)
        return _event_from_row(row) if row else None

    async def list_events(self, limit: int) -> list[Event]:
        rows = await self.db.fetch(
            "SELECT * FROM events ORDER BY created_at DESC, id DESC LIMIT $1",
            limit,
        )
        return [_event_from_row(row) for row in rows]

    async def finalize_event(self, event_id: int, date: str, start_time: str, end_time: str) -> Event:
        row = await self.db.fetchrow(
            """
            UPDATE events
            SET selected_date = $2, start_time = $3, end_time = $4
            WHERE id = $1
            RETURNING *
            """,
            event_id,
            date,
            start_time,
            end_time,
        )
        assert row is not None
        return _event_from_row(row)

    async def set_event_participants(self, event_id: int, names: Sequence[str]) -> None:
        await self.db.execute(
            "UPDATE events SET participants = $1 WHERE id = $2",
            list(names),
            event_id,
        )

    async def create_date_option(self, event_id: int, date: str, start_time: str, end_time: str) -> DateOption:
        row = await self.db.fetchrow(
            """
            INSERT INTO date_options (event_id, date, start_time, end_time)
            VALUES ($1, $2, $3, $4)
            RETURNING *
            """,
            event_id,
            date,
            start_time,
            end_time,
        )
        assert row is not None
        return _date_option_from_row(row)

    async def list_date_options(self, event_id: int) -> list[DateOption]:
        rows = await self.db.fetch(
            "SELECT * FROM date_options WHERE event_id = $1 ORDER BY date, start_time, id",
            event_id,
        )
        return [_date_option_from_row(row) for row in rows]

    async def get_date_option(self, date_option_id: int) -> DateOption | None:
        row = await self.db.fetchrow("SELECT * FROM date_options WHERE id = $1", date_option_id)
        return _date_option_from_row(row) if row else None

    async def create_attendance(
        self,
        event_id: int,
        name: str,
        responses: Sequence[AttendanceResponse],
    ) -> Attendance:
        row = await self.db.fetchrow(
            """
            INSERT INTO attendances (event_id, name)
            VALUES ($1, $2)
            RETURNING *
            """,
            event_id,
            name,
        )
        assert row is not None
        if responses:
            await self.db.executemany(
                """
                INSERT INTO attendance_responses (attendance_id, date_option_id, status)
                VALUES ($1, $2, $3)
                """,
                ((row["id"], response.date_option_id, response.status.value) for response in responses),
            )
        await self.db.execute(
            "UPDATE events SET participants_count = participants_count + 1 WHERE id = $1",
            event_id,
        )
        return Attendance(
            id=row["id"],
            event_id=event_id,
            name=name,
            responses=list(responses),
            created_at=row["created_at"],
        )

    async def list_attendances(self, event_id: int) -> list[Attendance]:
        rows = await self.db.fetch(
            """
            SELECT a.*, ar.date_option_id, ar.status
            FROM attendances a
            LEFT JOIN attendance_responses ar ON ar.attendance_id = a.id
            WHERE a.event_id = $1
            ORDER BY a.created_at, a.id, ar.id
            """,
            event_id,
        )
        attendances: dict[int, Attendance] = {}
        for row in rows:
            attendance = attendances.get(row["id"])
            if attendance is None:
                attendance = Attendance(
                    id=row["id"],
                    event_id=row["event_id"],
                    name=row["name"],
                    created_at=row["created_at"],
                )
                attendances[row["id"]] = attendance
            if row["date_option_id"] is not None:
                attendance.responses.append(
                    AttendanceResponse(
                        date_option_id=row["date_option_id"],
                        status=AttendanceStatus(row["status"]),
                    )
                )
        return list(attendances.values())

    async def list_respondent_names(self, event_id: int) -> list[str]:
        rows = await self.db.fetch(
            "SELECT name FROM attendances WHERE event_id = $1 ORDER BY created_at, id",
            event_id,
        )
        return [row["name"] for row in rows]

    async def create_expense(
        self,
        event_id: int,
        payer: str,
        description: str,
        amount: int,
        members: Sequence[str],
        is_shared_with_all: bool,
    ) -> Expense:
        row = await self.db.fetchrow(
            """
            INSERT INTO expenses (event_id, payer_name, description, amount, participants, is_shared_with_all)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            event_id,
            payer,
            description,
            amount,
            list(members),
            is_shared_with_all,
        )
        assert row is not None
        return _expense_from_row(row)

    async def get_expense(self, expense_id: int) -> Expense | None:
        row = await self.db.fetchrow("SELECT * FROM expenses WHERE id = $1", expense_id)
        return _expense_from_row(row) if row else None

    async def list_expenses(self, event_id: int) -> list[Expense]:
        rows = await self.db.fetch(
            "SELECT * FROM expenses WHERE event_id = $1 ORDER BY created_at, id",
            event_id,
        )
        return [_expense_from_row(row) for row in rows]

    async def update_shared_snapshot(self, expense_id: int, members: Sequence[str]) -> None:
        # Флаг выставляется заодно: старые строки без флага переводятся в явный "на всех".
        await self.db.execute(
            "UPDATE expenses SET participants = $1, is_shared_with_all = true WHERE id = $2",
            list(members),
            expense_id,
        )

    async def delete_expense(self, expense_id: int) -> None:
        await self.db.execute("DELETE FROM expenses WHERE id = $1", expense_id)

