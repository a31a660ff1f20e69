from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from eventsplit.db.models import Attendance, AttendanceResponse, AttendanceStatus, DateOption, Event
from eventsplit.logging import get_logger
from eventsplit.services.errors import DateOptionNotFoundError, EventNotFoundError, ValidationError
from eventsplit.services.participants import clean_name


STATUS_LABELS = {
    AttendanceStatus.AVAILABLE: "могу",
    AttendanceStatus.MAYBE: "возможно",
    AttendanceStatus.UNAVAILABLE: "не могу",
}


class EventRepository(Protocol):
    async def create_event(
        self,
        title: str,
        creator_name: str,
        description: Optional[str],
        default_start_time: Optional[str],
        default_end_time: Optional[str],
    ) -> Event: ...

    async def get_event(self, event_id: int) -> Event | None: ...

    async def list_events(self, limit: int) -> list[Event]: ...

    async def finalize_event(self, event_id: int, date: str, start_time: str, end_time: str) -> Event: ...

    async def create_date_option(self, event_id: int, date: str, start_time: str, end_time: str) -> DateOption: ...

    async def list_date_options(self, event_id: int) -> list[DateOption]: ...

    async def get_date_option(self, date_option_id: int) -> DateOption | None: ...

    async def create_attendance(
        self,
        event_id: int,
        name: str,
        responses: Sequence[AttendanceResponse],
    ) -> Attendance: ...

    async def list_attendances(self, event_id: int) -> list[Attendance]: ...


@dataclass(slots=True, frozen=True)
class DateOptionInput:
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None


@dataclass(slots=True)
class OptionTally:
    option: DateOption
    available: int = 0
    maybe: int = 0
    unavailable: int = 0


@dataclass(slots=True)
class EventDetails:
    event: Event
    date_options: list[DateOption] = field(default_factory=list)
    attendances: list[Attendance] = field(default_factory=list)

    @property
    def selected_option(self) -> Optional[DateOption]:
        for option in self.date_options:
            if self.event.selected_date == option.date and self.event.start_time == option.start_time:
                return option
        return None


def tally_availability(options: Sequence[DateOption], attendances: Iterable[Attendance]) -> list[OptionTally]:
    tallies = [OptionTally(option=option) for option in options]
    for attendance in attendances:
        for tally in tallies:
            status = attendance.status_for(tally.option.id)
            if status == AttendanceStatus.AVAILABLE:
                tally.available += 1
            elif status == AttendanceStatus.MAYBE:
                tally.maybe += 1
            else:
                tally.unavailable += 1
    return tallies


def best_option(tallies: Sequence[OptionTally]) -> Optional[OptionTally]:
    if not tallies:
        return None
    return min(
        tallies,
        key=lambda t: (-t.available, -t.maybe, t.option.date, t.option.start_time),
    )


def format_option(option: DateOption) -> str:
    return f"{option.date} {option.start_time}–{option.end_time}"


def format_event_line(event: Event) -> str:
    when = f"{event.selected_date} {event.start_time}" if event.is_finalized else "дата не выбрана"
    return f"#{event.id} {event.title} ({when})"


def format_event_card(details: EventDetails) -> str:
    event = details.event
    lines = [f"#{event.id} — {event.title}", f"Организатор: {event.creator_name}"]
    if event.description:
        lines.append(event.description)

    if event.is_finalized:
        lines.append(f"Дата: {event.selected_date} {event.start_time}–{event.end_time}")
    else:
        lines.append("Дата ещё не выбрана")

    tallies = tally_availability(details.date_options, details.attendances)
    if tallies:
        lines.append("")
        lines.append(f"Ответов в опросе: {event.participants_count}")
        best = best_option(tallies) if details.attendances else None
        for tally in tallies:
            mark = " ★" if best is not None and tally is best else ""
            lines.append(
                f"[{tally.option.id}] {format_option(tally.option)}: "
                f"○{tally.available} △{tally.maybe} ×{tally.unavailable}{mark}"
            )
    return "\n".join(lines)


class EventService:
    def __init__(self, repo: EventRepository) -> None:
        self.repo = repo
        self._log = get_logger(__name__)

    async def create_event(
        self,
        title: str,
        creator_name: str,
        date_options: Sequence[DateOptionInput],
        *,
        description: Optional[str] = None,
        default_start_time: str,
        default_end_time: str,
    ) -> EventDetails:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Название события не может быть пустым.")
        creator_name = clean_name(creator_name, "Имя организатора")
        if not date_options:
            raise ValidationError("Нужен хотя бы один вариант даты.")

        slots: list[tuple[str, str, str]] = []
        for option in date_options:
            slot = (option.date, option.start_time or default_start_time, option.end_time or default_end_time)
            if slot in slots:
                raise ValidationError(f"Вариант {option.date} {slot[1]} указан дважды.")
            slots.append(slot)

        event = await self.repo.create_event(
            title,
            creator_name,
            (description or "").strip() or None,
            default_start_time,
            default_end_time,
        )
        options = [await self.repo.create_date_option(event.id, *slot) for slot in slots]
        self._log.info("event.created", event_id=event.id, options=len(options))
        return EventDetails(event=event, date_options=options)

    async def get_event(self, event_id: int) -> EventDetails:
        event = await self.repo.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return EventDetails(
            event=event,
            date_options=await self.repo.list_date_options(event_id),
            attendances=await self.repo.list_attendances(event_id),
        )

    async def list_events(self, limit: int = 20) -> list[Event]:
        """Последние события, новые сверху."""
        return await self.repo.list_events(limit)

    async def submit_attendance(
        self,
        event_id: int,
        name: str,
        responses: Mapping[int, AttendanceStatus],
    ) -> Attendance:
        name = clean_name(name)
        details = await self.get_event(event_id)

        known = {option.id for option in details.date_options}
        unknown = [option_id for option_id in responses if option_id not in known]
        if unknown:
            raise ValidationError(f"Варианты {', '.join(map(str, unknown))} не относятся к событию.")

        # Вариант без ответа считается "не могу".
        answers = [
            AttendanceResponse(date_option_id=option.id, status=responses.get(option.id, AttendanceStatus.UNAVAILABLE))
            for option in details.date_options
        ]
        attendance = await self.repo.create_attendance(event_id, name, answers)
        self._log.info("attendance.submitted", event_id=event_id, attendance_id=attendance.id)
        return attendance

    async def finalize_date(self, event_id: int, date_option_id: int) -> Event:
        event = await self.repo.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)

        option = await self.repo.get_date_option(date_option_id)
        if option is None or option.event_id != event_id:
            raise DateOptionNotFoundError(date_option_id)

        event = await self.repo.finalize_event(event_id, option.date, option.start_time, option.end_time)
        self._log.info("event.finalized", event_id=event_id, date=option.date)
        return event


def humanize_status(status: AttendanceStatus) -> str:
    return STATUS_LABELS.get(status, status.value)


STATUS_CYCLE = [
    AttendanceStatus.AVAILABLE,
    AttendanceStatus.MAYBE,
    AttendanceStatus.UNAVAILABLE,
]


def next_status(current: AttendanceStatus) -> AttendanceStatus:
    index = STATUS_CYCLE.index(current)
    return STATUS_CYCLE[(index + 1) % len(STATUS_CYCLE)]
