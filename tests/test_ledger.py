import asyncio

import pytest

from eventsplit.db.models import ExplicitShare, SharedWithAll
from eventsplit.services.errors import (
    DuplicateParticipantError,
    EventNotFoundError,
    ExpenseNotFoundError,
    PreconditionError,
    ValidationError,
)
from eventsplit.services.ledger import ExpenseLedger
from eventsplit.services.settlement import Transfer


@pytest.mark.asyncio
async def test_shared_expense_snapshots_current_participants(repo, make_event):
    event = await make_event(creator="A", respondents=["B"])
    ledger = ExpenseLedger(repo)

    expense = await ledger.record_expense(event.id, "A", "Пицца", 100)

    assert isinstance(expense.policy, SharedWithAll)
    assert expense.members == ["A", "B"]
    assert repo.events[event.id].participants == ["A", "B"]


@pytest.mark.asyncio
async def test_explicit_expense_keeps_members(repo, make_event):
    event = await make_event(creator="A", respondents=["B", "C"])
    ledger = ExpenseLedger(repo)

    expense = await ledger.record_expense(event.id, "A", "Такси", 60, members=[" B ", "A", "B"])

    assert expense.policy == ExplicitShare(("B", "A"))
    await ledger.add_participant(event.id, "D")
    [stored] = await ledger.list_expenses(event.id)
    assert stored.policy == ExplicitShare(("B", "A"))


@pytest.mark.asyncio
async def test_added_participant_joins_earlier_shared_expense(repo, make_event):
    event = await make_event(creator="A", respondents=["B"])
    ledger = ExpenseLedger(repo)
    expense = await ledger.record_expense(event.id, "A", "Продукты", 100)

    updated = await ledger.add_participant(event.id, "C")

    assert updated == 1
    assert repo.expenses[expense.id]["participants"] == ["A", "B", "C"]
    assert await ledger.get_settlements(event.id) == [
        Transfer(from_name="B", to_name="A", amount=33),
        Transfer(from_name="C", to_name="A", amount=33),
    ]


@pytest.mark.asyncio
async def test_settlement_does_not_trust_stale_snapshot(repo, make_event):
    event = await make_event(creator="A", respondents=["B"])
    repo.insert_expense_row(event.id, "A", "Билеты", 100, ["A"], True)
    ledger = ExpenseLedger(repo)

    assert await ledger.get_settlements(event.id) == [Transfer(from_name="B", to_name="A", amount=50)]


@pytest.mark.asyncio
async def test_explicit_and_shared_expenses_in_one_event(repo, make_event):
    event = await make_event(creator="A", respondents=["B", "C"])
    ledger = ExpenseLedger(repo)

    await ledger.record_expense(event.id, "A", "Обед", 60, members=["A", "B"])
    await ledger.record_expense(event.id, "C", "Ужин", 90)

    assert await ledger.get_settlements(event.id) == [Transfer(from_name="B", to_name="C", amount=60)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"amount": 0},
        {"amount": -100},
        {"amount": 10.5},
        {"amount": True},
        {"members": []},
        {"members": ["A", " "]},
        {"description": "  "},
        {"payer": ""},
    ],
)
async def test_invalid_expense_is_rejected_without_writes(repo, make_event, kwargs):
    event = await make_event(creator="A")
    ledger = ExpenseLedger(repo)
    args = {"payer": "A", "description": "Пицца", "amount": 100, **kwargs}

    with pytest.raises(ValidationError):
        await ledger.record_expense(event.id, **args)

    assert repo.expenses == {}


@pytest.mark.asyncio
async def test_expense_requires_finalized_date(repo, make_event):
    event = await make_event(creator="A", finalized=False)
    ledger = ExpenseLedger(repo)

    with pytest.raises(PreconditionError):
        await ledger.record_expense(event.id, "A", "Пицца", 100)
    with pytest.raises(PreconditionError):
        await ledger.get_settlements(event.id)

    assert repo.expenses == {}


@pytest.mark.asyncio
async def test_unknown_event(repo):
    ledger = ExpenseLedger(repo)

    with pytest.raises(EventNotFoundError):
        await ledger.record_expense(404, "A", "Пицца", 100)
    with pytest.raises(EventNotFoundError):
        await ledger.get_settlements(404)


@pytest.mark.asyncio
async def test_duplicate_participant_is_rejected(repo, make_event):
    event = await make_event(creator="A", respondents=["B"])
    ledger = ExpenseLedger(repo)

    with pytest.raises(DuplicateParticipantError):
        await ledger.add_participant(event.id, "A")
    with pytest.raises(DuplicateParticipantError):
        await ledger.add_participant(event.id, " B ")
    with pytest.raises(ValidationError):
        await ledger.add_participant(event.id, "  ")


@pytest.mark.asyncio
async def test_add_participant_counts_only_shared_expenses(repo, make_event):
    event = await make_event(creator="A")
    ledger = ExpenseLedger(repo)
    await ledger.record_expense(event.id, "A", "Пицца", 100)
    await ledger.record_expense(event.id, "A", "Напитки", 50)
    await ledger.record_expense(event.id, "A", "Сувенир", 30, members=["A"])

    assert await ledger.add_participant(event.id, "B") == 2
    assert await ledger.add_participant(event.id, "C") == 2
    assert repo.events[event.id].participants == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_on_participant_added_is_idempotent(repo, make_event):
    event = await make_event(creator="A")
    ledger = ExpenseLedger(repo)
    await ledger.record_expense(event.id, "A", "Пицца", 100)

    assert await ledger.on_participant_added(event.id, "B") == 1
    assert await ledger.on_participant_added(event.id, "B") == 0
    assert repo.events[event.id].participants == ["A", "B"]


@pytest.mark.asyncio
@pytest.mark.parametrize("flag", [None, False])
async def test_legacy_rows_are_shared_with_all(repo, make_event, flag):
    event = await make_event(creator="A", respondents=["B"])
    expense_id = repo.insert_expense_row(event.id, "A", "Старый расход", 100, [], flag)
    ledger = ExpenseLedger(repo)

    [expense] = await ledger.list_expenses(event.id)
    assert isinstance(expense.policy, SharedWithAll)

    assert await ledger.add_participant(event.id, "C") == 1
    assert repo.expenses[expense_id]["is_shared_with_all"] is True
    [expense] = await ledger.list_expenses(event.id)
    assert isinstance(expense.policy, SharedWithAll)
    assert expense.members == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_new_payer_joins_earlier_shared_expenses(repo, make_event):
    event = await make_event(creator="A")
    ledger = ExpenseLedger(repo)
    first = await ledger.record_expense(event.id, "A", "Пицца", 100)

    await ledger.record_expense(event.id, "B", "Такси", 50, members=["A"])

    assert repo.events[event.id].participants == ["A", "B"]
    assert repo.expenses[first.id]["participants"] == ["A", "B"]
    assert await ledger.get_settlements(event.id) == []


@pytest.mark.asyncio
async def test_delete_expense(repo, make_event):
    event = await make_event(creator="A", respondents=["B"])
    other = await make_event(creator="Z")
    ledger = ExpenseLedger(repo)
    kept = await ledger.record_expense(event.id, "A", "Пицца", 100)
    dropped = await ledger.record_expense(event.id, "B", "Такси", 40)

    await ledger.delete_expense(event.id, dropped.id)

    assert [e.id for e in await ledger.list_expenses(event.id)] == [kept.id]
    assert repo.expenses[kept.id]["participants"] == ["A", "B"]
    with pytest.raises(ExpenseNotFoundError):
        await ledger.delete_expense(event.id, dropped.id)
    with pytest.raises(ExpenseNotFoundError):
        await ledger.delete_expense(other.id, kept.id)


@pytest.mark.asyncio
async def test_concurrent_writes_to_one_event_do_not_lose_participants(repo, make_event):
    event = await make_event(creator="A")
    ledger = ExpenseLedger(repo)

    await asyncio.gather(
        ledger.record_expense(event.id, "B", "Пицца", 100),
        ledger.record_expense(event.id, "C", "Напитки", 200),
        ledger.add_participant(event.id, "D"),
    )

    assert sorted(repo.events[event.id].participants) == ["A", "B", "C", "D"]
    assert len(repo.expenses) == 2
    for row in repo.expenses.values():
        assert sorted(row["participants"]) == ["A", "B", "C", "D"]


@pytest.mark.asyncio
async def test_summarize(repo, make_event):
    event = await make_event(creator="A", respondents=["B", "C"])
    ledger = ExpenseLedger(repo)
    await ledger.record_expense(event.id, "A", "Домик", 300)
    await ledger.record_expense(event.id, "B", "Дрова", 30, members=["B", "C"])

    summary = await ledger.summarize(event.id)

    assert summary.total == 330
    assert summary.participants == ["A", "B", "C"]
    assert summary.per_person == 110
    assert {name: b.net for name, b in summary.balances.items()} == {"A": 200, "B": -85, "C": -115}
    assert summary.transfers == [
        Transfer(from_name="C", to_name="A", amount=115),
        Transfer(from_name="B", to_name="A", amount=85),
    ]
    assert summary.transfers == await ledger.get_settlements(event.id)


@pytest.mark.asyncio
async def test_summarize_without_expenses(repo, make_event):
    event = await make_event(creator="A", respondents=["B"])
    summary = await ExpenseLedger(repo).summarize(event.id)

    assert summary.total == 0
    assert summary.per_person == 0
    assert summary.transfers == []


@pytest.mark.asyncio
@pytest.mark.parametrize("read", ["get_settlements", "summarize"])
async def test_settlement_read_does_not_overwrite_added_participant(repo, make_event, read):
    event = await make_event(creator="A", respondents=["R", "S"])
    repo.insert_expense_row(event.id, "A", "Такси", 90, ["A", "R"], False)
    ledger = ExpenseLedger(repo)

    list_respondent_names = repo.list_respondent_names

    async def slow_respondents(event_id: int) -> list[str]:
        await asyncio.sleep(0.01)
        return await list_respondent_names(event_id)

    repo.list_respondent_names = slow_respondents

    await asyncio.gather(
        getattr(ledger, read)(event.id),
        ledger.add_participant(event.id, "C"),
    )

    assert repo.events[event.id].participants == ["A", "R", "S", "C"]
