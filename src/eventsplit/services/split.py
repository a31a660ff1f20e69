from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from eventsplit.db.models import ExplicitShare, SharedWithAll, SharingPolicy
from eventsplit.services.errors import InvariantViolation


@dataclass(slots=True, frozen=True)
class ExpenseShare:
    payer: str
    amount: int
    policy: SharingPolicy


@dataclass(slots=True)
class Balance:
    paid: int = 0
    should_pay: int = 0

    @property
    def net(self) -> int:
        return self.paid - self.should_pay


def split_amount(amount: int, members: Sequence[str]) -> dict[str, int]:
    """Делит сумму поровну; остаток по одной единице получают первые участники."""
    if not members:
        raise InvariantViolation("split group must not be empty")

    share, remainder = divmod(amount, len(members))
    return {member: share + 1 if index < remainder else share for index, member in enumerate(members)}


def build_universe(expenses: Iterable[ExpenseShare], participants: Sequence[str] = ()) -> list[str]:
    seen: dict[str, None] = {}
    for name in participants:
        seen.setdefault(name, None)
    for expense in expenses:
        seen.setdefault(expense.payer, None)
        if isinstance(expense.policy, ExplicitShare):
            for member in expense.policy.members:
                seen.setdefault(member, None)
    return list(seen)


def split_group(policy: SharingPolicy, universe: Sequence[str]) -> list[str]:
    if isinstance(policy, SharedWithAll):
        return list(universe)

    position = {name: index for index, name in enumerate(universe)}
    members = dict.fromkeys(policy.members)
    return sorted(members, key=lambda name: position.get(name, len(position)))


def calculate_balances(
    expenses: Sequence[ExpenseShare],
    participants: Sequence[str] = (),
) -> dict[str, Balance]:
    universe = build_universe(expenses, participants)
    balances = {name: Balance() for name in universe}

    for expense in expenses:
        balances[expense.payer].paid += expense.amount
        shares = split_amount(expense.amount, split_group(expense.policy, universe))
        for name, share in shares.items():
            balances[name].should_pay += share

    return balances
