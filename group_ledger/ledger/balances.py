"""
Balance Engine

Replays a group's full history into a net balance per member:

    balance = paid - owed + payments_out - payments_in

Positive means the group owes the member money, negative means the
member owes the group. A settle-up payment moves money against the
debt: the payer owes that much less, the payee is owed that much less,
so recording every suggested transfer brings all balances to zero.

This is a pure replay: no caching, nothing incremental. Amounts are
Decimal, so the result is exactly the same whatever order the records
arrive in, and the balances of a consistent ledger add up to zero.
"""

from decimal import Decimal
from typing import Iterable, Sequence

from group_ledger.models.ledger import (
    Expense,
    GroupLedger,
    MemberSummary,
    Payment,
    Split,
)

ZERO = Decimal("0")


def compute_balances(
    member_ids: Sequence[str],
    expenses: Iterable[Expense],
    splits: Iterable[Split],
    payments: Iterable[Payment],
) -> dict[str, Decimal]:
    """
    Compute each member's signed balance.

    Only splits of the given expenses are counted. Records naming an id
    outside member_ids still get an entry, so inconsistent storage shows
    up in the result instead of vanishing.
    """
    balances = {member_id: ZERO for member_id in member_ids}

    expense_ids = set()
    for expense in expenses:
        expense_ids.add(expense.id)
        if expense.paid_by_member_id:
            payer = expense.paid_by_member_id
            balances[payer] = balances.get(payer, ZERO) + expense.base_amount

    for split in splits:
        if split.expense_id not in expense_ids:
            continue
        balances[split.member_id] = balances.get(split.member_id, ZERO) - split.amount

    for payment in payments:
        balances[payment.from_member_id] = balances.get(payment.from_member_id, ZERO) + payment.amount
        balances[payment.to_member_id] = balances.get(payment.to_member_id, ZERO) - payment.amount

    return balances


def ledger_balances(ledger: GroupLedger) -> dict[str, Decimal]:
    """compute_balances over a storage snapshot."""
    return compute_balances(
        ledger.member_ids,
        ledger.expenses,
        ledger.splits,
        ledger.payments,
    )


def member_totals(ledger: GroupLedger) -> list[MemberSummary]:
    """Break each member's balance down into what they paid, owe, sent and received."""
    totals = {
        member.id: MemberSummary(member_id=member.id, name=member.name)
        for member in ledger.members
    }

    expense_ids = {expense.id for expense in ledger.expenses}
    for expense in ledger.expenses:
        summary = totals.get(expense.paid_by_member_id)
        if summary:
            summary.paid += expense.base_amount

    for split in ledger.splits:
        summary = totals.get(split.member_id)
        if summary and split.expense_id in expense_ids:
            summary.share += split.amount

    for payment in ledger.payments:
        if payment.from_member_id in totals:
            totals[payment.from_member_id].payments_out += payment.amount
        if payment.to_member_id in totals:
            totals[payment.to_member_id].payments_in += payment.amount

    for summary in totals.values():
        summary.balance = summary.paid - summary.share + summary.payments_out - summary.payments_in

    return list(totals.values())
