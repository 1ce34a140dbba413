"""Pure ledger arithmetic: splits, balances, settlements."""

from group_ledger.ledger.balances import compute_balances, ledger_balances, member_totals
from group_ledger.ledger.money import from_minor_units, to_decimal, to_minor_units, to_money
from group_ledger.ledger.settlement import suggest_settlements
from group_ledger.ledger.splits import split_by_amount, split_by_percentage, split_equally

__all__ = [
    "compute_balances",
    "from_minor_units",
    "ledger_balances",
    "member_totals",
    "split_by_amount",
    "split_by_percentage",
    "split_equally",
    "suggest_settlements",
    "to_decimal",
    "to_minor_units",
    "to_money",
]
