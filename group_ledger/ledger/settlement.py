"""
Settlement Planner

Greedy two-pointer debt simplification:

1. Creditors are members with a positive balance, debtors those with a
   negative one (kept as a positive amount owed). Zero balances are left
   out.
2. Take the first creditor and first debtor, move min(owed, due) from the
   debtor to the creditor, and advance whichever side reached exactly
   zero - both when they hit zero together.
3. Stop when either list runs out.

Applying every suggested transfer as a payment zeroes all balances, and
there are never more than creditors + debtors - 1 transfers. This is a
heuristic, not a minimum-transfer solver; suggestions users see depend on
it, so keep it as is.
"""

from typing import Mapping

from group_ledger.ledger.money import DEFAULT_PLACES, Number, to_money
from group_ledger.models.ledger import Transfer


def suggest_settlements(
    balances: Mapping[str, Number],
    places: int = DEFAULT_PLACES,
) -> list[Transfer]:
    """
    Suggest who pays whom to settle the given balances.

    Members are taken in the mapping's iteration order. Balances are
    quantized first, so float noise below the minor unit is ignored.
    """
    creditors = []
    debtors = []
    for member_id, balance in balances.items():
        amount = to_money(balance, places)
        if amount > 0:
            creditors.append([member_id, amount])
        elif amount < 0:
            debtors.append([member_id, -amount])

    transfers = []
    creditor_index = 0
    debtor_index = 0

    while creditor_index < len(creditors) and debtor_index < len(debtors):
        creditor = creditors[creditor_index]
        debtor = debtors[debtor_index]

        amount = min(creditor[1], debtor[1])
        transfers.append(Transfer(
            from_member_id=debtor[0],
            to_member_id=creditor[0],
            amount=amount,
        ))

        creditor[1] -= amount
        debtor[1] -= amount

        if creditor[1] == 0:
            creditor_index += 1
        if debtor[1] == 0:
            debtor_index += 1

    return transfers
