"""
Settlement service: fair shares, transfer planning and the settlement ledger.

Everything here is a pure function of its inputs. Callers load the trip
document, derive the view and persist any ledger change themselves.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, FrozenSet, Iterable, List, Optional
from familysplit.models.trip import SplitMethod
from familysplit.schemas.settlement import (
    Balance, Transfer, SettlementSummary, SettlementTransferItem
)

logger = logging.getLogger(__name__)

# Tolerance for every monetary comparison
EPSILON = Decimal("0.01")
CENT = Decimal("0.01")


class SettlementIntegrityError(ValueError):
    """Raised when balances do not net to zero and transfers cannot reconcile them."""

    def __init__(self, leftover: Decimal, tolerance: Decimal):
        self.leftover = leftover
        self.tolerance = tolerance
        super().__init__(
            f"Unresolved balance of {leftover:.2f} after planning transfers "
            f"(tolerance {tolerance:.2f}); stored amounts are inconsistent"
        )


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value) -> Decimal:
    """Round an amount half-up to cents."""
    return _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_balances(families, expenses, method=SplitMethod.BY_MEMBER) -> List[Balance]:
    """
    Compute what each family paid, its fair share and the signed difference.

    Args:
        families: Families of the trip, in display order
        expenses: Expenses of the trip; every payer is expected to be in ``families``
        method: BY_MEMBER splits proportionally to headcount, BY_FAMILY splits equally

    Returns:
        One Balance per family, in the same order as ``families``
    """
    method = SplitMethod(method)
    total_spent = sum((_to_decimal(e.amount) for e in expenses), Decimal(0))
    # Guard against division by zero with a divisor of 1
    total_members = sum(f.member_count for f in families) or 1
    family_count = len(families) or 1

    paid_by_family: Dict[str, Decimal] = {}
    for expense in expenses:
        paid_by_family[expense.family_id] = (
            paid_by_family.get(expense.family_id, Decimal(0)) + _to_decimal(expense.amount)
        )

    balances = []
    for family in families:
        if method == SplitMethod.BY_MEMBER:
            share = total_spent * family.member_count / total_members
        else:
            share = total_spent / family_count
        paid = paid_by_family.get(family.id, Decimal(0))
        balances.append(Balance(
            family_id=family.id,
            name=getattr(family, "name", ""),
            paid=paid,
            share=share,
            balance=paid - share
        ))

    return balances


def plan_transfers(balances: List[Balance]) -> List[Transfer]:
    """
    Turn balances into debtor -> creditor transfers using a greedy merge.

    Debtors and creditors keep their input order, so ties are broken by the
    order families appear in the trip. Families within EPSILON of zero are
    left out. Unresolved debt or credit beyond the residue dropped that way
    means the balances did not net to zero.

    Raises:
        SettlementIntegrityError: if the balances do not net to zero
    """
    # Debts stored as positive amounts for easier calculation
    debtors = [(b.family_id, -_to_decimal(b.balance)) for b in balances if b.balance < -EPSILON]
    creditors = [(b.family_id, _to_decimal(b.balance)) for b in balances if b.balance > EPSILON]

    transfers = []
    debt_idx = 0
    cred_idx = 0

    while debt_idx < len(debtors) and cred_idx < len(creditors):
        debtor_id, debt_amount = debtors[debt_idx]
        creditor_id, cred_amount = creditors[cred_idx]

        transfer_amount = min(debt_amount, cred_amount)
        transfers.append(Transfer(
            from_family_id=debtor_id,
            to_family_id=creditor_id,
            amount=transfer_amount
        ))

        debtors[debt_idx] = (debtor_id, debt_amount - transfer_amount)
        creditors[cred_idx] = (creditor_id, cred_amount - transfer_amount)

        if debtors[debt_idx][1] < EPSILON:
            debt_idx += 1
        if creditors[cred_idx][1] < EPSILON:
            cred_idx += 1

    leftover = (
        sum((amount for _, amount in debtors[debt_idx:]), Decimal(0))
        + sum((amount for _, amount in creditors[cred_idx:]), Decimal(0))
    )
    # Only residue the merge actually dropped may stay unresolved: families
    # left out as near zero, and sub-EPSILON remainders of settled cursors
    excluded = sum(
        (abs(_to_decimal(b.balance)) for b in balances if -EPSILON <= b.balance <= EPSILON),
        Decimal(0)
    )
    settled_residue = (
        sum((amount for _, amount in debtors[:debt_idx]), Decimal(0))
        + sum((amount for _, amount in creditors[:cred_idx]), Decimal(0))
    )
    tolerance = EPSILON + excluded + settled_residue
    if leftover > tolerance:
        logger.error(f"Balances do not net to zero: leftover {leftover} exceeds {tolerance}")
        raise SettlementIntegrityError(leftover, tolerance)

    return transfers


def settlement_key(transfer: Transfer) -> str:
    """Build the key that identifies a transfer in the settlement ledger."""
    return f"{transfer.from_family_id}-{transfer.to_family_id}-{round_money(transfer.amount):.2f}"


def toggle_settlement(confirmed_keys: Optional[Iterable[str]], key: str) -> FrozenSet[str]:
    """Return a new key set with ``key`` removed if present, added otherwise."""
    keys = frozenset(confirmed_keys or ())
    if key in keys:
        return keys - {key}
    return keys | {key}


def is_settled(confirmed_keys: Optional[Iterable[str]], key: str) -> bool:
    """Check whether a transfer key has been confirmed as paid."""
    return key in (confirmed_keys or ())


def build_settlement_summary(document, method=SplitMethod.BY_MEMBER) -> SettlementSummary:
    """
    Derive the full settlement view for a trip document.

    Balances and transfers are recomputed from scratch; each transfer is
    annotated with its settlement key and whether it has been confirmed.
    """
    method = SplitMethod(method)
    balances = compute_balances(document.families, document.expenses, method)
    transfers = plan_transfers(balances)

    names = {f.id: f.name for f in document.families}
    confirmed = frozenset(document.settled_transfers or ())

    transfer_items = []
    for transfer in transfers:
        key = settlement_key(transfer)
        transfer_items.append(SettlementTransferItem(
            from_family_id=transfer.from_family_id,
            from_name=names.get(transfer.from_family_id, ""),
            to_family_id=transfer.to_family_id,
            to_name=names.get(transfer.to_family_id, ""),
            amount=round_money(transfer.amount),
            key=key,
            is_settled=is_settled(confirmed, key)
        ))

    rounded_balances = [
        b.model_copy(update={
            "paid": round_money(b.paid),
            "share": round_money(b.share),
            "balance": round_money(b.balance),
        })
        for b in balances
    ]
    total_spent = sum((_to_decimal(e.amount) for e in document.expenses), Decimal(0))
    total_members = sum(f.member_count for f in document.families)

    # Create summary text
    summary_lines = [
        f"Total expenses: {total_spent:.2f}",
        f"Families: {len(document.families)} ({total_members} members)",
        f"Split: {method.value}",
        "\nNet balances:",
    ]
    for balance in rounded_balances:
        summary_lines.append(f"  {balance.name}: {balance.balance:+.2f} (share {balance.share:.2f})")
    summary_lines.append("\nTransfers:")
    for item in transfer_items:
        mark = " [settled]" if item.is_settled else ""
        summary_lines.append(f"  {item.from_name} -> {item.to_name}: {item.amount:.2f}{mark}")
    if not transfer_items:
        summary_lines.append("  All settled")

    logger.debug(f"Trip {document.id}: {len(balances)} balances, {len(transfers)} transfers ({method.value})")

    return SettlementSummary(
        trip_id=document.id,
        method=method,
        total_spent=round_money(total_spent),
        total_members=total_members,
        balances=rounded_balances,
        transfers=transfer_items,
        all_settled=all(item.is_settled for item in transfer_items),
        summary="\n".join(summary_lines)
    )
