"""
Subscription status resolution from a receipt's transaction history.

Pure functions - no I/O, no state carried between calls.
"""

import time

from app.models.apple_receipt import ReceiptTransaction, SubscriptionStatus


def _now_ms() -> int:
    return int(time.time() * 1000)


def _expiry_sort_key(transaction: ReceiptTransaction) -> tuple[bool, int | float]:
    # Entries without a usable expiry sort after every dated entry.
    # Compared as-is: float() overflows on very large ints.
    expires = transaction.expires_date_ms
    if expires is None:
        return (False, 0)
    return (True, expires)



def resolve_subscription_status(
    latest_receipt_info: object,
    now_ms: int | None = None,
) -> SubscriptionStatus:
    """
    Derive subscription status from latest_receipt_info.

    latest_transaction is the entry with the greatest expiry, whether or not
    it is still active. is_premium is computed separately over
    every entry: true if ANY entry expires after now.

    Args:
        latest_receipt_info: Raw JSON from verifyReceipt (anything is accepted)
        now_ms: Evaluation time in epoch milliseconds (defaults to wall clock)

    Returns:
        Subscription status; inactive for empty or non-list input
    """
    if not isinstance(latest_receipt_info, (list, tuple)) or not latest_receipt_info:
        return SubscriptionStatus.inactive()

    if now_ms is None:
        now_ms = _now_ms()

    transactions = [ReceiptTransaction.from_raw(entry) for entry in latest_receipt_info]

    # sorted() is stable, so ties keep their original order
    ordered = sorted(transactions, key=_expiry_sort_key, reverse=True)

    return SubscriptionStatus(
        is_premium=any(tx.is_active(now_ms) for tx in ordered),
        latest_transaction=ordered[0],
    )
