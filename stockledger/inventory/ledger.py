"""
Pure stock-ledger arithmetic.

No database access happens here: these functions define how a balance
evolves under a sequence of movements, and both the write path and the
reconciliation command are built on them.
"""
from decimal import Decimal

ENTRY = 'entry'
EXIT = 'exit'
MOVEMENT_TYPES = (ENTRY, EXIT)

ZERO = Decimal('0.00')


def apply_movement(balance, movement_type, quantity):
    """
    Return the balance after one movement.

    Entries add. Exits subtract but never take the balance below zero; the
    shortfall is not recorded anywhere.
    """
    if movement_type == ENTRY:
        return balance + quantity
    if movement_type == EXIT:
        return max(balance - quantity, ZERO)
    raise ValueError(f"Unknown movement type: {movement_type!r}")


def replay_balance(movements, opening=ZERO):
    """
    Fold apply_movement over ``(movement_type, quantity)`` pairs in
    chronological order and return the resulting balance.
    """
    balance = opening
    for movement_type, quantity in movements:
        balance = apply_movement(balance, movement_type, quantity)
    return balance


def is_low_stock(product):
    """A product is low on stock when its balance is at or below its minimum"""
    return product.current_quantity <= product.minimum_quantity
