"""
Stock ledger write path.

record_movement is the only supported way to change a product's balance:
it appends a StockMovement and applies it to Product.current_quantity in
the same transaction, with the product row locked so concurrent movements
on one product are applied one at a time.
"""
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import NamedTuple, Optional

from django.db import OperationalError, transaction
from django.utils import timezone

from stockledger.catalog.models import Product
from stockledger.core.exceptions import InvalidArgument, NotFound, PermissionDenied, ConflictOrTransient
from stockledger.core.utils import get_ledger_setting
from .ledger import MOVEMENT_TYPES, apply_movement, replay_balance
from .models import StockMovement

logger = logging.getLogger(__name__)

QUANTITY_STEP = Decimal('0.01')
# Largest value a DecimalField(max_digits=10, decimal_places=2) can hold
MAX_QUANTITY = Decimal('99999999.99')


class BalanceCheck(NamedTuple):
    product: Product
    cached: Decimal
    expected: Decimal
    fixed: bool

    @property
    def in_sync(self):
        return self.cached == self.expected


def parse_quantity(value):
    """Parse a movement quantity: finite, positive, at most two decimal places"""
    if value is None or value == '':
        raise InvalidArgument('Quantity is required.')
    if isinstance(value, bool):
        raise InvalidArgument('Quantity must be a number.')
    try:
        quantity = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidArgument('Quantity must be a number.')
    if not quantity.is_finite():
        raise InvalidArgument('Quantity must be a finite number.')
    if quantity <= 0:
        raise InvalidArgument('Quantity must be greater than zero.')
    if quantity > MAX_QUANTITY:
        raise InvalidArgument(f'Quantity must not exceed {MAX_QUANTITY}.')
    if quantity != quantity.quantize(QUANTITY_STEP):
        raise InvalidArgument('Quantity must have at most 2 decimal places.')
    return quantity.quantize(QUANTITY_STEP)


def validate_movement_type(value):
    if value not in MOVEMENT_TYPES:
        raise InvalidArgument(f"Movement type must be one of: {', '.join(MOVEMENT_TYPES)}.")
    return value


def validate_product_id(value):
    if value is None or value == '' or isinstance(value, bool):
        raise InvalidArgument('Product is required.')
    if isinstance(value, int):
        return value
    # floats are refused rather than truncated onto another product
    if isinstance(value, str) and re.fullmatch(r'[0-9]+', value.strip()):
        return int(value)
    raise InvalidArgument('Product id must be an integer.')


def clean_notes(value):
    if value is None:
        return ''
    if not isinstance(value, str):
        raise InvalidArgument('Notes must be text.')
    return value.strip()


def resolve_responsible_user(actor, responsible_user_id=None):
    """
    The responsible user is always the caller. Naming anyone else is refused
    rather than silently rewritten.
    """
    if actor is None or not getattr(actor, 'is_authenticated', False):
        raise PermissionDenied('Authentication is required to record stock movements.')
    if responsible_user_id not in (None, '') and str(responsible_user_id) != str(actor.pk):
        raise PermissionDenied('Stock movements can only be recorded on behalf of the signed-in user.')
    return actor


def _append_and_apply(product_id, movement_type, quantity, responsible_user, notes):
    """Insert the movement and update the cached balance under a row lock"""
    with transaction.atomic():
        try:
            product = Product.objects.select_for_update().get(pk=product_id)
        except Product.DoesNotExist:
            raise NotFound(f'Product {product_id} does not exist.')

        balance_before = product.current_quantity
        balance_after = apply_movement(balance_before, movement_type, quantity)
        if balance_after > MAX_QUANTITY:
            raise InvalidArgument(f'Resulting balance would exceed {MAX_QUANTITY}.')

        movement = StockMovement.objects.create(
            product=product,
            movement_type=movement_type,
            quantity=quantity,
            responsible_user=responsible_user,
            notes=notes,
        )
        now = timezone.now()
        Product.objects.filter(pk=product.pk).update(current_quantity=balance_after, updated_at=now)
        product.current_quantity = balance_after
        product.updated_at = now

    return movement, balance_before, balance_after


def record_movement(actor, product_id, movement_type, quantity, notes=None, responsible_user_id=None):
    """
    Record one stock movement and apply it to the product balance.

    Checks run in this order: caller authenticated and responsible, movement
    type, quantity, product id, then product existence (under lock). Nothing
    is written when any check fails.

    Lock timeouts and deadlocks are retried up to MOVEMENT_APPLY_ATTEMPTS
    times before ConflictOrTransient is raised.
    """
    responsible_user = resolve_responsible_user(actor, responsible_user_id)
    movement_type = validate_movement_type(movement_type)
    quantity = parse_quantity(quantity)
    product_id = validate_product_id(product_id)
    notes = clean_notes(notes)

    attempts = max(1, int(get_ledger_setting('MOVEMENT_APPLY_ATTEMPTS')))
    for attempt in range(1, attempts + 1):
        try:
            movement, balance_before, balance_after = _append_and_apply(
                product_id, movement_type, quantity, responsible_user, notes
            )
        except OperationalError as e:
            if attempt >= attempts:
                logger.error(
                    "Stock movement on product %s failed after %s attempts: %s",
                    product_id, attempts, e,
                )
                raise ConflictOrTransient() from e
            logger.warning(
                "Transient error recording movement on product %s (attempt %s/%s): %s",
                product_id, attempt, attempts, e,
            )
            continue

        logger.info(
            "Recorded %s of %s on product %s by user %s: %s -> %s",
            movement_type, quantity, product_id, responsible_user.pk, balance_before, balance_after,
        )
        return movement


def recompute_balance(product):
    """Replay a product's movements in chronological order"""
    movements = (
        StockMovement.objects
        .filter(product_id=product.pk)
        .order_by('created_at', 'id')
        .values_list('movement_type', 'quantity')
    )
    return replay_balance(movements.iterator())


def reconcile_product(product, fix=False) -> Optional[BalanceCheck]:
    """
    Compare the cached balance against a replay of the ledger. With
    ``fix=True`` a drifted balance is overwritten with the replayed value.
    Returns None if the product has been deleted in the meantime.
    """
    with transaction.atomic():
        locked = Product.objects.select_for_update().filter(pk=product.pk).first()
        if locked is None:
            return None

        cached = locked.current_quantity
        expected = recompute_balance(locked)
        fixed = False
        if cached != expected:
            logger.warning(
                "Stock drift on product %s (%s): cached=%s ledger=%s",
                locked.pk, locked.name, cached, expected,
            )
            if fix:
                Product.objects.filter(pk=locked.pk).update(current_quantity=expected, updated_at=timezone.now())
                locked.current_quantity = expected
                fixed = True

    return BalanceCheck(product=locked, cached=cached, expected=expected, fixed=fixed)
