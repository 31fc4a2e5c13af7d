from django.conf import settings
from django.db import models
from django.db.models import Q

from stockledger.catalog.models import Product
from stockledger.core.exceptions import ImmutableRecordError
from .ledger import ENTRY, EXIT


class StockMovement(models.Model):
    """
    Append-only stock movement.

    Rows are written by stockledger.inventory.services.record_movement, which
    also applies them to Product.current_quantity. Once saved a movement can
    neither be edited nor deleted on its own; it only goes away together with
    its product.
    """
    MOVEMENT_TYPE_CHOICES = [
        (ENTRY, 'Entry'),
        (EXIT, 'Exit'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='movements')
    movement_type = models.CharField(max_length=10, choices=MOVEMENT_TYPE_CHOICES)
    quantity = models.DecimalField(max_digits=10, decimal_places=2)
    responsible_user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='stock_movements')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self):
        return f"{self.get_movement_type_display()} {self.quantity} {self.product}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(f"Stock movement {self.pk} is immutable and cannot be modified.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(f"Stock movement {self.pk} is immutable and cannot be deleted.")

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['product', 'created_at'], name='idx_movement_product_created'),
            models.Index(fields=['movement_type'], name='idx_movement_type'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gt=0), name='stock_movements_quantity_gt_0'),
            models.CheckConstraint(condition=Q(movement_type__in=[ENTRY, EXIT]), name='stock_movements_type_valid'),
        ]
