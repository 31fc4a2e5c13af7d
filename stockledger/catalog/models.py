from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q

from stockledger.inventory.ledger import is_low_stock


class Category(models.Model):
    """Product category"""
    name = models.CharField(max_length=200, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'


class ProductQuerySet(models.QuerySet):
    def low_stock(self):
        return self.filter(current_quantity__lte=F('minimum_quantity'))

    def normal_stock(self):
        return self.filter(current_quantity__gt=F('minimum_quantity'))


class Product(models.Model):
    """
    Stock-keeping item.

    ``current_quantity`` is a cached balance owned by the stock ledger; it is
    not editable through forms or serializers and only changes when a
    movement is recorded.
    """
    name = models.CharField(max_length=200, db_index=True)
    description = models.TextField(blank=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    unit = models.CharField(max_length=50)
    current_quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'), editable=False)
    minimum_quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'),
                                           validators=[MinValueValidator(Decimal('0'))])
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ProductQuerySet.as_manager()

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        # current_quantity is written by the stock ledger through queryset updates only
        if not self._state.adding and kwargs.get('update_fields') is None:
            kwargs['update_fields'] = [
                f.name for f in self._meta.concrete_fields
                if not f.primary_key and f.name != 'current_quantity'
            ]
        super().save(*args, **kwargs)

    @property
    def is_low_stock(self):
        return is_low_stock(self)

    class Meta:
        db_table = 'products'
        constraints = [
            models.CheckConstraint(condition=Q(current_quantity__gte=0), name='products_current_quantity_gte_0'),
            models.CheckConstraint(condition=Q(minimum_quantity__gte=0), name='products_minimum_quantity_gte_0'),
        ]
