"""
Management command to load the starter catalog (categories and products)
"""
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from stockledger.catalog.models import Category, Product
from stockledger.core.cache_signals import suspend_cache_signals
from stockledger.core.cache_utils import invalidate_dashboard_cache
from stockledger.inventory.ledger import ENTRY
from stockledger.inventory.services import record_movement

CATEGORIES = [
    ('Hand Tools', 'Hammers, screwdrivers and other manual tools'),
    ('Power Tools', 'Drills, grinders and other electric tools'),
    ('Accessories', 'Bits, blades and consumables'),
]

# name, category, unit, opening quantity, minimum quantity
PRODUCTS = [
    ('Steel Hammer', 'Hand Tools', 'unit', Decimal('50'), Decimal('10')),
    ('Phillips Screwdriver', 'Hand Tools', 'unit', Decimal('75'), Decimal('15')),
    ('Electric Drill 500W', 'Power Tools', 'unit', Decimal('20'), Decimal('5')),
    ('Drill Bit Set', 'Accessories', 'kit', Decimal('30'), Decimal('10')),
]


class Command(BaseCommand):
    help = "Adds the starter categories and products to the database"

    def add_arguments(self, parser):
        parser.add_argument(
            '--user',
            help='Username that records the opening stock entries (skipped when omitted)',
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete all products (with their movements) and categories first',
        )

    def handle(self, *args, **options):
        username = options.get('user')
        user = None
        if username:
            User = get_user_model()
            try:
                user = User.objects.get(username=username)
            except User.DoesNotExist:
                raise CommandError(f"User '{username}' does not exist.")

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("SEEDING STARTER CATALOG"))
        self.stdout.write(self.style.SUCCESS("=" * 80))

        with suspend_cache_signals(), transaction.atomic():
            if options['clear']:
                self.stdout.write(self.style.WARNING("Clearing products and categories..."))
                Product.objects.all().delete()
                Category.objects.all().delete()

            categories = {}
            for name, description in CATEGORIES:
                category, created = Category.objects.get_or_create(name=name, defaults={'description': description})
                categories[name] = category
                self._report(created, f"Category '{name}'")

            for name, category_name, unit, opening, minimum in PRODUCTS:
                product, created = Product.objects.get_or_create(
                    name=name,
                    defaults={
                        'category': categories[category_name],
                        'unit': unit,
                        'minimum_quantity': minimum,
                    },
                )
                self._report(created, f"Product '{name}'")
                if not created:
                    continue
                if user is None:
                    self.stdout.write(f"  opening stock of {opening} skipped (no --user given)")
                    continue
                record_movement(
                    actor=user,
                    product_id=product.id,
                    movement_type=ENTRY,
                    quantity=opening,
                    notes='Opening stock',
                )
                self.stdout.write(f"  opening stock: {opening} {unit}")

        invalidate_dashboard_cache()
        self.stdout.write(self.style.SUCCESS("Starter catalog ready."))

    def _report(self, created, label):
        if created:
            self.stdout.write(self.style.SUCCESS(f"✓ Created {label}"))
        else:
            self.stdout.write(f"- {label} already exists, skipped")
