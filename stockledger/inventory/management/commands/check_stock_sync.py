"""
Django management command to check that each product's cached balance matches
a replay of its stock movements, optionally repairing any drift.
"""
from django.core.management.base import BaseCommand, CommandError

from stockledger.catalog.models import Product
from stockledger.core.utils import create_audit_log
from stockledger.inventory.services import reconcile_product


class Command(BaseCommand):
    help = 'Check Product.current_quantity against the stock movement ledger'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product-id',
            type=int,
            help='Check specific product ID only',
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Overwrite drifted balances with the replayed ledger value',
        )
        parser.add_argument(
            '--show-all',
            action='store_true',
            help='Show all products, not just discrepancies',
        )

    def handle(self, *args, **options):
        product_id = options.get('product_id')
        fix = options.get('fix', False)
        show_all = options.get('show_all', False)

        self.stdout.write("=" * 80)
        self.stdout.write(self.style.SUCCESS("STOCK BALANCE vs LEDGER ANALYSIS"))
        self.stdout.write("=" * 80)

        if product_id:
            products = Product.objects.filter(id=product_id)
            if not products.exists():
                raise CommandError(f"Product {product_id} does not exist.")
        else:
            products = Product.objects.order_by('id')

        self.stdout.write(f"Total Products: {products.count()}")
        self.stdout.write("")

        discrepancies = []
        for product in products:
            check = reconcile_product(product, fix=fix)
            if check is None:
                continue

            if not check.in_sync:
                discrepancies.append(check)
                self.stdout.write(self.style.WARNING(
                    f"DRIFT  {product.name} (ID: {product.id}): "
                    f"cached={check.cached} ledger={check.expected} "
                    f"difference={check.cached - check.expected:+}"
                ))
                if check.fixed:
                    self.stdout.write(self.style.SUCCESS(f"  fixed: balance set to {check.expected}"))
                    create_audit_log(
                        action='stock_reconcile',
                        model_name='Product',
                        object_id=product.id,
                        object_name=product.name,
                        changes={'old': str(check.cached), 'new': str(check.expected)},
                    )
            elif show_all:
                self.stdout.write(f"OK     {product.name} (ID: {product.id}): {check.cached}")

        self.stdout.write("")
        self.stdout.write("=" * 80)
        if not discrepancies:
            self.stdout.write(self.style.SUCCESS("All product balances match the ledger."))
        elif fix:
            self.stdout.write(self.style.SUCCESS(f"Repaired {len(discrepancies)} product balance(s)."))
        else:
            self.stdout.write(self.style.WARNING(
                f"{len(discrepancies)} product balance(s) differ from the ledger. Re-run with --fix to repair."
            ))
