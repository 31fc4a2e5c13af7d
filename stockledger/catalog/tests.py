"""
Test suite for the catalog module
Tests: categories, products, product filters, seed command
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status

from stockledger.catalog.models import Category, Product
from stockledger.core.models import AuditLog
from stockledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockledger.inventory.models import StockMovement


class CategoryTests(TestCase):
    """Test category endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_list_is_ordered_by_name(self):
        for name in ['Power Tools', 'Accessories', 'Hand Tools']:
            TestDataFactory.create_category(name=name)
        response = self.client.get('/api/v1/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['name'] for c in response.data], ['Accessories', 'Hand Tools', 'Power Tools'])

    def test_create_category(self):
        response = self.client.post('/api/v1/categories/', {'name': 'Fasteners'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Category.objects.filter(name='Fasteners').exists())
        self.assertTrue(AuditLog.objects.filter(model_name='Category', action='create').exists())

    def test_duplicate_name_rejected(self):
        TestDataFactory.create_category(name='Fasteners')
        response = self.client.post('/api/v1/categories/', {'name': 'Fasteners'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Category.objects.filter(name='Fasteners').count(), 1)

    def test_update_category(self):
        category = TestDataFactory.create_category(name='Old')
        response = self.client.patch(f'/api/v1/categories/{category.id}/', {'name': 'New'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        category.refresh_from_db()
        self.assertEqual(category.name, 'New')

    def test_delete_category_keeps_products(self):
        category = TestDataFactory.create_category()
        product = TestDataFactory.create_product(category=category)

        response = self.client.delete(f'/api/v1/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        product.refresh_from_db()
        self.assertIsNone(product.category)
        response = self.client.get(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['category_name'])

    def test_missing_category_is_404(self):
        response = self.client.get('/api/v1/categories/9999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProductTests(TestCase):
    """Test product endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.category = TestDataFactory.create_category(name='Hand Tools')

    def test_create_product_starts_at_zero(self):
        response = self.client.post('/api/v1/products/', {
            'name': 'Steel Hammer',
            'unit': 'unit',
            'minimum_quantity': '10',
            'category_id': self.category.id,
            'current_quantity': '500',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['current_quantity']), Decimal('0'))
        self.assertEqual(response.data['category_name'], 'Hand Tools')
        self.assertTrue(response.data['is_low_stock'])

    def test_current_quantity_cannot_be_edited(self):
        product = TestDataFactory.create_stocked_product(self.user, Decimal('5'))
        response = self.client.patch(f'/api/v1/products/{product.id}/', {
            'current_quantity': '999',
            'minimum_quantity': '2',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.current_quantity, Decimal('5.00'))
        self.assertEqual(product.minimum_quantity, Decimal('2.00'))
        self.assertFalse(response.data['is_low_stock'])

    def test_negative_minimum_rejected(self):
        response = self.client.post('/api/v1/products/', {
            'name': 'Chisel', 'unit': 'unit', 'minimum_quantity': '-1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('minimum_quantity', response.data)

    def test_name_and_unit_required(self):
        response = self.client.post('/api/v1/products/', {'minimum_quantity': '1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)
        self.assertIn('unit', response.data)

    def test_unknown_category_rejected(self):
        response = self.client.post('/api/v1/products/', {
            'name': 'Chisel', 'unit': 'unit', 'category_id': 9999,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_ordered_by_name_with_search(self):
        for name in ['Phillips Screwdriver', 'Drill Bit Set', 'Steel Hammer']:
            TestDataFactory.create_product(name=name)
        response = self.client.get('/api/v1/products/')
        self.assertEqual([p['name'] for p in response.data], ['Drill Bit Set', 'Phillips Screwdriver', 'Steel Hammer'])

        response = self.client.get('/api/v1/products/?search=HAMMER')
        self.assertEqual([p['name'] for p in response.data], ['Steel Hammer'])

    def test_search_matches_name_substring_only(self):
        TestDataFactory.create_product(name='Steel Hammer')
        drill = TestDataFactory.create_product(name='Electric Drill')
        Product.objects.filter(pk=drill.pk).update(description='Pairs well with a hammer')

        response = self.client.get('/api/v1/products/?search=hammer')
        self.assertEqual([p['name'] for p in response.data], ['Steel Hammer'])

        response = self.client.get('/api/v1/products/', {'search': 'Steel Ham'})
        self.assertEqual([p['name'] for p in response.data], ['Steel Hammer'])

        response = self.client.get('/api/v1/products/', {'search': 'Hammer Steel'})
        self.assertEqual(response.data, [])

    def test_filter_by_category(self):
        TestDataFactory.create_product(name='Hammer', category=self.category)
        TestDataFactory.create_product(name='Drill')
        response = self.client.get(f'/api/v1/products/?category={self.category.id}')
        self.assertEqual([p['name'] for p in response.data], ['Hammer'])

        response = self.client.get('/api/v1/products/?uncategorized=true')
        self.assertEqual([p['name'] for p in response.data], ['Drill'])

    def test_filter_low_stock(self):
        TestDataFactory.create_product(name='Empty', minimum_quantity=Decimal('10'))
        TestDataFactory.create_stocked_product(self.user, Decimal('10'), name='At Minimum', minimum_quantity=Decimal('10'))
        TestDataFactory.create_stocked_product(self.user, Decimal('11'), name='Plenty', minimum_quantity=Decimal('10'))

        response = self.client.get('/api/v1/products/?low_stock=true')
        self.assertEqual([p['name'] for p in response.data], ['At Minimum', 'Empty'])

        response = self.client.get('/api/v1/products/?low_stock=false')
        self.assertEqual([p['name'] for p in response.data], ['Plenty'])

    def test_invalid_category_filter(self):
        response = self.client.get('/api/v1/products/?category=abc')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_product_removes_movements(self):
        product = TestDataFactory.create_stocked_product(self.user, Decimal('3'))
        self.assertEqual(StockMovement.objects.filter(product=product).count(), 1)

        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())
        self.assertFalse(StockMovement.objects.filter(product_id=product.pk).exists())
        log = AuditLog.objects.get(model_name='Product', action='delete')
        self.assertEqual(log.changes['movements_deleted'], 1)


class ProductModelTests(TestCase):
    """Test the low-stock classification on the model and queryset"""

    def test_low_stock_is_inclusive(self):
        product = Product(name='X', unit='unit', current_quantity=Decimal('10'), minimum_quantity=Decimal('10'))
        self.assertTrue(product.is_low_stock)
        product.current_quantity = Decimal('10.01')
        self.assertFalse(product.is_low_stock)

    def test_queryset_low_stock_matches_property(self):
        user = TestDataFactory.create_user()
        low = TestDataFactory.create_product(minimum_quantity=Decimal('10'))
        ok = TestDataFactory.create_stocked_product(user, Decimal('20'), minimum_quantity=Decimal('10'))
        self.assertEqual(list(Product.objects.low_stock()), [low])
        self.assertEqual(list(Product.objects.normal_stock()), [ok])


class SeedCatalogCommandTests(TestCase):
    """Test the seed_catalog management command"""

    def test_seed_with_user_records_opening_stock(self):
        user = TestDataFactory.create_user(username='seeder')
        call_command('seed_catalog', user='seeder', stdout=StringIO())

        self.assertEqual(Category.objects.count(), 3)
        self.assertEqual(Product.objects.count(), 4)
        hammer = Product.objects.get(name='Steel Hammer')
        self.assertEqual(hammer.current_quantity, Decimal('50.00'))
        self.assertEqual(hammer.minimum_quantity, Decimal('10.00'))
        self.assertEqual(hammer.category.name, 'Hand Tools')
        self.assertEqual(StockMovement.objects.filter(responsible_user=user, movement_type='entry').count(), 4)
        self.assertEqual(Product.objects.get(name='Drill Bit Set').unit, 'kit')

    def test_seed_is_idempotent(self):
        TestDataFactory.create_user(username='seeder')
        call_command('seed_catalog', user='seeder', stdout=StringIO())
        call_command('seed_catalog', user='seeder', stdout=StringIO())
        self.assertEqual(Product.objects.count(), 4)
        self.assertEqual(StockMovement.objects.count(), 4)
        self.assertEqual(Product.objects.get(name='Steel Hammer').current_quantity, Decimal('50.00'))

    def test_seed_without_user_leaves_balances_at_zero(self):
        call_command('seed_catalog', stdout=StringIO())
        self.assertEqual(Product.objects.count(), 4)
        self.assertFalse(StockMovement.objects.exists())
        self.assertEqual(Product.objects.low_stock().count(), 4)

    def test_seed_clear(self):
        TestDataFactory.create_product(name='Leftover')
        call_command('seed_catalog', clear=True, stdout=StringIO())
        self.assertFalse(Product.objects.filter(name='Leftover').exists())

    def test_unknown_user(self):
        with self.assertRaises(CommandError):
            call_command('seed_catalog', user='ghost', stdout=StringIO())
