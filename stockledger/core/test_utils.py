"""
Test utilities and factories for creating test data
"""
import random
import string
from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from stockledger.catalog.models import Category, Product
from stockledger.inventory.services import record_movement

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False,
                    first_name='', last_name=''):
        """Create a test user (the profile is created by the post_save signal)"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            first_name=first_name,
            last_name=last_name,
        )

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test category {name}'
        )

    @staticmethod
    def create_product(name=None, category=None, unit='unit', minimum_quantity=Decimal('10')):
        """Create a test product with a zero balance"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        return Product.objects.create(
            name=name,
            category=category,
            unit=unit,
            minimum_quantity=minimum_quantity,
        )

    @staticmethod
    def record(user, product, movement_type, quantity, notes=None):
        """Record a movement through the ledger and return it"""
        return record_movement(
            actor=user,
            product_id=product.id,
            movement_type=movement_type,
            quantity=quantity,
            notes=notes,
        )

    @staticmethod
    def create_stocked_product(user, quantity, **kwargs):
        """Create a product and bring it to ``quantity`` with one entry movement"""
        product = TestDataFactory.create_product(**kwargs)
        TestDataFactory.record(user, product, 'entry', quantity, notes='Opening stock')
        product.refresh_from_db()
        return product


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
