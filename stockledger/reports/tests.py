"""
Test suite for the reports module
Tests: dashboard metrics, caching and invalidation
"""
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from stockledger.core.cache_utils import get_cached_dashboard_metrics
from stockledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockledger.reports.metrics import compute_dashboard_metrics, get_dashboard_metrics


class DashboardMetricsTests(TestCase):
    """Test the dashboard aggregates"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()

    def test_empty_database(self):
        self.assertEqual(compute_dashboard_metrics(), {
            'total_products': 0,
            'low_stock_products': 0,
            'total_entries': 0,
            'total_exits': 0,
        })

    def test_counts(self):
        TestDataFactory.create_product(minimum_quantity=Decimal('10'))
        stocked = TestDataFactory.create_stocked_product(self.user, Decimal('20'), minimum_quantity=Decimal('10'))
        TestDataFactory.record(self.user, stocked, 'exit', 3)
        TestDataFactory.record(self.user, stocked, 'exit', 3)

        self.assertEqual(compute_dashboard_metrics(), {
            'total_products': 2,
            'low_stock_products': 1,
            'total_entries': 1,
            'total_exits': 2,
        })

    def test_result_is_cached(self):
        metrics, hit = get_dashboard_metrics()
        self.assertFalse(hit)
        self.assertEqual(get_cached_dashboard_metrics(), metrics)

        metrics, hit = get_dashboard_metrics()
        self.assertTrue(hit)

    def test_cache_invalidated_after_commit(self):
        get_dashboard_metrics()
        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_product()
        self.assertIsNone(get_cached_dashboard_metrics())

        metrics, hit = get_dashboard_metrics()
        self.assertFalse(hit)
        self.assertEqual(metrics['total_products'], 1)

    def test_movement_invalidates_cache(self):
        product = TestDataFactory.create_product()
        get_dashboard_metrics()
        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.record(self.user, product, 'entry', 1)
        metrics, hit = get_dashboard_metrics()
        self.assertFalse(hit)
        self.assertEqual(metrics['total_entries'], 1)


class DashboardEndpointTests(TestCase):
    """Test the dashboard endpoint"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_dashboard(self):
        TestDataFactory.create_product()
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_products'], 1)
        self.assertEqual(response.data['low_stock_products'], 1)
        self.assertEqual(response['X-Cache'], 'MISS')

        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response['X-Cache'], 'HIT')

    def test_refresh_bypasses_cache(self):
        self.client.get('/api/v1/reports/dashboard/')
        response = self.client.get('/api/v1/reports/dashboard/?refresh=true')
        self.assertEqual(response['X-Cache'], 'MISS')

    def test_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
