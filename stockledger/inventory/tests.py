"""
Test suite for the inventory module
Tests: ledger arithmetic, movement recording, immutability, concurrency,
movement endpoints, low-stock alerts, reconciliation command
"""
import random
import threading
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.db import OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings, skipUnlessDBFeature
from rest_framework import status

from stockledger.catalog.models import Product
from stockledger.core.exceptions import (
    InvalidArgument, NotFound, PermissionDenied, ConflictOrTransient, ImmutableRecordError,
)
from stockledger.core.models import AuditLog
from stockledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockledger.inventory import services
from stockledger.inventory.ledger import ENTRY, EXIT, ZERO, apply_movement, replay_balance, is_low_stock
from stockledger.inventory.models import StockMovement
from stockledger.inventory.services import record_movement, recompute_balance, reconcile_product


def random_movements(rng, count):
    movements = []
    for _ in range(count):
        movement_type = rng.choice([ENTRY, EXIT])
        quantity = Decimal(rng.randint(1, 5000)) / 100
        movements.append((movement_type, quantity))
    return movements


class LedgerArithmeticTests(TestCase):
    """Test the pure balance functions"""

    def test_entry_adds(self):
        self.assertEqual(apply_movement(Decimal('5'), ENTRY, Decimal('2.5')), Decimal('7.5'))

    def test_exit_subtracts(self):
        self.assertEqual(apply_movement(Decimal('5'), EXIT, Decimal('2')), Decimal('3'))

    def test_exit_beyond_balance_clamps_to_zero(self):
        self.assertEqual(apply_movement(Decimal('5'), EXIT, Decimal('8')), ZERO)

    def test_unknown_type(self):
        with self.assertRaises(ValueError):
            apply_movement(Decimal('5'), 'transfer', Decimal('1'))

    def test_replay_clamps_at_every_step(self):
        # naive sum would be 10 - 15 + 4 = -1; clamping gives 0 + 4 = 4
        movements = [(ENTRY, Decimal('10')), (EXIT, Decimal('15')), (ENTRY, Decimal('4'))]
        self.assertEqual(replay_balance(movements), Decimal('4'))

    def test_replay_of_random_sequences_is_never_negative_and_deterministic(self):
        rng = random.Random(20240611)
        for _ in range(200):
            movements = random_movements(rng, rng.randint(0, 30))
            balance = replay_balance(movements)
            self.assertGreaterEqual(balance, ZERO)
            self.assertEqual(balance, replay_balance(list(movements)))

            expected = ZERO
            for movement_type, quantity in movements:
                expected = expected + quantity if movement_type == ENTRY else max(expected - quantity, ZERO)
            self.assertEqual(balance, expected)

    def test_replay_with_opening_balance(self):
        self.assertEqual(replay_balance([(EXIT, Decimal('3'))], opening=Decimal('10')), Decimal('7'))

    def test_is_low_stock(self):
        class Item:
            current_quantity = Decimal('0')
            minimum_quantity = Decimal('10')
        item = Item()
        self.assertTrue(is_low_stock(item))
        item.current_quantity = Decimal('15')
        self.assertFalse(is_low_stock(item))


class RecordMovementTests(TestCase):
    """Test the transactional write path"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(minimum_quantity=Decimal('10'))

    def _record(self, movement_type, quantity, **kwargs):
        return record_movement(self.user, self.product.id, movement_type, quantity, **kwargs)

    def test_entry_increases_balance(self):
        movement = self._record(ENTRY, '12.50', notes='  delivery  ')
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('12.50'))
        self.assertEqual(movement.responsible_user, self.user)
        self.assertEqual(movement.notes, 'delivery')
        self.assertIsNotNone(movement.created_at)
        self.assertEqual(movement.product.current_quantity, Decimal('12.50'))

    def test_exit_beyond_balance_records_full_quantity_and_clamps(self):
        self._record(ENTRY, 5)
        movement = self._record(EXIT, 8)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('0.00'))
        self.assertEqual(movement.quantity, Decimal('8.00'))

    def test_balance_matches_replay_after_many_movements(self):
        rng = random.Random(7)
        for movement_type, quantity in random_movements(rng, 25):
            self._record(movement_type, quantity)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, recompute_balance(self.product))

    def test_same_sequence_on_two_products_gives_same_balance(self):
        other = TestDataFactory.create_product()
        movements = random_movements(random.Random(99), 15)
        for movement_type, quantity in movements:
            record_movement(self.user, self.product.id, movement_type, quantity)
            record_movement(self.user, other.id, movement_type, quantity)
        self.product.refresh_from_db()
        other.refresh_from_db()
        self.assertEqual(self.product.current_quantity, other.current_quantity)

    def test_invalid_quantities_store_nothing(self):
        for movement_type in (ENTRY, EXIT):
            for quantity in (0, -1, '-0.01', '0', 'abc', None, '', 'NaN', 'Infinity', '1.005', True, '100000000'):
                with self.assertRaises(InvalidArgument, msg=f'{movement_type} {quantity!r}'):
                    self._record(movement_type, quantity)
        self.assertFalse(StockMovement.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('0.00'))

    def test_trailing_zeros_are_accepted(self):
        movement = self._record(ENTRY, '1.500')
        self.assertEqual(movement.quantity, Decimal('1.50'))

    def test_invalid_movement_type(self):
        for movement_type in ('ENTRY', 'transfer', '', None):
            with self.assertRaises(InvalidArgument):
                self._record(movement_type, 1)
        self.assertFalse(StockMovement.objects.exists())

    def test_unknown_product(self):
        with self.assertRaises(NotFound):
            record_movement(self.user, 999999, ENTRY, 1)
        with self.assertRaises(InvalidArgument):
            record_movement(self.user, 'abc', ENTRY, 1)

    def test_responsible_user_must_be_caller(self):
        other = TestDataFactory.create_user()
        with self.assertRaises(PermissionDenied):
            self._record(ENTRY, 1, responsible_user_id=other.id)
        self.assertFalse(StockMovement.objects.exists())
        movement = self._record(ENTRY, 1, responsible_user_id=str(self.user.id))
        self.assertEqual(movement.responsible_user_id, self.user.id)

    def test_anonymous_actor_rejected_before_other_checks(self):
        from django.contrib.auth.models import AnonymousUser
        with self.assertRaises(PermissionDenied):
            record_movement(AnonymousUser(), self.product.id, 'bogus', -5)
        with self.assertRaises(PermissionDenied):
            record_movement(None, self.product.id, ENTRY, 1)

    def test_validation_order_type_before_quantity_before_product(self):
        with self.assertRaises(InvalidArgument) as ctx:
            record_movement(self.user, 999999, 'bogus', -5)
        self.assertIn('Movement type', str(ctx.exception.detail))
        with self.assertRaises(InvalidArgument) as ctx:
            record_movement(self.user, 999999, ENTRY, -5)
        self.assertIn('Quantity', str(ctx.exception.detail))

    def test_low_stock_transition(self):
        self.product.refresh_from_db()
        self.assertTrue(self.product.is_low_stock)
        self._record(ENTRY, 15)
        self.product.refresh_from_db()
        self.assertFalse(self.product.is_low_stock)

    def test_product_save_does_not_overwrite_balance(self):
        stale = Product.objects.get(pk=self.product.pk)
        self._record(ENTRY, 7)
        stale.name = 'Renamed'
        stale.save()
        self.product.refresh_from_db()
        self.assertEqual(self.product.name, 'Renamed')
        self.assertEqual(self.product.current_quantity, Decimal('7.00'))

    def test_transient_errors_are_retried(self):
        original = services._append_and_apply
        calls = []

        def flaky(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError('deadlock detected')
            return original(*args, **kwargs)

        with mock.patch.object(services, '_append_and_apply', side_effect=flaky):
            self._record(ENTRY, 3)
        self.assertEqual(len(calls), 2)
        self.assertEqual(StockMovement.objects.count(), 1)

    @override_settings(STOCK_LEDGER={'MOVEMENT_APPLY_ATTEMPTS': 3})
    def test_persistent_errors_raise_conflict(self):
        with mock.patch.object(services, '_append_and_apply', side_effect=OperationalError('database is locked')) as apply:
            with self.assertRaises(ConflictOrTransient):
                self._record(ENTRY, 3)
        self.assertEqual(apply.call_count, 3)
        self.assertFalse(StockMovement.objects.exists())


class ImmutabilityTests(TestCase):
    """Movements cannot be edited or deleted"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product()
        self.movement = record_movement(self.user, self.product.id, ENTRY, 4)

    def test_update_raises(self):
        self.movement.quantity = Decimal('400')
        with self.assertRaises(ImmutableRecordError):
            self.movement.save()
        self.movement.refresh_from_db()
        self.assertEqual(self.movement.quantity, Decimal('4.00'))

    def test_delete_raises(self):
        with self.assertRaises(ImmutableRecordError):
            self.movement.delete()
        self.assertTrue(StockMovement.objects.filter(pk=self.movement.pk).exists())

    def test_deleting_product_cascades(self):
        self.product.delete()
        self.assertFalse(StockMovement.objects.exists())


@skipUnlessDBFeature('has_select_for_update')
class ConcurrentMovementTests(TransactionTestCase):
    """Concurrent movements on one product serialize on the row lock"""

    def test_two_concurrent_exits(self):
        user = TestDataFactory.create_user()
        product = TestDataFactory.create_stocked_product(user, Decimal('20'))
        barrier = threading.Barrier(2)
        errors = []

        def worker():
            try:
                barrier.wait()
                record_movement(user, product.id, EXIT, 15)
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        product.refresh_from_db()
        self.assertEqual(product.current_quantity, Decimal('0.00'))
        self.assertEqual(StockMovement.objects.filter(product=product, movement_type=EXIT).count(), 2)


class StockMovementAPITests(TestCase):
    """Test stock movement endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(first_name='Rita', last_name='Lopes')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(name='Steel Hammer', unit='unit')

    def _post(self, **payload):
        data = {'product_id': self.product.id, 'movement_type': ENTRY, 'quantity': '10'}
        data.update(payload)
        return self.client.post('/api/v1/stock-movements/', data, format='json')

    def test_create_movement(self):
        response = self._post(notes='first delivery')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_name'], 'Steel Hammer')
        self.assertEqual(response.data['responsible_name'], 'Rita Lopes')
        self.assertEqual(Decimal(response.data['product_current_quantity']), Decimal('10'))
        self.assertTrue(AuditLog.objects.filter(action='stock_entry', object_id=str(response.data['id'])).exists())

    def test_exit_clamps_through_api(self):
        self._post(quantity='5')
        response = self._post(movement_type=EXIT, quantity='8')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('0.00'))

    def test_zero_quantity_is_400(self):
        response = self._post(quantity='0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('detail', response.data)
        self.assertFalse(StockMovement.objects.exists())

    def test_unknown_product_is_404(self):
        response = self._post(product_id=999999)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_other_responsible_user_is_403(self):
        other = TestDataFactory.create_user()
        response = self._post(responsible_user_id=other.id)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(StockMovement.objects.exists())

    def test_fractional_product_id_is_400(self):
        for product_id in (self.product.id + 0.9, float(self.product.id), f'{self.product.id}.9'):
            response = self._post(product_id=product_id)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, product_id)
        self.assertFalse(StockMovement.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('0.00'))

    def test_non_text_notes_are_400(self):
        for notes in (42, ['delivery'], {'text': 'delivery'}):
            response = self._post(notes=notes)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, notes)
            self.assertIn('detail', response.data)
        self.assertFalse(StockMovement.objects.exists())

    def test_anonymous_is_401(self):
        self.client.logout()
        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(StockMovement.objects.exists())

    def test_conflict_is_409(self):
        with mock.patch.object(services, '_append_and_apply', side_effect=OperationalError('lock timeout')):
            response = self._post()
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_list_newest_first_with_joined_fields(self):
        first = TestDataFactory.record(self.user, self.product, ENTRY, 1)
        second = TestDataFactory.record(self.user, self.product, ENTRY, 2)
        response = self.client.get('/api/v1/stock-movements/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [second.id, first.id])
        row = response.data[0]
        self.assertEqual(row['product_name'], 'Steel Hammer')
        self.assertEqual(row['product_unit'], 'unit')
        self.assertEqual(row['responsible_name'], 'Rita Lopes')

    def test_list_limit_and_filters(self):
        drill = TestDataFactory.create_product(name='Drill')
        for _ in range(3):
            TestDataFactory.record(self.user, self.product, ENTRY, 1)
        TestDataFactory.record(self.user, drill, ENTRY, 5)
        TestDataFactory.record(self.user, drill, EXIT, 1)

        response = self.client.get('/api/v1/stock-movements/?limit=2')
        self.assertEqual(len(response.data), 2)

        response = self.client.get(f'/api/v1/stock-movements/?product_id={drill.id}')
        self.assertEqual(len(response.data), 2)

        response = self.client.get(f'/api/v1/stock-movements/?product_id={drill.id}&movement_type=exit')
        self.assertEqual(len(response.data), 1)

    @override_settings(STOCK_LEDGER={'MOVEMENT_HISTORY_LIMIT': 2, 'MOVEMENT_HISTORY_MAX_LIMIT': 3})
    def test_list_default_and_max_limit(self):
        for _ in range(5):
            TestDataFactory.record(self.user, self.product, ENTRY, 1)
        self.assertEqual(len(self.client.get('/api/v1/stock-movements/').data), 2)
        self.assertEqual(len(self.client.get('/api/v1/stock-movements/?limit=100').data), 3)

    def test_list_bad_params(self):
        for query in ('limit=abc', 'limit=0', 'product_id=x', 'movement_type=transfer'):
            response = self.client.get(f'/api/v1/stock-movements/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)
        # superscript digits are not ASCII digits
        response = self.client.get('/api/v1/stock-movements/', {'product_id': '²'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail_is_read_only(self):
        movement = TestDataFactory.record(self.user, self.product, ENTRY, 1)
        url = f'/api/v1/stock-movements/{movement.id}/'
        self.assertEqual(self.client.get(url).status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.put(url, {'quantity': '9'}, format='json').status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertEqual(self.client.patch(url, {'quantity': '9'}, format='json').status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertTrue(StockMovement.objects.filter(pk=movement.pk).exists())

    def test_low_stock_alerts(self):
        TestDataFactory.create_stocked_product(self.user, Decimal('50'), name='Plenty', minimum_quantity=Decimal('10'))
        TestDataFactory.create_stocked_product(self.user, Decimal('3'), name='Almost Out', minimum_quantity=Decimal('5'))
        response = self.client.get('/api/v1/stock/low/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data], ['Almost Out', 'Steel Hammer'])

        TestDataFactory.record(self.user, self.product, ENTRY, 15)
        response = self.client.get('/api/v1/stock/low/')
        self.assertEqual([p['name'] for p in response.data], ['Almost Out'])


class ReconciliationTests(TestCase):
    """Test balance recomputation and the check_stock_sync command"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(name='Drill')
        for movement_type, quantity in [(ENTRY, 10), (EXIT, 4), (ENTRY, 2)]:
            TestDataFactory.record(self.user, self.product, movement_type, quantity)

    def _corrupt(self, value):
        Product.objects.filter(pk=self.product.pk).update(current_quantity=Decimal(value))

    def test_recompute_balance(self):
        self.assertEqual(recompute_balance(self.product), Decimal('8.00'))

    def test_reconcile_in_sync(self):
        check = reconcile_product(self.product)
        self.assertTrue(check.in_sync)
        self.assertFalse(check.fixed)

    def test_reconcile_reports_and_fixes_drift(self):
        self._corrupt('99')
        check = reconcile_product(self.product)
        self.assertFalse(check.in_sync)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('99.00'))

        check = reconcile_product(self.product, fix=True)
        self.assertTrue(check.fixed)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('8.00'))

    def test_command_reports_drift(self):
        self._corrupt('1')
        out = StringIO()
        call_command('check_stock_sync', stdout=out)
        self.assertIn('DRIFT', out.getvalue())
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('1.00'))

    def test_command_fix(self):
        self._corrupt('1')
        out = StringIO()
        call_command('check_stock_sync', product_id=self.product.id, fix=True, stdout=out)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_quantity, Decimal('8.00'))
        self.assertTrue(AuditLog.objects.filter(action='stock_reconcile').exists())

    def test_command_clean(self):
        out = StringIO()
        call_command('check_stock_sync', stdout=out)
        self.assertIn('All product balances match the ledger.', out.getvalue())
