# tests.py

import datetime
import threading
import uuid
from decimal import Decimal
from unittest import mock
from urllib.parse import unquote

import requests
from django.core.cache import caches
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase, APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from common.exceptions import InvalidRange, InvalidTransition, NotFound, SoldOut, VehicleNotOffered
from users.models import UserModel, UserChoice
from vehicles.models import VehicleModel, VehicleStatusChoices
from . import services
from .availability import committed_units, has_capacity, overlaps
from .locks import KeyedLock, vehicle_admission_locks
from .models import BookingModel, BookingStateChoices, BookingStatus
from .notifications import (
    BookingEvent,
    DeliveryStatus,
    NotificationDispatcher,
    NotificationGuard,
    build_alert_link,
    build_email_payload,
)
from .registry import find_overlapping, list_bookings
from .tasks import send_booking_email_task
from .utils import calculate_advance_amount, calculate_days, parse_date_range

RELAY_URL = 'https://relay.example.com/send'


def make_vehicle(name='Swift Dzire', total_stock=1, daily_price=2500, **extra):
    return VehicleModel.objects.create(name=name, total_stock=total_stock, daily_price=daily_price, **extra)


def booking_details(**overrides):
    details = {
        'customer_name': 'Asha Verma',
        'customer_phone': '9811122233',
        'email': 'asha@example.com',
        'pickup_location': 'Sector 18, Noida',
        'transaction_id': 'TXN-1001',
        'advance_amount': Decimal('1000'),
    }
    details.update(overrides)
    return details


class BookingTestBase(TestCase):
    def setUp(self):
        caches['notifications'].clear()
        self.vehicle = make_vehicle()


class TestDateRange(TestCase):
    def test_single_day_range_is_valid(self):
        start, end = parse_date_range('2024-01-10', '2024-01-10')
        self.assertEqual(start, end)
        self.assertEqual(start, datetime.date(2024, 1, 10))

    def test_rejects_missing_malformed_and_inverted(self):
        for start, end in [
            (None, '2024-01-10'),
            ('2024-01-10', ''),
            ('10/01/2024', '2024-01-12'),
            ('2024-02-30', '2024-03-01'),
            ('2024-01-12', '2024-01-10'),
        ]:
            with self.subTest(start=start, end=end):
                with self.assertRaises(InvalidRange):
                    parse_date_range(start, end)

    def test_billable_days_never_below_one(self):
        self.assertEqual(calculate_days(datetime.date(2024, 1, 10), datetime.date(2024, 1, 10)), 1)
        self.assertEqual(calculate_days(datetime.date(2024, 1, 10), datetime.date(2024, 1, 13)), 3)

    def test_overlap_is_inclusive(self):
        d = datetime.date
        self.assertTrue(overlaps(d(2024, 1, 1), d(2024, 1, 5), d(2024, 1, 5), d(2024, 1, 9)))
        self.assertFalse(overlaps(d(2024, 1, 1), d(2024, 1, 4), d(2024, 1, 5), d(2024, 1, 9)))


class TestAdmission(BookingTestBase):
    """
    Capacity checks and booking creation against a vehicle's stock.
    """

    def test_shared_boundary_day_conflicts(self):
        services.create_booking(self.vehicle.id, '2024-01-01', '2024-01-05')
        with self.assertRaises(SoldOut):
            services.create_booking(self.vehicle.id, '2024-01-05', '2024-01-09')

    def test_adjacent_ranges_do_not_conflict(self):
        services.create_booking(self.vehicle.id, '2024-01-01', '2024-01-04')
        booking = services.create_booking(self.vehicle.id, '2024-01-05', '2024-01-09')
        self.assertEqual(booking.status, BookingStatus.CONFIRMED)

    def test_remaining_units_follow_overlaps(self):
        vehicle = make_vehicle(name='Creta', total_stock=2)
        services.create_booking(vehicle.id, '2024-03-01', '2024-03-05')
        services.create_booking(vehicle.id, '2024-03-03', '2024-03-07')

        self.assertEqual(has_capacity(vehicle.id, '2024-03-04', '2024-03-04').remaining, 0)
        capacity = has_capacity(vehicle.id, '2024-03-06', '2024-03-09')
        self.assertTrue(capacity.available)
        self.assertEqual(capacity.remaining, 1)
        self.assertEqual(capacity.committed, 1)

    def test_booking_ending_on_query_start_still_counts(self):
        vehicle = make_vehicle(name='Creta', total_stock=2)
        services.create_booking(vehicle.id, '2024-03-01', '2024-03-05')
        services.create_booking(vehicle.id, '2024-03-03', '2024-03-04')

        capacity = has_capacity(vehicle.id, '2024-03-04', '2024-03-06')
        self.assertFalse(capacity.available)
        self.assertEqual(capacity.remaining, 0)
        self.assertEqual(capacity.committed, 2)
        self.assertEqual(capacity.total_stock, 2)

    def test_sold_out_reports_counts_and_creates_nothing(self):
        vehicle = make_vehicle(name='Creta', total_stock=2)
        services.create_booking(vehicle.id, '2024-03-01', '2024-03-05')
        services.create_booking(vehicle.id, '2024-03-02', '2024-03-04')

        with self.assertRaises(SoldOut) as ctx:
            services.create_booking(vehicle.id, '2024-03-03', '2024-03-03')
        self.assertEqual(ctx.exception.committed, 2)
        self.assertEqual(ctx.exception.total_stock, 2)
        self.assertIn("Sold out", ctx.exception.message)
        self.assertEqual(BookingModel.objects.filter(vehicle=vehicle).count(), 2)

    def test_cancellation_releases_the_unit(self):
        first = services.create_booking(self.vehicle.id, '2024-01-10', '2024-01-12')
        with self.assertRaises(SoldOut):
            services.create_booking(self.vehicle.id, '2024-01-11', '2024-01-11')

        services.reject_booking(first.id)

        second = services.create_booking(self.vehicle.id, '2024-01-11', '2024-01-11')
        self.assertEqual(second.state, BookingStateChoices.AWAITING_APPROVAL)
        self.assertEqual(committed_units(self.vehicle.id, '2024-01-10', '2024-01-12'), 1)

    def test_unapproved_booking_still_holds_stock(self):
        services.create_booking(self.vehicle.id, '2024-02-01', '2024-02-02')
        self.assertFalse(has_capacity(self.vehicle.id, '2024-02-02', '2024-02-03').available)

    def test_total_cost_computed_from_daily_price(self):
        booking = services.create_booking(self.vehicle.id, '2024-01-10', '2024-01-13', details=booking_details())
        self.assertEqual(booking.days, 3)
        self.assertEqual(booking.total_cost, Decimal('7500'))
        self.assertEqual(booking.vehicle_name, 'Swift Dzire')
        self.assertEqual(booking.customer_name, 'Asha Verma')

    def test_advance_defaults_to_share_of_total(self):
        booking = services.create_booking(
            self.vehicle.id, '2024-01-10', '2024-01-13',
            details=booking_details(advance_amount=None, aadhar_phone='9899900011')
        )
        self.assertEqual(booking.total_cost, Decimal('7500'))
        self.assertEqual(booking.advance_amount, Decimal('750.00'))
        self.assertEqual(booking.aadhar_phone, '9899900011')

    @override_settings(ADVANCE_RATE=0.25)
    def test_advance_rate_setting(self):
        self.assertEqual(calculate_advance_amount(Decimal('1999')), Decimal('499.75'))

    def test_unknown_vehicle_leaves_no_lock_behind(self):
        for _ in range(50):
            with self.assertRaises(NotFound):
                services.create_booking(uuid.uuid4(), '2024-01-10', '2024-01-12')
        services.create_booking(self.vehicle.id, '2024-01-10', '2024-01-12')
        self.assertEqual(len(vehicle_admission_locks), 0)

    def test_supplied_total_cost_is_kept(self):
        booking = services.create_booking(
            self.vehicle.id, '2024-01-10', '2024-01-13', details=booking_details(total_cost=Decimal('6000'))
        )
        self.assertEqual(booking.total_cost, Decimal('6000'))

    def test_unknown_detail_keys_are_ignored(self):
        booking = services.create_booking(
            self.vehicle.id, '2024-01-10', '2024-01-10', details={'state': 'APPROVED', 'customer_name': 'Ravi'}
        )
        self.assertEqual(booking.state, BookingStateChoices.AWAITING_APPROVAL)
        self.assertEqual(booking.customer_name, 'Ravi')

    def test_invalid_range_and_unknown_vehicle(self):
        with self.assertRaises(InvalidRange):
            services.create_booking(self.vehicle.id, '2024-01-12', '2024-01-10')
        with self.assertRaises(NotFound):
            services.create_booking('00000000-0000-0000-0000-000000000000', '2024-01-10', '2024-01-12')
        with self.assertRaises(NotFound):
            services.create_booking('not-a-uuid', '2024-01-10', '2024-01-12')
        self.assertFalse(BookingModel.objects.exists())

    def test_withdrawn_vehicle_is_not_bookable(self):
        sold = make_vehicle(name='Old Alto', status=VehicleStatusChoices.SOLD)
        empty = make_vehicle(name='Nexon', total_stock=0)
        for vehicle in (sold, empty):
            with self.subTest(vehicle=vehicle.name):
                with self.assertRaises(VehicleNotOffered):
                    services.create_booking(vehicle.id, '2024-01-10', '2024-01-12')

    def test_check_availability_for_withdrawn_vehicle(self):
        self.vehicle.status = VehicleStatusChoices.SOLD
        self.vehicle.save()
        result = services.check_availability(self.vehicle.id, '2024-01-10', '2024-01-12')
        self.assertFalse(result['available'])
        self.assertEqual(result['remaining'], 0)

    def test_lowered_stock_clamps_remaining_at_zero(self):
        vehicle = make_vehicle(name='Creta', total_stock=2)
        services.create_booking(vehicle.id, '2024-03-01', '2024-03-05')
        services.create_booking(vehicle.id, '2024-03-01', '2024-03-05')
        vehicle.total_stock = 1
        vehicle.save()

        capacity = has_capacity(vehicle.id, '2024-03-02', '2024-03-02')
        self.assertEqual(capacity.remaining, 0)
        self.assertEqual(capacity.committed, 2)

    def test_deleted_vehicle_keeps_its_bookings(self):
        booking = services.create_booking(self.vehicle.id, '2024-01-10', '2024-01-12')
        vehicle_id = self.vehicle.id
        self.vehicle.delete()

        booking = BookingModel.objects.get(pk=booking.pk)
        self.assertEqual(booking.vehicle_id, vehicle_id)
        self.assertEqual(booking.vehicle_name, 'Swift Dzire')
        self.assertEqual(list(find_overlapping(vehicle_id, '2024-01-01', '2024-01-31')), [booking])


class TestRegistry(BookingTestBase):
    def test_find_overlapping_includes_cancelled_newest_first(self):
        vehicle = make_vehicle(name='Creta', total_stock=3)
        first = services.create_booking(vehicle.id, '2024-05-01', '2024-05-03')
        second = services.create_booking(vehicle.id, '2024-05-03', '2024-05-04')
        services.create_booking(vehicle.id, '2024-05-10', '2024-05-12')
        services.reject_booking(first.id)

        found = list(find_overlapping(vehicle.id, '2024-05-02', '2024-05-03'))
        self.assertEqual(found, [second, first])

    def test_list_bookings_filters_by_status(self):
        kept = services.create_booking(self.vehicle.id, '2024-05-01', '2024-05-03')
        dropped = services.create_booking(self.vehicle.id, '2024-06-01', '2024-06-03')
        services.reject_booking(dropped.id)

        self.assertEqual(list(list_bookings(status=BookingStatus.CONFIRMED)), [kept])
        self.assertEqual(list(list_bookings(status=BookingStatus.CANCELLED)), [dropped])
        self.assertEqual(list(list_bookings(start_date='2024-06-02', end_date='2024-06-02')), [dropped])


@override_settings(MAIL_RELAY_URL=RELAY_URL)
class TestApproval(BookingTestBase):
    """
    Approval, rejection and the notifications that follow an approval.
    """

    def setUp(self):
        super().setUp()
        self.booking = services.create_booking(
            self.vehicle.id, '2024-01-10', '2024-01-12', details=booking_details()
        )

    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_approve_is_idempotent_and_emails_once(self, mock_task):
        first = services.approve_booking(self.booking.id)
        second = services.approve_booking(self.booking.id)

        self.assertEqual(first.outcome, services.ApprovalOutcome.APPROVED)
        self.assertEqual(first.delivery.email, DeliveryStatus.ISSUED)
        self.assertEqual(first.warnings, [])
        self.assertEqual(second.outcome, services.ApprovalOutcome.ALREADY_APPROVED)
        self.assertIsNone(second.delivery)
        mock_task.delay.assert_called_once()

        self.booking.refresh_from_db()
        self.assertEqual(self.booking.state, BookingStateChoices.APPROVED)
        self.assertTrue(self.booking.is_approved)
        self.assertEqual(self.booking.status, BookingStatus.CONFIRMED)

    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_email_payload(self, mock_task):
        services.approve_booking(self.booking.id)
        payload = mock_task.delay.call_args[0][0]
        self.assertEqual(payload['to_email'], 'asha@example.com')
        self.assertEqual(payload['ref_id'], 'TXN-1001')
        self.assertEqual(payload['car_name'], 'Swift Dzire')
        self.assertEqual(payload['start_date'], '2024-01-10')
        self.assertEqual(payload['booking_id'], str(self.booking.id))

    def test_reference_falls_back_to_booking_id(self):
        self.booking.transaction_id = ''
        self.assertEqual(build_email_payload(self.booking)['ref_id'], str(self.booking.id))

    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_queue_failure_does_not_undo_approval(self, mock_task):
        mock_task.delay.side_effect = ConnectionError("broker down")

        result = services.approve_booking(self.booking.id)

        self.assertEqual(result.outcome, services.ApprovalOutcome.APPROVED)
        self.assertEqual(result.delivery.email, DeliveryStatus.FAILED)
        self.assertEqual(result.warnings, ["Approval email could not be queued."])
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.state, BookingStateChoices.APPROVED)
        # A retry may still go out
        self.assertTrue(NotificationGuard().claim(BookingEvent.APPROVED, self.booking.id))

    @override_settings(MAIL_RELAY_URL='')
    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_missing_relay_is_a_warning(self, mock_task):
        result = services.approve_booking(self.booking.id)
        self.assertEqual(result.warnings, ["Mail relay is not configured."])
        mock_task.delay.assert_not_called()
        self.booking.refresh_from_db()
        self.assertTrue(self.booking.is_approved)

    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_booking_without_email_is_a_warning(self, mock_task):
        booking = services.create_booking(make_vehicle(name='i20').id, '2024-01-10', '2024-01-12')
        result = services.approve_booking(booking.id)
        self.assertEqual(result.warnings, ["Booking has no email address."])
        mock_task.delay.assert_not_called()

    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_reject_after_approve_keeps_approval_flag(self, mock_task):
        services.approve_booking(self.booking.id)
        booking = services.reject_booking(self.booking.id)

        self.assertEqual(booking.state, BookingStateChoices.CANCELLED)
        self.assertEqual(booking.status, BookingStatus.CANCELLED)
        self.assertTrue(booking.is_approved)
        self.assertIsNotNone(booking.cancelled_at)
        self.assertTrue(has_capacity(self.vehicle.id, '2024-01-10', '2024-01-12').available)

    @override_settings(OPERATOR_ALERT_URL='https://wa.me/{recipient}?text={message}')
    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_broken_alert_template_does_not_fail_approval(self, mock_task):
        result = services.approve_booking(self.booking.id)

        self.assertEqual(result.outcome, services.ApprovalOutcome.APPROVED)
        self.assertEqual(result.warnings, ["Operator alert link could not be built."])
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.state, BookingStateChoices.APPROVED)

    def test_reject_twice_is_harmless(self):
        first = services.reject_booking(self.booking.id)
        second = services.reject_booking(self.booking.id)
        self.assertEqual(first.cancelled_at, second.cancelled_at)
        self.assertFalse(second.is_approved)

    def test_cancelled_booking_cannot_be_approved(self):
        services.reject_booking(self.booking.id)
        with self.assertRaises(InvalidTransition):
            services.approve_booking(self.booking.id)

    def test_unknown_booking(self):
        with self.assertRaises(NotFound):
            services.approve_booking('00000000-0000-0000-0000-000000000000')
        with self.assertRaises(NotFound):
            services.reject_booking('garbage')

    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_resend_after_failure_then_skip(self, mock_task):
        mock_task.delay.side_effect = ConnectionError("broker down")
        services.approve_booking(self.booking.id)

        mock_task.delay.side_effect = None
        retried = services.resend_approval_notification(self.booking.id)
        repeated = services.resend_approval_notification(self.booking.id)

        self.assertEqual(retried.email, DeliveryStatus.ISSUED)
        self.assertEqual(repeated.email, DeliveryStatus.SKIPPED_DUPLICATE)
        self.assertEqual(mock_task.delay.call_count, 2)

    def test_resend_requires_approval(self):
        with self.assertRaises(InvalidTransition):
            services.resend_approval_notification(self.booking.id)


class TestNotifications(BookingTestBase):
    def setUp(self):
        super().setUp()
        self.booking = services.create_booking(
            self.vehicle.id, '2024-01-10', '2024-01-12', details=booking_details()
        )

    def test_guard_claims_once(self):
        guard = NotificationGuard()
        self.assertTrue(guard.claim(BookingEvent.APPROVED, self.booking.id))
        self.assertFalse(guard.claim(BookingEvent.APPROVED, self.booking.id))
        guard.release(BookingEvent.APPROVED, self.booking.id)
        self.assertTrue(guard.claim(BookingEvent.APPROVED, self.booking.id))

    @override_settings(MAIL_RELAY_URL=RELAY_URL)
    def test_dispatcher_skips_duplicates(self):
        task = mock.Mock()
        dispatcher = NotificationDispatcher(email_task=task)

        first = dispatcher.dispatch(BookingEvent.APPROVED, self.booking)
        second = dispatcher.dispatch(BookingEvent.APPROVED, self.booking)

        self.assertEqual(first.email, DeliveryStatus.ISSUED)
        self.assertEqual(second.email, DeliveryStatus.SKIPPED_DUPLICATE)
        self.assertIsNotNone(second.alert_link)
        task.delay.assert_called_once()

    @override_settings(OWNER_PHONE_NUMBER='919999000011')
    def test_alert_link(self):
        link = build_alert_link(self.booking)
        self.assertTrue(link.startswith('https://wa.me/919999000011?text='))

        text = unquote(link.split('?text=', 1)[1])
        self.assertIn('Swift Dzire', text)
        self.assertIn('10/01/2024 to 12/01/2024', text)
        self.assertIn('TXN-1001', text)
        self.assertIn('Asha Verma', text)

    @override_settings(MAIL_RELAY_URL=RELAY_URL, OPERATOR_ALERT_URL='https://wa.me/{}?text={text}')
    def test_broken_alert_template_is_a_warning(self):
        task = mock.Mock()
        outcome = NotificationDispatcher(email_task=task).dispatch(BookingEvent.APPROVED, self.booking)

        self.assertIsNone(outcome.alert_link)
        self.assertEqual(outcome.email, DeliveryStatus.ISSUED)
        self.assertEqual(outcome.warnings, ["Operator alert link could not be built."])
        task.delay.assert_called_once()

    def test_alert_link_custom_recipient_and_template(self):
        link = build_alert_link(self.booking, recipient_number='15550001111', template='sms:{recipient}?body={text}')
        self.assertTrue(link.startswith('sms:15550001111?body='))


@override_settings(MAIL_RELAY_URL=RELAY_URL)
class TestEmailTask(TestCase):
    payload = {'booking_id': 'b-1', 'to_email': 'asha@example.com'}

    @mock.patch('bookings.tasks.requests.post')
    def test_posts_payload_as_json(self, mock_post):
        mock_post.return_value.status_code = 200
        self.assertTrue(send_booking_email_task(self.payload))
        mock_post.assert_called_once_with(RELAY_URL, json=self.payload, timeout=mock.ANY)

    @mock.patch('bookings.tasks.requests.post')
    def test_relay_errors_are_swallowed(self, mock_post):
        mock_post.return_value.raise_for_status.side_effect = requests.exceptions.HTTPError("502 Bad Gateway")
        self.assertFalse(send_booking_email_task(self.payload))

        mock_post.side_effect = requests.exceptions.ConnectionError("refused")
        self.assertFalse(send_booking_email_task(self.payload))

    @override_settings(MAIL_RELAY_URL='')
    @mock.patch('bookings.tasks.requests.post')
    def test_no_relay_configured(self, mock_post):
        self.assertFalse(send_booking_email_task(self.payload))
        mock_post.assert_not_called()


class TestKeyedLock(TestCase):
    def _hold_in_thread(self, locks, key, entered):
        def target():
            with locks.hold(key):
                entered.set()

        thread = threading.Thread(target=target)
        thread.start()
        return thread

    def test_lock_is_dropped_once_released(self):
        locks = KeyedLock()
        with locks.hold('vehicle-1'):
            self.assertEqual(len(locks), 1)
        self.assertEqual(len(locks), 0)

    def test_same_key_blocks(self):
        locks = KeyedLock()
        entered = threading.Event()
        with locks.hold('vehicle-1'):
            thread = self._hold_in_thread(locks, 'vehicle-1', entered)
            self.assertFalse(entered.wait(0.2))
        self.assertTrue(entered.wait(2))
        thread.join()

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        entered = threading.Event()
        with locks.hold('vehicle-1'):
            thread = self._hold_in_thread(locks, 'vehicle-2', entered)
            self.assertTrue(entered.wait(2))
        thread.join()


class TestConcurrentAdmission(TransactionTestCase):
    """
    Simultaneous requests for the last units never over-commit the stock.
    """
    workers = 8

    def test_parallel_requests_respect_stock(self):
        vehicle = make_vehicle(name='Innova', total_stock=3)
        barrier = threading.Barrier(self.workers)
        created, sold_out, errors = [], [], []

        def request_booking():
            try:
                barrier.wait()
                created.append(services.create_booking(vehicle.id, '2024-07-01', '2024-07-03'))
            except SoldOut:
                sold_out.append(1)
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=request_booking) for _ in range(self.workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(created), 3)
        self.assertEqual(len(sold_out), self.workers - 3)
        self.assertEqual(committed_units(vehicle.id, '2024-07-01', '2024-07-03'), 3)


class BookingApiTestBase(APITestCase):
    """
    Base test class that sets up:
      - An owner and two customers
      - A vehicle with two units
      - API clients authenticated via Simple JWT
    """

    def setUp(self):
        caches['notifications'].clear()
        self.owner = UserModel.objects.create_user(
            username='owner',
            email='owner@test.com',
            password='ownerpass',
            role=UserChoice.OWNER,
        )
        self.customer = UserModel.objects.create_user(
            username='customer',
            email='asha@example.com',
            password='customerpass',
            phone='9811122233',
            role=UserChoice.CUSTOMER,
        )
        self.other_customer = UserModel.objects.create_user(
            username='other',
            email='other@test.com',
            password='otherpass',
            role=UserChoice.CUSTOMER,
        )
        self.vehicle = make_vehicle(name='Creta', total_stock=2, daily_price=3000)

        self.client_owner = self._client_for(self.owner)
        self.client_customer = self._client_for(self.customer)
        self.client_other = self._client_for(self.other_customer)

        self.list_url = reverse('booking-list')

    def _client_for(self, user):
        token = RefreshToken.for_user(user)
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token.access_token}')
        return client

    def _payload(self, start='2024-08-01', end='2024-08-03', **extra):
        payload = {
            'vehicle': str(self.vehicle.id),
            'start_date': start,
            'end_date': end,
            'customer_name': 'Asha Verma',
            'customer_phone': '9811122233',
            'email': 'asha@example.com',
        }
        payload.update(extra)
        return payload


class TestBookingViewSet(BookingApiTestBase):
    def test_customer_creates_booking(self):
        response = self.client_customer.post(self.list_url, data=self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertFalse(response.data['is_approved'])
        self.assertEqual(response.data['days'], 2)

        booking = BookingModel.objects.get(pk=response.data['id'])
        self.assertEqual(booking.client, self.customer)
        self.assertEqual(booking.total_cost, Decimal('6000'))

    def test_sold_out_response(self):
        for _ in range(2):
            self.client_customer.post(self.list_url, data=self._payload(), format='json')

        response = self.client_customer.post(self.list_url, data=self._payload('2024-08-03', '2024-08-05'), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data['committed'], 2)
        self.assertEqual(response.data['total_stock'], 2)
        self.assertEqual(BookingModel.objects.count(), 2)

    def test_invalid_range_response(self):
        response = self.client_customer.post(
            self.list_url, data=self._payload('2024-08-05', '2024-08-01'), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertIn('error', response.data)

        payload = self._payload()
        del payload['end_date']
        response = self.client_customer.post(self.list_url, data=payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)

    def test_unknown_vehicle_response(self):
        payload = self._payload(vehicle='00000000-0000-0000-0000-000000000000')
        response = self.client_customer.post(self.list_url, data=payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND, response.data)

    def test_withdrawn_vehicle_response(self):
        self.vehicle.status = VehicleStatusChoices.SOLD
        self.vehicle.save()
        response = self.client_customer.post(self.list_url, data=self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)

    def test_customers_see_only_their_bookings(self):
        mine = services.create_booking(self.vehicle.id, '2024-08-01', '2024-08-02', client=self.customer)
        # Placed without an account but with the customer's phone number
        by_phone = services.create_booking(
            self.vehicle.id, '2024-09-01', '2024-09-02', details={'customer_phone': '9811122233'}
        )

        response = self.client_customer.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({row['id'] for row in response.data}, {str(mine.id), str(by_phone.id)})

        response = self.client_other.get(self.list_url)
        self.assertEqual(response.data, [])

        detail_url = reverse('booking-detail', args=[mine.id])
        self.assertEqual(self.client_other.get(detail_url).status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client_customer.get(detail_url).status_code, status.HTTP_200_OK)

    def test_customer_without_email_does_not_see_guest_bookings(self):
        no_email = UserModel.objects.create_user(
            username='noemail',
            email='',
            password='noemailpass',
            role=UserChoice.CUSTOMER,
        )
        guest = services.create_booking(
            self.vehicle.id, '2024-08-01', '2024-08-02', details={'customer_name': 'Walk-in'}
        )
        client = self._client_for(no_email)

        response = client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, [])

        detail_url = reverse('booking-detail', args=[guest.id])
        self.assertEqual(client.get(detail_url).status_code, status.HTTP_404_NOT_FOUND)

    def test_owner_lists_with_filters(self):
        kept = services.create_booking(self.vehicle.id, '2024-08-01', '2024-08-02')
        dropped = services.create_booking(self.vehicle.id, '2024-08-10', '2024-08-12')
        services.reject_booking(dropped.id)

        response = self.client_owner.get(self.list_url, {'status': 'confirmed'})
        self.assertEqual([row['id'] for row in response.data], [str(kept.id)])

        response = self.client_owner.get(self.list_url, {'start_date': '2024-08-12', 'end_date': '2024-08-20'})
        self.assertEqual([row['id'] for row in response.data], [str(dropped.id)])

        response = self.client_owner.get(self.list_url, {'status': 'pending'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bookings_cannot_be_edited_or_deleted(self):
        booking = services.create_booking(self.vehicle.id, '2024-08-01', '2024-08-02', client=self.customer)
        detail_url = reverse('booking-detail', args=[booking.id])
        self.assertEqual(
            self.client_owner.patch(detail_url, {'state': 'APPROVED'}, format='json').status_code,
            status.HTTP_405_METHOD_NOT_ALLOWED
        )
        self.assertEqual(self.client_owner.delete(detail_url).status_code, status.HTTP_405_METHOD_NOT_ALLOWED)

    def test_overlapping_endpoint(self):
        booking = services.create_booking(self.vehicle.id, '2024-08-01', '2024-08-05')
        url = reverse('booking-overlapping')

        response = self.client_owner.get(url, {
            'vehicle': str(self.vehicle.id), 'start_date': '2024-08-05', 'end_date': '2024-08-09'
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual([row['id'] for row in response.data], [str(booking.id)])

        response = self.client_customer.get(url, {
            'vehicle': str(self.vehicle.id), 'start_date': '2024-08-05', 'end_date': '2024-08-09'
        })
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unauthenticated_request(self):
        response = APIClient().get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


@override_settings(MAIL_RELAY_URL=RELAY_URL)
class TestBookingApproval(BookingApiTestBase):
    def setUp(self):
        super().setUp()
        self.booking = services.create_booking(
            self.vehicle.id, '2024-08-01', '2024-08-03', details=booking_details(), client=self.customer
        )
        self.approve_url = reverse('booking-approve', args=[self.booking.id])
        self.reject_url = reverse('booking-reject', args=[self.booking.id])
        self.notify_url = reverse('booking-notify', args=[self.booking.id])

    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_owner_approves(self, mock_task):
        response = self.client_owner.post(self.approve_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data['result'], 'approved')
        self.assertTrue(response.data['booking']['is_approved'])
        self.assertEqual(response.data['notification']['email'], 'issued')
        self.assertTrue(response.data['notification']['alert_link'].startswith('https://wa.me/'))

        response = self.client_owner.post(self.approve_url)
        self.assertEqual(response.data['result'], 'already_approved')
        self.assertIsNone(response.data['notification'])
        mock_task.delay.assert_called_once()

    @mock.patch('bookings.notifications.send_booking_email_task')
    def test_approval_survives_queue_failure(self, mock_task):
        mock_task.delay.side_effect = ConnectionError("broker down")
        response = self.client_owner.post(self.approve_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data['warnings'], ["Approval email could not be queued."])
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.state, BookingStateChoices.APPROVED)

        mock_task.delay.side_effect = None
        response = self.client_owner.post(self.notify_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data['email'], 'issued')

    def test_notify_requires_approval(self):
        response = self.client_owner.post(self.notify_url)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)

    def test_customer_cannot_approve_or_reject(self):
        self.assertEqual(self.client_customer.post(self.approve_url).status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client_customer.post(self.reject_url).status_code, status.HTTP_403_FORBIDDEN)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.state, BookingStateChoices.AWAITING_APPROVAL)

    def test_reject_then_approve_conflicts(self):
        response = self.client_owner.post(self.reject_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data['status'], 'cancelled')

        response = self.client_owner.post(self.approve_url)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)

    def test_unknown_booking(self):
        url = reverse('booking-approve', args=['00000000-0000-0000-0000-000000000000'])
        self.assertEqual(self.client_owner.post(url).status_code, status.HTTP_404_NOT_FOUND)
