from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from bookings.models import BookingModel
from bookings.services import create_booking, reject_booking
from common.exceptions import NotFound
from users.models import UserChoice, UserModel
from vehicles import store
from vehicles.models import VehicleModel, VehicleStatusChoices, VehicleCategoryChoices, FuelTypeChoices


class VehicleTestCase(TestCase):
    def setUp(self):
        """Set up test dependencies"""
        self.client_owner = APIClient()
        self.client_customer = APIClient()

        self.owner_user = UserModel.objects.create_user(
            username="testowner",
            password="password123",
            email="testowner@example.com",
            role=UserChoice.OWNER,
        )
        self.customer_user = UserModel.objects.create_user(
            username="testcustomer",
            password="password123",
            email="testcustomer@example.com",
            role=UserChoice.CUSTOMER,
        )

        refresh_owner = RefreshToken.for_user(self.owner_user)
        refresh_customer = RefreshToken.for_user(self.customer_user)
        self.client_owner.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh_owner.access_token}")
        self.client_customer.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh_customer.access_token}")

        self.vehicle1 = VehicleModel.objects.create(
            name="Hyundai Creta",
            category=VehicleCategoryChoices.SUV,
            fuel_type=FuelTypeChoices.DIESEL,
            seats=5,
            daily_price=3000,
            total_stock=2,
        )
        self.vehicle2 = VehicleModel.objects.create(
            name="Maruti Alto",
            category=VehicleCategoryChoices.HATCHBACK,
            seats=4,
            daily_price=1200,
            status=VehicleStatusChoices.SOLD,
        )

        self.list_url = reverse('vehicle-list')
        self.detail_url = reverse('vehicle-detail', kwargs={'pk': self.vehicle1.id})
        self.set_status_url = reverse('vehicle-set-status', kwargs={'pk': self.vehicle1.id})
        self.set_stock_url = reverse('vehicle-set-stock', kwargs={'pk': self.vehicle1.id})
        self.availability_url = reverse('vehicle-availability', kwargs={'pk': self.vehicle1.id})

        self.valid_payload = {
            "name": "Toyota Innova",
            "category": VehicleCategoryChoices.SUV,
            "fuel_type": FuelTypeChoices.DIESEL,
            "seats": 7,
            "daily_price": "4500.00",
            "total_stock": 3,
        }

    def test_owner_can_create_vehicle(self):
        response = self.client_owner.post(self.list_url, self.valid_payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data['status'], VehicleStatusChoices.AVAILABLE)
        self.assertEqual(VehicleModel.objects.count(), 3)

    def test_create_requires_stock(self):
        payload = dict(self.valid_payload, total_stock=0)
        response = self.client_owner.post(self.list_url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('total_stock', response.data)

    def test_create_rejects_negative_price(self):
        payload = dict(self.valid_payload, daily_price="-1.00")
        response = self.client_owner.post(self.list_url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_cannot_create_update_or_delete(self):
        response = self.client_customer.post(self.list_url, self.valid_payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client_customer.patch(self.detail_url, {"daily_price": "1.00"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client_customer.delete(self.detail_url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(VehicleModel.objects.filter(pk=self.vehicle1.id).exists())

    def test_owner_can_update_vehicle(self):
        response = self.client_owner.patch(self.detail_url, {"daily_price": "3200.00"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.vehicle1.refresh_from_db()
        self.assertEqual(self.vehicle1.daily_price, Decimal('3200.00'))

    def test_owner_delete_keeps_bookings(self):
        booking = create_booking(self.vehicle1.id, '2024-04-01', '2024-04-02')
        response = self.client_owner.delete(self.detail_url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(VehicleModel.objects.filter(pk=self.vehicle1.id).exists())
        self.assertEqual(BookingModel.objects.get(pk=booking.pk).vehicle_name, "Hyundai Creta")

    def test_owner_sees_whole_fleet(self):
        response = self.client_owner.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_customer_sees_offered_vehicles_only(self):
        VehicleModel.objects.create(name="Tata Nexon", daily_price=2200, total_stock=0)
        response = self.client_customer.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [str(self.vehicle1.id)])

    def test_customer_filters(self):
        VehicleModel.objects.create(
            name="Honda City", category=VehicleCategoryChoices.SEDAN, fuel_type=FuelTypeChoices.PETROL,
            seats=5, daily_price=2500
        )
        response = self.client_customer.get(self.list_url, {'category': 'SUV'})
        self.assertEqual([row['name'] for row in response.data], ["Hyundai Creta"])

        response = self.client_customer.get(self.list_url, {'fuel_type': 'Petrol', 'seats': 5})
        self.assertEqual([row['name'] for row in response.data], ["Honda City"])

        response = self.client_customer.get(self.list_url, {'seats': 7})
        self.assertEqual(response.data, [])

    def test_list_reports_booked_count(self):
        create_booking(self.vehicle1.id, '2024-04-01', '2024-04-05')
        cancelled = create_booking(self.vehicle1.id, '2024-04-03', '2024-04-03')
        reject_booking(cancelled.id)

        response = self.client_customer.get(self.list_url, {'start_date': '2024-04-03', 'end_date': '2024-04-03'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['booked_count'], 1)

        response = self.client_customer.get(self.list_url, {'start_date': '2024-04-06'})
        self.assertEqual(response.data[0]['booked_count'], 0)

    def test_list_rejects_inverted_range(self):
        response = self.client_customer.get(self.list_url, {'start_date': '2024-04-06', 'end_date': '2024-04-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_set_status_as_owner(self):
        response = self.client_owner.post(self.set_status_url, {"status": VehicleStatusChoices.SOLD}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.vehicle1.refresh_from_db()
        self.assertEqual(self.vehicle1.status, VehicleStatusChoices.SOLD)
        self.assertFalse(self.vehicle1.is_offered)

    def test_set_status_invalid_value(self):
        response = self.client_owner.post(self.set_status_url, {"status": "RENTED"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_set_status_as_customer(self):
        response = self.client_customer.post(self.set_status_url, {"status": VehicleStatusChoices.SOLD}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_set_stock_to_zero_withdraws_vehicle(self):
        booking = create_booking(self.vehicle1.id, '2024-04-01', '2024-04-02')

        response = self.client_owner.post(self.set_stock_url, {"total_stock": 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data['total_stock'], 0)
        self.vehicle1.refresh_from_db()
        self.assertFalse(self.vehicle1.is_offered)
        # Existing bookings are left alone
        self.assertTrue(BookingModel.objects.filter(pk=booking.pk).exists())

    def test_set_stock_rejects_negative(self):
        response = self.client_owner.post(self.set_stock_url, {"total_stock": -1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_set_stock_unknown_vehicle(self):
        url = reverse('vehicle-set-stock', kwargs={'pk': '00000000-0000-0000-0000-000000000000'})
        response = self.client_owner.post(url, {"total_stock": 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_availability(self):
        create_booking(self.vehicle1.id, '2024-04-01', '2024-04-05')

        response = self.client_customer.get(self.availability_url, {'start_date': '2024-04-05', 'end_date': '2024-04-07'})
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data, {'available': True, 'remaining': 1, 'committed': 1, 'total_stock': 2})

        create_booking(self.vehicle1.id, '2024-04-04', '2024-04-06')
        response = self.client_customer.get(self.availability_url, {'start_date': '2024-04-05', 'end_date': '2024-04-05'})
        self.assertFalse(response.data['available'])
        self.assertEqual(response.data['remaining'], 0)

    def test_availability_requires_dates(self):
        response = self.client_customer.get(self.availability_url, {'start_date': '2024-04-05'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_unauthenticated_access(self):
        response = APIClient().get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class VehicleStoreTestCase(TestCase):
    def setUp(self):
        self.vehicle = VehicleModel.objects.create(name="Kia Seltos", daily_price=2800, total_stock=1)

    def test_get_vehicle(self):
        self.assertEqual(store.get_vehicle(self.vehicle.id), self.vehicle)
        with self.assertRaises(NotFound):
            store.get_vehicle('00000000-0000-0000-0000-000000000000')
        with self.assertRaises(NotFound):
            store.get_vehicle('garbage')

    def test_set_total_stock(self):
        self.assertEqual(store.set_total_stock(self.vehicle.id, 4).total_stock, 4)
        with self.assertRaises(ValueError):
            store.set_total_stock(self.vehicle.id, -2)

    def test_offered_vehicles(self):
        VehicleModel.objects.create(name="Sold Car", daily_price=1000, status=VehicleStatusChoices.SOLD)
        self.assertEqual(list(store.offered_vehicles()), [self.vehicle])
