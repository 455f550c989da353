from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .models import UserModel, UserChoice


class UserTests(APITestCase):

    def setUp(self):
        self.login_url = reverse('login')
        self.refresh_url = reverse('token-refresh')
        self.me_url = reverse('me')

        self.owner = UserModel.objects.create_user(
            username="fleetowner",
            password="secret123!",
            email="owner@example.com",
            role=UserChoice.OWNER,
        )

    def test_login_success(self):
        """
        Valid credentials return a token pair and the user's role.
        """
        response = self.client.post(self.login_url, data={"username": "fleetowner", "password": "secret123!"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['role'], UserChoice.OWNER)

    def test_login_wrong_password(self):
        response = self.client.post(self.login_url, data={"username": "fleetowner", "password": "nope"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_me_with_access_token(self):
        response = self.client.post(self.login_url, data={"username": "fleetowner", "password": "secret123!"})
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

        response = self.client.get(self.me_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], "owner@example.com")
        self.assertNotIn('password', response.data)

    def test_refresh_token(self):
        response = self.client.post(self.login_url, data={"username": "fleetowner", "password": "secret123!"})
        response = self.client.post(self.refresh_url, data={"refresh": response.data['refresh']})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_me_requires_authentication(self):
        response = self.client.get(self.me_url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
