from django.db import models
from django.contrib.auth.models import AbstractUser


class UserChoice(models.TextChoices):
    CUSTOMER = 'CU', 'Customer'
    OWNER = 'OW', 'Owner'


class UserModel(AbstractUser):
    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, unique=True, blank=True, null=True)
    role = models.CharField(max_length=2, choices=UserChoice.choices, default=UserChoice.CUSTOMER)

    @property
    def is_owner(self):
        return self.role == UserChoice.OWNER
