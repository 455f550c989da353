import os
from celery import Celery

# Set the default settings module for Celery
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'rent_car_marketplace.settings')

app = Celery('rent_car_marketplace')

# Load Celery settings from Django settings using the 'CELERY_' prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Discover notification tasks from the installed apps
app.autodiscover_tasks()
