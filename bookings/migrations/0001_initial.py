import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('vehicles', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BookingModel',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('vehicle_name', models.CharField(blank=True, default='', max_length=100)),
                ('start_date', models.DateField(db_index=True)),
                ('end_date', models.DateField(db_index=True)),
                ('days', models.PositiveIntegerField(default=1)),
                ('state', models.CharField(choices=[('AWAITING_APPROVAL', 'Awaiting approval'), ('APPROVED', 'Approved'), ('CANCELLED', 'Cancelled')], db_index=True, default='AWAITING_APPROVAL', max_length=20)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('customer_name', models.CharField(blank=True, default='', max_length=100)),
                ('customer_phone', models.CharField(blank=True, db_index=True, default='', max_length=20)),
                ('email', models.EmailField(blank=True, db_index=True, default='', max_length=254)),
                ('alt_phone', models.CharField(blank=True, default='', max_length=20)),
                ('user_location', models.CharField(blank=True, default='', max_length=255)),
                ('pickup_location', models.CharField(blank=True, default='', max_length=255)),
                ('transaction_id', models.CharField(blank=True, default='', max_length=100)),
                ('total_cost', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('advance_amount', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('security_deposit_type', models.CharField(blank=True, default='', max_length=100)),
                ('security_deposit_transaction_id', models.CharField(blank=True, default='', max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('client', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bookings', to=settings.AUTH_USER_MODEL)),
                ('vehicle', models.ForeignKey(db_constraint=False, on_delete=django.db.models.deletion.DO_NOTHING, related_name='bookings', to='vehicles.vehiclemodel')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['vehicle', 'start_date', 'end_date'], name='booking_vehicle_range_idx'), models.Index(fields=['vehicle', 'state'], name='booking_vehicle_state_idx')],
            },
        ),
    ]
