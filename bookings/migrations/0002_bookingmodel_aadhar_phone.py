from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('bookings', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='bookingmodel',
            name='aadhar_phone',
            field=models.CharField(blank=True, default='', max_length=20),
        ),
    ]
