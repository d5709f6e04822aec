import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Car',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('make', models.CharField(max_length=100)),
                ('model', models.CharField(max_length=100)),
                ('year', models.IntegerField()),
                ('car_type', models.CharField(choices=[('Sedan', 'Sedan'), ('SUV', 'SUV'), ('Coupe', 'Coupe'), ('Hatchback', 'Hatchback'), ('Wagon', 'Wagon'), ('Pickup', 'Pickup'), ('Minivan', 'Minivan')], max_length=20)),
                ('color', models.CharField(max_length=50)),
                ('description', models.TextField(blank=True, default='')),
                ('photos', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('New', 'New'), ('Available', 'Available'), ('Booked', 'Booked'), ('Maintenance', 'Maintenance'), ('Rejected', 'Rejected')], default='New', max_length=20)),
                ('available_from', models.DateField(blank=True, null=True)),
                ('available_until', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='cars', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CarPricing',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('short_term', models.DecimalField(decimal_places=2, max_digits=10)),
                ('long_term', models.DecimalField(decimal_places=2, max_digits=10)),
                ('car', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='pricing', to='cars.car')),
            ],
        ),
        migrations.CreateModel(
            name='CarSpecification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('seats', models.PositiveIntegerField(default=5)),
                ('doors', models.PositiveIntegerField(default=4)),
                ('transmission', models.CharField(choices=[('Automatic', 'Automatic'), ('Manual', 'Manual')], default='Automatic', max_length=10)),
                ('fuel_type', models.CharField(choices=[('Gasoline', 'Gasoline'), ('Diesel', 'Diesel'), ('Electric', 'Electric'), ('Hybrid', 'Hybrid')], default='Gasoline', max_length=10)),
                ('fuel_efficiency', models.CharField(blank=True, default='', max_length=50)),
                ('features', models.JSONField(blank=True, default=list)),
                ('car', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='specification', to='cars.car')),
            ],
        ),
    ]
