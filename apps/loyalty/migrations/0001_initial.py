# Generated manually for the loyalty app

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StampBalance',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('merchant_name', models.CharField(max_length=100)),
                ('count', models.PositiveSmallIntegerField(default=0)),
                ('has_pending_gift', models.BooleanField(default=False)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='stamp_balances', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'stamp_balances',
                'ordering': ['merchant_name'],
            },
        ),
        migrations.CreateModel(
            name='Coupon',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('merchant_name', models.CharField(max_length=100)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('expires_at', models.DateTimeField()),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='coupons', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'coupons',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='ScanToken',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('token', models.CharField(max_length=64)),
                ('merchant_name', models.CharField(max_length=100)),
                ('used_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scan_tokens', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'scan_tokens',
                'ordering': ['-used_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='stampbalance',
            constraint=models.UniqueConstraint(fields=('user', 'merchant_name'), name='unique_stamp_balance_per_cafe'),
        ),
        migrations.AddConstraint(
            model_name='stampbalance',
            constraint=models.CheckConstraint(condition=models.Q(('count__lte', 5)), name='stamp_count_at_most_5'),
        ),
        migrations.AddIndex(
            model_name='coupon',
            index=models.Index(fields=['user', 'merchant_name'], name='coupons_user_merchant_idx'),
        ),
        migrations.AddIndex(
            model_name='coupon',
            index=models.Index(fields=['expires_at'], name='coupons_expires_at_idx'),
        ),
        migrations.AddConstraint(
            model_name='scantoken',
            constraint=models.UniqueConstraint(fields=('user', 'token'), name='unique_scan_token_per_user'),
        ),
    ]
