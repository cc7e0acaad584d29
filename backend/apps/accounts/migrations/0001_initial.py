import uuid

import django.utils.timezone
from django.db import migrations, models

import backend.apps.accounts.models
import backend.core.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("email", models.EmailField(db_index=True, max_length=254, unique=True, verbose_name="email address")),
                ("role", models.CharField(choices=[("USER", "User"), ("ADMIN", "Admin"), ("JYOTISHI", "Jyotishi (agent)")], db_index=True, default="USER", max_length=20)),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("phone", models.CharField(blank=True, max_length=20, verbose_name="phone number")),
                ("jyotishi_code", models.CharField(blank=True, help_text="Unique referral code for agents, e.g. JD001", max_length=10, null=True, unique=True, validators=[backend.core.validators.validate_jyotishi_code], verbose_name="agent code")),
                ("commission_rate", models.DecimalField(blank=True, decimal_places=4, help_text="Fraction of the sale price earned per referred sale (0.10 = 10%)", max_digits=5, null=True, validators=[backend.core.validators.validate_rate_fraction], verbose_name="commission rate")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("is_staff", models.BooleanField(default=False, verbose_name="staff status")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "user",
                "verbose_name_plural": "users",
                "indexes": [
                    models.Index(fields=["role", "is_active"], name="user_role_active_idx"),
                    models.Index(fields=["date_joined"], name="user_date_joined_idx"),
                ],
            },
            managers=[
                ("objects", backend.apps.accounts.models.UserManager()),
            ],
        ),
    ]
