from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Patient",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("national_code", models.CharField(max_length=64, unique=True)),
                ("is_placeholder_code", models.BooleanField(default=False)),
                ("first_name", models.CharField(blank=True, max_length=128)),
                ("last_name", models.CharField(blank=True, max_length=128)),
                ("full_name", models.CharField(blank=True, max_length=255)),
                ("age", models.PositiveSmallIntegerField(blank=True, null=True)),
                (
                    "gender",
                    models.CharField(
                        blank=True,
                        choices=[("MALE", "Male"), ("FEMALE", "Female"), ("OTHER", "Other")],
                        max_length=16,
                    ),
                ),
                ("birth_date", models.DateField(blank=True, null=True)),
                ("medical_notes", models.TextField(blank=True)),
                ("conditions", models.TextField(blank=True)),
                (
                    "verification_status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("VERIFIED", "Verified"), ("REJECTED", "Rejected")],
                        db_index=True,
                        default="PENDING",
                        max_length=16,
                    ),
                ),
            ],
            options={
                "db_table": "patients_patient",
                "indexes": [models.Index(fields=["last_name", "first_name"], name="ix_patient_name")],
            },
        ),
        migrations.CreateModel(
            name="RequesterLink",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("phone", models.CharField(blank=True, db_index=True, max_length=32)),
                ("is_primary", models.BooleanField(default=False)),
                ("is_secondary", models.BooleanField(default=False)),
                ("history_access_granted", models.BooleanField(default=False)),
                ("total_requests", models.PositiveIntegerField(default=0)),
                ("last_request_at", models.DateTimeField(blank=True, null=True)),
                (
                    "patient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requester_links",
                        to="patients.patient",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="requester_links",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "patients_requester_link",
            },
        ),
        migrations.AddConstraint(
            model_name="requesterlink",
            constraint=models.UniqueConstraint(
                condition=models.Q(("phone", ""), _negated=True),
                fields=("patient", "phone"),
                name="uq_requester_link_patient_phone",
            ),
        ),
        migrations.AddConstraint(
            model_name="requesterlink",
            constraint=models.UniqueConstraint(
                condition=models.Q(("user__isnull", False)),
                fields=("patient", "user"),
                name="uq_requester_link_patient_user",
            ),
        ),
    ]
