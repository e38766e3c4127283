from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion

STATUS_CHOICES = [
    ("NEW", "New"),
    ("DOCS_PENDING", "Documents pending"),
    ("ASSIGNED", "Assigned"),
    ("REJECTED_BY_CAREGIVER", "Rejected by caregiver"),
    ("CANCEL_REQUESTED", "Cancellation requested"),
    ("CANCELED", "Canceled"),
    ("CLOSED", "Closed"),
]

ACTION_CHOICES = [
    ("REQUEST_CREATED", "Request created"),
    ("REQUEST_UPDATED", "Request updated"),
    ("ASSIGNED_CAREGIVER", "Caregiver assigned"),
    ("CARE_GIVER_REJECTED", "Caregiver rejected"),
    ("REQUEST_CLOSED", "Request closed"),
    ("DOC_LINK_CREATED", "Document upload link created"),
    ("CANCEL_REQUESTED", "Cancellation requested"),
    ("CANCEL_APPROVED", "Cancellation approved"),
    ("CANCEL_REJECTED", "Cancellation rejected"),
    ("CHANGE_REQUESTED", "Change requested"),
    ("CHANGE_APPROVED", "Change approved"),
    ("CHANGE_REJECTED", "Change rejected"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("catalog", "0001_initial"),
        ("patients", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ServiceRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("status", models.CharField(choices=STATUS_CHOICES, db_index=True, default="NEW", max_length=32)),
                ("previous_status", models.CharField(blank=True, choices=STATUS_CHOICES, max_length=32)),
                (
                    "support_type",
                    models.CharField(
                        blank=True,
                        choices=[("CANCEL", "Cancellation"), ("CHANGE", "Change"), ("OTHER", "Other")],
                        db_index=True,
                        max_length=16,
                        null=True,
                    ),
                ),
                ("city", models.CharField(blank=True, max_length=128)),
                ("time", models.CharField(blank=True, max_length=128)),
                ("notes", models.TextField(blank=True)),
                ("doc_upload_token", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("doc_upload_expires_at", models.DateTimeField(blank=True, null=True)),
                (
                    "service_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requests",
                        to="catalog.serviceitem",
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requests",
                        to="patients.patient",
                    ),
                ),
                (
                    "requester",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="requests",
                        to="patients.requesterlink",
                    ),
                ),
                (
                    "assigned_caregiver",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="caregiver_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "assigned_expert",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="expert_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "current_owner",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="owned_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "last_action_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "service_requests_request",
                "indexes": [
                    models.Index(fields=["status", "updated_at"], name="ix_request_status_updated"),
                    models.Index(fields=["assigned_caregiver", "status"], name="ix_request_caregiver_status"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RequestLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=ACTION_CHOICES, db_index=True, max_length=32)),
                ("payload", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="logs",
                        to="service_requests.servicerequest",
                    ),
                ),
                (
                    "actor_user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="request_log_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "actor_requester",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="request_log_entries",
                        to="patients.requesterlink",
                    ),
                ),
            ],
            options={
                "db_table": "service_requests_log_entry",
                "indexes": [
                    models.Index(fields=["request", "action", "created_at"], name="ix_request_log_action"),
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="requestlogentry",
            constraint=models.CheckConstraint(
                condition=(
                    models.Q(("actor_user__isnull", False), ("actor_requester__isnull", True))
                    | models.Q(("actor_user__isnull", True), ("actor_requester__isnull", False))
                ),
                name="ck_request_log_single_actor",
            ),
        ),
    ]
