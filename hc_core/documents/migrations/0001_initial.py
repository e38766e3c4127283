from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("patients", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PatientDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("NATIONAL_CARD_FRONT", "National card (front)"),
                            ("NATIONAL_CARD_BACK", "National card (back)"),
                            ("BIRTH_CERT_PAGE1", "Birth certificate (page 1)"),
                            ("MEDICAL_DOC", "Medical document"),
                        ],
                        max_length=32,
                    ),
                ),
                ("title", models.CharField(blank=True, max_length=255)),
                ("doctor_name", models.CharField(blank=True, max_length=255)),
                ("visit_date", models.DateField(blank=True, null=True)),
                ("visit_reason", models.CharField(blank=True, max_length=255)),
                ("visit_location", models.CharField(blank=True, max_length=255)),
                ("notes", models.TextField(blank=True)),
                ("mime_type", models.CharField(max_length=128)),
                ("content", models.BinaryField()),
                ("size", models.PositiveIntegerField(default=0)),
                ("original_size", models.PositiveIntegerField(blank=True, null=True)),
                ("is_compressed", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("APPROVED", "Approved"), ("REJECTED", "Rejected")],
                        db_index=True,
                        default="PENDING",
                        max_length=16,
                    ),
                ),
                (
                    "patient",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="documents",
                        to="patients.patient",
                    ),
                ),
                (
                    "uploaded_by_requester",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="uploaded_documents",
                        to="patients.requesterlink",
                    ),
                ),
                (
                    "verified_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="verified_documents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "documents_patient_document",
            },
        ),
        migrations.AddConstraint(
            model_name="patientdocument",
            constraint=models.UniqueConstraint(fields=("patient", "type"), name="uq_document_patient_type"),
        ),
    ]
