# hc_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from hc_core.audit.api.views import AuditEventViewSet
from hc_core.documents.api.views import PatientDocumentViewSet
from hc_core.iam.api.me import MeView
from hc_core.iam.api.users import UserViewSet
from hc_core.patients.api.views import PatientViewSet, RequesterViewSet
from hc_core.service_requests.api.views import ServiceRequestViewSet

router = DefaultRouter()

router.register(r"requests", ServiceRequestViewSet, basename="requests")
router.register(r"patients", PatientViewSet, basename="patients")
router.register(r"requesters", RequesterViewSet, basename="requesters")
router.register(r"users", UserViewSet, basename="users")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

patient_documents = PatientDocumentViewSet.as_view({"get": "list", "post": "create"})
patient_document_detail = PatientDocumentViewSet.as_view({"get": "retrieve", "patch": "partial_update"})

urlpatterns = [
    path("me/", MeView.as_view(), name="me"),

    # Documents are nested under their patient
    path("patients/<int:patient_pk>/documents/", patient_documents, name="patient-documents"),
    path(
        "patients/<int:patient_pk>/documents/<int:pk>/",
        patient_document_detail,
        name="patient-document-detail",
    ),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
