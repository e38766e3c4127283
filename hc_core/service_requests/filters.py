# hc_core/service_requests/filters.py
from __future__ import annotations

import django_filters

from hc_core.service_requests.models import RequestStatus, ServiceRequest, SupportType


class RequestFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=RequestStatus.choices)
    support_type = django_filters.ChoiceFilter(choices=SupportType.choices)
    in_support_queue = django_filters.BooleanFilter(field_name="support_type", lookup_expr="isnull", exclude=True)
    patient = django_filters.NumberFilter(field_name="patient_id")
    assigned_caregiver = django_filters.NumberFilter(field_name="assigned_caregiver_id")

    class Meta:
        model = ServiceRequest
        fields = ["status", "support_type", "patient", "assigned_caregiver"]
