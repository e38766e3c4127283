# hc_core/service_requests/services/__init__.py
from hc_core.service_requests.services.lifecycle import RequestService, UploadCapability
from hc_core.service_requests.services.patch import ChangeSet, RequestPatch
from hc_core.service_requests.services.support import SupportService

__all__ = ["ChangeSet", "RequestPatch", "RequestService", "SupportService", "UploadCapability"]
