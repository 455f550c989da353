from http import HTTPStatus

from django.utils import timezone
from rest_framework.renderers import JSONRenderer


class ApiRenderer(JSONRenderer):
    """
    Wraps every payload into the marketplace envelope:
    ``{"status", "code", "data" | "errors", "metadata"}``.
    """
    version = "1.0"

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = (renderer_context or {}).get('response')
        if response is None:
            return super().render(data, accepted_media_type, renderer_context)

        status_code = response.status_code
        envelope = {
            "status": HTTPStatus(status_code).phrase,
            "code": status_code,
        }

        # Handle error responses
        if not 200 <= status_code < 300:
            envelope["errors"] = data
            return super().render(envelope, accepted_media_type, renderer_context)

        envelope["data"] = data
        envelope["metadata"] = {
            "timestamp": timezone.now().isoformat(),
            "version": self.version,
        }
        return super().render(envelope, accepted_media_type, renderer_context)
