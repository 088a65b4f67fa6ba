"""Core application views (unauthenticated).

These are the terminal handlers the request pipeline delegates to:

- `health`: readiness probe; checks DB connectivity and reports the configured
  pipeline stages. Intended for load balancers/k8s probes.
- `EchoView`: reflects what the application observed after every stage ran
  (method, original method when overridden, path, request id). Accepts all
  verbs so method overrides can be checked end to end.

Security
--------
- Public; payloads contain no sensitive data.
"""

from django.db import connection
from django.http import JsonResponse
from django.utils.timezone import now
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import permissions, serializers
from rest_framework.response import Response
from rest_framework.views import APIView

from request_pipeline.manifest import describe_manifest


def health(request):
    """
    Lightweight health endpoint (no auth).

    Returns:
        200 JSON when DB is reachable; 503 JSON when a DB error is raised.
    """
    status = 200
    payload = {
        "app": "railsauth",
        "time": now().isoformat(),
        "db": "ok",
        "pipeline": [name for name, _ in describe_manifest()],
    }
    try:
        connection.ensure_connection()
    except Exception as exc:
        payload["db"] = "down"
        payload["error"] = str(exc)
        status = 503
    return JsonResponse(payload, status=status)


class _EchoSerializer(serializers.Serializer):
    method = serializers.CharField()
    original_method = serializers.CharField(allow_null=True)
    path = serializers.CharField()
    request_id = serializers.CharField(allow_null=True)


class EchoView(APIView):
    """Report the request as seen by the application."""
    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []

    @extend_schema(
        operation_id="echo",
        summary="Echo the request as seen after the pipeline",
        responses={200: OpenApiResponse(response=_EchoSerializer)},
    )
    def get(self, request, *args, **kwargs):
        raw = request._request
        payload = {
            "method": request.method,
            "original_method": getattr(raw, "original_method", None),
            "path": request.path,
            "request_id": getattr(raw, "request_id", None),
        }
        return Response(payload)

    post = put = patch = delete = get
