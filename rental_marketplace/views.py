from rest_framework import permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response


@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def home(request):
    links = [
        {"label": "Admin", "url": "/admin/"},
        {"label": "JWT: Obtain Token", "url": "/api/token/"},
        {"label": "JWT: Refresh Token", "url": "/api/token/refresh/"},
        {"label": "Properties", "url": "/api/properties/"},
        {"label": "Bookings", "url": "/api/bookings/"},
        {"label": "Messaging", "url": "/api/messaging/"},
        {"label": "Swagger UI", "url": "/api/docs/"},
        {"label": "OpenAPI Schema (JSON)", "url": "/api/schema/"},
    ]
    return Response({"links": links})
