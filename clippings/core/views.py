from django.conf import settings
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .gateway import get_gateway, REMOTE_FUNCTIONS


@api_view(['GET'])
@permission_classes([AllowAny])
def client_status(request):
    """Report whether the remote endpoint is configured"""
    gateway = get_gateway()
    return Response({
        'configured': gateway.is_configured,
        'timeout': gateway.timeout,
        'debug': getattr(settings, 'CLIPPINGS_DEBUG', False),
        'functions': list(REMOTE_FUNCTIONS),
    })
