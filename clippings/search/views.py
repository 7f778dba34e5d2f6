import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from clippings.core.gateway import ASK_INVENTORY, get_gateway
from clippings.core.utils import failure_response
from .display import render
from .serializers import SearchQuerySerializer, serialize_display

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([AllowAny])
def search(request):
    """Ask the inventory store a free-text question"""
    serializer = SearchQuerySerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    query = serializer.validated_data['query']
    result = get_gateway().invoke(ASK_INVENTORY, query)
    if not result.ok:
        return failure_response(result, message=f'Error: {result.message}')

    display = render(result.payload)
    logger.info(f'Search "{query}" rendered as {display.kind}')
    return Response(serialize_display(display))
