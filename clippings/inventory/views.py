from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from clippings.core.gateway import get_gateway
from clippings.core.utils import failure_status
from .serializers import (
    BatchFormSerializer, BatchImportResultSerializer,
    UpdateFormSerializer, UpdateOutcomeSerializer
)
from .submission import UpdateRequest, submit_batch, submit_update


@api_view(['POST'])
@permission_classes([AllowAny])
def inventory_update(request):
    """Add to, remove from or edit one inventory item"""
    serializer = UpdateFormSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    form = serializer.validated_data
    update = UpdateRequest.from_form(form['action'], form)
    outcome = submit_update(update, get_gateway())

    data = UpdateOutcomeSerializer(outcome).data
    if outcome.error is not None:
        return Response(data, status=failure_status(outcome.error))
    # A rejection by the store is still a completed call
    return Response(data)


@api_view(['POST'])
@permission_classes([AllowAny])
def inventory_batch_import(request):
    """Import several items at once, one per line"""
    serializer = BatchFormSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    batch = submit_batch(serializer.validated_data['batchData'], get_gateway())

    data = BatchImportResultSerializer(batch).data
    if batch.error is not None:
        return Response(data, status=failure_status(batch.error))
    return Response(data)
