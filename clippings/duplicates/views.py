from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from clippings.core.gateway import get_gateway
from clippings.core.utils import failure_response, failure_status
from .serializers import (
    DuplicateWorkflowSerializer, MergeOutcomeSerializer, MergeRequestSerializer
)
from .store import WorkflowStore
from .workflow import DuplicateController, InvalidTransition, UnknownCandidate


def _controller(request):
    store = WorkflowStore(request.session)
    return DuplicateController(
        store.load(), get_gateway(), reload=store.reload, persist=store.save
    )


def _workflow_data(controller):
    return DuplicateWorkflowSerializer(controller.workflow).data


def _candidate_error(error):
    if isinstance(error, UnknownCandidate):
        return Response({'error': error.message}, status=status.HTTP_404_NOT_FOUND)
    return Response({'error': error.message}, status=status.HTTP_409_CONFLICT)


@api_view(['GET'])
@permission_classes([AllowAny])
def duplicate_list(request):
    """Current duplicate review state for this session"""
    return Response(_workflow_data(_controller(request)))


@api_view(['POST'])
@permission_classes([AllowAny])
def duplicate_scan(request):
    """Scan the whole inventory for likely duplicates"""
    controller = _controller(request)
    result = controller.scan()
    if not result.ok:
        return failure_response(
            result, message=controller.workflow.message, workflow=_workflow_data(controller)
        )
    return Response(_workflow_data(controller))


@api_view(['POST'])
@permission_classes([AllowAny])
def duplicate_merge(request, candidate_id):
    """Merge a duplicate pair, keeping the first or the second row"""
    serializer = MergeRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    controller = _controller(request)
    try:
        outcome = controller.resolve(candidate_id, serializer.validated_data['keepFirst'])
    except (InvalidTransition, UnknownCandidate) as e:
        return _candidate_error(e)

    data = dict(MergeOutcomeSerializer(outcome).data)
    data['workflow'] = _workflow_data(controller)
    if outcome.error is not None:
        return Response(data, status=failure_status(outcome.error))
    return Response(data)


@api_view(['POST'])
@permission_classes([AllowAny])
def duplicate_dismiss(request, candidate_id):
    """Keep both rows; the pair leaves the review list"""
    controller = _controller(request)
    try:
        controller.dismiss(candidate_id)
    except (InvalidTransition, UnknownCandidate) as e:
        return _candidate_error(e)
    return Response(_workflow_data(controller))
