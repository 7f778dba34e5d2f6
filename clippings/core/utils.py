"""Helpers shared by the API views"""
from rest_framework import status
from rest_framework.response import Response

from .exceptions import ConfigurationError, ValidationError


def failure_status(error):
    """HTTP status for a failed remote or local operation"""
    if isinstance(error, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, ConfigurationError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_502_BAD_GATEWAY


def failure_response(failure, message=None, **extra):
    """
    Build the error response for a gateway Failure.

    Args:
        failure: Failure returned by RemoteGateway.invoke
        message: Optional override for the text shown to the operator
        extra: Additional keys merged into the body
    """
    body = {'error': message or failure.message}
    body.update(extra)
    return Response(body, status=failure_status(failure.error))
