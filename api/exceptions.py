"""Map service errors onto HTTP responses.

Registered as REST_FRAMEWORK["EXCEPTION_HANDLER"]; everything that is not a
catalogue error falls through to DRF's default handler.
"""
from __future__ import annotations

import logging

from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from courses.exceptions import CatalogError, ConstraintViolation, NotFoundError, PersistenceFailure

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConstraintViolation, status.HTTP_409_CONFLICT),
    (PersistenceFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def catalog_exception_handler(exc, context):
    if isinstance(exc, ProtectedError):
        return Response({"detail": "Object is still referenced and cannot be deleted."}, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, CatalogError):
        for error_class, code in _STATUS_BY_ERROR:
            if isinstance(exc, error_class):
                break
        else:
            code = status.HTTP_400_BAD_REQUEST
        if code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc, exc_info=exc.__cause__ or exc)
        return Response({"detail": str(exc)}, status=code)
    return exception_handler(exc, context)
