"""
HTTP Error Mapping

Translates engine exceptions into HTTPException for the admin routers:
ConfigurationError -> 503, ValidationError -> 400, ExternalServiceError ->
502, anything else -> 500.
"""

import logging

from fastapi import HTTPException

from .errors import ConfigurationError, ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)


def to_http_exception(error: Exception, context: str = "Catalog error") -> HTTPException:
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, ConfigurationError):
        return HTTPException(status_code=503, detail=error.message)
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, ExternalServiceError):
        return HTTPException(status_code=502, detail=error.message)
    logger.exception(f"{context}: {error}")
    return HTTPException(status_code=500, detail=f"{context}: {str(error)}")
