"""Failure taxonomy of the dynamic service dispatcher.

Every failure maps to exactly one HTTP status and a JSON body.  ``service``
(``"Component.Operation"``) and ``access_level`` are supplied by the
middleware when the response is rendered, because the error is often raised
deep inside binding or invocation where that context is not at hand.
"""

from __future__ import annotations

from typing import Any
from typing import Dict
from typing import List
from typing import Sequence

from fastapi import status


class DispatchError(Exception):
    """Base class; subclasses set ``status_code`` and usually refine :meth:`payload`."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {"error": str(self) or type(self).__name__, "service": service, "accessLevel": access_level}


class Unauthenticated(DispatchError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": "Authentication required",
            "message": "You must be logged in to access this service",
            "service": service,
            "accessLevel": access_level,
        }


class ComponentNotFound(DispatchError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, component: str, tried_types: Sequence[str]):
        super().__init__(f"Service '{component}' not found")
        self.component = component
        self.tried_types = list(tried_types)

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": f"Service '{self.component}' not found in service registry",
            "details": "Make sure the service is registered in smarttask.services.container",
            "triedTypes": self.tried_types,
        }


class OperationNotFound(DispatchError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, component: str, operation: str, available: Sequence[str]):
        super().__init__(f"Method '{operation}' not found in service '{component}'")
        self.component = component
        self.operation = operation
        self.available = list(available)

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": str(self),
            "service": service,
            "availableMethods": self.available,
        }


class MissingParameter(DispatchError):
    """A required parameter is absent from the body (or there is no body)."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, parameter: str, expected_parameters: List[Dict[str, Any]], *, body_missing: bool = False):
        super().__init__(f"Missing required parameter '{parameter}'")
        self.parameter = parameter
        self.expected_parameters = expected_parameters
        self.body_missing = body_missing

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        if self.body_missing:
            return {
                "error": f"Missing required parameter '{self.parameter}'",
                "message": "Request body is required for this service method",
                "service": service,
                "accessLevel": access_level,
            }
        return {
            "error": f"Missing required parameter '{self.parameter}' in request body",
            "service": service,
            "accessLevel": access_level,
            "expectedParameters": self.expected_parameters,
        }


class InvalidParameterValue(DispatchError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, parameter: str, details: str):
        super().__init__(f"Invalid value for parameter '{parameter}'")
        self.parameter = parameter
        self.details = details

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": str(self),
            "details": self.details,
            "service": service,
        }


class InvalidRequestBody(DispatchError):
    """The body is present but is not a JSON object."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, details: str):
        super().__init__("Invalid request body")
        self.details = details

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": "Request body must be a JSON object",
            "details": self.details,
            "service": service,
        }


class DtoValidationFailed(DispatchError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, parameter: str, messages: Sequence[str]):
        super().__init__(f"Validation failed for parameter '{parameter}'")
        self.parameter = parameter
        self.messages = list(messages)

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": str(self),
            "details": self.messages,
            "service": service,
            "accessLevel": access_level,
        }


class AccessDenied(DispatchError):
    """Authorization failure raised by the business operation itself."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": "Access denied",
            "message": self.message,
            "service": service,
            "accessLevel": access_level,
        }


class InvalidArguments(DispatchError):
    """Argument/contract failure raised by the business operation."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": "Invalid arguments",
            "message": self.message,
            "service": service,
        }


class UnexpectedFailure(DispatchError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def payload(self, service: str, access_level: str) -> Dict[str, Any]:
        return {
            "error": "An error occurred while processing your request",
            "message": self.message,
            "service": service,
            "accessLevel": access_level,
        }


__all__ = [
    "AccessDenied",
    "ComponentNotFound",
    "DispatchError",
    "DtoValidationFailed",
    "InvalidArguments",
    "InvalidParameterValue",
    "InvalidRequestBody",
    "MissingParameter",
    "OperationNotFound",
    "Unauthenticated",
    "UnexpectedFailure",
]
