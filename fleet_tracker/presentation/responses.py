# File: fleet_tracker/presentation/responses.py
"""
Response mapping for API and console adapters

Translates Result values into a status code and a JSON-ready payload.
"""

from typing import Any, Tuple

from ..domain.models import ErrorCodes, Error, Result
from ..application.dtos import ApiErrorDTO, ApiSuccessDTO, BaseDTO


HTTP_STATUS_BY_CODE = {
    ErrorCodes.NOT_FOUND: 404,
    ErrorCodes.CONCURRENCY_CONFLICT: 409,
    ErrorCodes.ALREADY_EXISTS: 409,
    ErrorCodes.UNAUTHORIZED_TRANSITION: 403,
    ErrorCodes.INVALID_ROLE: 403,
}


def http_status_for(error: Error) -> int:
    """Status code for a failure; validation and precondition failures are 400"""
    return HTTP_STATUS_BY_CODE.get(error.code, 400)


def to_response(result: Result, success_message: str = "OK") -> Tuple[int, Any]:
    if result.is_failure:
        return http_status_for(result.error), ApiErrorDTO.from_error(result.error).to_dict()

    value = result.value
    if isinstance(value, BaseDTO):
        return 200, value.to_dict()
    if isinstance(value, list):
        return 200, [item.to_dict() if isinstance(item, BaseDTO) else item for item in value]
    return 200, ApiSuccessDTO(message=success_message).to_dict()
