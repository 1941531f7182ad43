from typing import Any

from fastapi import Response, status
from pydantic import BaseModel

GENERIC_SUCCESS = Response(status_code=status.HTTP_204_NO_CONTENT)


class HTTPExceptionError(BaseModel):
    detail: str


# This defines the response codes we can expect our API to return in the normal course of operation and would be
# useful for our developers to think about.
#
# FastAPI will add a case for 422 (method argument or pydantic validation errors) automatically. 500s are
# intentionally omitted here as they (ideally) should never happen.
STANDARD_RESPONSES: dict[str | int, dict[str, Any]] = {
    # We return 400 when the client's request is invalid.
    "400": {"model": HTTPExceptionError, "description": "The request is invalid."},
    # We return 401 when the user presents an Authorization: header but it is not valid.
    "401": {
        "model": HTTPExceptionError,
        "description": "Authentication credentials are invalid.",
    },
    # 403s are returned by FastAPI's HTTPBearer helper class when the Authorization: header is missing.
    "403": {
        "model": HTTPExceptionError,
        "description": "Requester is not authenticated.",
    },
    # We return a 404 when a requested resource is not found or belongs to another user.
    "404": {
        "model": HTTPExceptionError,
        "description": "Requested content was not found.",
    },
}
