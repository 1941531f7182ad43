import psycopg.errors
import sqlalchemy
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from outreach.apiserver.exceptions_common import SendingNotImplementedError


def setup(app):
    """Registers exception handlers to the FastAPI app.

    The general goal of these exception handlers should be to return stable API responses (including meaningful HTTP
    status codes) to exceptions we recognize, and ideally not reveal too much about internal implementation details.
    """

    @app.exception_handler(SendingNotImplementedError)
    async def exception_handler_sendingnotimplemented(_request: Request, exc: SendingNotImplementedError):
        return JSONResponse(status_code=501, content={"message": str(exc)})

    @app.exception_handler(sqlalchemy.exc.OperationalError)
    async def exception_handler_sqlalchemy_opex(_request: Request, exc: sqlalchemy.exc.OperationalError):
        status = 500
        cause = getattr(exc, "orig", None) or exc.__cause__
        if isinstance(cause, psycopg.errors.ConnectionTimeout):
            status = 504
        # Return a minimal error message
        return JSONResponse(status_code=status, content={"message": str(cause) or str(exc)})

    @app.exception_handler(ValidationError)
    async def exception_handler_pydantic_validationerror(_request: Request, exc: ValidationError):
        # This resembles FastAPI's request_validation_exception_handler but handles Pydantic ValidationErrors raised
        # by the implementation of the handlers.
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_encoder(exc.errors())},
        )
