"""
Error taxonomy for the API and the FastAPI handlers that render it.

Every domain failure is raised as a ``DataVistaError`` subclass deep inside the
managers and translated to a JSON response here, so route functions never
build error responses themselves.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DataVistaError(Exception):
    status_code = 500
    default_message = "Something went wrong!"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class Unauthenticated(DataVistaError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(DataVistaError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(DataVistaError):
    status_code = 404
    default_message = "Not found"


class Conflict(DataVistaError):
    status_code = 400
    default_message = "Already exists"


class ValidationFailed(DataVistaError):
    status_code = 400
    default_message = "Validation error"

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailed":
        return cls([{"field": field, "message": message}], message=message)

    def to_dict(self):
        return {"message": self.message, "errors": self.errors}


class ProductNotFound(DataVistaError):
    status_code = 400

    def __init__(self, product_id: Any):
        self.product_id = str(product_id)
        super().__init__(f"Product not found: {self.product_id}")

    def to_dict(self):
        return {"message": self.message, "productId": self.product_id}


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors = []
    for err in exc.errors():
        # drop the leading "body"/"query"/"path" marker
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return errors


def register_error_handlers(app: FastAPI, debug: bool = False):
    @app.exception_handler(DataVistaError)
    async def handle_domain_error(request: Request, exc: DataVistaError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        failure = ValidationFailed(_field_errors(exc))
        return JSONResponse(status_code=failure.status_code, content=failure.to_dict())

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"message": "Something went wrong!", "error": str(exc) if debug else None},
        )
