# shopassist/api/errors.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shopassist.domain.errors import CheckoutProviderError, CheckoutStateError, CheckoutValidationError

logger = logging.getLogger(__name__)


async def _validation_error(request: Request, exc: CheckoutValidationError):
    logger.info("client error path=%s field=%s: %s", request.url.path, exc.field, exc.message)
    return JSONResponse(status_code=400, content={"error": exc.message, "field": exc.field})


async def _state_error(request: Request, exc: CheckoutStateError):
    logger.info("state conflict path=%s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=409, content={"error": exc.message, **exc.context})


async def _provider_error(request: Request, exc: CheckoutProviderError):
    logger.warning("checkout provider error path=%s status=%s", request.url.path, exc.status)
    return JSONResponse(
        status_code=502,
        content={"error": exc.message, "upstream_status": exc.status, "upstream_body": exc.body},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CheckoutValidationError, _validation_error)
    app.add_exception_handler(CheckoutStateError, _state_error)
    app.add_exception_handler(CheckoutProviderError, _provider_error)
