"""
Failure handling for the authorize and callback phases.

Every error is logged. Without a custom handler the user is redirected to
``<prefix>/failure`` with the error text in ``message`` and the original
``state`` parameter; with a handler, the handler builds the response.
"""

import inspect
import logging
from typing import Awaitable, Callable, Optional, Union
from urllib.parse import quote, urlencode

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

logger = logging.getLogger(__name__)

FailureHandler = Callable[[Request, Exception], Union[Response, Awaitable[Response]]]


class FailurePolicy:
    def __init__(self, failure_path: str, on_failure: Optional[FailureHandler] = None):
        self.failure_path = failure_path
        self.on_failure = on_failure if callable(on_failure) else None

    def failure_url(self, message: str, state: Optional[str]) -> str:
        params = {"message": message}
        if state is not None:
            params["state"] = state
        return f"{self.failure_path}?{urlencode(params, quote_via=quote, safe='/')}"

    async def respond(self, request: Request, error: Exception) -> Response:
        logger.error(
            f"{type(error).__name__} ({error}) during {request.url.path}",
            exc_info=(type(error), error, error.__traceback__),
        )

        if self.on_failure is None:
            location = self.failure_url(str(error), request.query_params.get("state"))
            return RedirectResponse(url=location, status_code=302, headers={"Content-Type": "text/html"})

        response = self.on_failure(request, error)
        if inspect.isawaitable(response):
            response = await response
        return response
