"""Gemini REST request execution.

One bounded, cancelable, timed-out generateContent call against one model
variant. Transport-level failures and non-2xx statuses are mapped onto the
pipeline error taxonomy; retrying and falling back are the caller's job.

Examples:
    >>> executor = GeminiRequestExecutor(timeout=30.0)
    >>> raw = await executor.execute(model, api_key, build_image_body(prompt, image))
    >>> await executor.close()

Tests:
    - tests/unit/test_executor.py::TestStatusMapping
    - tests/unit/test_executor.py::TestTimeoutAndCancel
"""

import asyncio
import logging
import time
from typing import Any

import httpx

from snapcal.config import ModelDescriptor
from snapcal.core.cancellation import CancelToken
from snapcal.core.errors import (
    AuthError,
    BadRequestError,
    CanceledError,
    ParseError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    TransportError,
)
from snapcal.schemas.request import EncodedImage

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "API request failed"

GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.1,
    "topK": 32,
    "topP": 1,
    "maxOutputTokens": 1024,
}

# Minimal request used to check whether a credential is accepted
PROBE_BODY: dict[str, Any] = {
    "contents": [{"parts": [{"text": "Hello"}]}],
    "generationConfig": {"maxOutputTokens": 1},
}


def build_image_body(prompt: str, image: EncodedImage) -> dict[str, Any]:
    """generateContent payload for a prompt plus one inline image."""
    return {
        "contents": [
            {
                "parts": [
                    {"text": prompt},
                    {"inline_data": {"mime_type": image.media_type, "data": image.data}},
                ]
            }
        ],
        "generationConfig": dict(GENERATION_CONFIG),
    }


def build_text_body(prompt: str) -> dict[str, Any]:
    """generateContent payload for a text-only prompt."""
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": dict(GENERATION_CONFIG),
    }


def _error_detail(response: httpx.Response) -> str:
    """Best-effort human-readable message from an error body."""
    try:
        message = response.json().get("error", {}).get("message")
    except (ValueError, AttributeError):
        return DEFAULT_ERROR_MESSAGE
    return message if isinstance(message, str) and message else DEFAULT_ERROR_MESSAGE


class GeminiRequestExecutor:
    """Issues single generateContent calls over httpx.

    Attributes:
        timeout: Default per-request timeout in seconds
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            timeout: Default request timeout in seconds.
            client: Pre-built client (e.g. with a mock transport). The
                executor closes only clients it created itself.
        """
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get httpx async client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _handle_error(self, response: httpx.Response, model: ModelDescriptor) -> None:
        """Convert a non-2xx response to a pipeline error.

        Raises:
            AuthError: For 401/403.
            RateLimitError: For 429.
            BadRequestError: For 400 and other unexpected 4xx.
            ServerError: For 5xx.
        """
        status = response.status_code
        detail = _error_detail(response)
        logger.warning(f"{model.model_id} returned {status}: {detail}")

        if status in (401, 403):
            raise AuthError(status_code=status)
        elif status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                status_code=status,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        elif status == 400:
            raise BadRequestError(status_code=status)
        elif status >= 500:
            raise ServerError(status_code=status)
        else:
            raise BadRequestError(f"API error: {detail}", status_code=status)

    async def _post(
        self,
        model: ModelDescriptor,
        credential: str,
        body: dict[str, Any],
        timeout: float,
    ) -> dict[str, Any]:
        start_time = time.perf_counter()
        try:
            response = await self.client.post(
                model.endpoint,
                json=body,
                headers={"x-goog-api-key": credential},
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError() from e
        except httpx.HTTPError as e:
            logger.warning(f"Transport error calling {model.model_id}: {e!r}")
            raise TransportError() from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(f"{model.model_id} answered {response.status_code} in {latency_ms}ms")

        if not response.is_success:
            self._handle_error(response, model)

        try:
            return response.json()
        except ValueError as e:
            raise ParseError("Invalid response format") from e

    async def execute(
        self,
        model: ModelDescriptor,
        credential: str,
        body: dict[str, Any],
        cancel: CancelToken | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Issue one call, racing it against the timeout and the cancel token.

        Args:
            model: Model variant to call.
            credential: API key.
            body: generateContent request body.
            cancel: Optional caller cancellation token.
            timeout: Override of the default timeout in seconds.

        Returns:
            The decoded JSON response body.

        Raises:
            CanceledError: If the token fired before or while in flight.
            RequestTimeoutError: If no response arrived in time.
            TransportError: On low-level network failure.
            OperationError: Mapped HTTP-status errors (see _handle_error).
        """
        if cancel is not None:
            cancel.raise_if_cancelled()

        effective_timeout = timeout if timeout is not None else self.timeout
        request_task = asyncio.ensure_future(self._post(model, credential, body, effective_timeout))
        waiters: set[asyncio.Future[Any]] = {request_task}
        cancel_task: asyncio.Future[Any] | None = None
        if cancel is not None:
            cancel_task = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=effective_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            pending = [task for task in waiters if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if request_task in done:
            return request_task.result()
        if cancel_task is not None and cancel_task in done:
            logger.info(f"Request to {model.model_id} canceled by caller")
            raise CanceledError()
        logger.warning(f"Request to {model.model_id} timed out after {effective_timeout}s")
        raise RequestTimeoutError()
