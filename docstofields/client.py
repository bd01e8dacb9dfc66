from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Type

import requests

from .errors import BackendError, CompletionBackendError, ExtractionBackendError
from .models import ClientSettings, CompletionRequest, EncodedFile, ExtractTextRequest

logger = logging.getLogger(__name__)

EXTRACT_TEXT_PATH = "/extractText"
EXTRACT_PATH = "/extract"
REQUEST_TIMEOUT = 120


class BackendClient:
    """HTTP boundary to the text-extraction and completion backends.

    ``requests`` is blocking, so every call runs in a worker thread and the
    coroutine suspends until the response arrives. Settings are read per call
    so a new auth key or URL applies to the next request.
    """

    def __init__(self, settings: ClientSettings, timeout: float = REQUEST_TIMEOUT) -> None:
        self.settings = settings
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.settings.auth_key:
            headers["x-auth-key"] = self.settings.auth_key
        return headers

    def _post(self, path: str, payload: Dict[str, Any], error_cls: Type[BackendError]) -> Dict[str, Any]:
        url = f"{self.settings.url.rstrip('/')}{path}"
        try:
            response = requests.post(url, headers=self._headers(), json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.error("Backend %s failed with HTTP %s", path, status)
            raise error_cls(f"{path} failed with HTTP {status}", status_code=status) from exc
        except requests.exceptions.RequestException as exc:
            logger.error("Backend %s unreachable: %s", path, exc)
            raise error_cls(f"{path} request failed: {exc}") from exc
        except ValueError as exc:
            raise error_cls(f"{path} returned a non-JSON body") from exc

        if not isinstance(body, dict):
            raise error_cls(f"{path} returned {type(body).__name__}, expected an object")
        return body

    async def extract_text(self, encoded: EncodedFile, enable_textract: bool = False) -> Dict[str, Any]:
        payload = ExtractTextRequest(file=encoded, enable_textract=enable_textract).model_dump(by_alias=True)
        logger.info("Requesting text extraction for %s", encoded.name)
        return await asyncio.to_thread(self._post, EXTRACT_TEXT_PATH, payload, ExtractionBackendError)

    async def complete(self, request: CompletionRequest) -> Dict[str, Any]:
        payload = request.model_dump(by_alias=True, exclude_none=True)
        logger.info("Requesting completion over %d document(s), model=%s", len(request.files), request.model)
        return await asyncio.to_thread(self._post, EXTRACT_PATH, payload, CompletionBackendError)
