"""
Media Dispatch - API Client
HTTP request wrapper with per-call authentication and error classification

Provider contracts:
- KIE.ai: Authorization: Bearer {credential}
  Submit: POST /jobs/createTask or /veo/generate -> {code, msg, data: {taskId}}
  Status: GET /jobs/recordInfo?taskId=xxx (or /veo/record-info?taskId=xxx)
- Gemini: x-goog-api-key: {credential}
  Sync image: POST /models/{model}:generateContent
  Veo: POST /models/{model}:predictLongRunning -> {name}, status GET /{name}

Credentials are passed into every call and never stored or logged.
"""

from __future__ import annotations
import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from .errors import (
    ErrorKind,
    GenerationError,
    classify_envelope,
    classify_http_error,
    classify_transport,
    malformed_response,
)
from .model_registry import PayloadFamily, Provider

logger = logging.getLogger("[MediaDispatch]")

# Values longer than this are shortened in logs (base64 images, long prompts)
LOG_VALUE_LIMIT = 200


@dataclass
class Submission:
    """Outcome of a successful submission"""
    task_id: Optional[str]  # None for synchronous providers
    body: Any


def _shorten(value: Any) -> Any:
    """Truncate long strings for logging, recursing into lists and dicts"""
    if isinstance(value, str) and len(value) > LOG_VALUE_LIMIT:
        return value[:50] + f"... ({len(value)} chars)"
    if isinstance(value, list):
        return [_shorten(v) for v in value]
    if isinstance(value, dict):
        return {k: _shorten(v) for k, v in value.items()}
    return value


class GenerationAPI:
    """Provider HTTP client used by one dispatch call"""

    DEFAULT_TIMEOUT = 60  # seconds per request
    DOWNLOAD_TIMEOUT = 120

    def __init__(self, session: requests.Session = None, timeout: float = None):
        """
        Args:
            session: Optional requests.Session (tests inject a stub here)
            timeout: Per-request timeout in seconds
        """
        self._session = session or requests.Session()
        self._timeout = timeout or self.DEFAULT_TIMEOUT

    def close(self):
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @staticmethod
    def _get_headers(provider: str, credential: str, content_type: str = "application/json") -> dict:
        """
        Build request headers with authentication

        KIE uses Authorization: Bearer, Gemini uses x-goog-api-key
        """
        headers = {
            "Content-Type": content_type,
            "Accept": "application/json",
        }
        if provider == Provider.GEMINI:
            headers["x-goog-api-key"] = credential
        else:
            headers["Authorization"] = f"Bearer {credential}"
        return headers

    def _handle_response(self, response: requests.Response) -> Any:
        """
        Parse a response body and raise classified errors for HTTP failures

        Returns:
            Parsed JSON body
        """
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            raise classify_http_error(response.status_code, body, response.text or "")

        if body is None:
            raise GenerationError(
                ErrorKind.TRANSPORT,
                f"Provider returned a non-JSON body (HTTP {response.status_code})",
                provider_message=(response.text or "")[:500] or None,
                status_code=response.status_code,
            )
        return body

    def _request(
        self,
        method: str,
        url: str,
        provider: str,
        credential: str,
        data: dict = None,
        params: dict = None,
        silent: bool = False,
        timeout: float = None,
    ) -> Any:
        """
        Make one authenticated HTTP request

        Args:
            method: HTTP method (GET, POST)
            url: Absolute URL
            provider: Provider name, selects the auth header
            credential: Provider credential
            data: Request body (JSON)
            params: Query parameters
            silent: If True, log at DEBUG only (for polling requests)
            timeout: Per-call timeout, capped at the client timeout

        Returns:
            Parsed JSON body

        Raises:
            GenerationError: transport, authentication or providerRejected
        """
        log = logger.debug if silent else logger.info
        log(f"[MediaDispatch] {method} {url}")
        if data and not silent:
            logger.info(f"[MediaDispatch] Request body: {_shorten(data)}")

        try:
            response = self._session.request(
                method=method,
                url=url,
                headers=self._get_headers(provider, credential),
                json=data,
                params=params,
                timeout=min(timeout, self._timeout) if timeout else self._timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"[MediaDispatch] {method} {url} failed: {e}")
            raise classify_transport(e) from e

        body = self._handle_response(response)
        log(f"[MediaDispatch] Response {response.status_code}: {_shorten(body)}")
        return body

    # ===== Submission =====
    def submit(self, built, credential: str) -> Submission:
        """
        Submit a built payload, exactly once

        Synchronous providers return the result body directly; asynchronous
        providers must return a task identifier.
        """
        body = self._request("POST", built.endpoint, built.provider, credential, data=built.body)

        if not built.is_async:
            return Submission(task_id=None, body=body)

        envelope_error = classify_envelope(body)
        if envelope_error is not None:
            logger.error(f"[MediaDispatch] Submission rejected: {envelope_error.message}")
            raise envelope_error

        task_id = self.extract_task_id(built.family, body)
        if not task_id:
            raise malformed_response(body, "Provider did not return a task identifier")

        logger.info(f"[MediaDispatch] Task submitted: {task_id}")
        return Submission(task_id=task_id, body=body)

    @staticmethod
    def extract_task_id(family: str, body: Any) -> Optional[str]:
        if not isinstance(body, dict):
            return None
        if family == PayloadFamily.GEMINI_VEO:
            return body.get("name")
        data = body.get("data")
        if isinstance(data, dict) and data.get("taskId"):
            return str(data["taskId"])
        if body.get("taskId"):
            return str(body["taskId"])
        return None

    # ===== Status =====
    def get_task_status(self, job, credential: str, timeout: float = None) -> Any:
        """
        Query the status endpoint for a submitted job

        Args:
            job: Job with family, provider, task_id and status_endpoint
            credential: Provider credential
            timeout: Optional per-call timeout (the poller bounds it by its deadline)

        Returns:
            Raw status payload
        """
        if job.family == PayloadFamily.GEMINI_VEO:
            url = f"{job.status_endpoint.rstrip('/')}/{job.task_id}"
            params = None
        else:
            url = job.status_endpoint
            params = {"taskId": job.task_id}
        return self._request("GET", url, job.provider, credential, params=params, silent=True, timeout=timeout)

    # ===== Utility Methods =====
    def fetch_inline_image(self, url: str) -> str:
        """
        Download an image and return it as a data: URL

        Used for providers that only accept inline image bytes. The image host
        is not the provider, so no credential is sent.
        """
        try:
            response = self._session.get(url, timeout=self.DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise GenerationError(
                ErrorKind.TRANSPORT,
                f"Failed to download reference image: {e}",
            ) from e

        content_type = response.headers.get("content-type") or "image/png"
        mime_type = content_type.split(";", 1)[0].strip() or "image/png"
        encoded = base64.b64encode(response.content).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"
