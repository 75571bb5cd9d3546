"""
Media Dispatch - Error taxonomy and classification

Every failure the dispatcher surfaces is a GenerationError whose `kind`
is one of the ErrorKind values. Submitter, poller and normalizer all go
through the helpers here instead of building error strings themselves,
so callers can branch on `kind` alone.
"""

from __future__ import annotations
import json
import logging
from typing import Any, Optional

import requests

logger = logging.getLogger("[MediaDispatch]")


# ===== Error Kinds =====
class ErrorKind:
    """Failure categories surfaced to the caller"""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    PROVIDER_REJECTED = "providerRejected"
    PROVIDER_FAILED = "providerFailed"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformedResponse"
    TRANSPORT = "transport"
    CANCELLED = "cancelled"

    ALL = (
        VALIDATION,
        AUTHENTICATION,
        PROVIDER_REJECTED,
        PROVIDER_FAILED,
        TIMEOUT,
        MALFORMED_RESPONSE,
        TRANSPORT,
        CANCELLED,
    )

    @classmethod
    def is_retryable(cls, kind: str) -> bool:
        """Check if the caller may safely retry the whole dispatch"""
        return kind in (cls.TRANSPORT, cls.TIMEOUT)

    @classmethod
    def is_user_error(cls, kind: str) -> bool:
        """Check if the request itself has to be fixed"""
        return kind == cls.VALIDATION


class GenerationError(Exception):
    """Typed dispatcher failure"""
    def __init__(
        self,
        kind: str,
        message: str,
        provider_code: str = None,
        provider_message: str = None,
        status_code: int = None,
        raw: Any = None,
    ):
        if kind not in ErrorKind.ALL:
            raise ValueError(f"Unknown error kind: {kind}")
        self.kind = kind
        self.message = message
        self.provider_code = provider_code
        self.provider_message = provider_message
        self.status_code = status_code
        self.raw = raw
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return ErrorKind.is_retryable(self.kind)

    @property
    def is_user_error(self) -> bool:
        return ErrorKind.is_user_error(self.kind)

    def __str__(self) -> str:
        if self.provider_message and self.provider_message not in self.message:
            return f"{self.kind}: {self.message} ({self.provider_message})"
        return f"{self.kind}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"GenerationError(kind={self.kind!r}, message={self.message!r}, "
            f"provider_code={self.provider_code!r}, status_code={self.status_code!r})"
        )


# ===== Provider message extraction =====
def provider_message_from(body: Any) -> Optional[str]:
    """
    Pull the provider's own error text out of a response body

    Checks, in order: msg, error.message (or error as string), message,
    failMsg, errorMessage, errMsg.
    """
    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, dict):
        return None

    if body.get("msg"):
        return str(body["msg"])

    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error

    for key in ("message", "failMsg", "errorMessage", "errMsg"):
        if body.get(key):
            return str(body[key])
    return None


def provider_code_from(body: Any) -> Optional[str]:
    """Pull the provider's own error code out of a response body"""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        code = error.get("status") or error.get("code")
        if code is not None:
            return str(code)
    for key in ("failCode", "errorCode", "code"):
        if body.get(key) is not None:
            return str(body[key])
    return None


# ===== Classification helpers =====
def validation_error(message: str) -> GenerationError:
    return GenerationError(ErrorKind.VALIDATION, message)


def classify_transport(exc: Exception) -> GenerationError:
    """Map a requests exception (or JSON decode failure) to a transport error"""
    if isinstance(exc, requests.exceptions.Timeout):
        message = "Request to provider timed out"
    elif isinstance(exc, requests.exceptions.ConnectionError):
        message = "Could not connect to provider"
    elif isinstance(exc, (ValueError, json.JSONDecodeError)):
        message = "Provider returned a non-JSON body"
    else:
        message = f"HTTP request failed: {exc}"
    return GenerationError(ErrorKind.TRANSPORT, message, provider_message=str(exc) or None)


def classify_http_error(status_code: int, body: Any = None, text: str = "") -> GenerationError:
    """
    Map a non-2xx HTTP response to the taxonomy

    Args:
        status_code: HTTP status
        body: Parsed JSON body, or None if the body was not JSON
        text: Raw body text (used when body is None)
    """
    provider_message = provider_message_from(body) if body is not None else (text[:500] or None)
    provider_code = provider_code_from(body) or str(status_code)

    if status_code in (401, 403):
        return GenerationError(
            ErrorKind.AUTHENTICATION,
            provider_message or "Provider rejected the credential",
            provider_code=provider_code,
            provider_message=provider_message,
            status_code=status_code,
            raw=body,
        )

    if body is None and status_code >= 500:
        # Gateway pages and similar; nothing the provider asserted about the job
        return GenerationError(
            ErrorKind.TRANSPORT,
            f"Provider unavailable (HTTP {status_code})",
            provider_code=provider_code,
            provider_message=provider_message,
            status_code=status_code,
        )

    return GenerationError(
        ErrorKind.PROVIDER_REJECTED,
        provider_message or f"Provider rejected the request (HTTP {status_code})",
        provider_code=provider_code,
        provider_message=provider_message,
        status_code=status_code,
        raw=body,
    )


def classify_envelope(payload: dict) -> Optional[GenerationError]:
    """
    Check a KIE-style `{code, msg, data}` envelope

    Returns None when the envelope reports success (code 200) or carries
    no code at all, otherwise the matching error.
    """
    if not isinstance(payload, dict) or "code" not in payload:
        return None
    try:
        code = int(payload.get("code"))
    except (TypeError, ValueError):
        return None
    if code == 200:
        return None

    provider_message = provider_message_from(payload)
    kind = ErrorKind.AUTHENTICATION if code in (401, 403) else ErrorKind.PROVIDER_REJECTED
    return GenerationError(
        kind,
        provider_message or f"Provider returned code {code}",
        provider_code=str(code),
        provider_message=provider_message,
        raw=payload,
    )


def classify_task_failure(snapshot) -> GenerationError:
    """Map a failed TaskSnapshot to providerFailed, keeping the provider text verbatim"""
    message = (
        f"Generation failed: {snapshot.fail_message}"
        if snapshot.fail_message
        else "Provider reported the task as failed"
    )
    return GenerationError(
        ErrorKind.PROVIDER_FAILED,
        message,
        provider_code=snapshot.fail_code,
        provider_message=snapshot.fail_message,
        raw=snapshot.raw,
    )


def _status_code_of(error: GenerationError) -> Optional[int]:
    """HTTP status, or the envelope code for errors reported inside a 200 body"""
    if error.status_code is not None:
        return error.status_code
    try:
        return int(error.provider_code)
    except (TypeError, ValueError):
        return None


def is_transient_status_error(error: GenerationError) -> bool:
    """
    Check if a failed status check may succeed on a later tick

    Transport failures (including non-JSON bodies), rate limiting (429) and
    server errors (5xx) are transient. Any other provider-reported error is
    definitive: the provider will keep giving the same answer.
    """
    if error.kind == ErrorKind.TRANSPORT:
        return True
    code = _status_code_of(error)
    if code is None:
        return False
    return code == 429 or code >= 500


def status_check_failure(task_id: str, error: GenerationError) -> GenerationError:
    """Map a definitive status check error to providerFailed"""
    provider_message = error.provider_message or error.message
    return GenerationError(
        ErrorKind.PROVIDER_FAILED,
        f"Status check for task {task_id} failed: {provider_message}",
        provider_code=error.provider_code,
        provider_message=provider_message,
        status_code=error.status_code,
        raw=error.raw,
    )


def timeout_error(task_id: str, elapsed: float, last_error: GenerationError = None) -> GenerationError:
    message = f"Task {task_id} did not finish within {elapsed:.0f}s"
    if last_error is None:
        return GenerationError(ErrorKind.TIMEOUT, message)
    return GenerationError(
        ErrorKind.TIMEOUT,
        f"{message}; last status error: {last_error.message}",
        provider_code=last_error.provider_code,
        provider_message=last_error.provider_message,
        status_code=last_error.status_code,
    )


def cancelled_error(task_id: str = None) -> GenerationError:
    if task_id:
        return GenerationError(ErrorKind.CANCELLED, f"Polling for task {task_id} was cancelled")
    return GenerationError(ErrorKind.CANCELLED, "Generation was cancelled")


def malformed_response(raw: Any, reason: str = "No artifact URL in provider response") -> GenerationError:
    return GenerationError(ErrorKind.MALFORMED_RESPONSE, reason, raw=raw)


# Finish reasons that mean the provider refused to produce an image
REFUSAL_FINISH_REASONS = ("SAFETY", "PROHIBITED_CONTENT", "IMAGE_SAFETY", "BLOCKLIST", "RECITATION")


def classify_sync_refusal(body: Any) -> Optional[GenerationError]:
    """
    Detect a synchronous generateContent response that was blocked

    Such responses are well-formed but carry no image, so they are
    reported as providerFailed rather than malformedResponse.
    """
    if not isinstance(body, dict):
        return None

    feedback = body.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        reason = str(feedback["blockReason"])
        return GenerationError(
            ErrorKind.PROVIDER_FAILED,
            f"Prompt was blocked: {reason}",
            provider_code=reason,
            provider_message=feedback.get("blockReasonMessage") or reason,
            raw=body,
        )

    candidates = body.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        reason = candidates[0].get("finishReason")
        if reason in REFUSAL_FINISH_REASONS:
            return GenerationError(
                ErrorKind.PROVIDER_FAILED,
                f"Generation stopped: {reason}",
                provider_code=str(reason),
                provider_message=candidates[0].get("finishMessage") or str(reason),
                raw=body,
            )
    return None
