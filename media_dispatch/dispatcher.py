"""
Media Dispatch - Generation Dispatcher

Entry point: take a GenerationRequest and a provider credential, return a
GenerationResult with a single artifact URL or raise a GenerationError.

Flow:
    registry.resolve -> build_payload -> submit -> [poll] -> extract_artifact_url

Each dispatch() call owns its own Job, poller and HTTP session, so callers
may run several dispatches concurrently from their own threads.
"""

from __future__ import annotations
import dataclasses
import logging
import threading
import time
from typing import Callable, List, Optional

from .dispatch_config import get_config
from .generation_types import GenerationRequest, GenerationResult, Job, JobState
from .utils.api_client import GenerationAPI
from .utils.errors import (
    ErrorKind,
    GenerationError,
    cancelled_error,
    classify_sync_refusal,
    validation_error,
)
from .utils.model_registry import MediaKind, ModelDescriptor, ModelRegistry, Provider, get_model_registry
from .utils.payload_builders import build_payload, validate_request
from .utils.poller import TaskPoller
from .utils.result_normalizer import describe_shape, extract_artifact_url

logger = logging.getLogger("[MediaDispatch]")

__all__ = [
    "GenerationDispatcher",
    "GenerationRequest",
    "GenerationResult",
    "Job",
    "JobState",
    "dispatch",
]


def _is_remote(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(("http://", "https://"))


class GenerationDispatcher:
    """
    Dispatches generation requests to the configured providers

    Args:
        registry: Model registry (defaults to the process-wide one)
        config: DispatchConfig (defaults to the singleton)
        session_factory: Callable returning a requests.Session-like object;
                         one session is created per dispatch call
        clock: Monotonic clock used by the poller
    """

    def __init__(
        self,
        registry: ModelRegistry = None,
        config=None,
        session_factory: Callable = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config if config is not None else get_config()
        self._registry = registry if registry is not None else get_model_registry()
        self._session_factory = session_factory
        self._clock = clock

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    def _create_client(self) -> GenerationAPI:
        session = self._session_factory() if self._session_factory else None
        return GenerationAPI(session=session, timeout=self._config.request_timeout)

    def dispatch(
        self,
        request: GenerationRequest,
        credential: str,
        *,
        poll_interval: float = None,
        max_wait: float = None,
        cancel_event: threading.Event = None,
        progress_callback: Callable = None,
    ) -> GenerationResult:
        """
        Run one generation from request to artifact URL

        Args:
            request: Validated generation request
            credential: Decrypted provider credential (never stored or logged)
            poll_interval: Seconds between status checks (default from config)
            max_wait: Maximum seconds to poll (default from config)
            cancel_event: Set by the caller to abandon polling
            progress_callback: Optional callback(task_id, state, progress)

        Returns:
            GenerationResult

        Raises:
            GenerationError: see ErrorKind for the possible kinds
        """
        if not credential or not credential.strip():
            raise GenerationError(ErrorKind.AUTHENTICATION, "No provider credential supplied")
        if request.kind not in (MediaKind.IMAGE, MediaKind.VIDEO):
            raise validation_error(f"Unknown generation kind: {request.kind!r}")

        descriptor = self._registry.resolve(request.model_key, request.kind)
        validate_request(request, descriptor)

        if cancel_event is not None and cancel_event.is_set():
            raise cancelled_error()

        started = self._clock()
        with self._create_client() as client:
            if descriptor.provider == Provider.GEMINI:
                request = self._inline_remote_images(client, request, descriptor)

            built = build_payload(request, descriptor)
            logger.info(
                f"[MediaDispatch] Dispatching {request.kind} request to {descriptor.key} "
                f"({descriptor.provider}/{built.model_id}, async={built.is_async})"
            )

            job = Job(
                provider=built.provider,
                model_id=built.model_id,
                family=built.family,
                payload=built.body,
                status_endpoint=built.status_endpoint,
            )

            submission = client.submit(built, credential.strip())
            job.task_id = submission.task_id
            job.last_response = submission.body

            if built.is_async:
                poller = TaskPoller(
                    client,
                    poll_interval=poll_interval or self._config.poll_interval,
                    max_wait=max_wait or self._config.max_wait,
                    clock=self._clock,
                    cancel_event=cancel_event,
                    progress_callback=progress_callback,
                )
                final_payload = poller.run(job, credential.strip())
            else:
                final_payload = submission.body
                job.transition(JobState.SUCCEEDED)

        artifact_url = self._extract(final_payload, built.is_async)
        elapsed = self._clock() - started
        logger.info(
            f"[MediaDispatch] {descriptor.key} finished in {elapsed:.1f}s "
            f"via {describe_shape(final_payload)}"
        )
        return GenerationResult(
            artifact_url=artifact_url,
            provider=descriptor.provider,
            model_id=built.model_id,
            model_key=descriptor.key,
            duration=built.duration,
            task_id=job.task_id,
            elapsed=elapsed,
        )

    @staticmethod
    def _extract(payload, is_async: bool) -> str:
        if not is_async:
            refusal = classify_sync_refusal(payload)
            if refusal is not None:
                logger.error(f"[MediaDispatch] {refusal.message}")
                raise refusal
        return extract_artifact_url(payload)

    def _inline_remote_images(
        self, client: GenerationAPI, request: GenerationRequest, descriptor: ModelDescriptor
    ) -> GenerationRequest:
        """
        Gemini only accepts inline image bytes: download http(s) references

        A reference that cannot be downloaded is skipped with a warning,
        unless the model cannot run without it.
        """
        if not descriptor.supports_image_input:
            return request

        references: List[str] = []
        last_error: Optional[GenerationError] = None
        for url in request.reference_image_urls:
            if not _is_remote(url):
                references.append(url)
                continue
            try:
                references.append(client.fetch_inline_image(url))
            except GenerationError as e:
                logger.warning(f"[MediaDispatch] Skipping reference image {url[:80]}: {e.message}")
                last_error = e

        if descriptor.requires_image_input and not references and last_error is not None:
            raise last_error

        tail_image = request.tail_image_url
        if descriptor.supports_tail_image and _is_remote(tail_image):
            try:
                tail_image = client.fetch_inline_image(tail_image)
            except GenerationError as e:
                logger.warning(f"[MediaDispatch] Skipping tail image {tail_image[:80]}: {e.message}")
                tail_image = None

        return dataclasses.replace(
            request,
            reference_image_urls=tuple(references),
            tail_image_url=tail_image,
        )


def dispatch(request: GenerationRequest, credential: str, **kwargs) -> GenerationResult:
    """Dispatch with the process-wide registry and configuration"""
    return GenerationDispatcher().dispatch(request, credential, **kwargs)
