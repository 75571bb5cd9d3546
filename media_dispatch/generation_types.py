"""
Media Dispatch - Request, result and job types
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


class JobState:
    """Lifecycle of one dispatch call"""
    SUBMITTED = "submitted"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"

    TERMINAL = (SUCCEEDED, FAILED, TIMED_OUT, CANCELLED)

    @classmethod
    def is_terminal(cls, state: str) -> bool:
        return state in cls.TERMINAL


def _url_tuple(urls) -> Tuple[str, ...]:
    """A bare string is one URL, not a sequence of characters"""
    if not urls:
        return ()
    if isinstance(urls, str):
        return (urls,)
    return tuple(urls)


@dataclass(frozen=True)
class GenerationRequest:
    """
    Normalized generation request, built and validated by the caller

    reference_image_urls, tail_image_url and storyboard_image_urls may be
    http(s) URLs or data: URLs.
    """
    kind: str  # image, video
    prompt: str
    model_key: str
    aspect_ratio: str = "1:1"
    negative_prompt: Optional[str] = None
    resolution: Optional[str] = None
    duration: Optional[int] = None
    seed: Optional[int] = None
    steps: Optional[int] = None
    guidance: Optional[float] = None
    reference_image_urls: Tuple[str, ...] = ()
    tail_image_url: Optional[str] = None  # video only
    storyboard_image_urls: Tuple[str, ...] = ()  # video only
    with_sound: bool = False  # video only

    def __post_init__(self):
        # Accept lists (or a single URL) from callers but keep the request immutable
        object.__setattr__(self, "reference_image_urls", _url_tuple(self.reference_image_urls))
        object.__setattr__(self, "storyboard_image_urls", _url_tuple(self.storyboard_image_urls))


@dataclass
class GenerationResult:
    """Successful dispatch outcome"""
    artifact_url: str
    provider: str
    model_id: str
    model_key: str
    duration: Optional[int] = None  # video only
    task_id: Optional[str] = None
    elapsed: float = 0.0


@dataclass
class Job:
    """
    State of one submitted generation, owned by a single dispatch call

    last_response is kept for diagnostics only.
    """
    provider: str
    model_id: str
    family: str
    payload: dict
    status_endpoint: str = ""
    task_id: Optional[str] = None
    state: str = JobState.SUBMITTED
    elapsed: float = 0.0
    polls: int = 0
    last_response: Any = field(default=None, repr=False)

    def transition(self, state: str):
        if JobState.is_terminal(self.state):
            raise RuntimeError(f"Job already finished in state {self.state}")
        self.state = state
