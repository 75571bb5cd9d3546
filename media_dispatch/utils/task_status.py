"""
Media Dispatch - Task status reading

Providers report job progress in different encodings:
- KIE createTask: data.state = "waiting" | "success" | "fail"
- KIE Veo / older API versions: data.successFlag = 0 | 1 | 2 | 3
  (0 waiting, 1 success, 2 submission failed, 3 generation failed)
- Gemini long-running operations: done = true/false, error = {...}

read_task_snapshot() folds all of them into one TaskSnapshot.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .model_registry import PayloadFamily

logger = logging.getLogger("[MediaDispatch]")


class TaskState:
    """Normalized provider-side task states"""
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNKNOWN = "unknown"

    # Provider strings seen in the `state` field
    _WAITING_STATES = {"waiting", "queuing", "queued", "pending", "processing", "running", "generating"}
    _SUCCESS_STATES = {"success", "succeeded", "completed", "done"}
    _FAIL_STATES = {"fail", "failed", "error", "failure"}

    @classmethod
    def from_state_string(cls, state: Any) -> str:
        if not isinstance(state, str):
            return cls.UNKNOWN
        state = state.strip().lower()
        if state in cls._SUCCESS_STATES:
            return cls.SUCCEEDED
        if state in cls._FAIL_STATES:
            return cls.FAILED
        if state in cls._WAITING_STATES:
            return cls.WAITING
        return cls.UNKNOWN

    @classmethod
    def is_terminal(cls, state: str) -> bool:
        return state in (cls.SUCCEEDED, cls.FAILED)


# Legacy numeric encoding
SUCCESS_FLAG_STATES = {
    0: TaskState.WAITING,
    1: TaskState.SUCCEEDED,
    2: TaskState.FAILED,  # submission failed
    3: TaskState.FAILED,  # generation failed
}
SUCCESS_FLAG_CODES = {
    2: "SUBMISSION_FAILED",
    3: "GENERATION_FAILED",
}


@dataclass
class TaskSnapshot:
    """One observation of a provider-side task"""
    state: str
    raw: Any = None
    fail_code: Optional[str] = None
    fail_message: Optional[str] = None
    progress: Optional[float] = None


def _first(data: dict, *keys) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def state_from_success_flag(flag: Any) -> str:
    try:
        return SUCCESS_FLAG_STATES.get(int(flag), TaskState.UNKNOWN)
    except (TypeError, ValueError):
        return TaskState.UNKNOWN


def read_kie_status(payload: dict) -> TaskSnapshot:
    """
    Read a KIE recordInfo / record-info envelope

    The string `state` wins when it is recognized; otherwise the numeric
    `successFlag` decides. Both may appear depending on API version.
    """
    data = payload.get("data") if isinstance(payload.get("data"), dict) else None
    if data is None:
        return TaskSnapshot(state=TaskState.UNKNOWN, raw=payload)

    state = TaskState.from_state_string(data.get("state"))
    if state == TaskState.UNKNOWN and "successFlag" in data:
        state = state_from_success_flag(data.get("successFlag"))

    snapshot = TaskSnapshot(state=state, raw=payload, progress=data.get("progress"))
    if state == TaskState.FAILED:
        fail_code = _first(data, "failCode", "errorCode")
        if fail_code is None and "successFlag" in data:
            try:
                fail_code = SUCCESS_FLAG_CODES.get(int(data["successFlag"]))
            except (TypeError, ValueError):
                fail_code = None
        snapshot.fail_code = str(fail_code) if fail_code is not None else None
        fail_message = _first(data, "failMsg", "errorMessage", "errMsg")
        snapshot.fail_message = str(fail_message) if fail_message is not None else None
    return snapshot


def read_gemini_operation(payload: dict) -> TaskSnapshot:
    """Read a Gemini long-running operation"""
    if not payload.get("done"):
        return TaskSnapshot(state=TaskState.WAITING, raw=payload)

    error = payload.get("error")
    if error:
        if isinstance(error, dict):
            code = error.get("status") or error.get("code")
            message = error.get("message")
        else:
            code, message = None, str(error)
        return TaskSnapshot(
            state=TaskState.FAILED,
            raw=payload,
            fail_code=str(code) if code is not None else None,
            fail_message=message,
        )

    # Filtered generations finish without error but also without samples
    response = payload.get("response") or {}
    video_response = response.get("generateVideoResponse") or {}
    filtered = video_response.get("raiMediaFilteredReasons")
    if filtered and not video_response.get("generatedSamples"):
        reasons = filtered if isinstance(filtered, list) else [filtered]
        return TaskSnapshot(
            state=TaskState.FAILED,
            raw=payload,
            fail_code="RAI_FILTERED",
            fail_message="; ".join(str(r) for r in reasons),
        )
    return TaskSnapshot(state=TaskState.SUCCEEDED, raw=payload)


def read_task_snapshot(family: str, payload: Any) -> TaskSnapshot:
    """Dispatch to the status reader of a provider family"""
    if not isinstance(payload, dict):
        return TaskSnapshot(state=TaskState.UNKNOWN, raw=payload)
    if family == PayloadFamily.GEMINI_VEO:
        return read_gemini_operation(payload)
    if family in (PayloadFamily.KIE_TASK, PayloadFamily.KIE_VEO):
        return read_kie_status(payload)
    raise ValueError(f"No status reader for provider family: {family}")
