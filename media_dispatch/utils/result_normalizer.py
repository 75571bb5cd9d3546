"""
Media Dispatch - Result Normalizer
Extract a single artifact URL from any known provider response shape

Shapes are tried in a fixed order and the first match wins. A payload
that matches none of them is a malformedResponse error; an empty or
placeholder URL is never returned.
"""

from __future__ import annotations
import json
import logging
from typing import Any, Callable, List, Optional, Tuple

from .errors import malformed_response

logger = logging.getLogger("[MediaDispatch]")

# Bare string results (top level or list entries) must look like a URL
URL_PREFIXES = ("http://", "https://", "data:")


def _url(value: Any) -> Optional[str]:
    """Accept non-empty strings only"""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first_item(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _bare_url(value: Any) -> Optional[str]:
    """A bare string only counts when it looks like a URL"""
    url = _url(value)
    if url and url.startswith(URL_PREFIXES):
        return url
    return None


def _item_url(item: Any) -> Optional[str]:
    """List entry given either as a bare string or as {url: ...}"""
    if isinstance(item, dict):
        return _url(item.get("url"))
    return _bare_url(item)


def _parse_result_json(value: Any) -> Optional[dict]:
    """resultJson arrives as a JSON string from createTask, as an object elsewhere"""
    if isinstance(value, dict):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = json.loads(value)
        except ValueError:
            logger.warning(f"[MediaDispatch] Failed to parse resultJson: {value[:200]}")
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


# ===== Shape extractors (each takes one scope dict) =====
def _from_result_json(scope: dict) -> Optional[str]:
    result = _parse_result_json(scope.get("resultJson"))
    if not result:
        return None
    return (
        _url(_first_item(result.get("resultUrls")))
        or _url(result.get("resultImageUrl"))
        or _url(result.get("output_url"))
    )


def _from_response_result_urls(scope: dict) -> Optional[str]:
    response = scope.get("response")
    if not isinstance(response, dict):
        return None
    return _url(_first_item(response.get("resultUrls")))


def _from_images(scope: dict) -> Optional[str]:
    return _item_url(_first_item(scope.get("images")))


def _from_data_list(scope: dict) -> Optional[str]:
    return _item_url(_first_item(scope.get("data")))


def _from_output_url(scope: dict) -> Optional[str]:
    return _url(scope.get("output_url"))


def _from_result_url(scope: dict) -> Optional[str]:
    result = scope.get("result")
    if isinstance(result, dict):
        return _url(result.get("url"))
    return None


def _from_url(scope: dict) -> Optional[str]:
    return _url(scope.get("url"))


def _from_gemini_inline_data(scope: dict) -> Optional[str]:
    """Gemini generateContent returns the image inline; hand it back as a data URL"""
    candidate = _first_item(scope.get("candidates"))
    if not isinstance(candidate, dict):
        return None
    parts = (candidate.get("content") or {}).get("parts") or []
    for part in parts:
        if not isinstance(part, dict):
            continue
        inline = part.get("inlineData") or part.get("inline_data")
        if isinstance(inline, dict) and _url(inline.get("data")):
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return f"data:{mime_type};base64,{inline['data']}"
    return None


def _from_gemini_video_samples(scope: dict) -> Optional[str]:
    response = scope.get("response")
    if not isinstance(response, dict):
        return None
    samples = (response.get("generateVideoResponse") or {}).get("generatedSamples")
    sample = _first_item(samples)
    if not isinstance(sample, dict):
        return None
    return _url((sample.get("video") or {}).get("uri"))


ResultShape = Tuple[str, Callable[[dict], Optional[str]]]

RESULT_SHAPES: List[ResultShape] = [
    ("resultJson.resultUrls", _from_result_json),
    ("response.resultUrls", _from_response_result_urls),
    ("images[0].url", _from_images),
    ("data[0].url", _from_data_list),
    ("output_url", _from_output_url),
    ("result.url", _from_result_url),
    ("url", _from_url),
    ("candidates.inlineData", _from_gemini_inline_data),
    ("generatedSamples[0].video.uri", _from_gemini_video_samples),
]


def _scopes(payload: dict) -> List[dict]:
    """The payload itself, then the `data` object of a {code, msg, data} envelope"""
    scopes = [payload]
    data = payload.get("data")
    if isinstance(data, dict):
        scopes.append(data)
    return scopes


def match_shape(payload: Any) -> Optional[Tuple[str, str]]:
    """Return (shape name, url) for the first matching shape, or None"""
    if isinstance(payload, str):
        url = _bare_url(payload)
        return ("bare string", url) if url else None
    if not isinstance(payload, dict):
        return None

    scopes = _scopes(payload)
    for name, extract in RESULT_SHAPES:
        for scope in scopes:
            url = extract(scope)
            if url:
                return name, url
    return None


def describe_shape(payload: Any) -> Optional[str]:
    """Name of the shape the payload matches, for logging"""
    match = match_shape(payload)
    return match[0] if match else None


def extract_artifact_url(payload: Any) -> str:
    """
    Extract the artifact URL from a provider response

    Args:
        payload: Parsed JSON response (sync result or terminal poll payload),
                 or a bare string

    Returns:
        The artifact URL

    Raises:
        GenerationError(malformedResponse): no known shape matched
    """
    match = match_shape(payload)
    if match is None:
        keys = list(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
        logger.error(f"[MediaDispatch] No artifact URL in provider response: keys={keys}")
        raise malformed_response(payload)

    name, url = match
    logger.debug(f"[MediaDispatch] Artifact URL found via {name}")
    return url
