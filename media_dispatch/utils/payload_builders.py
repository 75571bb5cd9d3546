"""
Media Dispatch - Payload Builders
Turn a GenerationRequest + ModelDescriptor into a provider-native request body

One builder per provider family, selected by descriptor.family. All of
them share the same validation and clamping rules (prepare_inputs):

- aspect ratio / resolution / duration outside the supported set fall back
  to the first supported value (never an error)
- the prompt is truncated to the model's ceiling
- too many reference images, a missing required image, or a request kind
  that does not match the model are validation errors, raised before any
  network call

Builders are pure: no I/O, same inputs give the same body.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import validation_error
from .model_registry import MediaKind, ModelDescriptor, PayloadFamily

logger = logging.getLogger("[MediaDispatch]")

# Request fields forwarded only where a model maps them to a wire name
OPTIONAL_FIELDS = ("negative_prompt", "seed", "steps", "guidance", "with_sound")

VEO_TEXT_TO_VIDEO = "TEXT_2_VIDEO"
VEO_FIRST_AND_LAST_FRAMES = "FIRST_AND_LAST_FRAMES_2_VIDEO"
VEO_REFERENCE = "REFERENCE_2_VIDEO"


@dataclass
class BuiltPayload:
    """Provider-native request ready for submission"""
    endpoint: str
    model_id: str
    body: dict
    family: str
    provider: str
    is_async: bool
    status_endpoint: str = ""
    duration: Optional[int] = None


@dataclass
class PreparedInputs:
    """Request values after validation and clamping"""
    prompt: str
    aspect_ratio: str
    resolution: Optional[str] = None
    duration: Optional[int] = None
    images: List[str] = field(default_factory=list)
    tail_image: Optional[str] = None
    optional: Dict[str, Any] = field(default_factory=dict)  # wire name -> value


# ===== Clamping =====
def clamp_choice(value: Any, supported: Tuple, default: Any = None, label: str = "value") -> Any:
    """
    Keep value if supported, otherwise fall back to `default` (when itself
    supported) or the first supported value
    """
    if not supported:
        return None
    if value is not None and value in supported:
        return value
    fallback = default if default in supported else supported[0]
    if value is not None:
        logger.info(f"[MediaDispatch] Unsupported {label} {value!r}, using {fallback!r}")
    return fallback


def clamp_duration(value: Any, durations: Tuple[int, ...]) -> Optional[int]:
    if not durations:
        return None
    try:
        value = int(value) if value is not None else None
    except (TypeError, ValueError):
        logger.info(f"[MediaDispatch] Unparseable duration {value!r}, using {durations[0]}")
        value = None
    return clamp_choice(value, durations, label="duration")


def clamp_range(value: float, bounds: Optional[Tuple[float, float]]) -> float:
    if bounds is None:
        return value
    low, high = bounds
    return min(high, max(low, value))


def truncate_prompt(prompt: str, max_length: int) -> str:
    if len(prompt) > max_length:
        logger.info(f"[MediaDispatch] Prompt truncated from {len(prompt)} to {max_length} chars")
        return prompt[:max_length]
    return prompt


# ===== Validation =====
def validate_request(request, descriptor: ModelDescriptor):
    """Raise GenerationError(validation) for requests that must not be submitted"""
    if request.kind not in (MediaKind.IMAGE, MediaKind.VIDEO):
        raise validation_error(f"Unknown generation kind: {request.kind!r}")

    if request.kind != descriptor.kind:
        raise validation_error(
            f"Model {descriptor.key} generates {descriptor.kind}, not {request.kind}"
        )

    if descriptor.accepts_prompt and not (request.prompt or "").strip():
        raise validation_error("Prompt must not be empty")

    if request.kind == MediaKind.IMAGE and (request.tail_image_url or request.storyboard_image_urls):
        raise validation_error("Tail images and storyboards are only valid for video generation")

    reference_count = len(request.reference_image_urls)
    if reference_count > descriptor.max_reference_images:
        raise validation_error(
            f"{descriptor.name} accepts at most {descriptor.max_reference_images} reference "
            f"image(s), got {reference_count}"
        )

    if descriptor.supports_storyboard and len(request.storyboard_image_urls) > descriptor.max_reference_images:
        raise validation_error(
            f"{descriptor.name} accepts at most {descriptor.max_reference_images} storyboard "
            f"frame(s), got {len(request.storyboard_image_urls)}"
        )

    if descriptor.requires_image_input and not _usable_images(request, descriptor):
        raise validation_error(f"{descriptor.name} requires a reference image")


def _usable_images(request, descriptor: ModelDescriptor) -> List[str]:
    # A tail image alone never satisfies the first-frame requirement
    images = list(request.reference_image_urls)
    if descriptor.supports_storyboard:
        images += list(request.storyboard_image_urls)
    return images


def prepare_inputs(request, descriptor: ModelDescriptor) -> PreparedInputs:
    """Validate the request and clamp it to the model's capabilities"""
    validate_request(request, descriptor)

    prompt = truncate_prompt((request.prompt or "").strip(), descriptor.max_prompt_length)
    aspect_ratio = clamp_choice(request.aspect_ratio, descriptor.aspect_ratios, label="aspect ratio")
    resolution = clamp_choice(
        request.resolution, descriptor.resolutions, descriptor.default_resolution, label="resolution"
    )
    duration = clamp_duration(request.duration, descriptor.durations)

    # Storyboard frames replace the reference list on storyboard models
    if descriptor.supports_storyboard and request.storyboard_image_urls:
        images = list(request.storyboard_image_urls)
    else:
        images = list(request.reference_image_urls)
        if request.storyboard_image_urls:
            logger.warning(f"[MediaDispatch] {descriptor.key} has no storyboard support, frames dropped")

    if images and not descriptor.supports_image_input:
        logger.warning(
            f"[MediaDispatch] {descriptor.key} is text-only, dropping {len(images)} reference image(s)"
        )
        images = []

    tail_image = request.tail_image_url
    if tail_image and not descriptor.supports_tail_image:
        logger.warning(f"[MediaDispatch] {descriptor.key} has no tail image support, tail image dropped")
        tail_image = None

    optional = {}
    for name in OPTIONAL_FIELDS:
        value = getattr(request, name, None)
        if value is None:
            continue
        wire_name = descriptor.input_fields.get(name)
        if wire_name is None:
            if name != "with_sound" or value:
                logger.debug(f"[MediaDispatch] {descriptor.key} ignores {name}")
            continue
        if name == "guidance":
            value = clamp_range(float(value), descriptor.guidance_range)
        optional[wire_name] = value

    return PreparedInputs(
        prompt=prompt,
        aspect_ratio=aspect_ratio,
        resolution=resolution,
        duration=duration,
        images=images,
        tail_image=tail_image,
        optional=optional,
    )


def split_data_url(url: str) -> Optional[Tuple[str, str]]:
    """'data:image/png;base64,AAAA' -> ('image/png', 'AAAA')"""
    if not url.startswith("data:") or ";base64," not in url:
        return None
    header, data = url.split(",", 1)
    mime_type = header[len("data:"):].split(";", 1)[0] or "image/png"
    return mime_type, data


def _inline_images(urls: List[str], descriptor: ModelDescriptor) -> List[Tuple[str, str]]:
    """Gemini only takes image bytes; http(s) URLs must be resolved by the caller first"""
    inline = []
    for url in urls:
        parts = split_data_url(url)
        if parts is None:
            logger.warning(f"[MediaDispatch] {descriptor.key} needs inline image data, skipping {url[:80]}")
            continue
        inline.append(parts)
    return inline


# ===== Family builders =====
def build_kie_task_payload(prepared: PreparedInputs, descriptor: ModelDescriptor) -> dict:
    """KIE createTask: { model, input: {...} }"""
    inputs: Dict[str, Any] = {}

    if descriptor.accepts_prompt:
        inputs["prompt"] = prepared.prompt

    if descriptor.aspect_ratio_field:
        ratio = prepared.aspect_ratio
        inputs[descriptor.aspect_ratio_field] = descriptor.aspect_ratio_aliases.get(ratio, ratio)

    if descriptor.resolution_field and prepared.resolution:
        inputs[descriptor.resolution_field] = prepared.resolution

    if descriptor.duration_field and prepared.duration is not None:
        # KIE expects durations as strings
        inputs[descriptor.duration_field] = str(prepared.duration)

    if prepared.images:
        if descriptor.image_field_is_list:
            inputs[descriptor.image_field] = list(prepared.images)
        else:
            inputs[descriptor.image_field] = prepared.images[0]

    if prepared.tail_image:
        inputs["tail_image_url"] = prepared.tail_image

    inputs.update(prepared.optional)
    for key, value in descriptor.extra_input.items():
        inputs.setdefault(key, value)

    return {
        "model": descriptor.model_id,
        "input": inputs,
    }


def veo_generation_type(descriptor: ModelDescriptor, frame_count: int) -> Optional[str]:
    """Pick the Veo generation type from the number of input frames"""
    if frame_count == 0:
        return VEO_TEXT_TO_VIDEO
    if descriptor.generation_type:
        return descriptor.generation_type
    if frame_count <= 2:
        return VEO_FIRST_AND_LAST_FRAMES
    if descriptor.model_id == "veo3_fast":
        return VEO_REFERENCE
    return VEO_FIRST_AND_LAST_FRAMES


def build_kie_veo_payload(prepared: PreparedInputs, descriptor: ModelDescriptor) -> dict:
    """KIE Veo: { prompt, model, aspectRatio, imageUrls?, generationType, ... }"""
    frames = list(prepared.images)
    if prepared.tail_image:
        # Tail image becomes the last frame
        frames = [frames[0], prepared.tail_image] if frames else [prepared.tail_image]

    body: Dict[str, Any] = {
        "prompt": prepared.prompt,
        "model": descriptor.model_id,
        "aspectRatio": prepared.aspect_ratio,
    }
    if frames:
        body["imageUrls"] = frames
    body["generationType"] = veo_generation_type(descriptor, len(frames))
    body.update(prepared.optional)
    body["enableTranslation"] = True
    return body


def build_gemini_image_payload(prepared: PreparedInputs, descriptor: ModelDescriptor) -> dict:
    """Gemini generateContent with image output"""
    parts: List[dict] = [{"text": prepared.prompt}]
    for mime_type, data in _inline_images(prepared.images, descriptor):
        parts.append({"inlineData": {"mimeType": mime_type, "data": data}})

    generation_config: Dict[str, Any] = {
        "responseModalities": ["IMAGE", "TEXT"],
        "imageConfig": {"aspectRatio": prepared.aspect_ratio},
    }
    generation_config.update(prepared.optional)

    return {
        "contents": [{"parts": parts}],
        "generationConfig": generation_config,
    }


def build_gemini_veo_payload(prepared: PreparedInputs, descriptor: ModelDescriptor) -> dict:
    """Gemini predictLongRunning: { instances: [...], parameters: {...} }"""
    instance: Dict[str, Any] = {"prompt": prepared.prompt}

    first_frames = _inline_images(prepared.images[:1], descriptor)
    if first_frames:
        mime_type, data = first_frames[0]
        instance["image"] = {"bytesBase64Encoded": data, "mimeType": mime_type}

    if prepared.tail_image:
        last_frames = _inline_images([prepared.tail_image], descriptor)
        if last_frames:
            mime_type, data = last_frames[0]
            instance["lastFrame"] = {"bytesBase64Encoded": data, "mimeType": mime_type}

    parameters: Dict[str, Any] = {"aspectRatio": prepared.aspect_ratio}
    if prepared.duration is not None:
        parameters["durationSeconds"] = prepared.duration
    if prepared.resolution:
        parameters["resolution"] = prepared.resolution
    parameters.update(prepared.optional)

    return {
        "instances": [instance],
        "parameters": parameters,
    }


PAYLOAD_BUILDERS: Dict[str, Callable[[PreparedInputs, ModelDescriptor], dict]] = {
    PayloadFamily.KIE_TASK: build_kie_task_payload,
    PayloadFamily.KIE_VEO: build_kie_veo_payload,
    PayloadFamily.GEMINI_IMAGE: build_gemini_image_payload,
    PayloadFamily.GEMINI_VEO: build_gemini_veo_payload,
}


def build_payload(request, descriptor: ModelDescriptor) -> BuiltPayload:
    """
    Build the provider request for a resolved descriptor

    Raises:
        GenerationError(validation): request cannot be submitted to this model
    """
    builder = PAYLOAD_BUILDERS.get(descriptor.family)
    if builder is None:
        raise ValueError(f"No payload builder for provider family: {descriptor.family}")

    prepared = prepare_inputs(request, descriptor)
    body = builder(prepared, descriptor)

    return BuiltPayload(
        endpoint=descriptor.endpoint,
        model_id=descriptor.model_id,
        body=body,
        family=descriptor.family,
        provider=descriptor.provider,
        is_async=descriptor.is_async,
        status_endpoint=descriptor.status_endpoint,
        duration=prepared.duration if descriptor.is_video else None,
    )
