"""
Media Dispatch - Model Registry
Hardcoded model descriptors for the supported generation providers

Each descriptor carries the wire model id, the submission endpoint, the
provider family tag that selects a payload builder, and the capability
sets the payload builder clamps against.

Endpoints are stored relative to the provider base URL and resolved
once, when the registry is built from the configured base URLs.
"""

from __future__ import annotations
import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger("[MediaDispatch]")


class Provider:
    """Provider vendors"""
    KIE = "kie"
    GEMINI = "gemini"


class PayloadFamily:
    """Request/response contracts shared by several models"""
    KIE_TASK = "kie_task"          # POST /jobs/createTask {model, input}
    KIE_VEO = "kie_veo"            # POST /veo/generate
    GEMINI_IMAGE = "gemini_image"  # POST models/{id}:generateContent (sync)
    GEMINI_VEO = "gemini_veo"      # POST models/{id}:predictLongRunning


class MediaKind:
    IMAGE = "image"
    VIDEO = "video"


# KIE.ai endpoints (relative to the KIE base URL)
KIE_CREATE_TASK = "/jobs/createTask"
KIE_RECORD_INFO = "/jobs/recordInfo"
KIE_VEO_GENERATE = "/veo/generate"
KIE_VEO_RECORD_INFO = "/veo/record-info"


@dataclass(frozen=True)
class ModelDescriptor:
    """Static description of one model's capabilities and endpoint"""
    key: str
    name: str
    kind: str  # image, video
    provider: str
    family: str
    model_id: str  # identifier sent to the provider
    endpoint: str
    aspect_ratios: Tuple[str, ...]
    status_endpoint: str = ""  # empty for synchronous providers
    is_async: bool = True
    resolutions: Tuple[str, ...] = ()
    default_resolution: Optional[str] = None
    durations: Tuple[int, ...] = ()
    max_reference_images: int = 1
    supports_image_input: bool = True
    requires_image_input: bool = False
    supports_storyboard: bool = False
    supports_tail_image: bool = False
    supports_sound: bool = False
    accepts_prompt: bool = True
    max_prompt_length: int = 5000
    # Wire shape hints for the payload builder
    image_field: str = "image_urls"
    image_field_is_list: bool = True
    aspect_ratio_field: Optional[str] = "aspect_ratio"
    aspect_ratio_aliases: Dict[str, str] = field(default_factory=dict)
    resolution_field: Optional[str] = "resolution"
    duration_field: Optional[str] = "duration"
    input_fields: Dict[str, str] = field(default_factory=dict)  # request field -> wire field
    guidance_range: Optional[Tuple[float, float]] = None
    generation_type: Optional[str] = None
    extra_input: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_video(self) -> bool:
        return self.kind == MediaKind.VIDEO


# ===== Shared capability sets =====
ASPECT_RATIOS_FULL = ("1:1", "4:3", "3:4", "16:9", "9:16", "2:3", "3:2", "4:5", "5:4", "21:9")
ASPECT_RATIOS_SEEDREAM = ("1:1", "4:3", "3:4", "16:9", "9:16", "2:3", "3:2", "21:9")
ASPECT_RATIOS_FLUX = ("1:1", "4:3", "3:4", "16:9", "9:16", "2:3", "3:2")
ASPECT_RATIOS_GEMINI = ("1:1", "4:3", "3:4", "16:9", "9:16")

VIDEO_ASPECT_RATIOS_KLING = ("9:16", "16:9", "1:1")
VIDEO_ASPECT_RATIOS_WIDE_TALL = ("9:16", "16:9")
SORA_ORIENTATION = {"16:9": "landscape", "9:16": "portrait"}


# ===== Image Models (KIE.ai createTask) =====
KIE_IMAGE_MODELS = [
    ModelDescriptor(
        key="nano-banana-pro",
        name="Nano Banana Pro",
        kind=MediaKind.IMAGE,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="nano-banana-pro",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=ASPECT_RATIOS_FULL,
        resolutions=("1K", "2K", "4K"),
        default_resolution="2K",
        max_reference_images=8,
        image_field="image_input",
        max_prompt_length=10000,
        extra_input={"output_format": "png"},
    ),
    ModelDescriptor(
        key="nano-banana",
        name="Nano Banana",
        kind=MediaKind.IMAGE,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="google/nano-banana",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=ASPECT_RATIOS_FULL,
        aspect_ratio_field="image_size",
        resolution_field=None,
        image_field="image_input",
        max_prompt_length=5000,
        extra_input={"output_format": "png"},
    ),
    ModelDescriptor(
        key="seedream-4-5-text-to-image",
        name="Seedream 4.5",
        kind=MediaKind.IMAGE,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="seedream/4.5-text-to-image",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=ASPECT_RATIOS_SEEDREAM,
        resolutions=("basic", "high"),
        resolution_field="quality",
        supports_image_input=False,
        max_prompt_length=3000,
    ),
    ModelDescriptor(
        key="seedream-4-5-edit",
        name="Seedream 4.5 Edit",
        kind=MediaKind.IMAGE,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="seedream/4.5-edit",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=ASPECT_RATIOS_SEEDREAM,
        resolutions=("basic", "high"),
        resolution_field="quality",
        max_reference_images=10,
        requires_image_input=True,
        max_prompt_length=3000,
    ),
    ModelDescriptor(
        key="flux-2-pro-text-to-image",
        name="Flux 2 Pro",
        kind=MediaKind.IMAGE,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="flux-2/pro-text-to-image",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=ASPECT_RATIOS_FLUX,
        resolutions=("1K", "2K"),
        supports_image_input=False,
        max_prompt_length=5000,
    ),
    ModelDescriptor(
        key="flux-2-pro-image-to-image",
        name="Flux 2 Pro I2I",
        kind=MediaKind.IMAGE,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="flux-2/pro-image-to-image",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=ASPECT_RATIOS_FLUX,
        resolutions=("1K", "2K"),
        requires_image_input=True,
        image_field="image_url",
        image_field_is_list=False,
        max_prompt_length=5000,
    ),
]

# ===== Image Models (Gemini direct, synchronous) =====
GEMINI_IMAGE_MODELS = [
    ModelDescriptor(
        key="gemini-2.5-flash-image",
        name="Gemini 2.5 Flash Image",
        kind=MediaKind.IMAGE,
        provider=Provider.GEMINI,
        family=PayloadFamily.GEMINI_IMAGE,
        model_id="gemini-2.5-flash-image",
        endpoint="/models/gemini-2.5-flash-image:generateContent",
        is_async=False,
        aspect_ratios=ASPECT_RATIOS_GEMINI,
        max_reference_images=3,
        aspect_ratio_field=None,
        resolution_field=None,
        duration_field=None,
        input_fields={"seed": "seed"},
        max_prompt_length=8000,
    ),
    ModelDescriptor(
        key="gemini-3-pro-image-preview",
        name="Gemini 3 Pro Image Preview",
        kind=MediaKind.IMAGE,
        provider=Provider.GEMINI,
        family=PayloadFamily.GEMINI_IMAGE,
        model_id="gemini-3-pro-image-preview",
        endpoint="/models/gemini-3-pro-image-preview:generateContent",
        is_async=False,
        aspect_ratios=ASPECT_RATIOS_GEMINI,
        max_reference_images=3,
        aspect_ratio_field=None,
        resolution_field=None,
        duration_field=None,
        input_fields={"seed": "seed"},
        max_prompt_length=8000,
    ),
]

# ===== Video Models (KIE.ai createTask) =====
KIE_VIDEO_MODELS = [
    ModelDescriptor(
        key="kling-2-6-text-to-video",
        name="Kling 2.6 Text-to-Video",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="kling-2.6/text-to-video",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_KLING,
        durations=(5, 10),
        supports_image_input=False,
        supports_sound=True,
        resolution_field=None,
        input_fields={"with_sound": "sound"},
        max_prompt_length=2500,
    ),
    ModelDescriptor(
        key="kling-2-6-image-to-video",
        name="Kling 2.6 Image-to-Video",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="kling-2.6/image-to-video",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_KLING,
        aspect_ratio_field=None,  # follows the input image
        durations=(5, 10),
        requires_image_input=True,
        supports_sound=True,
        resolution_field=None,
        input_fields={"with_sound": "sound"},
        max_prompt_length=2500,
    ),
    ModelDescriptor(
        key="kling-2-5-turbo",
        name="Kling 2.5 Turbo",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="kling/v2-5-turbo-image-to-video-pro",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_KLING,
        aspect_ratio_field=None,
        durations=(5, 10),
        requires_image_input=True,
        supports_tail_image=True,
        image_field="image_url",
        image_field_is_list=False,
        resolution_field=None,
        input_fields={"negative_prompt": "negative_prompt", "guidance": "cfg_scale"},
        guidance_range=(0.0, 1.0),
        max_prompt_length=2500,
    ),
    ModelDescriptor(
        key="wan-2-5-image-to-video",
        name="Wan 2.5 Image-to-Video",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="wan/2-5-image-to-video",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        aspect_ratio_field=None,
        resolutions=("1080p", "720p"),
        durations=(5, 10),
        requires_image_input=True,
        image_field="image_url",
        image_field_is_list=False,
        input_fields={"negative_prompt": "negative_prompt", "seed": "seed"},
        extra_input={"enable_prompt_expansion": True},
        max_prompt_length=3000,
    ),
    ModelDescriptor(
        key="sora-2-image-to-video",
        name="Sora 2 Image-to-Video",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="sora-2-image-to-video",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        aspect_ratio_aliases=SORA_ORIENTATION,
        durations=(10, 15),
        requires_image_input=True,
        resolution_field=None,
        duration_field="n_frames",
        extra_input={"remove_watermark": True},
        max_prompt_length=5000,
    ),
    ModelDescriptor(
        key="sora-2-pro-storyboard",
        name="Sora 2 Pro Storyboard",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="sora-2-pro-storyboard",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        aspect_ratio_aliases=SORA_ORIENTATION,
        durations=(10, 15, 25),
        max_reference_images=10,
        requires_image_input=True,
        supports_storyboard=True,
        accepts_prompt=False,
        resolution_field=None,
        duration_field="n_frames",
        max_prompt_length=5000,
    ),
    ModelDescriptor(
        key="seedance-v1-pro-fast",
        name="Seedance V1 Pro Fast",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="bytedance/v1-pro-fast-image-to-video",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        aspect_ratio_field=None,
        resolutions=("1080p", "720p"),
        durations=(5, 10),
        requires_image_input=True,
        image_field="image_url",
        image_field_is_list=False,
        max_prompt_length=10000,
    ),
    ModelDescriptor(
        key="grok-imagine-image-to-video",
        name="Grok Imagine I2V",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_TASK,
        model_id="grok-imagine/image-to-video",
        endpoint=KIE_CREATE_TASK,
        status_endpoint=KIE_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        aspect_ratio_field=None,
        durations=(5,),
        requires_image_input=True,
        resolution_field=None,
        duration_field=None,
        extra_input={"mode": "normal"},  # fun, normal, spicy
        max_prompt_length=2000,
    ),
]

# ===== Video Models (Veo 3.1 via KIE.ai) =====
KIE_VEO_MODELS = [
    ModelDescriptor(
        key="veo-3-1-quality",
        name="Veo 3.1 Quality",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_VEO,
        model_id="veo3",
        endpoint=KIE_VEO_GENERATE,
        status_endpoint=KIE_VEO_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        durations=(8,),
        max_reference_images=2,
        supports_tail_image=True,
        supports_sound=True,
        input_fields={"seed": "seeds"},
        max_prompt_length=5000,
    ),
    ModelDescriptor(
        key="veo-3-1-fast",
        name="Veo 3.1 Fast",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_VEO,
        model_id="veo3_fast",
        endpoint=KIE_VEO_GENERATE,
        status_endpoint=KIE_VEO_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        durations=(8,),
        max_reference_images=3,
        supports_tail_image=True,
        supports_sound=True,
        input_fields={"seed": "seeds"},
        max_prompt_length=5000,
    ),
    ModelDescriptor(
        key="veo-3-1-quality-i2v",
        name="Veo 3.1 Quality I2V",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_VEO,
        model_id="veo3",
        endpoint=KIE_VEO_GENERATE,
        status_endpoint=KIE_VEO_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        durations=(8,),
        max_reference_images=2,
        requires_image_input=True,
        supports_tail_image=True,
        supports_sound=True,
        generation_type="FIRST_AND_LAST_FRAMES_2_VIDEO",
        input_fields={"seed": "seeds"},
        max_prompt_length=5000,
    ),
    ModelDescriptor(
        key="veo-3-1-fast-i2v",
        name="Veo 3.1 Fast I2V",
        kind=MediaKind.VIDEO,
        provider=Provider.KIE,
        family=PayloadFamily.KIE_VEO,
        model_id="veo3_fast",
        endpoint=KIE_VEO_GENERATE,
        status_endpoint=KIE_VEO_RECORD_INFO,
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        durations=(8,),
        max_reference_images=2,
        requires_image_input=True,
        supports_tail_image=True,
        supports_sound=True,
        generation_type="FIRST_AND_LAST_FRAMES_2_VIDEO",
        input_fields={"seed": "seeds"},
        max_prompt_length=5000,
    ),
]

# ===== Video Models (Gemini direct Veo, long-running operations) =====
GEMINI_VEO_MODELS = [
    ModelDescriptor(
        key="veo-3.1-generate-preview",
        name="Veo 3.1 (Gemini Direct)",
        kind=MediaKind.VIDEO,
        provider=Provider.GEMINI,
        family=PayloadFamily.GEMINI_VEO,
        model_id="veo-3.1-generate-preview",
        endpoint="/models/veo-3.1-generate-preview:predictLongRunning",
        status_endpoint="",  # operation name is appended to the base URL
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        resolutions=("720p", "1080p"),
        durations=(8,),
        supports_sound=True,
        input_fields={"negative_prompt": "negativePrompt", "seed": "seed"},
        max_prompt_length=5000,
    ),
    ModelDescriptor(
        key="veo-3.1-i2v-preview",
        name="Veo 3.1 I2V (Gemini Direct)",
        kind=MediaKind.VIDEO,
        provider=Provider.GEMINI,
        family=PayloadFamily.GEMINI_VEO,
        model_id="veo-3.1-generate-preview",
        endpoint="/models/veo-3.1-generate-preview:predictLongRunning",
        status_endpoint="",
        aspect_ratios=VIDEO_ASPECT_RATIOS_WIDE_TALL,
        resolutions=("720p", "1080p"),
        durations=(8,),
        requires_image_input=True,
        supports_tail_image=True,
        supports_sound=True,
        input_fields={"negative_prompt": "negativePrompt", "seed": "seed"},
        max_prompt_length=5000,
    ),
]

# Alternate keys accepted by lookup()
MODEL_ALIASES = {
    "kling-2-6-t2v": "kling-2-6-text-to-video",
    "kling-2-6-i2v": "kling-2-6-image-to-video",
    "wan-2-5": "wan-2-5-image-to-video",
    "sora-2-i2v": "sora-2-image-to-video",
    "sora-2-storyboard": "sora-2-pro-storyboard",
    "seedance-v1-pro": "seedance-v1-pro-fast",
    "grok-i2v": "grok-imagine-image-to-video",
}

ALL_MODELS = (
    KIE_IMAGE_MODELS +
    GEMINI_IMAGE_MODELS +
    KIE_VIDEO_MODELS +
    KIE_VEO_MODELS +
    GEMINI_VEO_MODELS
)


# ===== Capability queries =====
class Feature:
    ASPECT_RATIO = "aspect_ratio"
    RESOLUTION = "resolution"
    DURATION = "duration"
    REFERENCE_IMAGES = "reference_images"
    IMAGE_INPUT = "image_input"
    TAIL_IMAGE = "tail_image"
    STORYBOARD = "storyboard"
    SOUND = "sound"


def supports_feature(descriptor: ModelDescriptor, feature: str, value: Any = True) -> bool:
    """
    Answer a single capability question about a model

    Examples:
        supports_feature(d, "aspect_ratio", "21:9")
        supports_feature(d, "reference_images", 2)
        supports_feature(d, "tail_image")
    """
    if feature == Feature.ASPECT_RATIO:
        return value in descriptor.aspect_ratios
    if feature == Feature.RESOLUTION:
        return value in descriptor.resolutions
    if feature == Feature.DURATION:
        try:
            return int(value) in descriptor.durations
        except (TypeError, ValueError):
            return False
    if feature == Feature.REFERENCE_IMAGES:
        count = int(value)
        if count == 0:
            return True
        return descriptor.supports_image_input and count <= descriptor.max_reference_images
    if feature == Feature.IMAGE_INPUT:
        return descriptor.supports_image_input == bool(value)
    if feature == Feature.TAIL_IMAGE:
        return descriptor.supports_tail_image == bool(value)
    if feature == Feature.STORYBOARD:
        return descriptor.supports_storyboard == bool(value)
    if feature == Feature.SOUND:
        return descriptor.supports_sound == bool(value)
    raise ValueError(f"Unknown feature: {feature}")


def supports_all(descriptor: ModelDescriptor, **features) -> bool:
    """e.g. supports_all(d, reference_images=2, resolution="2K")"""
    return all(supports_feature(descriptor, name, value) for name, value in features.items())


def _absolute(base_url: str, path: str) -> str:
    if not path:
        return base_url
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{base_url.rstrip('/')}{path}"


# ===== Registry Class =====
class ModelRegistry:
    """Read-only registry of model descriptors with absolute endpoints"""

    def __init__(
        self,
        base_urls: Dict[str, str],
        default_image_model: str,
        default_video_model: str,
        models: List[ModelDescriptor] = None,
        aliases: Dict[str, str] = None,
    ):
        self._all_models: Dict[str, ModelDescriptor] = {}
        self._aliases = dict(MODEL_ALIASES if aliases is None else aliases)

        for model in (ALL_MODELS if models is None else models):
            base_url = base_urls[model.provider]
            self._all_models[model.key] = dataclasses.replace(
                model,
                endpoint=_absolute(base_url, model.endpoint),
                status_endpoint=_absolute(base_url, model.status_endpoint) if model.is_async else "",
            )

        self._defaults = {
            MediaKind.IMAGE: default_image_model,
            MediaKind.VIDEO: default_video_model,
        }
        for kind, key in self._defaults.items():
            default = self.lookup(key)
            if default is None or default.kind != kind:
                raise ValueError(f"Default {kind} model is not a registered {kind} model: {key}")

    def lookup(self, model_key: str) -> Optional[ModelDescriptor]:
        """Get model descriptor by key or alias"""
        if model_key in self._all_models:
            return self._all_models[model_key]
        return self._all_models.get(self._aliases.get(model_key, ""))

    def default_for(self, kind: str) -> ModelDescriptor:
        """Get the configured default descriptor for a media kind"""
        if kind not in self._defaults:
            raise ValueError(f"Unknown media kind: {kind}")
        return self._all_models[self._aliases.get(self._defaults[kind], self._defaults[kind])]

    def resolve(self, model_key: str, kind: str) -> ModelDescriptor:
        """
        Resolve a model key, substituting the default model for unknown keys

        The substitution is logged but never raised: unknown keys from older
        clients keep working with the default model.
        """
        descriptor = self.lookup(model_key)
        if descriptor is not None:
            return descriptor

        fallback = self.default_for(kind)
        logger.warning(
            f"[MediaDispatch] Unknown model key {model_key!r}, substituting default {kind} model {fallback.key!r}"
        )
        return fallback

    def get_models_by_kind(self, kind: str) -> List[ModelDescriptor]:
        return [m for m in self._all_models.values() if m.kind == kind]

    def get_models_by_family(self, family: str) -> List[ModelDescriptor]:
        return [m for m in self._all_models.values() if m.family == family]

    def get_model_keys(self, kind: str = None) -> List[str]:
        """Get list of model keys, optionally filtered by kind"""
        if kind:
            return [m.key for m in self.get_models_by_kind(kind)]
        return list(self._all_models.keys())

    def __contains__(self, model_key: str) -> bool:
        return self.lookup(model_key) is not None

    def __len__(self) -> int:
        return len(self._all_models)


# Module-level accessor
_registry: Optional[ModelRegistry] = None
_REGISTRY_LOCK = threading.Lock()


def get_model_registry() -> ModelRegistry:
    """Get the process-wide registry, built from configuration on first access"""
    global _registry
    if _registry is not None:
        return _registry
    with _REGISTRY_LOCK:
        if _registry is None:
            from ..dispatch_config import get_config
            config = get_config()
            _registry = ModelRegistry(
                base_urls=config.base_urls(),
                default_image_model=config.default_image_model,
                default_video_model=config.default_video_model,
            )
            logger.info(f"[MediaDispatch] Model registry loaded with {len(_registry)} models")
    return _registry
