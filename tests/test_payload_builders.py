"""Tests for payload building, clamping and validation."""

from __future__ import annotations

import dataclasses
import logging

import pytest

from media_dispatch.generation_types import GenerationRequest
from media_dispatch.utils.errors import ErrorKind, GenerationError
from media_dispatch.utils.model_registry import ModelRegistry
from media_dispatch.utils.payload_builders import (
    VEO_FIRST_AND_LAST_FRAMES,
    VEO_REFERENCE,
    VEO_TEXT_TO_VIDEO,
    build_payload,
    clamp_choice,
    clamp_duration,
    split_data_url,
)

IMG_A = "https://cdn.example/a.png"
IMG_B = "https://cdn.example/b.png"
IMG_C = "https://cdn.example/c.png"


def image_request(model_key: str, **overrides) -> GenerationRequest:
    fields = {"kind": "image", "prompt": "a red fox in snow", "model_key": model_key}
    fields.update(overrides)
    return GenerationRequest(**fields)


def video_request(model_key: str, **overrides) -> GenerationRequest:
    fields = {"kind": "video", "prompt": "waves at sunset", "model_key": model_key, "aspect_ratio": "16:9"}
    fields.update(overrides)
    return GenerationRequest(**fields)


class TestClamping:
    """Tests for the shared clamping helpers."""

    def test_supported_value_kept(self) -> None:
        assert clamp_choice("16:9", ("1:1", "16:9")) == "16:9"

    def test_unsupported_value_falls_back_to_first(self) -> None:
        assert clamp_choice("7:3", ("1:1", "16:9")) == "1:1"

    def test_default_preferred_over_first(self) -> None:
        assert clamp_choice("8K", ("1K", "2K", "4K"), default="2K") == "2K"
        assert clamp_choice(None, ("1K", "2K", "4K"), default="2K") == "2K"

    def test_empty_supported_set(self) -> None:
        assert clamp_choice("1:1", ()) is None

    def test_duration(self) -> None:
        assert clamp_duration("10", (5, 10)) == 10
        assert clamp_duration(7, (5, 10)) == 5
        assert clamp_duration("soon", (5, 10)) == 5
        assert clamp_duration(5, ()) is None

    def test_split_data_url(self) -> None:
        assert split_data_url("data:image/jpeg;base64,QUJD") == ("image/jpeg", "QUJD")
        assert split_data_url(IMG_A) is None


class TestKieTaskPayload:
    """Tests for KIE createTask bodies."""

    def test_nano_banana_pro_keeps_wide_ratio(self, registry: ModelRegistry) -> None:
        built = build_payload(image_request("nano-banana-pro", aspect_ratio="21:9"), registry.lookup("nano-banana-pro"))

        assert built.endpoint == "https://kie.test/api/v1/jobs/createTask"
        assert built.is_async
        assert built.duration is None
        assert built.body == {
            "model": "nano-banana-pro",
            "input": {
                "prompt": "a red fox in snow",
                "aspect_ratio": "21:9",
                "resolution": "2K",
                "output_format": "png",
            },
        }

    def test_unsupported_ratio_is_clamped(self, registry: ModelRegistry) -> None:
        descriptor = registry.lookup("flux-2-pro-text-to-image")
        built = build_payload(image_request("flux-2-pro-text-to-image", aspect_ratio="21:9"), descriptor)

        assert built.body["input"]["aspect_ratio"] in descriptor.aspect_ratios
        assert built.body["input"]["aspect_ratio"] == "1:1"

    def test_reference_list_field(self, registry: ModelRegistry) -> None:
        request = image_request("nano-banana-pro", reference_image_urls=[IMG_A, IMG_B])
        built = build_payload(request, registry.lookup("nano-banana-pro"))
        assert built.body["input"]["image_input"] == [IMG_A, IMG_B]

    def test_single_image_field(self, registry: ModelRegistry) -> None:
        request = image_request("flux-2-pro-image-to-image", reference_image_urls=[IMG_A])
        built = build_payload(request, registry.lookup("flux-2-pro-image-to-image"))
        assert built.body["input"]["image_url"] == IMG_A

    def test_alternate_ratio_and_quality_fields(self, registry: ModelRegistry) -> None:
        nano = build_payload(image_request("nano-banana", aspect_ratio="3:2"), registry.lookup("nano-banana"))
        seedream = build_payload(
            image_request("seedream-4-5-text-to-image", resolution="high"),
            registry.lookup("seedream-4-5-text-to-image"),
        )

        assert nano.body["input"]["image_size"] == "3:2"
        assert "aspect_ratio" not in nano.body["input"]
        assert seedream.body["input"]["quality"] == "high"

    def test_text_only_model_drops_references(
        self, registry: ModelRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="[MediaDispatch]"):
            built = build_payload(
                image_request("seedream-4-5-text-to-image", reference_image_urls=[IMG_A]),
                registry.lookup("seedream-4-5-text-to-image"),
            )

        assert "image_urls" not in built.body["input"]
        assert "text-only" in caplog.text

    def test_nano_banana_sends_reference(self, registry: ModelRegistry) -> None:
        built = build_payload(
            image_request("nano-banana", reference_image_urls=[IMG_A]), registry.lookup("nano-banana")
        )
        assert built.body["input"]["image_input"] == [IMG_A]

    def test_prompt_truncated(self, registry: ModelRegistry) -> None:
        descriptor = registry.lookup("seedream-4-5-text-to-image")
        built = build_payload(image_request("seedream-4-5-text-to-image", prompt="x" * 5000), descriptor)
        assert len(built.body["input"]["prompt"]) == descriptor.max_prompt_length

    def test_kling_text_to_video_with_sound(self, registry: ModelRegistry) -> None:
        request = video_request("kling-2-6-text-to-video", duration=7, with_sound=True)
        built = build_payload(request, registry.lookup("kling-2-6-text-to-video"))

        assert built.body["model"] == "kling-2.6/text-to-video"
        assert built.body["input"]["duration"] == "5"
        assert built.body["input"]["sound"] is True
        assert built.duration == 5

    def test_kling_turbo_tail_and_guidance(self, registry: ModelRegistry) -> None:
        request = video_request(
            "kling-2-5-turbo",
            reference_image_urls=[IMG_A],
            tail_image_url=IMG_B,
            negative_prompt="blurry",
            guidance=5.0,
        )
        inputs = build_payload(request, registry.lookup("kling-2-5-turbo")).body["input"]

        assert inputs["image_url"] == IMG_A
        assert inputs["tail_image_url"] == IMG_B
        assert inputs["negative_prompt"] == "blurry"
        assert inputs["cfg_scale"] == 1.0

    def test_tail_dropped_when_unsupported(self, registry: ModelRegistry) -> None:
        request = video_request("kling-2-6-image-to-video", reference_image_urls=[IMG_A], tail_image_url=IMG_B)
        inputs = build_payload(request, registry.lookup("kling-2-6-image-to-video")).body["input"]
        assert "tail_image_url" not in inputs

    def test_sora_orientation_and_frames(self, registry: ModelRegistry) -> None:
        request = video_request("sora-2-image-to-video", reference_image_urls=[IMG_A], duration=15)
        inputs = build_payload(request, registry.lookup("sora-2-image-to-video")).body["input"]

        assert inputs["aspect_ratio"] == "landscape"
        assert inputs["n_frames"] == "15"
        assert inputs["remove_watermark"] is True

    def test_storyboard_frames_replace_prompt(self, registry: ModelRegistry) -> None:
        request = video_request(
            "sora-2-pro-storyboard", prompt="", storyboard_image_urls=[IMG_A, IMG_B, IMG_C]
        )
        inputs = build_payload(request, registry.lookup("sora-2-pro-storyboard")).body["input"]

        assert "prompt" not in inputs
        assert inputs["image_urls"] == [IMG_A, IMG_B, IMG_C]

    def test_steps_forwarded_when_mapped(self, registry: ModelRegistry) -> None:
        descriptor = dataclasses.replace(
            registry.lookup("flux-2-pro-text-to-image"), input_fields={"steps": "num_inference_steps"}
        )
        built = build_payload(image_request("flux-2-pro-text-to-image", steps=30), descriptor)
        assert built.body["input"]["num_inference_steps"] == 30

    def test_unmapped_optional_fields_ignored(self, registry: ModelRegistry) -> None:
        built = build_payload(
            image_request("nano-banana-pro", seed=7, steps=30, guidance=2.0), registry.lookup("nano-banana-pro")
        )
        assert set(built.body["input"]) == {"prompt", "aspect_ratio", "resolution", "output_format"}

    def test_deterministic(self, registry: ModelRegistry) -> None:
        descriptor = registry.lookup("wan-2-5-image-to-video")
        request = video_request("wan-2-5-image-to-video", reference_image_urls=[IMG_A], seed=42)
        assert build_payload(request, descriptor) == build_payload(request, descriptor)


class TestKieVeoPayload:
    """Tests for KIE Veo bodies."""

    def test_text_to_video(self, registry: ModelRegistry) -> None:
        built = build_payload(video_request("veo-3-1-fast", seed=12), registry.lookup("veo-3-1-fast"))

        assert built.endpoint == "https://kie.test/api/v1/veo/generate"
        assert built.body == {
            "prompt": "waves at sunset",
            "model": "veo3_fast",
            "aspectRatio": "16:9",
            "generationType": VEO_TEXT_TO_VIDEO,
            "seeds": 12,
            "enableTranslation": True,
        }
        assert built.duration == 8

    def test_tail_image_is_last_frame(self, registry: ModelRegistry) -> None:
        request = video_request("veo-3-1-quality", reference_image_urls=[IMG_A], tail_image_url=IMG_B)
        body = build_payload(request, registry.lookup("veo-3-1-quality")).body

        assert body["imageUrls"] == [IMG_A, IMG_B]
        assert body["generationType"] == VEO_FIRST_AND_LAST_FRAMES

    def test_three_references_on_fast(self, registry: ModelRegistry) -> None:
        request = video_request("veo-3-1-fast", reference_image_urls=[IMG_A, IMG_B, IMG_C])
        body = build_payload(request, registry.lookup("veo-3-1-fast")).body
        assert body["generationType"] == VEO_REFERENCE

    def test_fixed_generation_type(self, registry: ModelRegistry) -> None:
        request = video_request("veo-3-1-quality-i2v", reference_image_urls=[IMG_A])
        body = build_payload(request, registry.lookup("veo-3-1-quality-i2v")).body
        assert body["generationType"] == VEO_FIRST_AND_LAST_FRAMES


class TestGeminiPayloads:
    """Tests for Gemini generateContent and predictLongRunning bodies."""

    def test_image_with_inline_reference(self, registry: ModelRegistry) -> None:
        request = image_request(
            "gemini-2.5-flash-image",
            aspect_ratio="16:9",
            seed=3,
            reference_image_urls=["data:image/jpeg;base64,QUJD"],
        )
        built = build_payload(request, registry.lookup("gemini-2.5-flash-image"))

        assert not built.is_async
        assert built.body["contents"][0]["parts"] == [
            {"text": "a red fox in snow"},
            {"inlineData": {"mimeType": "image/jpeg", "data": "QUJD"}},
        ]
        assert built.body["generationConfig"]["imageConfig"] == {"aspectRatio": "16:9"}
        assert built.body["generationConfig"]["responseModalities"] == ["IMAGE", "TEXT"]
        assert built.body["generationConfig"]["seed"] == 3

    def test_remote_reference_skipped_by_builder(
        self, registry: ModelRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="[MediaDispatch]"):
            built = build_payload(
                image_request("gemini-2.5-flash-image", reference_image_urls=[IMG_A]),
                registry.lookup("gemini-2.5-flash-image"),
            )
        assert len(built.body["contents"][0]["parts"]) == 1
        assert "inline image data" in caplog.text

    def test_veo_operation_body(self, registry: ModelRegistry) -> None:
        request = video_request(
            "veo-3.1-i2v-preview",
            reference_image_urls=["data:image/png;base64,AAAA"],
            tail_image_url="data:image/png;base64,BBBB",
            negative_prompt="text overlays",
        )
        built = build_payload(request, registry.lookup("veo-3.1-i2v-preview"))

        assert built.body["instances"] == [
            {
                "prompt": "waves at sunset",
                "image": {"bytesBase64Encoded": "AAAA", "mimeType": "image/png"},
                "lastFrame": {"bytesBase64Encoded": "BBBB", "mimeType": "image/png"},
            }
        ]
        assert built.body["parameters"] == {
            "aspectRatio": "16:9",
            "durationSeconds": 8,
            "resolution": "720p",
            "negativePrompt": "text overlays",
        }


class TestValidation:
    """Requests that must never reach a provider."""

    def test_too_many_references(self, registry: ModelRegistry) -> None:
        request = image_request("gemini-3-pro-image-preview", reference_image_urls=[IMG_A, IMG_B, IMG_C, IMG_A])
        with pytest.raises(GenerationError) as exc_info:
            build_payload(request, registry.lookup("gemini-3-pro-image-preview"))
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_required_image_missing(self, registry: ModelRegistry) -> None:
        with pytest.raises(GenerationError) as exc_info:
            build_payload(image_request("seedream-4-5-edit"), registry.lookup("seedream-4-5-edit"))
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_tail_image_alone_is_not_a_first_frame(self, registry: ModelRegistry) -> None:
        request = video_request("kling-2-5-turbo", tail_image_url=IMG_B)
        with pytest.raises(GenerationError) as exc_info:
            build_payload(request, registry.lookup("kling-2-5-turbo"))
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_empty_prompt(self, registry: ModelRegistry) -> None:
        with pytest.raises(GenerationError) as exc_info:
            build_payload(image_request("nano-banana-pro", prompt="   "), registry.lookup("nano-banana-pro"))
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_kind_mismatch(self, registry: ModelRegistry) -> None:
        with pytest.raises(GenerationError) as exc_info:
            build_payload(video_request("nano-banana-pro"), registry.lookup("nano-banana-pro"))
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_tail_image_on_image_request(self, registry: ModelRegistry) -> None:
        request = image_request("nano-banana-pro", tail_image_url=IMG_A)
        with pytest.raises(GenerationError) as exc_info:
            build_payload(request, registry.lookup("nano-banana-pro"))
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_unknown_kind(self, registry: ModelRegistry) -> None:
        request = GenerationRequest(kind="audio", prompt="hum", model_key="nano-banana-pro")
        with pytest.raises(GenerationError) as exc_info:
            build_payload(request, registry.lookup("nano-banana-pro"))
        assert exc_info.value.kind == ErrorKind.VALIDATION
