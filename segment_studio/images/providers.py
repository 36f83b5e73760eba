"""Image-generation providers and the table the orchestrator selects them from."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Protocol, Sequence, Tuple
from urllib.parse import urljoin

import requests

from segment_studio import config_manager as cfg
from segment_studio import logging_manager as log_mgr
from segment_studio.errors import ImageGenerationError

logger = log_mgr.get_logger().getChild("images.providers")

DIMENSION_FORMAT_SIZE = "size"
DIMENSION_FORMAT_ASPECT_RATIO = "aspect_ratio"

MODEL_MODES = ("performance", "quality")

VERTEX_QUALITY_MODEL = "imagen-3.0-generate-001"
VERTEX_PERFORMANCE_MODEL = "imagen-3.0-fast-generate-001"
DRAWTHINGS_DEFAULT_MODEL = "default"

_SIZE_GRID = 64


@dataclass(frozen=True, slots=True)
class ImageRequest:
    """Everything a provider needs to render one segment.

    Callers set ``size`` for providers that take pixel dimensions and
    ``aspect_ratio`` for providers that take a ratio.
    """

    prompt: str
    model: str
    aspect_ratio: Optional[str] = None
    size: Optional[str] = None
    seed: Optional[int] = None
    provider_options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ImageResponse:
    image_base64: str
    warnings: Tuple[str, ...] = ()


class ImageProvider(Protocol):
    """Synchronous image generator; implementations raise :class:`ImageGenerationError`."""

    name: str

    def generate(self, request: ImageRequest) -> ImageResponse:
        ...


def _clean_base64(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if candidate.lower().startswith("data:") and "," in candidate:
        _, _, candidate = candidate.partition(",")
    if not candidate:
        return None
    try:
        base64.b64decode(candidate, validate=True)
    except (binascii.Error, ValueError):
        return None
    return candidate


def parse_size(size: str) -> Tuple[int, int]:
    """Parse ``"WIDTHxHEIGHT"`` into integers."""

    try:
        width_text, height_text = str(size).lower().split("x", 1)
        width, height = int(width_text), int(height_text)
    except ValueError as exc:
        raise ImageGenerationError(f"Invalid image size {size!r}") from exc
    if width <= 0 or height <= 0:
        raise ImageGenerationError(f"Invalid image size {size!r}")
    return width, height


def resolve_dimensions(size: str, aspect_ratio: Optional[str]) -> Tuple[int, int]:
    """Fit ``aspect_ratio`` inside the longest edge of ``size``.

    Dimensions are snapped down to a multiple of 64 as diffusion back ends expect.
    """

    width, height = parse_size(size)
    if not aspect_ratio:
        return width, height
    try:
        ratio_w_text, ratio_h_text = aspect_ratio.split(":", 1)
        ratio_w, ratio_h = int(ratio_w_text), int(ratio_h_text)
    except ValueError as exc:
        raise ImageGenerationError(f"Invalid aspect ratio {aspect_ratio!r}") from exc
    if ratio_w <= 0 or ratio_h <= 0:
        raise ImageGenerationError(f"Invalid aspect ratio {aspect_ratio!r}")

    edge = max(width, height)
    if ratio_w >= ratio_h:
        fitted = (edge, edge * ratio_h // ratio_w)
    else:
        fitted = (edge * ratio_w // ratio_h, edge)
    return tuple(max(_SIZE_GRID, value - value % _SIZE_GRID) for value in fitted)  # type: ignore[return-value]


def _response_detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(payload, Mapping):
        error = payload.get("error")
        if isinstance(error, Mapping):
            return str(error.get("message") or error)
        if error:
            return str(error)
        if payload.get("detail"):
            return str(payload["detail"])
    return response.text[:300]


class VertexImagenProvider:
    """Vertex AI Imagen through the REST ``:predict`` endpoint."""

    name = "vertex"

    def __init__(
        self,
        *,
        project: Optional[str],
        location: str = cfg.DEFAULT_VERTEX_LOCATION,
        access_token: Optional[str] = None,
        timeout_seconds: float = cfg.DEFAULT_IMAGE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._project = (project or "").strip()
        self._location = (location or cfg.DEFAULT_VERTEX_LOCATION).strip()
        self._access_token = access_token
        self._timeout = max(float(timeout_seconds), 1.0)
        self._session = session or requests.Session()

    def endpoint_for(self, model: str) -> str:
        return (
            f"https://{self._location}-aiplatform.googleapis.com/v1/projects/{self._project}"
            f"/locations/{self._location}/publishers/google/models/{model}:predict"
        )

    def build_payload(self, request: ImageRequest) -> Dict[str, Any]:
        parameters: Dict[str, Any] = {
            "sampleCount": 1,
            "aspectRatio": request.aspect_ratio or cfg.DEFAULT_ASPECT_RATIO,
            # Imagen ignores the seed while watermarking is on.
            "addWatermark": False,
        }
        if request.seed is not None:
            parameters["seed"] = int(request.seed)
        parameters.update(dict(request.provider_options))
        return {"instances": [{"prompt": request.prompt}], "parameters": parameters}

    def generate(self, request: ImageRequest) -> ImageResponse:
        if not self._project:
            raise ImageGenerationError("Vertex project is not configured", provider=self.name)
        if not self._access_token:
            raise ImageGenerationError("Vertex access token is not configured", provider=self.name)

        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        try:
            response = self._session.post(
                self.endpoint_for(request.model),
                json=self.build_payload(request),
                headers=headers,
                timeout=self._timeout,
            )
        except requests.Timeout as exc:
            raise ImageGenerationError(
                f"Vertex request timed out: {exc}", provider=self.name, timeout=True
            ) from exc
        except requests.RequestException as exc:
            raise ImageGenerationError(
                f"Vertex request failed: {exc}", provider=self.name
            ) from exc

        if not response.ok:
            raise ImageGenerationError(
                f"Vertex request failed: {_response_detail(response)}",
                provider=self.name,
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ImageGenerationError(
                "Vertex response was not valid JSON", provider=self.name
            ) from exc

        predictions = payload.get("predictions") if isinstance(payload, Mapping) else None
        if not isinstance(predictions, list) or not predictions:
            raise ImageGenerationError(
                "Vertex response did not contain any predictions", provider=self.name
            )
        first = predictions[0] if isinstance(predictions[0], Mapping) else {}
        image = _clean_base64(first.get("bytesBase64Encoded"))
        if image is None:
            raise ImageGenerationError(
                "Vertex response did not contain image data", provider=self.name
            )
        warnings: Tuple[str, ...] = ()
        reason = first.get("raiFilteredReason")
        if reason:
            warnings = (str(reason),)
        return ImageResponse(image_base64=image, warnings=warnings)


class DrawThingsProvider:
    """Draw Things / Stable Diffusion txt2img-compatible HTTP API."""

    name = "drawthings"

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = cfg.DEFAULT_IMAGE_TIMEOUT_SECONDS,
        txt2img_path: str = "/sdapi/v1/txt2img",
        steps: int = 24,
        cfg_scale: float = 7.0,
        negative_prompt: str = "",
        session: Optional[requests.Session] = None,
    ) -> None:
        trimmed = (base_url or "").strip().rstrip("/")
        if not trimmed:
            raise ValueError("DrawThingsProvider base_url cannot be empty")
        self._base_url = trimmed + "/"
        self._txt2img_url = urljoin(self._base_url, txt2img_path.lstrip("/"))
        self._timeout = max(float(timeout_seconds), 1.0)
        self._steps = steps
        self._cfg_scale = cfg_scale
        self._negative_prompt = negative_prompt
        self._session = session or requests.Session()

    @property
    def base_url(self) -> str:  # pragma: no cover - trivial
        return self._base_url.rstrip("/")

    def build_payload(self, request: ImageRequest) -> Dict[str, Any]:
        if request.size:
            width, height = parse_size(request.size)
        else:
            width, height = resolve_dimensions(cfg.DEFAULT_IMAGE_SIZE, request.aspect_ratio)
        payload: Dict[str, Any] = {
            "prompt": request.prompt,
            "negative_prompt": self._negative_prompt,
            "width": width,
            "height": height,
            "steps": int(self._steps),
            "cfg_scale": float(self._cfg_scale),
            "batch_size": 1,
            "n_iter": 1,
        }
        if request.model and request.model != DRAWTHINGS_DEFAULT_MODEL:
            payload["model"] = request.model
        if request.seed is not None:
            payload["seed"] = int(request.seed)
        payload.update(dict(request.provider_options))
        return payload

    def generate(self, request: ImageRequest) -> ImageResponse:
        try:
            response = self._session.post(
                self._txt2img_url,
                json=self.build_payload(request),
                timeout=self._timeout,
            )
        except requests.Timeout as exc:
            raise ImageGenerationError(
                f"DrawThings request timed out: {exc}", provider=self.name, timeout=True
            ) from exc
        except requests.RequestException as exc:
            raise ImageGenerationError(
                f"DrawThings request failed: {exc}", provider=self.name
            ) from exc

        content_type = (response.headers.get("content-type") or "").lower()
        if "application/json" in content_type or response.text.lstrip().startswith("{"):
            try:
                payload: Any = response.json()
            except json.JSONDecodeError as exc:
                raise ImageGenerationError(
                    "DrawThings response was not valid JSON", provider=self.name
                ) from exc
            if not isinstance(payload, Mapping):
                raise ImageGenerationError(
                    "DrawThings JSON response did not contain an object", provider=self.name
                )
            if not response.ok:
                detail = payload.get("error") or payload.get("detail") or response.text
                raise ImageGenerationError(
                    f"DrawThings request failed: {detail}",
                    provider=self.name,
                    status_code=response.status_code,
                )
            images = payload.get("images")
            if isinstance(images, list) and images:
                image = _clean_base64(images[0])
                if image:
                    return ImageResponse(image_base64=image)
            raise ImageGenerationError(
                "DrawThings response did not contain image data", provider=self.name
            )

        if not response.ok:
            raise ImageGenerationError(
                f"DrawThings request failed: {response.text[:300]}",
                provider=self.name,
                status_code=response.status_code,
            )
        if not response.content:
            raise ImageGenerationError(
                "DrawThings response did not contain image data", provider=self.name
            )
        return ImageResponse(image_base64=base64.b64encode(response.content).decode("ascii"))


ProviderFactory = Callable[[], ImageProvider]


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Table entry describing one image provider."""

    key: str
    display_name: str
    dimension_format: str
    models: Tuple[str, ...]
    default_models: Mapping[str, str]
    factory: ProviderFactory

    def default_model(self, mode: str = "quality") -> str:
        try:
            return self.default_models[mode]
        except KeyError as exc:
            raise ValueError(f"Unknown model mode: {mode!r}") from exc

    def describe(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "displayName": self.display_name,
            "dimensionFormat": self.dimension_format,
            "models": list(self.models),
            "defaultModels": dict(self.default_models),
        }


class ImageProviderRegistry:
    """Explicit provider table handed to the orchestrator.

    Providers are built lazily on first use and cached per key.
    """

    def __init__(self, configs: Sequence[ProviderConfig] = ()) -> None:
        self._configs: Dict[str, ProviderConfig] = {}
        self._instances: Dict[str, ImageProvider] = {}
        for config in configs:
            self.register(config)

    def register(self, config: ProviderConfig) -> None:
        key = config.key.strip().lower()
        self._configs[key] = config
        self._instances.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.strip().lower() in self._configs

    def __iter__(self) -> Iterator[ProviderConfig]:
        return iter(self._configs.values())

    def keys(self) -> Tuple[str, ...]:
        return tuple(self._configs)

    def config(self, key: str) -> ProviderConfig:
        normalized = (key or "").strip().lower()
        try:
            return self._configs[normalized]
        except KeyError as exc:
            raise KeyError(f"Unknown image provider: {key!r}") from exc

    def get(self, key: str) -> ImageProvider:
        config = self.config(key)
        instance = self._instances.get(config.key)
        if instance is None:
            instance = config.factory()
            self._instances[config.key] = instance
            logger.debug(
                "Initialised image provider %s",
                config.key,
                extra={"event": "images.provider.created", "console_suppress": True},
            )
        return instance

    def describe(self) -> list[Dict[str, Any]]:
        return [config.describe() for config in self._configs.values()]


def build_default_registry(
    settings: Optional[cfg.SegmentStudioSettings] = None,
) -> ImageProviderRegistry:
    """Return the provider table backed by ``settings`` (or the active settings)."""

    resolved = settings or cfg.get_settings()
    token = (
        resolved.vertex_access_token.get_secret_value()
        if resolved.vertex_access_token
        else None
    )
    vertex = ProviderConfig(
        key="vertex",
        display_name="Vertex AI",
        dimension_format=DIMENSION_FORMAT_ASPECT_RATIO,
        models=(VERTEX_QUALITY_MODEL, VERTEX_PERFORMANCE_MODEL),
        default_models={
            "performance": VERTEX_PERFORMANCE_MODEL,
            "quality": VERTEX_QUALITY_MODEL,
        },
        factory=lambda: VertexImagenProvider(
            project=resolved.vertex_project,
            location=resolved.vertex_location,
            access_token=token,
            timeout_seconds=resolved.image_timeout_seconds,
        ),
    )
    drawthings = ProviderConfig(
        key="drawthings",
        display_name="Draw Things",
        dimension_format=DIMENSION_FORMAT_SIZE,
        models=(DRAWTHINGS_DEFAULT_MODEL,),
        default_models={
            "performance": DRAWTHINGS_DEFAULT_MODEL,
            "quality": DRAWTHINGS_DEFAULT_MODEL,
        },
        factory=lambda: DrawThingsProvider(
            resolved.drawthings_url,
            timeout_seconds=resolved.image_timeout_seconds,
        ),
    )
    return ImageProviderRegistry([vertex, drawthings])


__all__ = [
    "DIMENSION_FORMAT_ASPECT_RATIO",
    "DIMENSION_FORMAT_SIZE",
    "DrawThingsProvider",
    "ImageProvider",
    "ImageProviderRegistry",
    "ImageRequest",
    "ImageResponse",
    "MODEL_MODES",
    "ProviderConfig",
    "VertexImagenProvider",
    "build_default_registry",
    "parse_size",
    "resolve_dimensions",
]
