"""
Data model for enhancement requests, analysis context and results
"""
from dataclasses import dataclass, field, fields, replace
from typing import Dict, Any, Optional, List, Tuple

from .config import (
    ProviderTier,
    QualityLevel,
    OutputFormat,
    SceneType,
    LightingCondition,
    ImageQuality,
    StrategyKind,
    ColorTemperature,
    SaturationBand,
    ContrastBand,
    LightingCharacter,
)
from .errors import ValidationError


@dataclass
class OperationFlags:
    """Independent enhancement switches requested by the caller"""
    lighting: bool = False
    sky_replacement: bool = False
    hdr_merge: bool = False
    grass_enhancement: bool = False
    perspective_correction: bool = False
    noise_reduction: bool = False
    upscale: bool = False
    quality_boost: bool = False
    style_transfer: bool = False
    virtual_staging: bool = False

    def enabled(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]

    def merged(self, **overrides: bool) -> "OperationFlags":
        """Copy with extra flags switched on; flags already set stay set"""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for name, value in overrides.items():
            values[name] = values[name] or value
        return OperationFlags(**values)

    def to_dict(self) -> Dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class EnhancementRequest:
    source_url: str
    operations: OperationFlags = field(default_factory=OperationFlags)
    provider: ProviderTier = ProviderTier.PRIMARY
    quality: QualityLevel = QualityLevel.STANDARD
    output_format: OutputFormat = OutputFormat.JPEG
    style_reference_url: Optional[str] = None
    project_id: Optional[str] = None

    def validate(self) -> None:
        """Raise ValidationError before any resource is touched"""
        if not self.source_url or not self.source_url.strip():
            raise ValidationError("Source image URL is required")
        if self.operations.style_transfer and not self.style_reference_url:
            raise ValidationError("Style transfer requires a style reference image URL")

    def with_operations(self, operations: OperationFlags) -> "EnhancementRequest":
        return replace(self, operations=operations)

    def for_url(self, source_url: str) -> "EnhancementRequest":
        return replace(self, source_url=source_url)


@dataclass(frozen=True)
class ImageContext:
    """Per-request content analysis; never cached"""
    scene_type: SceneType
    lighting: LightingCondition
    quality: ImageQuality
    issues: Tuple[str, ...] = ()
    confidence: float = 0.5
    brightness: float = 0.0
    recommendations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scene_type": self.scene_type.value,
            "lighting": self.lighting.value,
            "quality": self.quality.value,
            "issues": list(self.issues),
            "confidence": self.confidence,
            "brightness": round(self.brightness, 2),
            "recommendations": list(self.recommendations),
        }


@dataclass
class StrategyPlan:
    """Concrete remote invocation chosen for a request"""
    strategy: StrategyKind
    model_id: str
    input_params: Dict[str, Any] = field(default_factory=dict)
    image_param: str = "image"
    prompt: str = ""
    operations_applied: List[str] = field(default_factory=list)
    estimated_cost: float = 0.0

    def build_input(self, image_url: str) -> Dict[str, Any]:
        params = dict(self.input_params)
        params[self.image_param] = image_url
        return params


@dataclass
class EnhancementResult:
    """Outcome of one enhancement request"""
    success: bool
    source_url: str
    provider_used: str
    enhanced_url: Optional[str] = None
    operations_applied: List[str] = None
    processing_time_ms: int = 0
    estimated_cost: float = 0.0
    error_message: Optional[str] = None
    request_id: Optional[str] = None
    fallback_chain: List[str] = None

    def __post_init__(self):
        if self.operations_applied is None:
            self.operations_applied = []
        if self.fallback_chain is None:
            self.fallback_chain = []
        if self.success and (not self.enhanced_url or self.error_message):
            raise ValueError("Successful result needs an enhanced URL and no error message")
        if not self.success and (self.enhanced_url or not self.error_message):
            raise ValueError("Failed result needs an error message and no enhanced URL")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "request_id": self.request_id,
            "source_url": self.source_url,
            "enhanced_url": self.enhanced_url,
            "operations_applied": self.operations_applied,
            "processing_time_ms": self.processing_time_ms,
            "estimated_cost_usd": round(self.estimated_cost, 4),
            "provider_used": self.provider_used,
            "fallback_chain": self.fallback_chain,
            "error": self.error_message,
        }


@dataclass(frozen=True)
class StyleFingerprint:
    color_temperature: ColorTemperature
    saturation_band: SaturationBand
    contrast_band: ContrastBand
    lighting_character: LightingCharacter
    quality_score: float

    def describe(self) -> str:
        return (
            f"{self.lighting_character.value} lighting, {self.color_temperature.value} tones, "
            f"{self.contrast_band.value} contrast and {self.saturation_band.value} colour"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "color_temperature": self.color_temperature.value,
            "saturation": self.saturation_band.value,
            "contrast": self.contrast_band.value,
            "lighting": self.lighting_character.value,
            "quality_score": round(self.quality_score, 3),
        }


@dataclass
class StyleMatch:
    image_id: str
    url: str
    similarity: float
    matched_features: List[str]
    recommended_for_style_transfer: bool
    fingerprint: Optional[StyleFingerprint] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image_id": self.image_id,
            "url": self.url,
            "similarity": round(self.similarity, 3),
            "similarity_percent": round(self.similarity * 100),
            "matched_features": self.matched_features,
            "recommended_for_style_transfer": self.recommended_for_style_transfer,
            "style": self.fingerprint.to_dict() if self.fingerprint else None,
        }


@dataclass
class SmartSuggestions:
    primary: str
    alternatives: List[str]
    reasons: List[str]
    confidence: float
    issues: List[str]
    context: Optional[ImageContext] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary,
            "alternatives": self.alternatives,
            "reasons": self.reasons,
            "confidence": self.confidence,
            "issues": self.issues,
            "analysis": self.context.to_dict() if self.context else None,
        }


@dataclass
class ChannelStatistics:
    mean: float
    std: float


@dataclass
class ImageMetadata:
    width: int
    height: int
    format: str
    channel_statistics: List[ChannelStatistics]
    size_bytes: int = 0
    has_alpha: bool = False
    mode: str = "RGB"

    @property
    def megapixels(self) -> float:
        return (self.width * self.height) / 1_000_000

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "format": self.format,
            "size_bytes": self.size_bytes,
            "has_alpha": self.has_alpha,
            "color_space": self.mode,
        }


# ---------------------------------------------------------------------------
# Editing
# ---------------------------------------------------------------------------

@dataclass
class CropOptions:
    x: int
    y: int
    width: int
    height: int


@dataclass
class ResizeOptions:
    width: Optional[int] = None
    height: Optional[int] = None
    fit: str = "inside"   # cover, contain, fill, inside, outside


@dataclass
class AdjustOptions:
    """Percentages in -100..100, hue in degrees"""
    brightness: float = 0
    contrast: float = 0
    saturation: float = 0
    hue: float = 0
    exposure: float = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False


@dataclass
class EditOperation:
    type: str   # crop, resize, rotate, adjust
    options: Any


@dataclass
class EditOutcome:
    data: bytes
    operations_applied: List[str]


@dataclass
class EditResult:
    success: bool
    original_url: str
    edited_url: Optional[str] = None
    operations_applied: List[str] = field(default_factory=list)
    error: Optional[str] = None
    metadata: Optional[ImageMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "original_url": self.original_url,
            "edited_url": self.edited_url,
            "operations_applied": self.operations_applied,
            "error": self.error,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }
