"""
Named enhancement presets and up-front cost estimation
"""
from dataclasses import dataclass
from typing import Dict, Any, Optional

from .config import ProviderTier, QualityLevel
from .models import OperationFlags, EnhancementRequest


@dataclass(frozen=True)
class Preset:
    name: str
    description: str
    operations: OperationFlags
    provider: ProviderTier = ProviderTier.PRIMARY
    quality: QualityLevel = QualityLevel.STANDARD

    def to_request(self, source_url: str, **overrides) -> EnhancementRequest:
        return EnhancementRequest(
            source_url=source_url,
            operations=self.operations,
            provider=overrides.pop("provider", None) or self.provider,
            quality=overrides.pop("quality", None) or self.quality,
            **overrides,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "provider": self.provider.value,
            "quality": self.quality.value,
            "operations": self.operations.enabled(),
        }


PRESETS: Dict[str, Preset] = {
    "real_estate_standard": Preset(
        name="real_estate_standard",
        description="Balanced lighting and clarity for everyday listing photos",
        operations=OperationFlags(lighting=True, noise_reduction=True, quality_boost=True),
    ),
    "real_estate_premium": Preset(
        name="real_estate_premium",
        description="Full treatment: sky, HDR balance, greenery and upscaling",
        operations=OperationFlags(
            lighting=True, sky_replacement=True, hdr_merge=True, grass_enhancement=True,
            perspective_correction=True, noise_reduction=True, upscale=True, quality_boost=True,
        ),
        quality=QualityLevel.PREMIUM,
    ),
    "quick_fix": Preset(
        name="quick_fix",
        description="Fast brightness and colour correction",
        operations=OperationFlags(lighting=True, quality_boost=True),
    ),
    "high_resolution": Preset(
        name="high_resolution",
        description="Upscale and clean up low resolution photos",
        operations=OperationFlags(upscale=True, noise_reduction=True, quality_boost=True),
        quality=QualityLevel.PREMIUM,
    ),
    "ai_professional": Preset(
        name="ai_professional",
        description="Prompt-driven professional retouch on the secondary provider",
        operations=OperationFlags(
            lighting=True, sky_replacement=True, perspective_correction=True,
            noise_reduction=True, quality_boost=True,
        ),
        provider=ProviderTier.SECONDARY,
        quality=QualityLevel.PREMIUM,
    ),
    "replicate_upscale": Preset(
        name="replicate_upscale",
        description="4x super-resolution on the primary provider",
        operations=OperationFlags(upscale=True),
    ),
    "replicate_enhance": Preset(
        name="replicate_enhance",
        description="Light-touch restoration on the primary provider",
        operations=OperationFlags(lighting=True, noise_reduction=True, quality_boost=True),
    ),
}

# Per-image base cost by provider tier, plus surcharges for expensive operations
BASE_COSTS = {
    ProviderTier.PRIMARY: 0.005,
    ProviderTier.SECONDARY: 0.02,
}
OPERATION_SURCHARGES = {
    "upscale": 0.05,
    "sky_replacement": 0.02,
    "hdr_merge": 0.03,
}
PREMIUM_MULTIPLIER = 1.5


def get_preset(name: str) -> Optional[Preset]:
    return PRESETS.get(name)


def estimate_cost(image_count: int, request: EnhancementRequest) -> float:
    """Rough USD estimate for enhancing image_count images with this request"""
    per_image = BASE_COSTS.get(request.provider, BASE_COSTS[ProviderTier.PRIMARY])
    for flag in request.operations.enabled():
        per_image += OPERATION_SURCHARGES.get(flag, 0.0)
    if request.quality == QualityLevel.PREMIUM:
        per_image *= PREMIUM_MULTIPLIER
    return round(per_image * max(image_count, 0), 4)
