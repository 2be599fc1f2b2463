"""
Strategy Selector
Maps (image context, requested operations) to one remote model invocation.

Model ids can be switched per strategy with env vars:
  MODEL_STYLE_TRANSFER, MODEL_VIRTUAL_STAGING, MODEL_SKY_REPLACEMENT,
  MODEL_HDR, MODEL_UPSCALE, MODEL_RESTORATION
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

from .config import (
    get_config,
    ProviderConfig,
    QualityLevel,
    SceneType,
    LightingCondition,
    StrategyKind,
)
from .errors import UnsupportedOperationError
from .models import ImageContext, EnhancementRequest, OperationFlags, StrategyPlan

logger = logging.getLogger(__name__)


@dataclass
class ModelConfig:
    """How one strategy is invoked on the primary provider"""
    strategy: StrategyKind
    image_param: str
    default_input: Dict[str, Any] = field(default_factory=dict)
    cost_per_call: float = 0.01


MODEL_CATALOG: Dict[StrategyKind, ModelConfig] = {
    StrategyKind.STYLE_TRANSFER: ModelConfig(
        strategy=StrategyKind.STYLE_TRANSFER,
        image_param="structure_image",
        default_input={"strength": 0.9},
        cost_per_call=0.03,
    ),
    StrategyKind.VIRTUAL_STAGING: ModelConfig(
        strategy=StrategyKind.VIRTUAL_STAGING,
        image_param="image",
        default_input={
            "prompt": (
                "A beautifully staged, modern living space with tasteful furniture, "
                "natural light, real estate photography"
            ),
            "guidance_scale": 15,
            "num_inference_steps": 50,
        },
        cost_per_call=0.02,
    ),
    StrategyKind.SKY_REPLACEMENT: ModelConfig(
        strategy=StrategyKind.SKY_REPLACEMENT,
        image_param="input_image",
        default_input={
            "prompt": (
                "Replace the sky with a clear blue sky and soft white clouds. "
                "Keep the house, landscaping and framing exactly the same."
            ),
            "output_format": "png",
        },
        cost_per_call=0.04,
    ),
    StrategyKind.HDR_TONE_BALANCE: ModelConfig(
        strategy=StrategyKind.HDR_TONE_BALANCE,
        image_param="input_image",
        default_input={
            "prompt": (
                "Balance the exposure like a professional HDR real estate photo: recover "
                "window highlights, lift shadows, keep colours natural and the scene unchanged."
            ),
            "output_format": "png",
        },
        cost_per_call=0.04,
    ),
    StrategyKind.SUPER_RESOLUTION: ModelConfig(
        strategy=StrategyKind.SUPER_RESOLUTION,
        image_param="image",
        default_input={"scale": 4, "face_enhance": False},
        cost_per_call=0.005,
    ),
    StrategyKind.RESTORATION: ModelConfig(
        strategy=StrategyKind.RESTORATION,
        image_param="img",
        default_input={"version": "v1.4", "scale": 2},
        cost_per_call=0.005,
    ),
    StrategyKind.LIGHT_ENHANCEMENT: ModelConfig(
        strategy=StrategyKind.LIGHT_ENHANCEMENT,
        image_param="image",
        default_input={"scale": 2, "face_enhance": False},
        cost_per_call=0.005,
    ),
}

PROMPT_BASE = "Enhance this real estate photo to make it more appealing for property listings"

PROMPT_PHRASES = {
    "lighting": "improve lighting and brightness",
    "sky_replacement": "enhance the sky with beautiful clouds",
    "hdr_merge": "balance highlights and shadows like an HDR photo",
    "grass_enhancement": "make grass and vegetation more vibrant and green",
    "perspective_correction": "correct perspective and straighten the image",
    "noise_reduction": "reduce noise and improve image clarity",
    "upscale": "increase detail and resolution",
    "quality_boost": "enhance overall image quality and sharpness",
    "virtual_staging": "add tasteful modern furniture to the empty room",
    "style_transfer": "match the colour grading of the reference photo",
}


def build_prompt(operations: OperationFlags) -> str:
    """Natural-language instruction for prompt-driven providers"""
    phrases = [PROMPT_PHRASES[name] for name in operations.enabled() if name in PROMPT_PHRASES]
    if not phrases:
        return f"{PROMPT_BASE}. Keep the scene realistic and unchanged."
    return f"{PROMPT_BASE}: {', '.join(phrases)}. Keep the scene realistic and unchanged."


def model_id_for(strategy: StrategyKind, providers: Optional[ProviderConfig] = None) -> str:
    providers = providers or get_config().providers
    return {
        StrategyKind.STYLE_TRANSFER: providers.model_style_transfer,
        StrategyKind.VIRTUAL_STAGING: providers.model_virtual_staging,
        StrategyKind.SKY_REPLACEMENT: providers.model_sky_replacement,
        StrategyKind.HDR_TONE_BALANCE: providers.model_hdr,
        StrategyKind.SUPER_RESOLUTION: providers.model_upscale,
        StrategyKind.RESTORATION: providers.model_restoration,
        StrategyKind.LIGHT_ENHANCEMENT: providers.model_upscale,
    }[strategy]


class StrategySelector:
    """First-match decision list over the requested operations"""

    def __init__(self, providers: Optional[ProviderConfig] = None):
        self.providers = providers or get_config().providers

    def select_strategy(self, context: ImageContext, request: EnhancementRequest) -> StrategyPlan:
        """
        Pick the remote invocation for a request

        Raises:
            UnsupportedOperationError: staging requested on an exterior photo
        """
        ops = request.operations

        if ops.style_transfer and request.style_reference_url:
            return self._plan(
                StrategyKind.STYLE_TRANSFER, request,
                ["style_transfer"],
                extra_input={"style_image": request.style_reference_url},
            )

        if ops.virtual_staging:
            if context.scene_type == SceneType.EXTERIOR:
                raise UnsupportedOperationError("Virtual staging is only available for interior photos")
            return self._plan(StrategyKind.VIRTUAL_STAGING, request, ["virtual_staging"])

        if ops.sky_replacement and context.scene_type == SceneType.EXTERIOR:
            return self._plan(StrategyKind.SKY_REPLACEMENT, request, ["sky_replacement"])

        if ops.hdr_merge or (context.lighting == LightingCondition.MIXED and ops.lighting):
            return self._plan(StrategyKind.HDR_TONE_BALANCE, request, ["hdr_tone_balance"])

        if ops.upscale:
            return self._plan(StrategyKind.SUPER_RESOLUTION, request, ["upscale_4x"])

        if ops.noise_reduction and ops.quality_boost:
            return self._plan(StrategyKind.RESTORATION, request, ["noise_reduction", "restoration"])

        if ops.lighting or ops.quality_boost:
            applied = ["lighting_enhancement"] if ops.lighting else ["quality_enhancement"]
            return self._plan(StrategyKind.LIGHT_ENHANCEMENT, request, applied + ["upscale_2x"])

        return self._plan(StrategyKind.LIGHT_ENHANCEMENT, request, ["light_enhancement", "upscale_2x"])

    def _plan(
        self,
        strategy: StrategyKind,
        request: EnhancementRequest,
        operations_applied: List[str],
        extra_input: Optional[Dict[str, Any]] = None,
    ) -> StrategyPlan:
        cfg = MODEL_CATALOG[strategy]
        input_params = dict(cfg.default_input)
        if extra_input:
            input_params.update(extra_input)

        cost = cfg.cost_per_call
        if request.quality == QualityLevel.PREMIUM:
            cost *= self.providers.premium_cost_multiplier

        plan = StrategyPlan(
            strategy=strategy,
            model_id=model_id_for(strategy, self.providers),
            input_params=input_params,
            image_param=cfg.image_param,
            prompt=build_prompt(request.operations),
            operations_applied=operations_applied,
            estimated_cost=round(cost, 4),
        )
        logger.debug(f"🔀 Strategy {strategy.value} → {plan.model_id}")
        return plan
