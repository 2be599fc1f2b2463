"""
Content Analyzer
Classifies a listing photo (scene, lighting, quality) so the strategy
selector can pick a remote model. A vision model refines the heuristics
when one is configured; its failures never fail the analysis.
"""
import json
import logging
import re
from typing import Optional, List, Dict, Any

from .config import (
    get_config,
    AnalyzerThresholds,
    SceneType,
    LightingCondition,
    ImageQuality,
)
from .image_io import decode_metadata
from .models import ImageContext, SmartSuggestions
from .vision_service import GeminiVisionService

logger = logging.getLogger(__name__)

VISION_PROMPT = (
    "You are analysing a real estate listing photo. Respond with JSON only, using this shape: "
    '{"type": "interior" | "exterior", "lighting": "bright" | "dim" | "mixed", '
    '"issues": [string], "recommendations": [string]}. '
    "List concrete photographic issues (exposure, sky, clutter, perspective, noise) and the "
    "enhancements that would make the photo more appealing to buyers."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class ContentAnalyzer:
    """Heuristic image classifier with an optional vision-model override"""

    def __init__(
        self,
        thresholds: Optional[AnalyzerThresholds] = None,
        vision: Optional[GeminiVisionService] = None,
    ):
        self.thresholds = thresholds or get_config().analyzer
        self.vision = vision

    def analyze(self, data: bytes) -> ImageContext:
        """
        Analyse image bytes

        Raises:
            DecodeError: bytes are not a readable image
        """
        t = self.thresholds
        meta = decode_metadata(data)
        issues: List[str] = []

        # Resolution
        megapixels = meta.megapixels
        if megapixels > t.high_quality_megapixels:
            quality = ImageQuality.HIGH
        elif megapixels < t.low_quality_megapixels:
            quality = ImageQuality.LOW
            issues.append("Low resolution")
        else:
            quality = ImageQuality.MEDIUM

        aspect = meta.aspect_ratio
        if aspect < t.min_aspect_ratio or aspect > t.max_aspect_ratio:
            issues.append("Unusual aspect ratio for real estate")

        # Exposure
        rgb = meta.channel_statistics[:3]
        brightness = sum(c.mean for c in rgb) / len(rgb)
        if brightness > t.bright_threshold:
            lighting = LightingCondition.BRIGHT
            if brightness > t.overexposed_threshold:
                issues.append("Potentially overexposed")
        elif brightness < t.dim_threshold:
            lighting = LightingCondition.DIM
            issues.append("Underexposed - consider brightening")
        else:
            lighting = LightingCondition.MIXED

        # Bright and blue-dominant reads as sky; everything else is treated as
        # interior so staging stays available.
        red, green, blue = (c.mean for c in rgb)
        if brightness > t.exterior_brightness and blue > red and blue > green:
            scene = SceneType.EXTERIOR
            confidence = t.exterior_confidence
        else:
            scene = SceneType.INTERIOR
            confidence = t.interior_confidence

        context = ImageContext(
            scene_type=scene,
            lighting=lighting,
            quality=quality,
            issues=tuple(issues),
            confidence=confidence,
            brightness=brightness,
        )

        logger.debug(
            f"🔍 Heuristic analysis: {meta.width}x{meta.height} ({megapixels:.1f}MP), "
            f"brightness={brightness:.1f}, scene={scene.value}, lighting={lighting.value}"
        )

        if self.vision is not None:
            context = self._refine_with_vision(data, meta.format, context)

        return context

    def _refine_with_vision(self, data: bytes, source_format: str, context: ImageContext) -> ImageContext:
        mime_type = f"image/{'jpeg' if source_format in ('jpg', 'jpeg', 'mpo') else source_format}"
        try:
            result = self.vision.describe(data, VISION_PROMPT, mime_type=mime_type)
        except Exception as e:
            logger.warning(f"⚠️ Vision analysis raised, keeping heuristic result: {e}")
            return context

        if not result.success:
            logger.info(f"ℹ️ Vision analysis unavailable ({result.error}); keeping heuristic result")
            return context

        parsed = parse_vision_response(result.text or "")
        if parsed is None:
            logger.info("ℹ️ Vision response was not parseable JSON; keeping heuristic result")
            return context

        try:
            scene = _enum_or(SceneType, parsed.get("type"), context.scene_type)
            lighting = _enum_or(LightingCondition, parsed.get("lighting"), context.lighting)
            extra_issues = [str(i) for i in _list_or_empty(parsed.get("issues")) if str(i) not in context.issues]
            recommendations = tuple(str(r) for r in _list_or_empty(parsed.get("recommendations")))

            refined = ImageContext(
                scene_type=scene,
                lighting=lighting,
                quality=context.quality,
                issues=context.issues + tuple(extra_issues),
                confidence=self.thresholds.vision_confidence,
                brightness=context.brightness,
                recommendations=recommendations,
            )
        except Exception as e:
            logger.warning(f"⚠️ Vision response had an unexpected shape, keeping heuristic result: {e}")
            return context

        logger.info(f"👁️ Vision analysis: scene={scene.value}, lighting={lighting.value}")
        return refined

    def generate_suggestions(self, data: bytes) -> SmartSuggestions:
        """Recommend enhancement presets for an image"""
        context = self.analyze(data)
        reasons: List[str] = []

        if context.quality == ImageQuality.LOW:
            primary = "high_resolution"
            alternatives = ["real_estate_standard", "replicate_upscale"]
            reasons.append("Low resolution image - upscaling will improve listing quality")
        elif context.lighting == LightingCondition.DIM:
            primary = "real_estate_standard"
            alternatives = ["quick_fix", "ai_professional"]
            reasons.append("Underexposed image - brightening and noise reduction recommended")
        elif context.scene_type == SceneType.EXTERIOR:
            primary = "real_estate_premium"
            alternatives = ["ai_professional", "real_estate_standard"]
            reasons.append("Exterior shot - sky and greenery enhancement will add curb appeal")
        elif context.lighting == LightingCondition.MIXED:
            primary = "ai_professional"
            alternatives = ["real_estate_standard", "quick_fix"]
            reasons.append("Mixed lighting - tone balancing recommended")
        else:
            primary = "quick_fix"
            alternatives = ["real_estate_standard", "replicate_enhance"]
            reasons.append("Well exposed image - a light touch is enough")

        if "Potentially overexposed" in context.issues:
            reasons.append("Highlights may be clipped - avoid further brightening")
        if "Unusual aspect ratio for real estate" in context.issues:
            reasons.append("Consider cropping to a standard listing aspect ratio")
        reasons.extend(context.recommendations)

        return SmartSuggestions(
            primary=primary,
            alternatives=alternatives,
            reasons=reasons,
            confidence=context.confidence,
            issues=list(context.issues),
            context=context,
        )


def parse_vision_response(text: str) -> Optional[Dict[str, Any]]:
    """Pull the first JSON object out of a model response"""
    match = _JSON_OBJECT.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _enum_or(enum_cls, value, default):
    if not isinstance(value, str):
        return default
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        return default


def _list_or_empty(value) -> List[Any]:
    return value if isinstance(value, list) else []
