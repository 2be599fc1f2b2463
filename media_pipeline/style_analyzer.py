"""
Style / Similarity Analyzer
Coarse visual fingerprints (tone, saturation, contrast, lighting) used to
find photos in a project that share a look, e.g. to pick a style-transfer
reference.
"""
import logging
from typing import Callable, Iterable, List, Optional, Tuple

import cv2

from .config import ColorTemperature, SaturationBand, ContrastBand, LightingCharacter
from .errors import DownloadError, DecodeError
from .image_io import fetch_bytes, load_image, to_array
from .models import StyleFingerprint, StyleMatch

logger = logging.getLogger(__name__)

# Similarity weights
WEIGHT_TEMPERATURE = 0.25
WEIGHT_LIGHTING = 0.25
WEIGHT_CONTRAST = 0.2
WEIGHT_SATURATION = 0.2
ALL_MATCH_BONUS = 0.1

RECOMMEND_SIMILARITY = 0.6
RECOMMEND_QUALITY = 0.5
DEFAULT_LIMIT = 10

# Thresholds on the 0-255 scale
TEMPERATURE_DELTA = 10.0
MUTED_SATURATION = 60.0
VIBRANT_SATURATION = 130.0
LOW_CONTRAST_STD = 40.0
HIGH_CONTRAST_STD = 70.0
BRIGHT_MEAN = 170.0

# Quality score references
REFERENCE_MEGAPIXELS = 8.0
REFERENCE_SHARPNESS = 300.0


def fingerprint(data: bytes) -> StyleFingerprint:
    """
    Compute the style fingerprint of an image

    Raises:
        DecodeError: bytes are not a readable image
    """
    img = load_image(data)
    rgb = to_array(img)
    red, green, blue = (float(rgb[:, :, i].mean()) for i in range(3))

    if red - blue > TEMPERATURE_DELTA:
        temperature = ColorTemperature.WARM
    elif blue - red > TEMPERATURE_DELTA:
        temperature = ColorTemperature.COOL
    else:
        temperature = ColorTemperature.NEUTRAL

    hsv = cv2.cvtColor(rgb, cv2.COLOR_RGB2HSV)
    mean_saturation = float(hsv[:, :, 1].mean())
    if mean_saturation < MUTED_SATURATION:
        saturation = SaturationBand.MUTED
    elif mean_saturation > VIBRANT_SATURATION:
        saturation = SaturationBand.VIBRANT
    else:
        saturation = SaturationBand.NATURAL

    gray = cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY)
    mean_luma = float(gray.mean())
    std_luma = float(gray.std())
    if std_luma < LOW_CONTRAST_STD:
        contrast = ContrastBand.LOW
    elif std_luma > HIGH_CONTRAST_STD:
        contrast = ContrastBand.HIGH
    else:
        contrast = ContrastBand.MEDIUM

    if mean_luma > BRIGHT_MEAN:
        lighting = LightingCharacter.BRIGHT
    elif std_luma > HIGH_CONTRAST_STD:
        lighting = LightingCharacter.DRAMATIC
    elif std_luma < LOW_CONTRAST_STD:
        lighting = LightingCharacter.SOFT
    else:
        lighting = LightingCharacter.NATURAL

    megapixels = (img.width * img.height) / 1_000_000
    sharpness = float(cv2.Laplacian(gray, cv2.CV_64F).var())
    quality = 0.5 * min(1.0, megapixels / REFERENCE_MEGAPIXELS) + 0.5 * min(1.0, sharpness / REFERENCE_SHARPNESS)

    return StyleFingerprint(
        color_temperature=temperature,
        saturation_band=saturation,
        contrast_band=contrast,
        lighting_character=lighting,
        quality_score=round(min(1.0, max(0.0, quality)), 4),
    )


def similarity(a: StyleFingerprint, b: StyleFingerprint) -> Tuple[float, List[str]]:
    """Weighted band agreement in [0, 1] plus the names of matching features"""
    score = 0.0
    matched: List[str] = []

    if a.color_temperature == b.color_temperature:
        score += WEIGHT_TEMPERATURE
        matched.append("color_temperature")
    if a.lighting_character == b.lighting_character:
        score += WEIGHT_LIGHTING
        matched.append("lighting")
    if a.contrast_band == b.contrast_band:
        score += WEIGHT_CONTRAST
        matched.append("contrast")
    if a.saturation_band == b.saturation_band:
        score += WEIGHT_SATURATION
        matched.append("saturation")
    if len(matched) == 4:
        score += ALL_MATCH_BONUS

    return round(min(score, 1.0), 4), matched


class StyleAnalyzer:
    """Fetches images by URL and compares their fingerprints"""

    def __init__(self, fetch: Callable[[str], bytes] = fetch_bytes):
        self._fetch = fetch

    def analyze_style(self, url: str) -> StyleFingerprint:
        return fingerprint(self._fetch(url))

    def find_similar(
        self,
        target_url: str,
        candidates: Iterable[Tuple[str, str]],
        limit: int = DEFAULT_LIMIT,
        exclude_id: Optional[str] = None,
    ) -> List[StyleMatch]:
        """
        Rank candidate images by style similarity to the target

        Args:
            target_url: Reference image URL
            candidates: (image_id, url) pairs
            limit: Maximum matches to return
            exclude_id: Candidate id to skip (usually the target itself)

        Unreadable candidates are skipped; an unreadable target raises.
        """
        target = self.analyze_style(target_url)
        matches: List[StyleMatch] = []

        for image_id, url in candidates:
            if exclude_id is not None and image_id == exclude_id:
                continue
            try:
                candidate = self.analyze_style(url)
            except (DownloadError, DecodeError) as e:
                logger.warning(f"⚠️ Skipping candidate {image_id}: {e}")
                continue

            score, matched = similarity(target, candidate)
            matches.append(
                StyleMatch(
                    image_id=image_id,
                    url=url,
                    similarity=score,
                    matched_features=matched,
                    recommended_for_style_transfer=(
                        score > RECOMMEND_SIMILARITY and candidate.quality_score > RECOMMEND_QUALITY
                    ),
                    fingerprint=candidate,
                )
            )

        matches.sort(key=lambda m: m.similarity, reverse=True)
        logger.info(f"🎨 Style matches for {target_url}: {len(matches)} scored, returning {min(limit, len(matches))}")
        return matches[:limit]
