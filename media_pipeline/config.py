"""
Configuration settings for the Media Enhancement Pipeline
Real-estate listing photos: remote AI providers with a local fallback
"""
import os
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class ProviderTier(str, Enum):
    """Remote provider tiers, tried in order"""
    PRIMARY = "primary"       # Replicate-style hosted models
    SECONDARY = "secondary"   # OpenAI image edits


class QualityLevel(str, Enum):
    STANDARD = "standard"
    PREMIUM = "premium"


class OutputFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"


class SceneType(str, Enum):
    INTERIOR = "interior"
    EXTERIOR = "exterior"
    UNKNOWN = "unknown"


class LightingCondition(str, Enum):
    BRIGHT = "bright"
    DIM = "dim"
    MIXED = "mixed"


class ImageQuality(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class StrategyKind(str, Enum):
    """Enhancement strategies the selector can pick"""
    STYLE_TRANSFER = "style_transfer"
    VIRTUAL_STAGING = "virtual_staging"
    SKY_REPLACEMENT = "sky_replacement"
    HDR_TONE_BALANCE = "hdr_tone_balance"
    SUPER_RESOLUTION = "super_resolution"
    RESTORATION = "restoration"
    LIGHT_ENHANCEMENT = "light_enhancement"


class ColorTemperature(str, Enum):
    COOL = "cool"
    NEUTRAL = "neutral"
    WARM = "warm"


class SaturationBand(str, Enum):
    MUTED = "muted"
    NATURAL = "natural"
    VIBRANT = "vibrant"


class ContrastBand(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LightingCharacter(str, Enum):
    NATURAL = "natural"
    DRAMATIC = "dramatic"
    SOFT = "soft"
    BRIGHT = "bright"


@dataclass
class AnalyzerThresholds:
    """Thresholds for the heuristic content analyzer"""
    high_quality_megapixels: float = 8.0
    low_quality_megapixels: float = 2.0

    min_aspect_ratio: float = 0.8
    max_aspect_ratio: float = 2.0

    # Mean brightness on the 0-255 scale
    bright_threshold: float = 180.0
    dim_threshold: float = 80.0
    overexposed_threshold: float = 230.0
    exterior_brightness: float = 200.0

    exterior_confidence: float = 0.7
    interior_confidence: float = 0.5
    vision_confidence: float = 0.9


@dataclass
class LocalProcessingParams:
    """Parameters for the local deterministic processor"""
    # Denoise + sharpen
    median_size: int = 3
    unsharp_radius: float = 2.0
    unsharp_percent: int = 120
    unsharp_threshold: int = 3

    # Lighting
    brightness_factor: float = 1.35
    saturation_factor: float = 1.25
    contrast_low_percentile: float = 1.0
    contrast_high_percentile: float = 99.0
    gamma: float = 0.85

    # Colour grading
    grading_saturation: float = 1.1
    grading_brightness: float = 1.05
    grading_sharpen_percent: int = 80

    # Upscaling
    upscale_factor: float = 1.5
    upscale_max_dimension: int = 8192


@dataclass
class OutputParams:
    """Encoder settings for stored results"""
    jpeg_quality: int = 92
    jpeg_premium_quality: int = 95
    webp_quality: int = 90
    png_compression: int = 6

    # Secondary provider upload limits
    remote_max_bytes: int = 4 * 1024 * 1024
    remote_max_dimension: int = 1024


@dataclass
class ProviderConfig:
    """
    Remote AI provider configuration

    Primary tier is a Replicate-style predictions API, secondary tier is the
    OpenAI image edit endpoint. Gemini is only used for content analysis.
    """
    enable_remote: bool = field(
        default_factory=lambda: _env_flag("ENABLE_REMOTE_PROVIDERS", "true")
    )

    replicate_api_token: str = field(default_factory=lambda: os.getenv("REPLICATE_API_TOKEN", ""))
    replicate_base_url: str = field(
        default_factory=lambda: os.getenv("REPLICATE_BASE_URL", "https://api.replicate.com/v1")
    )

    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    openai_base_url: str = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    )
    openai_image_model: str = field(default_factory=lambda: os.getenv("OPENAI_IMAGE_MODEL", "dall-e-2"))
    openai_image_size: str = "1024x1024"

    gemini_api_key: str = field(default_factory=lambda: os.getenv("GEMINI_API_KEY", ""))
    gemini_model: str = field(default_factory=lambda: os.getenv("GEMINI_VISION_MODEL", "gemini-2.5-flash"))
    enable_vision: bool = field(default_factory=lambda: _env_flag("ENABLE_VISION_ANALYSIS", "true"))
    vision_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("VISION_TIMEOUT_SECONDS", "30"))
    )

    # Upper bound for any single remote call (including prediction polling)
    timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "120"))
    )
    poll_interval_seconds: float = 1.0
    download_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "60"))
    )

    premium_cost_multiplier: float = 1.5
    secondary_cost_per_image: float = 0.02

    # Model overrides per strategy
    model_style_transfer: str = field(
        default_factory=lambda: os.getenv("MODEL_STYLE_TRANSFER", "fofr/style-transfer")
    )
    model_virtual_staging: str = field(
        default_factory=lambda: os.getenv("MODEL_VIRTUAL_STAGING", "adirik/interior-design")
    )
    model_sky_replacement: str = field(
        default_factory=lambda: os.getenv("MODEL_SKY_REPLACEMENT", "black-forest-labs/flux-kontext-pro")
    )
    model_hdr: str = field(
        default_factory=lambda: os.getenv("MODEL_HDR", "black-forest-labs/flux-kontext-pro")
    )
    model_upscale: str = field(
        default_factory=lambda: os.getenv("MODEL_UPSCALE", "nightmareai/real-esrgan")
    )
    model_restoration: str = field(
        default_factory=lambda: os.getenv("MODEL_RESTORATION", "tencentarc/gfpgan")
    )

    @property
    def has_primary(self) -> bool:
        return self.enable_remote and bool(self.replicate_api_token)

    @property
    def has_secondary(self) -> bool:
        return self.enable_remote and bool(self.openai_api_key)

    @property
    def has_vision(self) -> bool:
        return self.enable_vision and bool(self.gemini_api_key)


@dataclass
class StorageConfig:
    """Object storage configuration (Cloudflare R2 or any S3 endpoint)"""
    account_id: str = field(default_factory=lambda: os.getenv("R2_ACCOUNT_ID", ""))
    access_key: str = field(default_factory=lambda: os.getenv("R2_ACCESS_KEY_ID", ""))
    secret_key: str = field(default_factory=lambda: os.getenv("R2_SECRET_ACCESS_KEY", ""))
    bucket: str = field(default_factory=lambda: os.getenv("R2_BUCKET_NAME", ""))
    endpoint: str = field(default_factory=lambda: os.getenv("R2_ENDPOINT", ""))
    region: str = field(default_factory=lambda: os.getenv("R2_REGION", "auto"))

    public_domain: str = field(default_factory=lambda: os.getenv("R2_PUBLIC_DOMAIN", ""))
    app_base_url: str = field(
        default_factory=lambda: os.getenv("APP_BASE_URL", os.getenv("NEXTAUTH_URL", "http://localhost:3000"))
    )

    # Branch used to namespace keys; "main" writes to the production prefix
    branch: Optional[str] = field(
        default_factory=lambda: (
            os.getenv("STORAGE_BRANCH")
            or os.getenv("GITHUB_HEAD_REF")
            or os.getenv("GITHUB_REF_NAME")
            or os.getenv("VERCEL_GIT_COMMIT_REF")
        )
    )

    signed_url_ttl: int = field(default_factory=lambda: int(os.getenv("SIGNED_URL_TTL", "3600")))

    @property
    def endpoint_url(self) -> str:
        if self.endpoint:
            return self.endpoint
        if self.account_id:
            return f"https://{self.account_id}.r2.cloudflarestorage.com"
        return ""

    @property
    def is_configured(self) -> bool:
        return bool(self.bucket and self.access_key and self.secret_key)


@dataclass
class APIConfig:
    """API configuration"""
    host: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))
    workers: int = 4

    max_batch_size: int = 50
    cors_origins: list = field(default_factory=lambda: ["*"])


@dataclass
class Config:
    """Main configuration class"""
    analyzer: AnalyzerThresholds = field(default_factory=AnalyzerThresholds)
    local: LocalProcessingParams = field(default_factory=LocalProcessingParams)
    output: OutputParams = field(default_factory=OutputParams)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    api: APIConfig = field(default_factory=APIConfig)

    batch_max_workers: int = 4

    log_level: str = "INFO"
    log_to_file: bool = True

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            batch_max_workers=int(os.getenv("BATCH_MAX_WORKERS", "4")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_to_file=_env_flag("LOG_TO_FILE", "true"),
        )


# Global config instance
_config = None


def get_config() -> Config:
    """Get the global config instance"""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
