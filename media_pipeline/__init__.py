"""
Media Enhancement Pipeline - Core Package
Real-estate listing photo enhancement
Remote AI providers with a deterministic local fallback
"""
from .config import (
    get_config,
    Config,
    ProviderTier,
    QualityLevel,
    OutputFormat,
    SceneType,
    LightingCondition,
    ImageQuality,
    StrategyKind,
)
from .errors import (
    MediaPipelineError,
    ValidationError,
    OutOfBoundsError,
    DownloadError,
    DecodeError,
    UnsupportedOperationError,
    ProviderError,
    InvalidModelError,
    RateLimitedError,
    ProviderTimeoutError,
    ProviderAuthError,
    MalformedOutputError,
    LocalProcessingError,
    StorageError,
)
from .models import (
    OperationFlags,
    EnhancementRequest,
    EnhancementResult,
    ImageContext,
    StrategyPlan,
    StyleFingerprint,
    StyleMatch,
    SmartSuggestions,
    EditOperation,
    CropOptions,
    ResizeOptions,
    AdjustOptions,
    EditResult,
)
from .analyzer import ContentAnalyzer
from .strategy import StrategySelector, build_prompt
from .local_processor import LocalProcessor
from .style_analyzer import StyleAnalyzer, fingerprint, similarity
from .providers import RemoteProvider, ReplicateProvider, OpenAIImageProvider, ProviderFactory
from .remote_output import normalize_output, parse_remote_output
from .storage_service import R2StorageService, StoragePaths, StorageGateway
from .orchestrator import EnhancementOrchestrator, create_orchestrator
from .batch_processor import batch_enhance, smart_batch_enhance, BatchSummary
from .editor import ImageEditorService
from .presets import PRESETS, Preset, get_preset, estimate_cost

__all__ = [
    # Config
    'get_config',
    'Config',
    'ProviderTier',
    'QualityLevel',
    'OutputFormat',
    'SceneType',
    'LightingCondition',
    'ImageQuality',
    'StrategyKind',

    # Errors
    'MediaPipelineError',
    'ValidationError',
    'OutOfBoundsError',
    'DownloadError',
    'DecodeError',
    'UnsupportedOperationError',
    'ProviderError',
    'InvalidModelError',
    'RateLimitedError',
    'ProviderTimeoutError',
    'ProviderAuthError',
    'MalformedOutputError',
    'LocalProcessingError',
    'StorageError',

    # Models
    'OperationFlags',
    'EnhancementRequest',
    'EnhancementResult',
    'ImageContext',
    'StrategyPlan',
    'StyleFingerprint',
    'StyleMatch',
    'SmartSuggestions',
    'EditOperation',
    'CropOptions',
    'ResizeOptions',
    'AdjustOptions',
    'EditResult',

    # Pipeline
    'ContentAnalyzer',
    'StrategySelector',
    'build_prompt',
    'LocalProcessor',
    'StyleAnalyzer',
    'fingerprint',
    'similarity',
    'EnhancementOrchestrator',
    'create_orchestrator',
    'batch_enhance',
    'smart_batch_enhance',
    'BatchSummary',
    'ImageEditorService',

    # Providers & storage
    'RemoteProvider',
    'ReplicateProvider',
    'OpenAIImageProvider',
    'ProviderFactory',
    'normalize_output',
    'parse_remote_output',
    'R2StorageService',
    'StoragePaths',
    'StorageGateway',

    # Presets
    'PRESETS',
    'Preset',
    'get_preset',
    'estimate_cost',
]
