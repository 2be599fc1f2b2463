"""
Error taxonomy for the media pipeline

Only InvalidModelError moves a request to the alternate remote provider.
Every other ProviderError sends it straight to local processing.
"""
from typing import Optional


class MediaPipelineError(Exception):
    """Base class for all pipeline errors"""


class ValidationError(MediaPipelineError):
    """Request or edit parameters are invalid; nothing was fetched or called"""


class OutOfBoundsError(ValidationError):
    """Crop rectangle falls outside the image"""


class DownloadError(MediaPipelineError):
    """Fetching bytes from a URL failed"""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class DecodeError(MediaPipelineError):
    """Bytes are not a readable image"""


class UnsupportedOperationError(MediaPipelineError):
    """The requested operation does not apply to this image (e.g. staging an exterior)"""


class ProviderError(MediaPipelineError):
    """A remote enhancement call failed"""

    def __init__(self, message: str, provider: str = "", model_id: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.model_id = model_id
        self.status_code = status_code


class InvalidModelError(ProviderError):
    """Model or version is unknown to the provider (HTTP 404 / 422)"""


class RateLimitedError(ProviderError):
    """Provider throttled the call (HTTP 429)"""


class ProviderTimeoutError(ProviderError):
    """Remote call exceeded its deadline"""


class ProviderAuthError(ProviderError):
    """Credentials rejected (HTTP 401 / 403)"""


class MalformedOutputError(ProviderError):
    """Provider response carried no usable image URL"""


class LocalProcessingError(MediaPipelineError):
    """Local deterministic processing failed"""


class StorageError(MediaPipelineError):
    """Object storage upload or signing failed"""
