"""
Remote Enhancement Providers
Primary tier: Replicate predictions API (hosted open models)
Secondary tier: OpenAI image edits (prompt driven)

Both speak plain REST over httpx. HTTP failures are mapped onto the
ProviderError hierarchy so the orchestrator can decide between trying the
other provider and falling back to local processing.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Tuple, Callable

import httpx

from .config import get_config, Config, ProviderTier, QualityLevel, OutputFormat
from .errors import (
    ProviderError,
    InvalidModelError,
    RateLimitedError,
    ProviderTimeoutError,
    ProviderAuthError,
    MalformedOutputError,
    DownloadError,
    DecodeError,
)
from .image_io import fetch_bytes, resize_to_fit
from .models import StrategyPlan, EnhancementRequest

logger = logging.getLogger(__name__)


def raise_for_provider_status(response: httpx.Response, provider: str, model_id: str) -> None:
    """Map a non-2xx provider response onto the error taxonomy"""
    if response.is_success:
        return

    status = response.status_code
    detail = response.text[:300]
    message = f"{provider} returned HTTP {status} for {model_id}: {detail}"

    if status in (404, 422):
        raise InvalidModelError(message, provider=provider, model_id=model_id, status_code=status)
    if status == 429:
        raise RateLimitedError(message, provider=provider, model_id=model_id, status_code=status)
    if status in (401, 403):
        raise ProviderAuthError(message, provider=provider, model_id=model_id, status_code=status)
    raise ProviderError(message, provider=provider, model_id=model_id, status_code=status)


class RemoteProvider(ABC):
    """
    A hosted image enhancement service

    Typical workflow:
        model_id, params = provider.prepare(plan, image_url, request)
        raw = provider.invoke(model_id, params)
        url = normalize_output(raw)
    """

    name: str = ""

    def __init__(self, timeout: float, client: Optional[httpx.Client] = None):
        self.timeout = timeout
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        # Batch workers share one provider instance
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
            return self._client

    def _send(self, model_id: str, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"{self.name} timed out after {self.timeout}s", provider=self.name, model_id=model_id
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} request failed: {e}", provider=self.name, model_id=model_id) from e
        raise_for_provider_status(response, self.name, model_id)
        return response

    @abstractmethod
    def prepare(self, plan: StrategyPlan, image_url: str, request: EnhancementRequest) -> Tuple[str, Dict[str, Any]]:
        """
        Translate a strategy plan into this provider's model id and input

        Args:
            plan: Plan from the strategy selector
            image_url: Fetchable URL of the source image
            request: The originating request

        Returns:
            (model_id, input_params)
        """

    @abstractmethod
    def invoke(self, model_id: str, input_params: Dict[str, Any]) -> Any:
        """
        Run the model and return its raw output payload

        Raises:
            ProviderError (or a subclass) on any failure
        """

    @abstractmethod
    def estimate_cost(self, plan: StrategyPlan, request: EnhancementRequest) -> float:
        """USD cost of one call for this plan"""

    def close(self) -> None:
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None


class ReplicateProvider(RemoteProvider):
    """Replicate predictions API; polls until the prediction settles"""

    name = "replicate"
    TERMINAL_STATES = ("succeeded", "failed", "canceled")

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.replicate.com/v1",
        timeout: float = 120.0,
        poll_interval: float = 1.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not api_token:
            raise ValueError("API token required for replicate provider")
        super().__init__(timeout, client)
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self._sleep = sleep

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "Prefer": f"wait={min(int(self.timeout), 60)}",
        }

    def prepare(self, plan: StrategyPlan, image_url: str, request: EnhancementRequest) -> Tuple[str, Dict[str, Any]]:
        return plan.model_id, plan.build_input(image_url)

    def invoke(self, model_id: str, input_params: Dict[str, Any]) -> Any:
        deadline = time.monotonic() + self.timeout

        # "owner/name:version" pins a version; "owner/name" runs the latest
        if ":" in model_id:
            version = model_id.split(":", 1)[1]
            url = f"{self.base_url}/predictions"
            body = {"version": version, "input": input_params}
        else:
            url = f"{self.base_url}/models/{model_id}/predictions"
            body = {"input": input_params}

        logger.info(f"🤖 Replicate prediction: {model_id}")
        response = self._send(model_id, "POST", url, json=body, headers=self.headers)
        prediction = self._json(response, model_id)

        while prediction.get("status") not in self.TERMINAL_STATES:
            if time.monotonic() >= deadline:
                raise ProviderTimeoutError(
                    f"Prediction {prediction.get('id')} still {prediction.get('status')} after {self.timeout}s",
                    provider=self.name, model_id=model_id,
                )
            self._sleep(self.poll_interval)
            poll_url = (prediction.get("urls") or {}).get("get") or f"{self.base_url}/predictions/{prediction.get('id')}"
            prediction = self._json(self._send(model_id, "GET", poll_url, headers=self.headers), model_id)

        status = prediction.get("status")
        if status != "succeeded":
            raise ProviderError(
                f"Prediction {prediction.get('id')} {status}: {prediction.get('error')}",
                provider=self.name, model_id=model_id,
            )

        metrics = prediction.get("metrics") or {}
        logger.info(f"✅ Replicate prediction succeeded ({metrics.get('predict_time', '?')}s)")
        return prediction.get("output")

    def _json(self, response: httpx.Response, model_id: str) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedOutputError("Replicate returned non-JSON response", provider=self.name, model_id=model_id) from e
        if not isinstance(data, dict):
            raise MalformedOutputError("Replicate returned unexpected payload", provider=self.name, model_id=model_id)
        return data

    def estimate_cost(self, plan: StrategyPlan, request: EnhancementRequest) -> float:
        return plan.estimated_cost


class OpenAIImageProvider(RemoteProvider):
    """OpenAI image edit endpoint; the plan is expressed as a prompt"""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "dall-e-2",
        size: str = "1024x1024",
        timeout: float = 120.0,
        client: Optional[httpx.Client] = None,
        fetch: Callable[[str], bytes] = fetch_bytes,
        cost_per_image: float = 0.02,
        premium_multiplier: float = 1.5,
    ):
        if not api_key:
            raise ValueError("API key required for openai provider")
        super().__init__(timeout, client)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.size = size
        self._fetch = fetch
        self.cost_per_image = cost_per_image
        self.premium_multiplier = premium_multiplier

    def prepare(self, plan: StrategyPlan, image_url: str, request: EnhancementRequest) -> Tuple[str, Dict[str, Any]]:
        return self.model, {"image_url": image_url, "prompt": plan.prompt, "size": self.size}

    def invoke(self, model_id: str, input_params: Dict[str, Any]) -> Any:
        output_cfg = get_config().output
        try:
            source = self._fetch(input_params["image_url"])
            # The edit endpoint only accepts PNGs under 4MB
            png = resize_to_fit(
                source,
                max_bytes=output_cfg.remote_max_bytes,
                max_dimension=output_cfg.remote_max_dimension,
                fmt=OutputFormat.PNG,
            )
        except (DownloadError, DecodeError) as e:
            raise ProviderError(f"Could not prepare image for OpenAI: {e}", provider=self.name, model_id=model_id) from e

        logger.info(f"🤖 OpenAI image edit: {model_id} ({len(png) / 1024:.0f}KB input)")
        response = self._send(
            model_id,
            "POST",
            f"{self.base_url}/images/edits",
            headers={"Authorization": f"Bearer {self.api_key}"},
            files={"image": ("image.png", png, "image/png")},
            data={
                "model": model_id,
                "prompt": input_params["prompt"],
                "n": "1",
                "size": input_params.get("size", self.size),
                "response_format": "url",
            },
        )

        try:
            data = response.json().get("data") or []
        except (ValueError, AttributeError) as e:
            raise MalformedOutputError("OpenAI returned non-JSON response", provider=self.name, model_id=model_id) from e
        if not isinstance(data, list) or not data or not isinstance(data[0], dict) or not data[0].get("url"):
            raise MalformedOutputError("No image URL in OpenAI response", provider=self.name, model_id=model_id)

        logger.info("✅ OpenAI image edit succeeded")
        return {"url": data[0]["url"]}

    def estimate_cost(self, plan: StrategyPlan, request: EnhancementRequest) -> float:
        cost = self.cost_per_image
        if request.quality == QualityLevel.PREMIUM:
            cost *= self.premium_multiplier
        return round(cost, 4)


class ProviderFactory:
    """
    Builds provider instances from configuration

    Usage:
        provider = ProviderFactory.create("replicate", api_token)
        providers = ProviderFactory.from_config(get_config())
    """

    _providers = {
        ReplicateProvider.name: ReplicateProvider,
        OpenAIImageProvider.name: OpenAIImageProvider,
    }

    @classmethod
    def create(cls, provider_type: str, api_key: str, **kwargs) -> RemoteProvider:
        provider_type = provider_type.lower().strip()
        if provider_type not in cls._providers:
            supported = ", ".join(cls._providers.keys())
            raise ValueError(f"Unknown enhancement provider: '{provider_type}'. Supported: {supported}")
        return cls._providers[provider_type](api_key, **kwargs)

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> Dict[ProviderTier, RemoteProvider]:
        """Instantiate every configured tier; unconfigured tiers are left out"""
        cfg = (config or get_config()).providers
        providers: Dict[ProviderTier, RemoteProvider] = {}

        if cfg.has_primary:
            providers[ProviderTier.PRIMARY] = cls.create(
                ReplicateProvider.name,
                cfg.replicate_api_token,
                base_url=cfg.replicate_base_url,
                timeout=cfg.timeout_seconds,
                poll_interval=cfg.poll_interval_seconds,
            )
        if cfg.has_secondary:
            providers[ProviderTier.SECONDARY] = cls.create(
                OpenAIImageProvider.name,
                cfg.openai_api_key,
                base_url=cfg.openai_base_url,
                model=cfg.openai_image_model,
                size=cfg.openai_image_size,
                timeout=cfg.timeout_seconds,
                cost_per_image=cfg.secondary_cost_per_image,
                premium_multiplier=cfg.premium_cost_multiplier,
            )

        logger.info(f"🔌 Remote providers configured: {[t.value for t in providers] or 'none'}")
        return providers
