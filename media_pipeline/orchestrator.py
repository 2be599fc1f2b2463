"""
Enhancement Orchestrator - Remote AI with Local Fallback

Pipeline Flow:
1. Validate request (fail fast, nothing fetched)
2. Fetch source → Content analysis → Strategy selection
3. Requested remote provider → alternate provider (invalid model only)
4. Local deterministic processing when remote tiers are unavailable or fail
5. Re-encode → Upload → EnhancementResult

enhance() never raises; every failure ends up in the returned result.
"""
import logging
import time
import uuid
from typing import Dict, Optional, List, Callable

from .analyzer import ContentAnalyzer
from .config import get_config, Config, ProviderTier, QualityLevel, OutputFormat
from .errors import (
    ValidationError,
    DownloadError,
    DecodeError,
    UnsupportedOperationError,
    ProviderError,
    InvalidModelError,
    LocalProcessingError,
    StorageError,
)
from .image_io import fetch_bytes, reencode, mime_type_for, extension_for
from .local_processor import LocalProcessor
from .logging_config import create_request_logger
from .models import EnhancementRequest, EnhancementResult, ImageContext, StrategyPlan
from .providers import RemoteProvider, ProviderFactory
from .remote_output import normalize_output
from .storage_service import StorageGateway, R2StorageService, StoragePaths, generate_unique_filename
from .strategy import StrategySelector
from .vision_service import GeminiVisionService

logger = logging.getLogger(__name__)

LOCAL_TIER = "local"


class EnhancementOrchestrator:
    """
    Runs one enhancement request through the provider chain

    Dependencies are passed in explicitly; create_orchestrator() wires them
    from configuration.
    """

    def __init__(
        self,
        storage: StorageGateway,
        providers: Optional[Dict[ProviderTier, RemoteProvider]] = None,
        analyzer: Optional[ContentAnalyzer] = None,
        selector: Optional[StrategySelector] = None,
        local: Optional[LocalProcessor] = None,
        fetch: Callable[[str], bytes] = fetch_bytes,
        paths: Optional[StoragePaths] = None,
        config: Optional[Config] = None,
    ):
        self.config = config or get_config()
        self.storage = storage
        self.providers = providers or {}
        self.analyzer = analyzer or ContentAnalyzer(self.config.analyzer)
        self.selector = selector or StrategySelector(self.config.providers)
        self.local = local or LocalProcessor(self.config.local)
        self.fetch = fetch
        self.paths = paths or getattr(storage, "paths", None) or StoragePaths.for_branch(self.config.storage.branch)

        logger.info("=" * 60)
        logger.info("🏠 EnhancementOrchestrator Initialized")
        logger.info(f"   Remote tiers: {[t.value for t in self.providers] or 'none (local only)'}")
        logger.info(f"   Storage prefix: {self.paths.prefix}")
        logger.info("=" * 60)

    def provider_chain(self, requested: ProviderTier) -> List[RemoteProvider]:
        """Requested tier first, then the alternate, skipping unconfigured tiers"""
        order = [requested] + [t for t in (ProviderTier.PRIMARY, ProviderTier.SECONDARY) if t != requested]
        return [self.providers[t] for t in order if t in self.providers]

    def _requested_provider_name(self, request: EnhancementRequest) -> str:
        """Name of the provider the request would start on"""
        remotes = self.provider_chain(request.provider)
        return remotes[0].name if remotes else LOCAL_TIER

    def enhance(self, request: EnhancementRequest) -> EnhancementResult:
        request_id = uuid.uuid4().hex[:12]
        rlog = create_request_logger(__name__)
        rlog.start_request(
            request_id,
            "enhance",
            source=request.source_url,
            operations=", ".join(request.operations.enabled()) or "none",
            provider=request.provider.value,
            quality=request.quality.value,
            format=request.output_format.value,
        )
        start = time.time()
        chain: List[str] = []

        try:
            result = self._run(request, request_id, rlog, chain, start)
        except Exception as e:
            # Last line of defence: enhance() must always return a result
            logger.error(f"[{request_id}] Unexpected enhancement failure: {e}", exc_info=True)
            result = self._failure(request, request_id, str(e), chain[-1] if chain else self._requested_provider_name(request), chain, start)

        rlog.end_request(
            result.success,
            provider=result.provider_used,
            chain=" → ".join(result.fallback_chain) or "-",
            operations=", ".join(result.operations_applied) or "-",
            cost=result.estimated_cost,
            error=result.error_message or "-",
        )
        return result

    def _run(self, request, request_id, rlog, chain: List[str], start: float) -> EnhancementResult:
        try:
            request.validate()
        except ValidationError as e:
            rlog.warning(f"❌ Invalid request: {e}")
            return self._failure(request, request_id, str(e), self._requested_provider_name(request), chain, start)

        source_bytes: Optional[bytes] = None
        remotes = self.provider_chain(request.provider)

        if not remotes:
            rlog.info("ℹ️ No remote provider configured - using local processing")
        else:
            try:
                source_bytes = self.fetch(request.source_url)
                context = self.analyzer.analyze(source_bytes)
                rlog.log_analysis(context.to_dict())
                plan = self.selector.select_strategy(context, request)
            except UnsupportedOperationError as e:
                rlog.warning(f"🚫 {e}")
                return self._failure(request, request_id, str(e), remotes[0].name, chain, start)
            except (DownloadError, DecodeError) as e:
                rlog.log_tier_switch("analysis", LOCAL_TIER, str(e))
                plan = None
            except Exception as e:
                logger.error(f"[{request_id}] Content analysis failed: {e}", exc_info=True)
                rlog.log_tier_switch("analysis", LOCAL_TIER, f"{type(e).__name__}: {e}")
                plan = None

            if plan is not None:
                remote = self._try_remote(request, plan, remotes, rlog, chain)
                if remote is not None:
                    provider, enhanced_bytes, cost = remote
                    return self._store(request, request_id, enhanced_bytes, provider.name, plan.operations_applied, cost, chain, start, rlog)

        # Local tier
        chain.append(LOCAL_TIER)
        try:
            if source_bytes is None:
                source_bytes = self.fetch(request.source_url)
            outcome = self.local.apply(
                source_bytes,
                request.operations,
                request.output_format,
                self._quality_hint(request),
            )
        except (DownloadError, LocalProcessingError) as e:
            rlog.error(f"❌ Local processing failed: {e}")
            return self._failure(request, request_id, str(e), LOCAL_TIER, chain, start)

        rlog.log_local_processing(outcome.operations_applied)
        return self._store(request, request_id, outcome.data, LOCAL_TIER, outcome.operations_applied, 0.0, chain, start, rlog)

    def _try_remote(self, request, plan: StrategyPlan, remotes: List[RemoteProvider], rlog, chain: List[str]):
        """Returns (provider, image_bytes, cost) or None when local should take over"""
        image_url = self._remote_readable_url(request.source_url, rlog)
        rlog.log_strategy(plan.strategy.value, plan.model_id, plan.estimated_cost)

        for index, provider in enumerate(remotes):
            chain.append(provider.name)
            try:
                model_id, params = provider.prepare(plan, image_url, request)
                rlog.log_model_call(provider.name, model_id)
                raw = provider.invoke(model_id, params)
                output_url = normalize_output(raw)
                enhanced = reencode(self.fetch(output_url), request.output_format, self._quality_hint(request))
                return provider, enhanced, provider.estimate_cost(plan, request)
            except InvalidModelError as e:
                has_alternate = index + 1 < len(remotes)
                next_tier = remotes[index + 1].name if has_alternate else LOCAL_TIER
                rlog.log_tier_switch(provider.name, next_tier, f"invalid model: {e}")
                if not has_alternate:
                    return None
            except (ProviderError, DownloadError, DecodeError) as e:
                rlog.log_tier_switch(provider.name, LOCAL_TIER, f"{type(e).__name__}: {e}")
                return None
            except Exception as e:
                logger.error(f"Unexpected {provider.name} failure: {e}", exc_info=True)
                rlog.log_tier_switch(provider.name, LOCAL_TIER, f"{type(e).__name__}: {e}")
                return None
        return None

    def _remote_readable_url(self, source_url: str, rlog) -> str:
        """Internal media URLs are private; give providers a signed link instead"""
        key = self.storage.extract_file_key(source_url)
        if not key:
            return source_url
        try:
            signed = self.storage.signed_get(key, self.config.storage.signed_url_ttl)
            rlog.info(f"🔏 Signed source URL for {key}")
            return signed
        except StorageError as e:
            rlog.warning(f"⚠️ Could not sign {key}, sending original URL: {e}")
            return source_url

    def _store(
        self,
        request: EnhancementRequest,
        request_id: str,
        image_bytes: bytes,
        provider_used: str,
        operations: List[str],
        cost: float,
        chain: List[str],
        start: float,
        rlog,
    ) -> EnhancementResult:
        """Upload already-encoded result bytes and build the success result"""
        try:
            filename = generate_unique_filename(f"enhanced-{provider_used}.{extension_for(request.output_format)}")
            if request.project_id:
                key = self.paths.project(request.project_id, "ai-enhanced", filename)
            else:
                key = self.paths.global_media("ai-enhanced", filename)
            url = self.storage.put(image_bytes, key, mime_type_for(request.output_format))
        except StorageError as e:
            rlog.error(f"❌ Could not store result: {e}")
            return self._failure(request, request_id, str(e), provider_used, chain, start)

        return EnhancementResult(
            success=True,
            source_url=request.source_url,
            enhanced_url=url,
            operations_applied=list(operations),
            processing_time_ms=int((time.time() - start) * 1000),
            estimated_cost=cost,
            provider_used=provider_used,
            request_id=request_id,
            fallback_chain=list(chain),
        )

    def _failure(self, request, request_id, message, provider_used, chain, start) -> EnhancementResult:
        return EnhancementResult(
            success=False,
            source_url=request.source_url,
            error_message=message or "Enhancement failed",
            provider_used=provider_used,
            processing_time_ms=int((time.time() - start) * 1000),
            request_id=request_id,
            fallback_chain=list(chain),
        )

    def _quality_hint(self, request: EnhancementRequest) -> Optional[int]:
        if request.quality == QualityLevel.PREMIUM and request.output_format == OutputFormat.JPEG:
            return self.config.output.jpeg_premium_quality
        return None

    def analyze(self, source_url: str) -> ImageContext:
        """Content analysis for a URL (used by suggestions and smart batches)"""
        return self.analyzer.analyze(self.fetch(source_url))


def create_orchestrator(config: Optional[Config] = None, storage: Optional[StorageGateway] = None) -> EnhancementOrchestrator:
    """Wire an orchestrator from configuration"""
    config = config or get_config()

    vision = None
    if config.providers.has_vision:
        vision = GeminiVisionService(
            api_key=config.providers.gemini_api_key,
            model=config.providers.gemini_model,
            timeout=config.providers.vision_timeout_seconds,
        )

    return EnhancementOrchestrator(
        storage=storage or R2StorageService(config.storage),
        providers=ProviderFactory.from_config(config),
        analyzer=ContentAnalyzer(config.analyzer, vision=vision),
        selector=StrategySelector(config.providers),
        local=LocalProcessor(config.local),
        config=config,
    )
