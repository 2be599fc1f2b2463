"""
Batch Processing Service
Runs independent enhancement requests on a thread pool. Results keep the
input order and one failing image never affects the others.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from .config import get_config, LightingCondition, ImageQuality, SceneType
from .errors import DownloadError, DecodeError
from .models import EnhancementRequest, EnhancementResult, ImageContext, OperationFlags
from .orchestrator import EnhancementOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    results: List[EnhancementResult] = field(default_factory=list)
    processing_time_ms: int = 0
    applied_operations: Optional[OperationFlags] = None
    reference_context: Optional[ImageContext] = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return self.total - self.success_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "processing_time_ms": self.processing_time_ms,
            "operations": self.applied_operations.enabled() if self.applied_operations else None,
            "reference_analysis": self.reference_context.to_dict() if self.reference_context else None,
            "results": [r.to_dict() for r in self.results],
        }


def batch_enhance(
    orchestrator: EnhancementOrchestrator,
    urls: List[str],
    template: EnhancementRequest,
    max_workers: Optional[int] = None,
) -> List[EnhancementResult]:
    """Enhance every URL with the template's options; result i belongs to urls[i]"""
    if not urls:
        return []

    max_workers = max(1, min(max_workers or get_config().batch_max_workers, len(urls)))
    results: List[Optional[EnhancementResult]] = [None] * len(urls)

    logger.info("=" * 60)
    logger.info(f"📦 BATCH START | {len(urls)} images, {max_workers} workers")
    logger.info(f"   Operations: {', '.join(template.operations.enabled()) or 'none'}")
    start = time.time()

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(orchestrator.enhance, template.for_url(url)): index
            for index, url in enumerate(urls)
        }
        for future in as_completed(futures):
            index = futures[future]
            try:
                results[index] = future.result()
            except Exception as e:
                # enhance() does not raise; guard the slot anyway so the batch completes
                logger.error(f"❌ Batch item {index} crashed: {e}", exc_info=True)
                results[index] = EnhancementResult(
                    success=False,
                    source_url=urls[index],
                    provider_used=template.provider.value,
                    error_message=str(e) or "Enhancement failed",
                )

    succeeded = sum(1 for r in results if r.success)
    logger.info(
        f"📦 BATCH END | {succeeded}/{len(urls)} succeeded in {int((time.time() - start) * 1000)}ms"
    )
    logger.info("=" * 60)
    return results


def bias_operations(context: ImageContext, operations: OperationFlags) -> OperationFlags:
    """Switch on the flags the reference image's analysis calls for"""
    return operations.merged(
        lighting=context.lighting == LightingCondition.DIM,
        hdr_merge=context.lighting == LightingCondition.MIXED,
        upscale=context.quality == ImageQuality.LOW,
        noise_reduction=context.quality == ImageQuality.LOW,
        sky_replacement=context.scene_type == SceneType.EXTERIOR,
    )


def smart_batch_enhance(
    orchestrator: EnhancementOrchestrator,
    urls: List[str],
    template: EnhancementRequest,
    max_workers: Optional[int] = None,
) -> BatchSummary:
    """
    Analyse the first image only and apply the biased flags to the whole batch

    The batch is assumed to be one shoot with consistent conditions. If the
    first image cannot be analysed the template flags are used unchanged.
    """
    start = time.time()
    if not urls:
        return BatchSummary(applied_operations=template.operations)

    context: Optional[ImageContext] = None
    operations = template.operations
    try:
        context = orchestrator.analyze(urls[0])
        operations = bias_operations(context, template.operations)
        logger.info(
            f"🧠 Smart batch reference: scene={context.scene_type.value}, "
            f"lighting={context.lighting.value}, quality={context.quality.value} → "
            f"{', '.join(operations.enabled()) or 'none'}"
        )
    except (DownloadError, DecodeError) as e:
        logger.warning(f"⚠️ Could not analyse reference image, using requested flags: {e}")
    except Exception as e:
        context = None
        operations = template.operations
        logger.error(f"❌ Reference analysis failed, using requested flags: {e}", exc_info=True)

    results = batch_enhance(orchestrator, urls, template.with_operations(operations), max_workers)
    return BatchSummary(
        results=results,
        processing_time_ms=int((time.time() - start) * 1000),
        applied_operations=operations,
        reference_context=context,
    )
