import os
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Dict, Any, Union, Literal
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from media_pipeline.config import get_config, ProviderTier, QualityLevel, OutputFormat
from media_pipeline.errors import ValidationError, DownloadError, DecodeError
from media_pipeline.models import OperationFlags, EnhancementRequest, EditOperation
from media_pipeline.orchestrator import EnhancementOrchestrator, create_orchestrator
from media_pipeline.batch_processor import batch_enhance, smart_batch_enhance, BatchSummary
from media_pipeline.editor import ImageEditorService
from media_pipeline.style_analyzer import StyleAnalyzer
from media_pipeline.presets import PRESETS, get_preset, estimate_cost
from media_pipeline.logging_config import setup_logging

config = get_config()
setup_logging(level=os.getenv("LOG_LEVEL", config.log_level), log_to_file=config.log_to_file)
logger = logging.getLogger(__name__)


# Pydantic models for API
class OperationsModel(BaseModel):
    """Enhancement switches"""
    lighting: bool = False
    sky_replacement: bool = False
    hdr_merge: bool = False
    grass_enhancement: bool = False
    perspective_correction: bool = False
    noise_reduction: bool = False
    upscale: bool = False
    quality_boost: bool = False
    style_transfer: bool = False
    virtual_staging: bool = False

    def to_flags(self) -> OperationFlags:
        return OperationFlags(**self.model_dump())


class EnhanceRequestModel(BaseModel):
    """Request to enhance one image"""
    url: str = Field(..., min_length=1)
    operations: OperationsModel = Field(default_factory=OperationsModel)
    preset: Optional[str] = None
    provider: Optional[ProviderTier] = None
    quality: Optional[QualityLevel] = None
    output_format: OutputFormat = OutputFormat.JPEG
    style_reference_url: Optional[str] = None
    project_id: Optional[str] = None

    def to_request(self, url: Optional[str] = None) -> EnhancementRequest:
        preset = None
        if self.preset:
            preset = get_preset(self.preset)
            if preset is None:
                raise ValidationError(f"Unknown preset '{self.preset}'. Available: {', '.join(PRESETS)}")

        operations = self.operations.to_flags()
        if preset is not None:
            operations = preset.operations.merged(**operations.to_dict())

        return EnhancementRequest(
            source_url=url or self.url,
            operations=operations,
            provider=self.provider or (preset.provider if preset else ProviderTier.PRIMARY),
            quality=self.quality or (preset.quality if preset else QualityLevel.STANDARD),
            output_format=self.output_format,
            style_reference_url=self.style_reference_url,
            project_id=self.project_id,
        )


class BatchEnhanceRequestModel(EnhanceRequestModel):
    """Request to enhance many images with the same options"""
    url: str = ""
    urls: List[str] = Field(..., min_length=1)
    smart: bool = False
    max_workers: Optional[int] = Field(None, ge=1, le=16)


class SuggestionsRequestModel(BaseModel):
    url: str = Field(..., min_length=1)


class StyleCandidateModel(BaseModel):
    id: str
    url: str


class StyleAnalysisRequestModel(BaseModel):
    mode: Literal["analyze", "find_similar"] = "analyze"
    url: str = Field(..., min_length=1)
    image_id: Optional[str] = None
    candidates: List[StyleCandidateModel] = Field(default_factory=list)
    limit: int = Field(10, ge=1, le=50)


class EditOperationModel(BaseModel):
    type: Literal["crop", "resize", "rotate", "adjust"]
    options: Union[Dict[str, Any], int]


class EditRequestModel(BaseModel):
    url: str = Field(..., min_length=1)
    operations: List[EditOperationModel] = Field(..., min_length=1)
    project_id: Optional[str] = None
    output_format: OutputFormat = OutputFormat.PNG


class CostEstimateRequestModel(BaseModel):
    image_count: int = Field(1, ge=0, le=10000)
    operations: OperationsModel = Field(default_factory=OperationsModel)
    provider: ProviderTier = ProviderTier.PRIMARY
    quality: QualityLevel = QualityLevel.STANDARD


@dataclass
class Services:
    orchestrator: EnhancementOrchestrator
    editor: ImageEditorService
    style: StyleAnalyzer


_services: Optional[Services] = None


def get_services() -> Services:
    """Build pipeline services on first use"""
    global _services
    if _services is None:
        orchestrator = create_orchestrator(config)
        _services = Services(
            orchestrator=orchestrator,
            editor=ImageEditorService(orchestrator.storage, orchestrator.local, fetch=orchestrator.fetch),
            style=StyleAnalyzer(fetch=orchestrator.fetch),
        )
    return _services


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info("Starting Media Enhancement API...")
    yield
    logger.info("Shutting down...")
    if _services is not None:
        for provider in _services.orchestrator.providers.values():
            provider.close()


app = FastAPI(
    title="Media Enhancement API",
    description="Listing photo enhancement with remote AI providers and local fallback",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "remote_providers": {
            "primary": config.providers.has_primary,
            "secondary": config.providers.has_secondary,
            "vision": config.providers.has_vision,
        },
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.post("/api/v1/enhance")
async def enhance(body: EnhanceRequestModel, services: Services = Depends(get_services)):
    request = body.to_request()
    request.validate()
    result = await asyncio.to_thread(services.orchestrator.enhance, request)
    return result.to_dict()


@app.post("/api/v1/batch-enhance")
async def batch(body: BatchEnhanceRequestModel, services: Services = Depends(get_services)):
    if len(body.urls) > config.api.max_batch_size:
        raise HTTPException(400, f"Batch too large: {len(body.urls)} > {config.api.max_batch_size}")

    template = body.to_request(url=body.urls[0])
    template.validate()

    if body.smart:
        summary = await asyncio.to_thread(
            smart_batch_enhance, services.orchestrator, body.urls, template, body.max_workers
        )
    else:
        results = await asyncio.to_thread(
            batch_enhance, services.orchestrator, body.urls, template, body.max_workers
        )
        summary = BatchSummary(results=results, applied_operations=template.operations)
    return summary.to_dict()


@app.post("/api/v1/suggestions")
async def suggestions(body: SuggestionsRequestModel, services: Services = Depends(get_services)):
    try:
        data = await asyncio.to_thread(services.orchestrator.fetch, body.url)
        result = await asyncio.to_thread(services.orchestrator.analyzer.generate_suggestions, data)
    except (DownloadError, DecodeError) as e:
        raise HTTPException(400, str(e))
    return result.to_dict()


@app.post("/api/v1/style-analysis")
async def style_analysis(body: StyleAnalysisRequestModel, services: Services = Depends(get_services)):
    try:
        if body.mode == "analyze":
            style = await asyncio.to_thread(services.style.analyze_style, body.url)
            return {"style": style.to_dict(), "description": style.describe()}

        matches = await asyncio.to_thread(
            services.style.find_similar,
            body.url,
            [(c.id, c.url) for c in body.candidates],
            body.limit,
            body.image_id,
        )
    except (DownloadError, DecodeError) as e:
        raise HTTPException(400, str(e))

    return {
        "matches": [m.to_dict() for m in matches],
        "style_transfer_candidates": [m.to_dict() for m in matches if m.recommended_for_style_transfer][:3],
    }


@app.post("/api/v1/edit")
async def edit(body: EditRequestModel, services: Services = Depends(get_services)):
    operations = [EditOperation(type=op.type, options=op.options) for op in body.operations]
    result = await asyncio.to_thread(
        services.editor.perform_edits, body.url, operations, body.project_id, body.output_format
    )
    if not result.success:
        return JSONResponse(status_code=400, content=result.to_dict())
    return result.to_dict()


@app.get("/api/v1/presets")
async def list_presets():
    return {"presets": [preset.to_dict() for preset in PRESETS.values()]}


@app.post("/api/v1/estimate-cost")
async def cost_estimate(body: CostEstimateRequestModel):
    request = EnhancementRequest(
        source_url="estimate",
        operations=body.operations.to_flags(),
        provider=body.provider,
        quality=body.quality,
    )
    return {
        "image_count": body.image_count,
        "estimated_cost_usd": estimate_cost(body.image_count, request),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.main:app", host=config.api.host, port=config.api.port, reload=False)
