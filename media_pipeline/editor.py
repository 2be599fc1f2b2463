"""
Basic image editing service
Download → crop / resize / rotate / adjust → upload to the project's edited folder
"""
import logging
from typing import Callable, List, Optional

from .config import get_config, OutputFormat
from .errors import MediaPipelineError
from .image_io import fetch_bytes, decode_metadata, mime_type_for, extension_for
from .local_processor import LocalProcessor
from .models import (
    EditResult,
    EditOperation,
    CropOptions,
    ResizeOptions,
    AdjustOptions,
    ImageMetadata,
)
from .storage_service import StorageGateway, StoragePaths, generate_unique_filename

logger = logging.getLogger(__name__)


class ImageEditorService:
    """URL-level wrapper around the local editing primitives"""

    def __init__(
        self,
        storage: StorageGateway,
        processor: Optional[LocalProcessor] = None,
        fetch: Callable[[str], bytes] = fetch_bytes,
        paths: Optional[StoragePaths] = None,
    ):
        self.storage = storage
        self.processor = processor or LocalProcessor()
        self.fetch = fetch
        self.paths = paths or getattr(storage, "paths", None) or StoragePaths.for_branch(get_config().storage.branch)

    def crop_image(self, url: str, options: CropOptions, project_id: Optional[str] = None) -> EditResult:
        return self.perform_edits(url, [EditOperation("crop", options)], project_id)

    def resize_image(self, url: str, options: ResizeOptions, project_id: Optional[str] = None) -> EditResult:
        return self.perform_edits(url, [EditOperation("resize", options)], project_id)

    def rotate_image(self, url: str, angle: int, project_id: Optional[str] = None) -> EditResult:
        return self.perform_edits(url, [EditOperation("rotate", angle)], project_id)

    def adjust_image(self, url: str, options: AdjustOptions, project_id: Optional[str] = None) -> EditResult:
        return self.perform_edits(url, [EditOperation("adjust", options)], project_id)

    def perform_edits(
        self,
        url: str,
        operations: List[EditOperation],
        project_id: Optional[str] = None,
        output_format: OutputFormat = OutputFormat.PNG,
    ) -> EditResult:
        """Apply edits in order and upload the final image once"""
        try:
            source = self.fetch(url)
            outcome = self.processor.perform_sequence(source, operations, output_format)
            metadata = decode_metadata(outcome.data)

            filename = generate_unique_filename(f"edited.{extension_for(output_format)}")
            if project_id:
                key = self.paths.project(project_id, "edited", filename)
            else:
                key = self.paths.global_media("edited", filename)
            edited_url = self.storage.put(outcome.data, key, mime_type_for(output_format))
        except MediaPipelineError as e:
            logger.warning(f"✂️ Edit failed for {url}: {e}")
            return EditResult(success=False, original_url=url, error=str(e))

        logger.info(f"✂️ Edited {url}: {', '.join(outcome.operations_applied)} → {edited_url}")
        return EditResult(
            success=True,
            original_url=url,
            edited_url=edited_url,
            operations_applied=outcome.operations_applied,
            metadata=metadata,
        )

    def get_image_metadata(self, url: str) -> ImageMetadata:
        return decode_metadata(self.fetch(url))
