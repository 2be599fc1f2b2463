import pytest

from media_pipeline.config import LocalProcessingParams, OutputFormat
from media_pipeline.editor import ImageEditorService
from media_pipeline.local_processor import LocalProcessor
from media_pipeline.models import CropOptions, ResizeOptions, AdjustOptions, EditOperation

PHOTO = "https://cdn.example.com/main/projects/p1/original/kitchen.png"


@pytest.fixture
def editor(fake_storage, make_fetcher, gradient_png):
    return ImageEditorService(
        fake_storage,
        LocalProcessor(LocalProcessingParams()),
        fetch=make_fetcher({PHOTO: gradient_png}),
    )


@pytest.mark.unit
class TestImageEditorService:

    def test_crop_into_project(self, editor, fake_storage):
        result = editor.crop_image(PHOTO, CropOptions(x=10, y=10, width=50, height=40), project_id="p1")

        assert result.success
        assert result.operations_applied == ["crop_50x40"]
        assert (result.metadata.width, result.metadata.height) == (50, 40)
        key, = fake_storage.objects
        assert key.startswith("main/projects/p1/edited/")
        assert fake_storage.objects[key][1] == "image/png"
        assert result.edited_url.endswith(key)

    def test_global_edit(self, editor, fake_storage):
        result = editor.resize_image(PHOTO, ResizeOptions(width=100))
        assert result.success
        key, = fake_storage.objects
        assert key.startswith("main/global/edited/")

    def test_rotate(self, editor):
        result = editor.rotate_image(PHOTO, 270)
        assert (result.metadata.width, result.metadata.height) == (100, 200)
        assert result.operations_applied == ["rotate_270deg"]

    def test_adjust(self, editor):
        result = editor.adjust_image(PHOTO, AdjustOptions(saturation=-100))
        assert result.operations_applied == ["saturation_-100"]

    def test_sequence_uploads_once_in_requested_format(self, editor, fake_storage):
        operations = [
            EditOperation("resize", {"width": 100, "height": 100, "fit": "cover"}),
            EditOperation("rotate", 90),
        ]
        result = editor.perform_edits(PHOTO, operations, project_id="p1", output_format=OutputFormat.JPEG)

        assert result.success
        assert len(fake_storage.uploads) == 1
        key, = fake_storage.objects
        assert key.endswith(".jpg")
        assert fake_storage.objects[key][1] == "image/jpeg"

    def test_failed_edit_uploads_nothing(self, editor, fake_storage):
        result = editor.crop_image(PHOTO, CropOptions(x=150, y=0, width=100, height=10))

        assert not result.success
        assert "exceeds" in result.error
        assert result.edited_url is None
        assert fake_storage.uploads == []

    def test_missing_source(self, editor):
        result = editor.rotate_image("https://cdn.example.com/missing.png", 90)
        assert not result.success
        assert result.to_dict()["error"]

    def test_metadata(self, editor):
        meta = editor.get_image_metadata(PHOTO)
        assert meta.to_dict() == {
            "width": 200,
            "height": 100,
            "format": "png",
            "size_bytes": meta.size_bytes,
            "has_alpha": False,
            "color_space": "RGB",
        }
