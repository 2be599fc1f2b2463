import io

import numpy as np
import pytest
from PIL import Image

from media_pipeline.config import LocalProcessingParams, OutputFormat
from media_pipeline.errors import ValidationError, OutOfBoundsError, LocalProcessingError
from media_pipeline.image_io import load_image, decode_metadata
from media_pipeline.local_processor import LocalProcessor
from media_pipeline.models import OperationFlags, ResizeOptions, AdjustOptions, EditOperation


@pytest.fixture
def processor():
    return LocalProcessor(LocalProcessingParams())


def brightness(data):
    return float(np.asarray(load_image(data).convert("L"), dtype=np.float32).mean())


@pytest.mark.unit
class TestEnhancement:

    def test_lighting_brightens_dim_photo(self, processor, dim_interior_png):
        outcome = processor.apply(dim_interior_png, OperationFlags(lighting=True))
        assert outcome.operations_applied == ["lighting_enhancement", "color_grading"]
        assert brightness(outcome.data) > brightness(dim_interior_png) + 20

    def test_same_input_same_bytes(self, processor, dim_interior_png):
        flags = OperationFlags(lighting=True, noise_reduction=True, upscale=True)
        assert processor.process(dim_interior_png, flags) == processor.process(dim_interior_png, flags)

    def test_stage_order(self, processor, mixed_interior_png):
        flags = OperationFlags(quality_boost=True, lighting=True, upscale=True)
        outcome = processor.apply(mixed_interior_png, flags)
        assert outcome.operations_applied == [
            "noise_reduction", "sharpening", "lighting_enhancement", "color_grading", "upscale_1.5x",
        ]

    def test_noise_reduction_alone_skips_grading(self, processor, mixed_interior_png):
        outcome = processor.apply(mixed_interior_png, OperationFlags(noise_reduction=True))
        assert outcome.operations_applied == ["noise_reduction", "sharpening"]

    def test_upscale(self, processor, mixed_interior_png):
        outcome = processor.apply(mixed_interior_png, OperationFlags(upscale=True), OutputFormat.PNG)
        assert load_image(outcome.data).size == (480, 360)

    def test_upscale_respects_max_dimension(self, mixed_interior_png):
        processor = LocalProcessor(LocalProcessingParams(upscale_max_dimension=400))
        outcome = processor.apply(mixed_interior_png, OperationFlags(upscale=True), OutputFormat.PNG)
        assert max(load_image(outcome.data).size) == 400

    def test_no_flags_only_converts(self, processor, mixed_interior_png):
        outcome = processor.apply(mixed_interior_png, OperationFlags(), OutputFormat.JPEG)
        assert outcome.operations_applied == ["format_conversion"]
        assert outcome.data.startswith(b"\xff\xd8")

    def test_webp_output(self, processor, mixed_interior_png):
        data = processor.process(mixed_interior_png, OperationFlags(lighting=True), OutputFormat.WEBP)
        assert data[8:12] == b"WEBP"

    def test_garbage_input(self, processor):
        with pytest.raises(LocalProcessingError):
            processor.apply(b"not an image", OperationFlags(lighting=True))


@pytest.mark.unit
class TestCrop:

    def test_crop(self, processor, gradient_png):
        outcome = processor.crop(gradient_png, 10, 10, 50, 40)
        assert outcome.operations_applied == ["crop_50x40"]
        meta = decode_metadata(outcome.data)
        assert (meta.width, meta.height) == (50, 40)
        assert meta.format == "png"

    def test_crop_to_full_frame(self, processor, gradient_png):
        assert load_image(processor.crop(gradient_png, 0, 0, 200, 100).data).size == (200, 100)

    def test_out_of_bounds(self, processor, gradient_png):
        with pytest.raises(OutOfBoundsError):
            processor.crop(gradient_png, 180, 0, 50, 10)

    def test_out_of_bounds_is_a_validation_error(self):
        assert issubclass(OutOfBoundsError, ValidationError)

    @pytest.mark.parametrize("x, y, w, h", [(-1, 0, 10, 10), (0, -5, 10, 10), (0, 0, 0, 10), (0, 0, 10, -3)])
    def test_invalid_rectangle(self, processor, gradient_png, x, y, w, h):
        with pytest.raises(ValidationError):
            processor.crop(gradient_png, x, y, w, h)


@pytest.mark.unit
class TestResize:

    @pytest.mark.parametrize("fit, expected", [
        ("inside", (100, 50)),
        ("outside", (200, 100)),
        ("cover", (100, 100)),
        ("contain", (100, 100)),
        ("fill", (100, 100)),
    ])
    def test_fits(self, processor, gradient_png, fit, expected):
        outcome = processor.resize(gradient_png, ResizeOptions(width=100, height=100, fit=fit))
        assert load_image(outcome.data).size == expected
        assert outcome.operations_applied == [f"resize_{expected[0]}x{expected[1]}"]

    def test_width_only_keeps_aspect(self, processor, gradient_png):
        assert load_image(processor.resize(gradient_png, ResizeOptions(width=100)).data).size == (100, 50)

    def test_height_only_keeps_aspect(self, processor, gradient_png):
        assert load_image(processor.resize(gradient_png, ResizeOptions(height=25)).data).size == (50, 25)

    def test_needs_a_dimension(self, processor, gradient_png):
        with pytest.raises(ValidationError):
            processor.resize(gradient_png, ResizeOptions())

    def test_rejects_negative(self, processor, gradient_png):
        with pytest.raises(ValidationError):
            processor.resize(gradient_png, ResizeOptions(width=-10))

    def test_rejects_unknown_fit(self, processor, gradient_png):
        with pytest.raises(ValidationError):
            processor.resize(gradient_png, ResizeOptions(width=10, height=10, fit="stretch"))


@pytest.mark.unit
class TestRotate:

    def test_quarter_turn_is_clockwise(self, processor, gradient_png):
        outcome = processor.rotate(gradient_png, 90)
        rotated = np.asarray(load_image(outcome.data))
        assert outcome.operations_applied == ["rotate_90deg"]
        assert rotated.shape[:2] == (200, 100)
        # The bright right edge ends up at the bottom
        assert rotated[-1, 50, 0] > 240
        assert rotated[0, 50, 0] < 15

    def test_negative_angle(self, processor, gradient_png):
        outcome = processor.rotate(gradient_png, -90)
        rotated = np.asarray(load_image(outcome.data))
        assert outcome.operations_applied == ["rotate_-90deg"]
        assert rotated[0, 50, 0] > 240

    def test_half_and_full_turn(self, processor, gradient_png):
        assert load_image(processor.rotate(gradient_png, 180).data).size == (200, 100)
        assert load_image(processor.rotate(gradient_png, 360).data).size == (200, 100)

    def test_rejects_odd_angles(self, processor, gradient_png):
        with pytest.raises(ValidationError):
            processor.rotate(gradient_png, 45)


@pytest.mark.unit
class TestAdjust:

    def test_labels_in_order(self, processor, gradient_png):
        options = AdjustOptions(brightness=20, contrast=-10, hue=30, flip_horizontal=True)
        outcome = processor.adjust(gradient_png, options)
        assert outcome.operations_applied == ["flip_horizontal", "brightness_+20", "contrast_-10", "hue_+30deg"]

    def test_flip_horizontal(self, processor, gradient_png):
        flipped = np.asarray(load_image(processor.adjust(gradient_png, AdjustOptions(flip_horizontal=True)).data))
        assert flipped[50, 0, 0] > 240
        assert flipped[50, -1, 0] < 15

    def test_exposure_brightens(self, processor, mixed_interior_png):
        outcome = processor.adjust(mixed_interior_png, AdjustOptions(exposure=50))
        assert outcome.operations_applied == ["exposure_+50"]
        assert brightness(outcome.data) > brightness(mixed_interior_png) + 30

    def test_alpha_is_kept(self, processor):
        buffer = io.BytesIO()
        Image.new("RGBA", (40, 30), (100, 150, 200, 90)).save(buffer, format="PNG")
        adjusted = load_image(processor.adjust(buffer.getvalue(), AdjustOptions(saturation=40)).data)
        assert adjusted.mode == "RGBA"
        assert adjusted.getpixel((5, 5))[3] == 90

    @pytest.mark.parametrize("options", [
        AdjustOptions(brightness=150),
        AdjustOptions(contrast=-101),
        AdjustOptions(hue=400),
    ])
    def test_out_of_range(self, processor, gradient_png, options):
        with pytest.raises(ValidationError):
            processor.adjust(gradient_png, options)


@pytest.mark.unit
class TestSequence:

    def test_chained_edits(self, processor, gradient_png):
        operations = [
            EditOperation("crop", {"x": 0, "y": 0, "width": 100, "height": 50}),
            EditOperation("rotate", 90),
            EditOperation("adjust", {"brightness": 10}),
        ]
        outcome = processor.perform_sequence(gradient_png, operations, OutputFormat.JPEG)
        assert outcome.operations_applied == ["crop_100x50", "rotate_90deg", "brightness_+10"]
        assert outcome.data.startswith(b"\xff\xd8")
        assert load_image(outcome.data).size == (50, 100)

    def test_rotate_accepts_angle_dict(self, processor, gradient_png):
        outcome = processor.perform_sequence(gradient_png, [EditOperation("rotate", {"angle": 180})])
        assert outcome.operations_applied == ["rotate_180deg"]

    @pytest.mark.parametrize("angle", [90.5, 45.0, "abc", "90", True, None])
    def test_rotate_rejects_non_quarter_turn_angles(self, processor, gradient_png, angle):
        with pytest.raises(ValidationError):
            processor.perform_sequence(gradient_png, [EditOperation("rotate", {"angle": angle})])

    def test_rotate_accepts_whole_float_angle(self, processor, gradient_png):
        outcome = processor.perform_sequence(gradient_png, [EditOperation("rotate", {"angle": 180.0})])
        assert outcome.operations_applied == ["rotate_180deg"]

    @pytest.mark.parametrize("op", [
        EditOperation("crop", {"x": "0", "y": 0, "width": 10, "height": 10}),
        EditOperation("crop", {"x": 0, "y": 0, "width": 10.5, "height": 10}),
        EditOperation("resize", {"width": "100"}),
        EditOperation("adjust", {"brightness": "bright"}),
        EditOperation("adjust", {"hue": None}),
    ])
    def test_non_numeric_options(self, processor, gradient_png, op):
        with pytest.raises(ValidationError):
            processor.perform_sequence(gradient_png, [op])

    def test_stops_at_first_failure(self, processor, gradient_png):
        operations = [
            EditOperation("rotate", 90),
            EditOperation("crop", {"x": 0, "y": 0, "width": 150, "height": 10}),
            EditOperation("adjust", {"brightness": 10}),
        ]
        with pytest.raises(OutOfBoundsError):
            processor.perform_sequence(gradient_png, operations)

    def test_empty(self, processor, gradient_png):
        with pytest.raises(ValidationError):
            processor.perform_sequence(gradient_png, [])

    def test_unknown_type(self, processor, gradient_png):
        with pytest.raises(ValidationError):
            processor.perform_sequence(gradient_png, [EditOperation("blur", {})])

    def test_bad_options(self, processor, gradient_png):
        with pytest.raises(ValidationError):
            processor.perform_sequence(gradient_png, [EditOperation("crop", {"left": 0})])
