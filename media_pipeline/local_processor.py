"""
Local Deterministic Processor
Last-resort enhancement tier plus the basic editing primitives
(crop, resize, rotate, adjust). Pure functions of their input: the same
bytes and options always produce the same output bytes.

Enhancement stages (in order):
1. quality_boost / noise_reduction → median filter + unsharp mask
2. lighting → brightness, saturation, contrast stretch, gamma
3. lighting / quality_boost → auto-levels colour grading + sharpen
4. upscale → Lanczos resize
5. re-encode to the requested format
"""
import logging
import time
from typing import Optional, List, Union, Dict, Any

import cv2
import numpy as np
from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from .config import get_config, LocalProcessingParams, OutputFormat
from .errors import ValidationError, OutOfBoundsError, LocalProcessingError
from .image_io import load_image, to_rgb, to_bytes
from .models import (
    OperationFlags,
    EditOperation,
    EditOutcome,
    CropOptions,
    ResizeOptions,
    AdjustOptions,
)

logger = logging.getLogger(__name__)

RESIZE_FITS = ("cover", "contain", "fill", "inside", "outside")
SOURCE_FORMATS = {"PNG": OutputFormat.PNG, "JPEG": OutputFormat.JPEG, "WEBP": OutputFormat.WEBP}


class LocalProcessor:
    """Deterministic PIL/OpenCV enhancement and editing"""

    def __init__(self, params: Optional[LocalProcessingParams] = None):
        self.params = params or get_config().local

    # ------------------------------------------------------------------
    # Enhancement
    # ------------------------------------------------------------------

    def process(
        self,
        data: bytes,
        operations: OperationFlags,
        output_format: OutputFormat = OutputFormat.JPEG,
        quality_hint: Optional[int] = None,
    ) -> bytes:
        return self.apply(data, operations, output_format, quality_hint).data

    def apply(
        self,
        data: bytes,
        operations: OperationFlags,
        output_format: OutputFormat = OutputFormat.JPEG,
        quality_hint: Optional[int] = None,
    ) -> EditOutcome:
        """
        Run the local enhancement stages and report what was applied

        Raises:
            LocalProcessingError: anything went wrong, including undecodable input
        """
        start = time.time()
        applied: List[str] = []
        try:
            img = to_rgb(load_image(data))
            original_size = img.size

            if operations.quality_boost or operations.noise_reduction:
                img = self._denoise_and_sharpen(img)
                applied.extend(["noise_reduction", "sharpening"])

            if operations.lighting:
                img = self._enhance_lighting(img)
                applied.append("lighting_enhancement")

            if operations.lighting or operations.quality_boost:
                img = self._color_grade(img)
                applied.append("color_grading")

            if operations.upscale:
                img = self._upscale(img)
                applied.append(f"upscale_{self.params.upscale_factor:g}x")

            if not applied:
                applied.append("format_conversion")

            output = to_bytes(img, output_format, quality_hint)
        except Exception as e:
            raise LocalProcessingError(f"Local processing failed: {e}") from e

        logger.info(
            f"💻 Local processing: {', '.join(applied)} | "
            f"{original_size[0]}x{original_size[1]} → {img.width}x{img.height} | "
            f"{int((time.time() - start) * 1000)}ms"
        )
        return EditOutcome(data=output, operations_applied=applied)

    def _denoise_and_sharpen(self, img: Image.Image) -> Image.Image:
        arr = np.array(img, dtype=np.uint8)
        arr = cv2.medianBlur(arr, self.params.median_size)
        return Image.fromarray(arr).filter(
            ImageFilter.UnsharpMask(
                radius=self.params.unsharp_radius,
                percent=self.params.unsharp_percent,
                threshold=self.params.unsharp_threshold,
            )
        )

    def _enhance_lighting(self, img: Image.Image) -> Image.Image:
        p = self.params
        img = ImageEnhance.Brightness(img).enhance(p.brightness_factor)
        img = ImageEnhance.Color(img).enhance(p.saturation_factor)

        # Percentile contrast stretch
        arr = np.asarray(img, dtype=np.float32)
        low, high = np.percentile(arr, [p.contrast_low_percentile, p.contrast_high_percentile])
        if high - low > 1:
            arr = (arr - low) * (255.0 / (high - low))
        img = Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8))

        # Gamma below 1 lifts shadows
        lut = [min(255, int(round(255 * ((i / 255) ** p.gamma)))) for i in range(256)]
        return img.point(lut * len(img.getbands()))

    def _color_grade(self, img: Image.Image) -> Image.Image:
        p = self.params
        img = ImageOps.autocontrast(img, cutoff=0.5)
        img = ImageEnhance.Color(img).enhance(p.grading_saturation)
        img = ImageEnhance.Brightness(img).enhance(p.grading_brightness)
        return img.filter(ImageFilter.UnsharpMask(radius=1, percent=p.grading_sharpen_percent, threshold=2))

    def _upscale(self, img: Image.Image) -> Image.Image:
        factor = self.params.upscale_factor
        new_w, new_h = int(img.width * factor), int(img.height * factor)

        max_dim = self.params.upscale_max_dimension
        if max(new_w, new_h) > max_dim:
            scale = max_dim / max(new_w, new_h)
            new_w, new_h = int(new_w * scale), int(new_h * scale)

        return img.resize((new_w, new_h), Image.LANCZOS)

    # ------------------------------------------------------------------
    # Editing primitives
    # ------------------------------------------------------------------

    def crop(
        self,
        data: bytes,
        x: int,
        y: int,
        width: int,
        height: int,
        output_format: Optional[OutputFormat] = None,
    ) -> EditOutcome:
        x, y, width, height = (_integer(n, v) for n, v in (("x", x), ("y", y), ("width", width), ("height", height)))
        if x < 0 or y < 0:
            raise ValidationError("Crop coordinates must be non-negative")
        if width <= 0 or height <= 0:
            raise ValidationError("Crop width and height must be positive")

        img = load_image(data)
        if x + width > img.width or y + height > img.height:
            raise OutOfBoundsError(
                f"Crop area exceeds image boundaries ({x},{y} {width}x{height} on {img.width}x{img.height})"
            )

        cropped = img.crop((x, y, x + width, y + height))
        return EditOutcome(
            data=self._encode(cropped, img.format, output_format),
            operations_applied=[f"crop_{width}x{height}"],
        )

    def resize(self, data: bytes, options: ResizeOptions, output_format: Optional[OutputFormat] = None) -> EditOutcome:
        options = ResizeOptions(
            width=None if options.width is None else _integer("width", options.width),
            height=None if options.height is None else _integer("height", options.height),
            fit=options.fit,
        )
        if not options.width and not options.height:
            raise ValidationError("Either width or height must be specified")
        if (options.width is not None and options.width <= 0) or (options.height is not None and options.height <= 0):
            raise ValidationError("Resize dimensions must be positive")
        if options.fit not in RESIZE_FITS:
            raise ValidationError(f"Unknown resize fit '{options.fit}'. Expected one of {RESIZE_FITS}")

        img = load_image(data)
        w, h = img.size

        if options.width and options.height:
            target = (options.width, options.height)
            if options.fit == "fill":
                resized = img.resize(target, Image.LANCZOS)
            elif options.fit == "cover":
                resized = ImageOps.fit(img, target, Image.LANCZOS)
            elif options.fit == "contain":
                background = (255, 255, 255, 0) if img.mode == "RGBA" else (255, 255, 255)
                resized = ImageOps.pad(img, target, Image.LANCZOS, color=background)
            else:
                ratios = (options.width / w, options.height / h)
                scale = min(ratios) if options.fit == "inside" else max(ratios)
                resized = img.resize((max(1, round(w * scale)), max(1, round(h * scale))), Image.LANCZOS)
        else:
            scale = options.width / w if options.width else options.height / h
            resized = img.resize((max(1, round(w * scale)), max(1, round(h * scale))), Image.LANCZOS)

        return EditOutcome(
            data=self._encode(resized, img.format, output_format),
            operations_applied=[f"resize_{resized.width}x{resized.height}"],
        )

    def rotate(self, data: bytes, angle: int, output_format: Optional[OutputFormat] = None) -> EditOutcome:
        """Rotate clockwise by a multiple of 90 degrees"""
        angle = _number("angle", angle)
        if angle % 90 != 0:
            raise ValidationError(f"Rotation angle must be a multiple of 90 degrees, got {angle:g}")

        img = load_image(data)
        normalized = int(angle) % 360
        transposes = {
            90: Image.Transpose.ROTATE_270,
            180: Image.Transpose.ROTATE_180,
            270: Image.Transpose.ROTATE_90,
        }
        rotated = img.transpose(transposes[normalized]) if normalized else img

        return EditOutcome(
            data=self._encode(rotated, img.format, output_format),
            operations_applied=[f"rotate_{int(angle)}deg"],
        )

    def adjust(self, data: bytes, options: AdjustOptions, output_format: Optional[OutputFormat] = None) -> EditOutcome:
        for name in ("brightness", "contrast", "saturation", "hue", "exposure"):
            _number(name, getattr(options, name))
        for name in ("brightness", "contrast", "saturation", "exposure"):
            value = getattr(options, name)
            if value < -100 or value > 100:
                raise ValidationError(f"{name} must be between -100 and 100, got {value}")
        if options.hue < -360 or options.hue > 360:
            raise ValidationError(f"hue must be between -360 and 360 degrees, got {options.hue}")

        img = load_image(data)
        source_format = img.format
        applied: List[str] = []

        if options.flip_horizontal:
            img = img.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
            applied.append("flip_horizontal")
        if options.flip_vertical:
            img = img.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
            applied.append("flip_vertical")

        alpha = img.getchannel("A") if img.mode == "RGBA" else None
        rgb = to_rgb(img) if alpha is None else img.convert("RGB")

        if options.brightness:
            rgb = ImageEnhance.Brightness(rgb).enhance(1 + options.brightness / 100)
            applied.append(f"brightness_{options.brightness:+g}")
        if options.contrast:
            rgb = ImageEnhance.Contrast(rgb).enhance(1 + options.contrast / 100)
            applied.append(f"contrast_{options.contrast:+g}")
        if options.saturation:
            rgb = ImageEnhance.Color(rgb).enhance(1 + options.saturation / 100)
            applied.append(f"saturation_{options.saturation:+g}")
        if options.hue:
            rgb = self._rotate_hue(rgb, options.hue)
            applied.append(f"hue_{options.hue:+g}deg")
        if options.exposure:
            arr = np.asarray(rgb, dtype=np.float32) * (1 + options.exposure / 100)
            rgb = Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8))
            applied.append(f"exposure_{options.exposure:+g}")

        if alpha is not None:
            rgb.putalpha(alpha)

        return EditOutcome(data=self._encode(rgb, source_format, output_format), operations_applied=applied)

    def _rotate_hue(self, img: Image.Image, degrees: float) -> Image.Image:
        # OpenCV stores hue as 0-179 for uint8 images
        hsv = cv2.cvtColor(np.array(img, dtype=np.uint8), cv2.COLOR_RGB2HSV)
        shift = int(round(degrees / 2))
        hsv[:, :, 0] = ((hsv[:, :, 0].astype(np.int32) + shift) % 180).astype(np.uint8)
        return Image.fromarray(cv2.cvtColor(hsv, cv2.COLOR_HSV2RGB))

    def perform_sequence(
        self,
        data: bytes,
        operations: List[EditOperation],
        output_format: Optional[OutputFormat] = None,
    ) -> EditOutcome:
        """
        Apply edits in order, feeding each output into the next

        The first failing step aborts the sequence; partial output is discarded.
        """
        if not operations:
            raise ValidationError("At least one edit operation is required")

        current = data
        applied: List[str] = []
        for index, op in enumerate(operations):
            is_last = index == len(operations) - 1
            outcome = self._apply_edit(current, op, output_format if is_last else OutputFormat.PNG)
            current = outcome.data
            applied.extend(outcome.operations_applied)
            logger.debug(f"✂️ Edit {index + 1}/{len(operations)}: {op.type} → {outcome.operations_applied}")

        return EditOutcome(data=current, operations_applied=applied)

    def _apply_edit(self, data: bytes, op: EditOperation, output_format: Optional[OutputFormat]) -> EditOutcome:
        options = op.options
        if op.type == "crop":
            opts = _coerce(CropOptions, options)
            return self.crop(data, opts.x, opts.y, opts.width, opts.height, output_format)
        if op.type == "resize":
            return self.resize(data, _coerce(ResizeOptions, options), output_format)
        if op.type == "rotate":
            angle = options.get("angle") if isinstance(options, dict) else options
            if angle is None:
                raise ValidationError("Rotate requires an angle")
            return self.rotate(data, angle, output_format)
        if op.type == "adjust":
            return self.adjust(data, _coerce(AdjustOptions, options), output_format)
        raise ValidationError(f"Unknown edit operation '{op.type}'")

    def _encode(self, img: Image.Image, source_format: Optional[str], output_format: Optional[OutputFormat]) -> bytes:
        fmt = output_format or SOURCE_FORMATS.get((source_format or "").upper(), OutputFormat.PNG)
        return to_bytes(img, fmt)


def _coerce(cls, options: Union[Dict[str, Any], Any]):
    if isinstance(options, cls):
        return options
    if isinstance(options, dict):
        try:
            return cls(**options)
        except TypeError as e:
            raise ValidationError(f"Invalid {cls.__name__}: {e}") from e
    raise ValidationError(f"Expected {cls.__name__}, got {type(options).__name__}")


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    return value


def _integer(name: str, value: Any) -> int:
    value = _number(name, value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be a whole number of pixels, got {value}")
        value = int(value)
    return value
