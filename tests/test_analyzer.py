import pytest

from media_pipeline.analyzer import ContentAnalyzer, parse_vision_response
from media_pipeline.config import AnalyzerThresholds, SceneType, LightingCondition, ImageQuality
from media_pipeline.errors import DecodeError
from media_pipeline.vision_service import VisionResult

MEDIUM = (1800, 1200)


class StubVision:
    """Stands in for GeminiVisionService"""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def describe(self, image_bytes, prompt, mime_type="image/jpeg"):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def analyzer():
    return ContentAnalyzer(AnalyzerThresholds())


@pytest.mark.unit
class TestHeuristics:

    def test_dim_interior(self, analyzer, dim_interior_png):
        context = analyzer.analyze(dim_interior_png)
        assert context.scene_type == SceneType.INTERIOR
        assert context.lighting == LightingCondition.DIM
        assert context.quality == ImageQuality.LOW
        assert context.confidence == 0.5
        assert "Underexposed - consider brightening" in context.issues
        assert "Low resolution" in context.issues

    def test_bright_blue_frame_reads_as_exterior(self, analyzer, bright_exterior_png):
        context = analyzer.analyze(bright_exterior_png)
        assert context.scene_type == SceneType.EXTERIOR
        assert context.lighting == LightingCondition.BRIGHT
        assert context.confidence == 0.7
        assert "Potentially overexposed" not in context.issues

    def test_mid_grey_is_mixed_interior(self, analyzer, mixed_interior_png):
        context = analyzer.analyze(mixed_interior_png)
        assert context.scene_type == SceneType.INTERIOR
        assert context.lighting == LightingCondition.MIXED

    def test_overexposed_white_is_not_exterior(self, analyzer, make_png):
        context = analyzer.analyze(make_png((245, 245, 240)))
        assert context.lighting == LightingCondition.BRIGHT
        assert "Potentially overexposed" in context.issues
        assert context.scene_type == SceneType.INTERIOR

    def test_medium_resolution(self, analyzer, make_png):
        context = analyzer.analyze(make_png((120, 120, 120), size=MEDIUM))
        assert context.quality == ImageQuality.MEDIUM
        assert "Low resolution" not in context.issues

    def test_panorama_aspect_ratio(self, analyzer, make_png):
        context = analyzer.analyze(make_png((120, 120, 120), size=(900, 300)))
        assert "Unusual aspect ratio for real estate" in context.issues

    def test_undecodable(self, analyzer):
        with pytest.raises(DecodeError):
            analyzer.analyze(b"not an image")


@pytest.mark.unit
class TestVisionRefinement:

    def test_vision_overrides_scene_and_lighting(self, dim_interior_png):
        text = (
            "```json\n"
            '{"type": "exterior", "lighting": "bright", '
            '"issues": ["Cluttered foreground"], "recommendations": ["Replace the overcast sky"]}\n'
            "```"
        )
        vision = StubVision(VisionResult(success=True, text=text))
        context = ContentAnalyzer(AnalyzerThresholds(), vision=vision).analyze(dim_interior_png)

        assert vision.calls == 1
        assert context.scene_type == SceneType.EXTERIOR
        assert context.lighting == LightingCondition.BRIGHT
        assert context.confidence == 0.9
        assert context.quality == ImageQuality.LOW
        assert "Low resolution" in context.issues
        assert "Cluttered foreground" in context.issues
        assert context.recommendations == ("Replace the overcast sky",)

    def test_unknown_values_keep_heuristic(self, dim_interior_png):
        vision = StubVision(VisionResult(success=True, text='{"type": "garage", "lighting": "mixed"}'))
        context = ContentAnalyzer(AnalyzerThresholds(), vision=vision).analyze(dim_interior_png)
        assert context.scene_type == SceneType.INTERIOR
        assert context.lighting == LightingCondition.MIXED

    def test_unsuccessful_vision_keeps_heuristic(self, dim_interior_png):
        vision = StubVision(VisionResult(success=False, error="Gemini API error 503"))
        context = ContentAnalyzer(AnalyzerThresholds(), vision=vision).analyze(dim_interior_png)
        assert context.lighting == LightingCondition.DIM
        assert context.confidence == 0.5

    def test_raising_vision_keeps_heuristic(self, dim_interior_png):
        vision = StubVision(error=RuntimeError("connection reset"))
        context = ContentAnalyzer(AnalyzerThresholds(), vision=vision).analyze(dim_interior_png)
        assert context.lighting == LightingCondition.DIM
        assert context.confidence == 0.5

    @pytest.mark.parametrize("extra", [
        '"issues": 3',
        '"recommendations": true',
        '"issues": {"sky": "grey"}, "recommendations": "brighten"',
    ])
    def test_wrong_typed_lists_are_ignored(self, dim_interior_png, extra):
        text = '{"type": "interior", "lighting": "dim", ' + extra + "}"
        vision = StubVision(VisionResult(success=True, text=text))

        context = ContentAnalyzer(AnalyzerThresholds(), vision=vision).analyze(dim_interior_png)

        assert context.scene_type == SceneType.INTERIOR
        assert context.lighting == LightingCondition.DIM
        assert context.confidence == 0.9
        assert context.issues == ("Low resolution", "Underexposed - consider brightening")
        assert context.recommendations == ()

    def test_parse_vision_response(self):
        assert parse_vision_response('Sure! {"type": "interior"} Hope that helps') == {"type": "interior"}
        assert parse_vision_response("no json here") is None
        assert parse_vision_response("{broken json}") is None


@pytest.mark.unit
class TestSuggestions:

    def test_low_resolution_wins(self, analyzer, dim_interior_png):
        suggestions = analyzer.generate_suggestions(dim_interior_png)
        assert suggestions.primary == "high_resolution"
        assert "Low resolution" in suggestions.issues

    def test_dim_photo(self, analyzer, make_png):
        suggestions = analyzer.generate_suggestions(make_png((45, 40, 35), size=MEDIUM))
        assert suggestions.primary == "real_estate_standard"
        assert "quick_fix" in suggestions.alternatives

    def test_mixed_lighting(self, analyzer, make_png):
        suggestions = analyzer.generate_suggestions(make_png((120, 120, 120), size=MEDIUM))
        assert suggestions.primary == "ai_professional"
        assert suggestions.to_dict()["analysis"]["lighting"] == "mixed"
