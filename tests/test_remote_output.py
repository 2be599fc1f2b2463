import pytest

from media_pipeline.errors import MalformedOutputError, ProviderError
from media_pipeline.remote_output import (
    normalize_output,
    parse_remote_output,
    UrlOutput,
    UrlListOutput,
    WrappedUrlOutput,
    NestedOutput,
)

URL = "https://replicate.delivery/pbxt/abc/output.png"


@pytest.mark.unit
class TestRemoteOutput:

    def test_bare_url(self):
        assert isinstance(parse_remote_output(URL), UrlOutput)
        assert normalize_output(f"  {URL}\n") == URL

    def test_list_takes_first_url(self):
        parsed = parse_remote_output([URL, "https://replicate.delivery/second.png"])
        assert isinstance(parsed, UrlListOutput)
        assert parsed.url == URL

    def test_object_with_url(self):
        assert isinstance(parse_remote_output({"url": URL, "revised_prompt": "..."}), WrappedUrlOutput)
        assert normalize_output({"url": URL}) == URL

    def test_nested_output(self):
        parsed = parse_remote_output({"status": "succeeded", "output": [URL]})
        assert isinstance(parsed, NestedOutput)
        assert parsed.url == URL

    def test_nesting_is_only_one_level_deep(self):
        with pytest.raises(MalformedOutputError):
            normalize_output({"output": {"output": URL}})

    @pytest.mark.parametrize("raw", [None, 42, [], ["not-a-url"], {"status": "ok"}, "data: nothing"])
    def test_unrecognised_shapes(self, raw):
        with pytest.raises(MalformedOutputError):
            normalize_output(raw)

    def test_malformed_output_is_a_provider_error(self):
        assert issubclass(MalformedOutputError, ProviderError)
