"""
Normalisation of remote provider output

Providers answer with one of a handful of shapes. Each shape is parsed into
its own variant first so an unexpected payload fails loudly instead of being
probed field by field downstream.
"""
from dataclasses import dataclass
from typing import Any, List, Union

from .errors import MalformedOutputError


@dataclass(frozen=True)
class UrlOutput:
    """A bare URL string"""
    url: str


@dataclass(frozen=True)
class UrlListOutput:
    """A list of URLs; the first one is the result"""
    urls: List[str]

    @property
    def url(self) -> str:
        return self.urls[0]


@dataclass(frozen=True)
class WrappedUrlOutput:
    """An object with a "url" field"""
    url: str


@dataclass(frozen=True)
class NestedOutput:
    """An object with an "output" field wrapping one of the other shapes"""
    inner: Union[UrlOutput, UrlListOutput, WrappedUrlOutput]

    @property
    def url(self) -> str:
        return self.inner.url


RemoteOutput = Union[UrlOutput, UrlListOutput, WrappedUrlOutput, NestedOutput]


def _is_url(value: Any) -> bool:
    return isinstance(value, str) and value.strip().startswith(("http://", "https://"))


def parse_remote_output(raw: Any, _depth: int = 0) -> RemoteOutput:
    """
    Classify a raw provider payload

    Raises:
        MalformedOutputError: the payload matches none of the known shapes
    """
    if _is_url(raw):
        return UrlOutput(raw.strip())

    if isinstance(raw, (list, tuple)):
        urls = [item.strip() for item in raw if _is_url(item)]
        if urls:
            return UrlListOutput(urls)
        raise MalformedOutputError(f"Provider returned a list without URLs ({len(raw)} items)")

    if isinstance(raw, dict):
        if _is_url(raw.get("url")):
            return WrappedUrlOutput(raw["url"].strip())
        if "output" in raw and _depth == 0:
            inner = parse_remote_output(raw["output"], _depth=1)
            return NestedOutput(inner)
        raise MalformedOutputError(f"Provider returned an object without a usable URL (keys: {sorted(raw)})")

    raise MalformedOutputError(f"Provider returned an unsupported output type: {type(raw).__name__}")


def normalize_output(raw: Any) -> str:
    """Return the single result URL contained in a provider payload"""
    return parse_remote_output(raw).url
