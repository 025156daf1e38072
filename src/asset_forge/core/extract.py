"""Ordered extraction rules for asset URLs in provider responses.

Providers disagree on where the artifact URL lives. Each rule below
recognises one response shape; `extract_asset_urls` tries them in order
and returns the first non-empty match.
"""

import logging
from typing import Any, Callable, Iterable, Optional, Sequence

from ..errors import AssetUrlNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_ASSET_KEYS = ("video", "image", "audio_file", "audio", "file")

Rule = Callable[[Any, Sequence[str]], list[str]]


def _url_of(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        url = value.get("url")
        if isinstance(url, str) and url:
            return url
    return None


def _is_url(value: Any) -> bool:
    return isinstance(value, str) and (value.startswith("http") or value.startswith("data:"))


def direct_object(result: Any, keys: Sequence[str]) -> list[str]:
    """`{"video": {"url": ...}}`"""
    if not isinstance(result, dict):
        return []
    for key in keys:
        url = _url_of(result.get(key))
        if url:
            return [url]
    return []


def nested_data(result: Any, keys: Sequence[str]) -> list[str]:
    """`{"data": {"audio_file": {"url": ...}}}`"""
    if not isinstance(result, dict) or not isinstance(result.get("data"), dict):
        return []
    return direct_object(result["data"], keys)


def array_of_objects(result: Any, keys: Sequence[str]) -> list[str]:
    """`{"images": [{"url": ...}, ...]}`"""
    if not isinstance(result, dict):
        return []
    for key in keys:
        items = result.get(f"{key}s")
        if isinstance(items, list):
            urls = [u for u in (_url_of(item) for item in items) if u]
            if urls:
                return urls
    return []


def array_of_strings(result: Any, keys: Sequence[str]) -> list[str]:
    """`{"videos": ["https://...", ...]}`"""
    if not isinstance(result, dict):
        return []
    for key in keys:
        items = result.get(f"{key}s")
        if isinstance(items, list):
            urls = [item for item in items if _is_url(item)]
            if urls:
                return urls
    # A bare string under the singular key counts as a one-element list
    for key in keys:
        if _is_url(result.get(key)):
            return [result[key]]
    return []


def bare_string(result: Any, keys: Sequence[str]) -> list[str]:
    """The whole response is the URL."""
    if _is_url(result):
        return [result]
    return []


EXTRACTION_RULES: tuple[Rule, ...] = (
    direct_object,
    nested_data,
    array_of_objects,
    array_of_strings,
    bare_string,
)


def extract_asset_urls(
    result: Any,
    keys: Iterable[str] = DEFAULT_ASSET_KEYS,
    rules: Sequence[Rule] = EXTRACTION_RULES,
) -> list[str]:
    keys = tuple(keys)
    for rule in rules:
        urls = rule(result, keys)
        if urls:
            logger.debug("Asset URL matched by rule %s", rule.__name__)
            return urls
    logger.error("Unexpected response structure, no asset URL: %r", result)
    raise AssetUrlNotFoundError("Expected asset URL not found in result")
