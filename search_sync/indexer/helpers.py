"""
Helper toolkit handed to custom transform hooks.

Provides HTML tag stripping, object flattening, value mapping, and field
allowlist filtering over dotted paths.
"""

import warnings
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from ..paths import PATH_SEPARATOR, path_matches


def strip_tags(html: Optional[str]) -> str:
    """
    Remove HTML markup and return the text content.

    HTML entities are decoded, so "&amp;" becomes "&". Plain text that looks
    like a URL or file name is returned unchanged without a parser warning.
    """
    if not html:
        return ""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        return BeautifulSoup(html, "html.parser").get_text()


def flatten_object(obj: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Flatten nested mappings into dotted-path keys.

    Lists and scalar values are kept as-is. Empty nested mappings are kept as
    an empty dict under their own key.

    Example:
        >>> flatten_object({"a": {"b": 1}, "c": [1, 2]})
        {'a.b': 1, 'c': [1, 2]}
    """
    flat: Dict[str, Any] = {}
    for key, value in obj.items():
        path = f"{prefix}{PATH_SEPARATOR}{key}" if prefix else str(key)
        if isinstance(value, Mapping) and value:
            flat.update(flatten_object(value, path))
        elif isinstance(value, Mapping):
            flat[path] = {}
        else:
            flat[path] = value
    return flat


def object_map(obj: Mapping[str, Any], fn: Callable[[Any, str], Any]) -> Dict[str, Any]:
    """Apply ``fn(value, key)`` to every value of a mapping"""
    return {key: fn(value, key) for key, value in obj.items()}


def filtered_object(obj: Mapping[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """Keep only the keys of a (flattened) mapping covered by ``fields``"""
    allowed = list(fields)
    return {
        key: value for key, value in obj.items()
        if any(path_matches(field, str(key)) for field in allowed)
    }


@dataclass(frozen=True)
class TransformToolkit:
    """Fixed set of helpers passed to transform hooks"""
    strip_tags: Callable[[Optional[str]], str] = strip_tags
    flatten_object: Callable[..., Dict[str, Any]] = flatten_object
    object_map: Callable[..., Dict[str, Any]] = object_map
    filtered_object: Callable[..., Dict[str, Any]] = filtered_object


DEFAULT_TOOLKIT = TransformToolkit()
