"""
Microsoft Graph request URI canonicalization.

Reduces a logged request URI to a version-stable, identifier-free pattern so
that calls against different objects collapse to one activity, and so that
logged calls line up with the endpoint paths of the permission reference.

The rules, applied in order:

1. Drop everything from ``?`` onward.
2. Collapse runs of ``/`` and drop blank segments.
3. Rewrite a ``me`` segment to ``users/{id}``.
4. Replace email-like segments with ``{id}``.
5. Replace any other segment containing a digit (the version segment
   excepted) with ``{id}``. A last segment holding a function call such as
   ``getEmailActivityUserDetail(period='D7')`` keeps the function name and
   gets ``/{id}`` appended instead. The function name goes through the
   same rules, so ``getOffice365ActiveUserDetail(period='D7')`` becomes
   ``{id}/{id}``: once it is no longer the last segment, its digit would
   replace it on the next pass anyway.

Placeholder segments already written as ``{user-id}`` become ``{id}`` too,
so reference paths and canonical paths use a single placeholder spelling.
Canonicalization never raises and is idempotent.
"""

from __future__ import annotations

import re
from typing import Any

ID_PLACEHOLDER = "{id}"

# Graph API version segments, keyed by their lower-cased spelling
GRAPH_VERSIONS = {"v1.0": "v1.0", "beta": "beta"}

_SCHEME_HOST_PATTERN = re.compile(r"^(?P<prefix>[A-Za-z][A-Za-z0-9+.\-]*://[^/]*)(?P<path>.*)$")
_EMAIL_PATTERN = re.compile(r"^[^@\s/]+@[^@\s/]+\.[^@\s/]+$")
_PLACEHOLDER_PATTERN = re.compile(r"^\{[^{}]*\}$")
_EMBEDDED_PLACEHOLDER_PATTERN = re.compile(r"\{[^{}]*\}")
_DIGIT_PATTERN = re.compile(r"\d")
_SLASH_RUN_PATTERN = re.compile(r"/{2,}")


def canonicalize_uri(uri: Any) -> str:
    """
    Canonicalize a Graph request URI.

    Args:
        uri: Absolute or relative request URI, with optional query string

    Returns:
        Canonical URI. Input that cannot be interpreted is returned with
        surrounding whitespace removed.
    """
    if uri is None:
        return ""
    if not isinstance(uri, str):
        return str(uri).strip()

    text = uri.strip()
    try:
        return _canonicalize(text)
    except Exception:
        return text


def _canonicalize(text: str) -> str:
    if not text:
        return text

    text = text.split("?", 1)[0].strip()
    prefix, path = _split_prefix(text)
    path = _SLASH_RUN_PATTERN.sub("/", path)

    leading_slash = path.startswith("/") or bool(prefix)
    segments = _path_segments(path)

    version_index = _find_version_index(segments)
    if version_index is None:
        head: list[str] = []
        tail = segments
    else:
        head = segments[:version_index] + [GRAPH_VERSIONS[segments[version_index].lower()]]
        tail = segments[version_index + 1:]

    joined = "/".join(head + _substitute_identifiers(tail))
    if prefix:
        # A bare scheme and host keeps no trailing slash
        return prefix + "/" + joined if joined else prefix.rstrip()
    if leading_slash:
        return "/" + joined
    return joined or "/"


def split_graph_uri(uri: str) -> tuple[str, str | None, str]:
    """
    Split a canonical URI into scheme+host, API version and path.

    The version is only recognized as the first path segment. When it is
    missing the version is None and the path is the whole path.

    Args:
        uri: Canonical URI

    Returns:
        Tuple of (prefix, version, path); path always starts with "/"
    """
    prefix, path = _split_prefix(uri or "")
    segments = _path_segments(path)

    if segments and segments[0].lower() in GRAPH_VERSIONS:
        version = GRAPH_VERSIONS[segments[0].lower()]
        return prefix, version, "/" + "/".join(segments[1:])

    return prefix, None, "/" + "/".join(segments)


def normalize_path(path: str) -> str:
    """
    Apply the identifier-substitution rule to a bare endpoint path.

    Used for both permission reference paths and activity paths, so a
    ``{user-id}`` placeholder and a logged GUID normalize identically.

    Args:
        path: Endpoint path without scheme, host or version

    Returns:
        Normalized path starting with "/"
    """
    text = (path or "").strip().split("?", 1)[0]
    segments = _path_segments(_SLASH_RUN_PATTERN.sub("/", text))
    return "/" + "/".join(_substitute_identifiers(segments))


def is_identifier_segment(segment: str) -> bool:
    """Whether a path segment is treated as an object identifier."""
    return bool(
        _PLACEHOLDER_PATTERN.match(segment)
        or _EMAIL_PATTERN.match(segment)
        or _DIGIT_PATTERN.search(segment)
    )


def _split_prefix(text: str) -> tuple[str, str]:
    """Separate scheme and host from the path."""
    match = _SCHEME_HOST_PATTERN.match(text)
    if match:
        return match.group("prefix"), match.group("path")
    return "", text


def _find_version_index(segments: list[str]) -> int | None:
    for i, segment in enumerate(segments):
        if segment.lower() in GRAPH_VERSIONS:
            return i
    return None


def _path_segments(path: str) -> list[str]:
    """Non-blank path segments with surrounding whitespace removed."""
    return [s.strip() for s in path.split("/") if s.strip()]


def _substitute_identifiers(segments: list[str]) -> list[str]:
    result: list[str] = []
    last = len(segments) - 1

    for i, segment in enumerate(segments):
        if i == last and "(" in segment and _is_function_argument(segment):
            function_name = segment.split("(", 1)[0].strip()
            if function_name:
                result.extend(_substitute_segment(function_name))
            result.append(ID_PLACEHOLDER)
            continue

        result.extend(_substitute_segment(segment))

    return result


def _is_function_argument(segment: str) -> bool:
    """Whether a function-call segment carries identifier arguments."""
    return bool(
        _DIGIT_PATTERN.search(segment)
        or _EMBEDDED_PLACEHOLDER_PATTERN.search(segment)
    )


def _substitute_segment(segment: str) -> list[str]:
    lowered = segment.lower()
    if lowered == "me":
        return ["users", ID_PLACEHOLDER]
    if is_identifier_segment(segment):
        return [ID_PLACEHOLDER]
    return [GRAPH_VERSIONS.get(lowered, segment)]
