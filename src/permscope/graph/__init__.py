"""
Microsoft Graph URI handling for Permscope.
"""

from permscope.graph.uri import (
    GRAPH_VERSIONS,
    ID_PLACEHOLDER,
    canonicalize_uri,
    is_identifier_segment,
    normalize_path,
    split_graph_uri,
)

__all__ = [
    "GRAPH_VERSIONS",
    "ID_PLACEHOLDER",
    "canonicalize_uri",
    "is_identifier_segment",
    "normalize_path",
    "split_graph_uri",
]
