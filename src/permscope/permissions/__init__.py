"""
Endpoint permission reference for Permscope.
"""

from permscope.permissions.index import PermissionMapIndex

__all__ = [
    "PermissionMapIndex",
]
