"""
Flockdesk Viewer - Text rendering helpers for operator tools.
"""

from .outline import (
    STATUS_INDICATORS,
    get_status_indicator,
    render_outline,
)

__all__ = [
    "STATUS_INDICATORS",
    "get_status_indicator",
    "render_outline",
]
