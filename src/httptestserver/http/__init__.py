"""
=============================================================================
HTTP LAYER
=============================================================================

Everything between raw bytes and a chosen resource:

    bytes ──► RequestParser ──► HTTPRequest
                                    │
                   ResourceRegistry.resolve() ── Pattern.match() ──► Captures
                                    │
              render_body(template, captures) ──► HTTPResponse ──► bytes

=============================================================================
"""

from .methods import Method, normalize_method
from .pattern import Captures, Pattern, Segment, SegmentKind, split_path
from .registry import Outcome, Resolution, ResourceRegistry
from .request import HTTPParseError, HTTPRequest, RequestParser
from .response import HTTPResponse, HeaderList, encode_body, status_only
from .status_codes import HTTPStatus, reason_phrase
from .template import TOKEN_PATTERN, render_body

__all__ = [
    # Request
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",

    # Response
    "HTTPResponse",
    "HeaderList",
    "encode_body",
    "status_only",

    # Matching
    "Pattern",
    "Segment",
    "SegmentKind",
    "Captures",
    "split_path",
    "ResourceRegistry",
    "Resolution",
    "Outcome",

    # Templates
    "render_body",
    "TOKEN_PATTERN",

    # Constants
    "HTTPStatus",
    "reason_phrase",
    "Method",
    "normalize_method",
]
