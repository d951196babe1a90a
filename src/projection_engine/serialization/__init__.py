"""Serialization module: request documents in, projection payloads out."""

from projection_engine.serialization.payload import (
    microcycles_to_frame,
    points_to_frame,
    to_dict,
    to_json_string,
)
from projection_engine.serialization.request import request_from_dict

__all__ = [
    "microcycles_to_frame",
    "points_to_frame",
    "request_from_dict",
    "to_dict",
    "to_json_string",
]
