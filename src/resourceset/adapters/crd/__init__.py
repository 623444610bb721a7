"""CRD payload models and their translation to the domain."""

from __future__ import annotations

from .translator import (
    CrdCodec,
    decode_input_provider,
    decode_resource_set,
    encode_resource_set,
    encode_status,
    provider_decoders,
)

__all__ = [
    "CrdCodec",
    "decode_input_provider",
    "decode_resource_set",
    "encode_resource_set",
    "encode_status",
    "provider_decoders",
]
