"""Domain port definitions for adapters."""

from __future__ import annotations

from .builder import ResourceBuilder
from .codec import InputProvider, ProviderDecoder, ResourceSetCodec
from .events import EventRecorder, EventTarget, EventType
from .expressions import CompiledExpression, ExpressionEngine, ExpressionEvaluationError
from .store import (
    AppliedObject,
    ClientFactory,
    ConflictError,
    ImmutableFieldError,
    ImpersonationError,
    NotFoundError,
    ObjectStore,
    StoreError,
)

__all__ = [
    "AppliedObject",
    "ClientFactory",
    "CompiledExpression",
    "ConflictError",
    "EventRecorder",
    "EventTarget",
    "EventType",
    "ExpressionEngine",
    "ExpressionEvaluationError",
    "ImmutableFieldError",
    "ImpersonationError",
    "InputProvider",
    "NotFoundError",
    "ObjectStore",
    "ProviderDecoder",
    "ResourceBuilder",
    "ResourceSetCodec",
    "StoreError",
]
