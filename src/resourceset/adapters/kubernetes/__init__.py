"""Kubernetes API adapters."""

from __future__ import annotations

from .client import KubernetesApi, LoopRunner, error_from_response
from .discovery import ResourceInfo, ResourceMapper
from .events import KubernetesEventRecorder, build_event
from .store import KubernetesClientFactory, KubernetesObjectStore, service_account_user

__all__ = [
    "KubernetesApi",
    "KubernetesClientFactory",
    "KubernetesEventRecorder",
    "KubernetesObjectStore",
    "LoopRunner",
    "ResourceInfo",
    "ResourceMapper",
    "build_event",
    "error_from_response",
    "service_account_user",
]
