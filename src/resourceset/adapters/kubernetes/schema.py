"""Pydantic models for the Kubernetes API envelopes the store reads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class KubernetesBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StatusCause(KubernetesBaseModel):
    reason: str = ""
    message: str = ""
    field: str = ""


class StatusDetails(KubernetesBaseModel):
    name: str = ""
    kind: str = ""
    causes: list[StatusCause] = Field(default_factory=list["StatusCause"])


class StatusPayload(KubernetesBaseModel):
    """The ``Status`` object returned with every failed API request."""

    kind: str = "Status"
    status: str = ""
    message: str = ""
    reason: str = ""
    code: int = 0
    details: StatusDetails | None = None


class APIResource(KubernetesBaseModel):
    name: str
    namespaced: bool
    kind: str
    verbs: list[str] = Field(default_factory=list["str"])

    @property
    def is_subresource(self) -> bool:
        return "/" in self.name


class APIResourceList(KubernetesBaseModel):
    group_version: str = Field(alias="groupVersion")
    resources: list[APIResource] = Field(default_factory=list["APIResource"])


class ObjectList(KubernetesBaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list["dict[str, Any]"])
