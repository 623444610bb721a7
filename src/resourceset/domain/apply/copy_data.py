"""Resolution of ``copyFrom`` annotations on ConfigMaps and Secrets."""

from __future__ import annotations

import base64
import binascii
from typing import TYPE_CHECKING

from resourceset.domain.errors import ApplyError
from resourceset.domain.model.objects import annotations_of, api_version_of, kind_of
from resourceset.domain.model.resourceset import COPY_FROM_ANNOTATION
from resourceset.domain.ports.store import StoreError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from resourceset.domain.model.objects import Unstructured
    from resourceset.domain.ports.store import ObjectStore

SECRET_TYPE_OPAQUE = "Opaque"


def copy_resources(store: ObjectStore, objects: Iterable[Unstructured]) -> None:
    """Copy data into annotated objects from their ``namespace/name`` source."""

    for obj in objects:
        if api_version_of(obj) != "v1":
            continue
        source = annotations_of(obj).get(COPY_FROM_ANNOTATION)
        if source is None:
            continue

        parts = source.split("/")
        if len(parts) != 2:
            raise ApplyError(
                f"invalid {COPY_FROM_ANNOTATION} annotation value '{source}' must be in the format 'namespace/name'"
            )
        namespace, name = parts

        match kind_of(obj):
            case "ConfigMap":
                config_map = _fetch(store, "ConfigMap", namespace, name, source)
                obj["data"] = dict(config_map.get("data") or {})
            case "Secret":
                secret = _fetch(store, "Secret", namespace, name, source)
                if "type" not in obj:
                    obj["type"] = secret.get("type") or SECRET_TYPE_OPAQUE
                obj["stringData"] = _decode_secret_data(secret, source)
            case _:
                continue


def _fetch(store: ObjectStore, kind: str, namespace: str, name: str, source: str) -> Unstructured:
    try:
        return store.get("v1", kind, namespace, name)
    except StoreError as exc:
        raise ApplyError(f"failed to copy data from {kind}/{source}: {exc}") from exc


def _decode_secret_data(secret: Unstructured, source: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for key, value in (secret.get("data") or {}).items():
        try:
            data[key] = base64.b64decode(str(value), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ApplyError(f"failed to copy data from Secret/{source}: key '{key}': {exc}") from exc
    return data
