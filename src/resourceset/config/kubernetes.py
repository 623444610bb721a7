"""Kubernetes API connection settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .env import env_bool, env_str, require_env_vars
from .errors import MissingConfigurationError

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")


@dataclass(frozen=True, slots=True)
class KubernetesConfig:
    server: str
    token: str = ""
    ca_file: str | None = None
    insecure: bool = False

    @property
    def verify(self) -> str | bool:
        if self.insecure:
            return False
        return self.ca_file or True


def get_kubernetes_config(*, service_account_dir: Path = SERVICE_ACCOUNT_DIR) -> KubernetesConfig:
    """Explicit ``KUBE_API_SERVER`` settings win over the in-cluster service account."""

    if env_str("KUBE_API_SERVER"):
        values = require_env_vars(("KUBE_API_SERVER", "KUBE_TOKEN"))
        return KubernetesConfig(
            server=values["KUBE_API_SERVER"].rstrip("/"),
            token=values["KUBE_TOKEN"],
            ca_file=env_str("KUBE_CA_FILE") or None,
            insecure=env_bool("KUBE_INSECURE"),
        )

    host = os.getenv("KUBERNETES_SERVICE_HOST")
    port = os.getenv("KUBERNETES_SERVICE_PORT")
    token_path = service_account_dir / "token"
    if not host or not port or not token_path.exists():
        raise MissingConfigurationError(
            "Missing configuration for: KUBE_API_SERVER, KUBE_TOKEN (not running in-cluster)"
        )
    ca_path = service_account_dir / "ca.crt"
    return KubernetesConfig(
        server=f"https://{host}:{port}",
        token=token_path.read_text(encoding="utf-8").strip(),
        ca_file=str(ca_path) if ca_path.exists() else None,
    )
