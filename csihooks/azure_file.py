"""Hooks that adapt the Azure File CSI driver manifests to the cluster they run in.

Deployment hooks take ``(spec, obj)`` where ``spec`` is the operator spec and
``obj`` is a Kubernetes object as a dictionary; they change ``obj`` in place.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

CLOUD_CRED_SECRET_NAME = "azure-file-credentials"
METRICS_CERT_SECRET_NAME = "azure-file-csi-driver-controller-metrics-serving-cert"
INFRASTRUCTURE_NAME = "cluster"
CLOUD_CONFIG_NAME = "kube-cloud-config"
CA_BUNDLE_KEY = "ca-bundle.pem"
TRUSTED_CA_CONFIG_MAP = "azure-file-csi-driver-trusted-ca-bundle"
CONFIG_MAP_NAME = "cloud-provider-config"
OPENSHIFT_DEFAULT_CLOUD_CONFIG_NAMESPACE = "openshift-config"
LOCAL_CLOUD_CONFIG_NAME = "azure-cloud-config"
CCM_OPERATOR_IMAGE_ENV_NAME = "CLUSTER_CLOUD_CONTROLLER_MANAGER_OPERATOR_IMAGE"
SECRET_PROVIDER_CLASS_ENV_NAME = "ARO_HCP_SECRET_PROVIDER_CLASS_FOR_FILE"
SECRETS_STORE_DRIVER = "secrets-store.csi.k8s.io"
ARO_VOLUME_NAME = "azure-file"
ARO_MOUNT_PATH = "/mnt/certs"

Object = dict[str, Any]
Hook = Callable[[Any, Object], None]


def aro_csi_volume_hook(secret_provider_class: str) -> Hook:
    """Mount certificates from the secrets-store CSI driver into the first container."""

    def hook(_spec: Any, deployment: Object) -> None:
        pod_spec = (
            deployment.setdefault("spec", {}).setdefault("template", {}).setdefault("spec", {})
        )
        containers = pod_spec.setdefault("containers", [])
        if not containers:
            raise ValueError("deployment has no containers to mount the certificates into")
        containers[0].setdefault("volumeMounts", []).append(
            {"name": ARO_VOLUME_NAME, "mountPath": ARO_MOUNT_PATH, "readOnly": True}
        )
        pod_spec.setdefault("volumes", []).append(
            {
                "name": ARO_VOLUME_NAME,
                "csi": {
                    "driver": SECRETS_STORE_DRIVER,
                    "readOnly": True,
                    "volumeAttributes": {"secretProviderClass": secret_provider_class},
                },
            }
        )

    return hook


def extra_replacements() -> list[tuple[str, str]]:
    """Return the placeholder/value pairs substituted into the driver manifests."""
    return [
        (
            "${CLUSTER_CLOUD_CONTROLLER_MANAGER_OPERATOR_IMAGE}",
            os.environ.get(CCM_OPERATOR_IMAGE_ENV_NAME, ""),
        ),
        ("${ENABLE_AZURE_WORKLOAD_IDENTITY}", "true"),
    ]