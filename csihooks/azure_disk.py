"""Hooks that adapt the Azure Disk CSI driver manifests to the cluster they run in.

Deployment and DaemonSet hooks take ``(spec, obj)`` where ``spec`` is the
operator spec and ``obj`` is a Kubernetes object as a dictionary; they change
``obj`` in place. StorageClass and VolumeSnapshotClass hooks work the same way.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import Any

from csihooks.clients import Clients

logger = logging.getLogger(__name__)

CLOUD_CRED_SECRET_NAME = "azure-disk-credentials"
METRICS_CERT_SECRET_NAME = "azure-disk-csi-driver-controller-metrics-serving-cert"
INFRASTRUCTURE_NAME = "cluster"
TRUSTED_CA_CONFIG_MAP = "azure-disk-csi-driver-trusted-ca-bundle"
CONFIG_MAP_NAME = "cloud-provider-config"
OPENSHIFT_DEFAULT_CLOUD_CONFIG_NAMESPACE = "openshift-config"
LOCAL_CLOUD_CONFIG_NAME = "azure-cloud-config"
CCM_OPERATOR_IMAGE_ENV_NAME = "CLUSTER_CLOUD_CONTROLLER_MANAGER_OPERATOR_IMAGE"

CONFIG_ENV_NAME = "AZURE_ENVIRONMENT_FILEPATH"
AZURE_STACK_CLOUD_CONFIG = "/etc/azure/azurestackcloud.json"
POD_AZURE_CFG_VOLUME_NAME = "cloud-config"
AZURE_STACK_CLOUD = "AzureStackCloud"

DISK_ENCRYPTION_SET_ID = "diskEncryptionSetID"
INCREMENTAL_SNAPSHOT_KEY = "incremental"
AZURE_DRIVER_TYPE = "Azure"
DRIVER_CONTAINER = "csi-driver"
SECRETS_STORE_DRIVER = "secrets-store.csi.k8s.io"

Object = dict[str, Any]
Hook = Callable[[Any, Object], None]


def _pod_spec(obj: Object) -> Object:
    return obj.setdefault("spec", {}).setdefault("template", {}).setdefault("spec", {})


def running_in_azure_stack_hub(infra: Object) -> bool:
    """Return True if the Infrastructure object describes an Azure Stack Hub cloud."""
    platform_status = (infra.get("status") or {}).get("platformStatus") or {}
    azure = platform_status.get("azure") or {}
    return azure.get("cloudName") == AZURE_STACK_CLOUD


def inject_env_and_mounts(pod_spec: Object) -> None:
    """Point the first driver container at the Azure Stack Hub endpoints file."""
    for container in pod_spec.setdefault("containers", []):
        if container.get("name") != DRIVER_CONTAINER:
            continue
        container.setdefault("env", []).append(
            {"name": CONFIG_ENV_NAME, "value": AZURE_STACK_CLOUD_CONFIG}
        )
        container.setdefault("volumeMounts", []).append(
            {
                "name": POD_AZURE_CFG_VOLUME_NAME,
                "mountPath": AZURE_STACK_CLOUD_CONFIG,
                "subPath": "endpoints",
            }
        )
        return


def _stack_hub_hook(running_on_stack_hub: bool) -> Hook:
    def hook(_spec: Any, obj: Object) -> None:
        if running_on_stack_hub:
            inject_env_and_mounts(_pod_spec(obj))

    return hook


def azure_stack_hub_deployment_hook(running_on_stack_hub: bool) -> Hook:
    """Inject Azure Stack Hub configuration into a Deployment when on Stack Hub."""
    return _stack_hub_hook(running_on_stack_hub)


def azure_stack_hub_daemonset_hook(running_on_stack_hub: bool) -> Hook:
    """Inject Azure Stack Hub configuration into a DaemonSet when on Stack Hub."""
    return _stack_hub_hook(running_on_stack_hub)


def stack_hub_storage_class_hook() -> Hook:
    """Force the Premium_LRS SKU, the one Azure Stack Hub supports."""

    def hook(_spec: Any, storage_class: Object) -> None:
        parameters = storage_class.get("parameters")
        if parameters is None:
            parameters = storage_class["parameters"] = {}
        parameters["skuname"] = "Premium_LRS"

    return hook


def kms_key_hook(clients: Clients) -> Hook:
    """Set ``diskEncryptionSetID`` from the ClusterCSIDriver Azure config."""

    def hook(_spec: Any, storage_class: Object) -> None:
        provisioner = storage_class.get("provisioner", "")
        driver = clients.get_cluster_csi_driver(provisioner)
        driver_config = (driver.get("spec") or {}).get("driverConfig") or {}
        azure = driver_config.get("azure")
        if driver_config.get("driverType") != AZURE_DRIVER_TYPE or azure is None:
            logger.debug("No Azure driver config defined for %s", provisioner)
            return
        class_name = (storage_class.get("metadata") or {}).get("name", "")
        encryption_set = azure.get("diskEncryptionSet")
        if encryption_set is None:
            logger.debug(
                "Not setting empty %s parameter in StorageClass %s",
                DISK_ENCRYPTION_SET_ID,
                class_name,
            )
            return
        parameters = storage_class.get("parameters")
        if parameters is None:
            parameters = storage_class["parameters"] = {}
        value = (
            f"/subscriptions/{encryption_set.get('subscriptionID', '')}"
            f"/resourceGroups/{encryption_set.get('resourceGroup', '')}"
            f"/providers/Microsoft.Compute/diskEncryptionSets/{encryption_set.get('name', '')}"
        )
        logger.debug(
            "Setting %s = %s in StorageClass %s", DISK_ENCRYPTION_SET_ID, value, class_name
        )
        parameters[DISK_ENCRYPTION_SET_ID] = value

    return hook


def volume_snapshot_hook() -> Hook:
    """Turn off incremental snapshots, which Azure Stack Hub does not support."""

    def hook(_spec: Any, snapshot_class: Object) -> None:
        parameters = snapshot_class.get("parameters")
        if parameters is None:
            parameters = snapshot_class["parameters"] = {}
        parameters[INCREMENTAL_SNAPSHOT_KEY] = "false"

    return hook


def aro_csi_volume_hook(secret_provider_class: str) -> Hook:
    """Mount certificates from the secrets-store CSI driver into the first container."""

    def hook(_spec: Any, deployment: Object) -> None:
        pod_spec = _pod_spec(deployment)
        containers = pod_spec.setdefault("containers", [])
        if not containers:
            raise ValueError("deployment has no containers to mount the certificates into")
        containers[0].setdefault("volumeMounts", []).append(
            {"name": "azure-disk", "mountPath": "/mnt/certs", "readOnly": True}
        )
        pod_spec.setdefault("volumes", []).append(
            {
                "name": "azure-disk",
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