"""Hooks that adapt the AWS EBS CSI driver manifests to the cluster they run in.

Deployment and DaemonSet hooks take ``(spec, obj)`` where ``spec`` is the
operator spec and ``obj`` is a Kubernetes object as a dictionary; they change
``obj`` in place. StorageClass hooks take ``(spec, storage_class)`` the same way.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

from csihooks.clients import Clients, NotFoundError

logger = logging.getLogger(__name__)

CLOUD_CRED_SECRET_NAME = "ebs-cloud-credentials"
METRICS_CERT_SECRET_NAME = "aws-ebs-csi-driver-controller-metrics-serving-cert"
INFRASTRUCTURE_NAME = "cluster"
CLOUD_CONFIG_NAMESPACE = "openshift-config-managed"
CLOUD_CONFIG_NAME = "kube-cloud-config"
CA_BUNDLE_KEY = "ca-bundle.pem"
TRUSTED_CA_CONFIG_MAP = "aws-ebs-csi-driver-trusted-ca-bundle"
KMS_KEY_ID = "kmsKeyId"
AWS_DRIVER_TYPE = "AWS"
DRIVER_CONTAINER = "csi-driver"
VOLUME_ATTRIBUTES_CLASS_ARG = "--feature-gates=VolumeAttributesClass=true"

Object = dict[str, Any]
Hook = Callable[[Any, Object], None]


def _pod_spec(obj: Object) -> Object:
    return obj.setdefault("spec", {}).setdefault("template", {}).setdefault("spec", {})


def _containers(obj: Object) -> Iterator[Object]:
    yield from _pod_spec(obj).setdefault("containers", [])


def _driver_containers(obj: Object) -> Iterator[Object]:
    return (c for c in _containers(obj) if c.get("name") == DRIVER_CONTAINER)


def _aws_platform_status(clients: Clients) -> Object | None:
    infra = clients.get_infrastructure(INFRASTRUCTURE_NAME)
    platform_status = (infra.get("status") or {}).get("platformStatus")
    if not platform_status:
        return None
    return platform_status.get("aws")


def custom_aws_ca_bundle(clients: Clients, namespace: str, config_name: str) -> str | None:
    """Return ``config_name`` if that ConfigMap exists and holds a CA bundle, else None."""
    try:
        config_map = clients.get_config_map(namespace, config_name)
    except NotFoundError:
        return None
    if CA_BUNDLE_KEY not in (config_map.get("data") or {}):
        return None
    return config_name


def custom_aws_ca_bundle_hook(clients: Clients, config_map_name: str) -> Hook:
    """Mount a custom CA bundle ConfigMap into the driver container when one is present."""

    def hook(_spec: Any, deployment: Object) -> None:
        config_name = custom_aws_ca_bundle(
            clients, clients.control_plane_namespace, config_map_name
        )
        if config_name is None:
            return
        _pod_spec(deployment).setdefault("volumes", []).append(
            {"name": "ca-bundle", "configMap": {"name": config_name}}
        )
        container = next(_driver_containers(deployment), None)
        if container is None:
            raise ValueError(
                "could not use custom CA bundle because the csi-driver container "
                "is missing from the deployment"
            )
        container.setdefault("env", []).append(
            {"name": "AWS_CA_BUNDLE", "value": "/etc/ca/ca-bundle.pem"}
        )
        container.setdefault("volumeMounts", []).append(
            {"name": "ca-bundle", "mountPath": "/etc/ca", "readOnly": True}
        )

    return hook


def with_custom_endpoint(clients: Clients) -> Hook:
    """Set AWS_EC2_ENDPOINT on the driver from the Infrastructure service endpoints."""

    def hook(_spec: Any, deployment: Object) -> None:
        aws = _aws_platform_status(clients)
        if aws is None:
            return
        ec2_endpoint = ""
        for endpoint in aws.get("serviceEndpoints") or []:
            if endpoint.get("name") == "ec2":
                ec2_endpoint = endpoint.get("url", "")
        if not ec2_endpoint:
            return
        container = next(_driver_containers(deployment), None)
        if container is not None:
            container.setdefault("env", []).append(
                {"name": "AWS_EC2_ENDPOINT", "value": ec2_endpoint}
            )

    return hook


def with_custom_tags(clients: Clients) -> Hook:
    """Pass Infrastructure resource tags to the driver as ``--extra-tags=k=v,...``."""

    def hook(_spec: Any, deployment: Object) -> None:
        aws = _aws_platform_status(clients)
        if aws is None:
            return
        user_tags = aws.get("resourceTags") or []
        if not user_tags:
            return
        tags = ",".join(f"{tag.get('key', '')}={tag.get('value', '')}" for tag in user_tags)
        argument = f"--extra-tags={tags}"
        for container in _driver_containers(deployment):
            container.setdefault("args", []).append(argument)

    return hook


def with_aws_region(clients: Clients) -> Hook:
    """Set AWS_REGION on the driver from the Infrastructure platform status."""

    def hook(_spec: Any, deployment: Object) -> None:
        aws = _aws_platform_status(clients)
        if aws is None:
            return
        region = aws.get("region", "")
        if not region:
            return
        for container in _driver_containers(deployment):
            container.setdefault("env", []).append({"name": "AWS_REGION", "value": region})

    return hook


def with_kms_key_hook(clients: Clients) -> Hook:
    """Set the StorageClass ``kmsKeyId`` from the ClusterCSIDriver AWS config."""

    def hook(_spec: Any, storage_class: Object) -> None:
        provisioner = storage_class.get("provisioner", "")
        driver = clients.get_cluster_csi_driver(provisioner)
        driver_config = (driver.get("spec") or {}).get("driverConfig") or {}
        aws = driver_config.get("aws")
        if driver_config.get("driverType") != AWS_DRIVER_TYPE or aws is None:
            logger.debug("No AWS driver config defined for %s", provisioner)
            return
        arn = aws.get("kmsKeyARN", "")
        class_name = (storage_class.get("metadata") or {}).get("name", "")
        if not arn:
            logger.debug("Not setting empty %s parameter in StorageClass %s", KMS_KEY_ID, class_name)
            return
        parameters = storage_class.get("parameters")
        if parameters is None:
            parameters = storage_class["parameters"] = {}
        logger.debug("Setting %s = %s in StorageClass %s", KMS_KEY_ID, arn, class_name)
        parameters[KMS_KEY_ID] = arn

    return hook


def with_volume_attributes_class_hook(clients: Clients) -> Hook:
    """Enable the VolumeAttributesClass feature gate on the provisioner and resizer."""

    def hook(_spec: Any, deployment: Object) -> None:
        for container in _containers(deployment):
            if container.get("name") in ("csi-provisioner", "csi-resizer"):
                container.setdefault("args", []).append(VOLUME_ATTRIBUTES_CLASS_ARG)

    return hook