"""Hooks that adapt the AWS EFS CSI driver manifests to the cluster they run in.

Deployment and DaemonSet hooks take ``(spec, obj)`` where ``spec`` is the
operator spec and ``obj`` is a Kubernetes object as a dictionary; they change
``obj`` in place.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from csihooks.clients import Clients

CLOUD_CRED_SECRET_NAME = "aws-efs-cloud-credentials"
METRICS_CERT_SECRET_NAME = "aws-efs-csi-driver-controller-metrics-serving-cert"
TRUSTED_CA_CONFIG_MAP = "aws-efs-csi-driver-trusted-ca-bundle"
STS_IAM_ROLE_ARN_ENV_VAR = "ROLEARN"
CLOUD_TOKEN_PATH = "/var/run/secrets/openshift/serviceaccount/token"
FIPS_ENABLED_PATH = "/proc/sys/crypto/fips_enabled"
AWS_EFS_CSI_DRIVER = "efs.csi.aws.com"
VOLUME_METRICS_DISABLED = "Disabled"
DRIVER_CONTAINER = "csi-driver"

Object = dict[str, Any]
Hook = Callable[[Any, Object], None]


def _driver_containers(obj: Object) -> Iterator[Object]:
    pod_spec = obj.setdefault("spec", {}).setdefault("template", {}).setdefault("spec", {})
    return (c for c in pod_spec.setdefault("containers", []) if c.get("name") == DRIVER_CONTAINER)


def get_fips_enabled(path: str | os.PathLike[str] = FIPS_ENABLED_PATH) -> str:
    """Return ``"true"`` if the kernel reports FIPS mode at ``path``, else ``"false"``."""
    try:
        content = Path(path).read_bytes()
    except OSError:
        return "false"
    return "true" if content == b"1\n" else "false"


def _fips_hook(fips_enabled: str) -> Hook:
    def hook(_spec: Any, obj: Object) -> None:
        for container in _driver_containers(obj):
            container.setdefault("env", []).append({"name": "FIPS_ENABLED", "value": fips_enabled})

    return hook


def fips_deployment_hook(fips_enabled: str) -> Hook:
    """Set FIPS_ENABLED on the driver container of a Deployment."""
    return _fips_hook(fips_enabled)


def fips_daemonset_hook(fips_enabled: str) -> Hook:
    """Set FIPS_ENABLED on the driver container of a DaemonSet."""
    return _fips_hook(fips_enabled)


def _set_nested(obj: Object, value: Any, *fields: str) -> None:
    current = obj
    for depth, name in enumerate(fields[:-1]):
        child = current.get(name)
        if child is None:
            child = current[name] = {}
        elif not isinstance(child, dict):
            path = ".".join(fields[: depth + 1])
            raise TypeError(f"value cannot be set because {path} is not a map")
        current = child
    current[fields[-1]] = value


def sts_credentials_request_hook(spec: Any, cr: Object) -> None:
    """Fill in STS fields of a CredentialsRequest when ROLEARN is set."""
    role_arn = os.environ.get(STS_IAM_ROLE_ARN_ENV_VAR, "")
    if not role_arn:
        return
    _set_nested(cr, CLOUD_TOKEN_PATH, "spec", "cloudTokenPath")
    _set_nested(cr, role_arn, "spec", "providerSpec", "stsIAMRoleARN")


def with_volume_metrics_daemonset_hook(clients: Clients) -> Hook:
    """Enable EFS volume metrics on the node driver as the ClusterCSIDriver asks."""

    def hook(_spec: Any, daemonset: Object) -> None:
        driver = clients.get_cluster_csi_driver(AWS_EFS_CSI_DRIVER)
        driver_config = (driver.get("spec") or {}).get("driverConfig") or {}
        aws = driver_config.get("aws")
        metrics = aws.get("efsVolumeMetrics") if aws else None
        if not metrics or metrics.get("state") == VOLUME_METRICS_DISABLED:
            return
        recursive_walk = metrics.get("recursiveWalk")
        for container in _driver_containers(daemonset):
            args = container.setdefault("args", [])
            args.append("--vol-metrics-opt-in=true")
            if recursive_walk is None:
                continue
            minutes = recursive_walk.get("refreshPeriodMinutes", 0) or 0
            if minutes > 0:
                args.append(f"--vol-metrics-refresh-period={minutes}")
            rate_limit = recursive_walk.get("fsRateLimit", 0) or 0
            if rate_limit > 0:
                args.append(f"--vol-metrics-fs-rate-limit={rate_limit}")

    return hook