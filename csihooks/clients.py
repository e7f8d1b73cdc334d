"""In-memory view of the cluster objects that CSI driver operator hooks read.

Objects are plain Kubernetes-style dictionaries (``apiVersion``, ``kind``,
``metadata``, ``spec``, ``status``). The store plays the role of the informer
caches: hooks look objects up by name and get a private copy back.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

MANAGED_CONFIG_NAMESPACE = "openshift-config-managed"
CSI_DRIVER_NAMESPACE = "openshift-cluster-csi-drivers"

Object = dict[str, Any]


class NotFoundError(LookupError):
    """Raised when a requested object is not in the store."""

    def __init__(self, kind: str, name: str, namespace: str = "") -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        where = f" in namespace {namespace!r}" if namespace else ""
        super().__init__(f'{kind} "{name}" not found{where}')


def _metadata(obj: Object) -> dict[str, Any]:
    metadata = obj.get("metadata")
    return metadata if isinstance(metadata, dict) else {}


def _name_of(obj: Object) -> str:
    return str(_metadata(obj).get("name", ""))


@dataclass
class Clients:
    """Cluster state available to a CSI driver operator.

    ``control_plane_namespace`` is where the driver control plane runs; on a
    standalone cluster it equals the guest namespace.
    """

    control_plane_namespace: str
    guest_namespace: str = ""
    operator_cr: Object = field(default_factory=dict)
    _infrastructures: dict[str, Object] = field(default_factory=dict, repr=False)
    _cluster_csi_drivers: dict[str, Object] = field(default_factory=dict, repr=False)
    _config_maps: dict[tuple[str, str], Object] = field(default_factory=dict, repr=False)

    @property
    def operator_spec(self) -> dict[str, Any]:
        """The operator spec of the managed ClusterCSIDriver."""
        return self.operator_cr.setdefault("spec", {})

    def add_infrastructure(self, infra: Object) -> None:
        """Store a cluster-scoped Infrastructure object."""
        self._infrastructures[_name_of(infra)] = copy.deepcopy(infra)

    def add_cluster_csi_driver(self, driver: Object) -> None:
        """Store a cluster-scoped ClusterCSIDriver object."""
        self._cluster_csi_drivers[_name_of(driver)] = copy.deepcopy(driver)

    def add_config_map(self, config_map: Object) -> None:
        """Store a namespaced ConfigMap object."""
        namespace = str(_metadata(config_map).get("namespace", ""))
        self._config_maps[(namespace, _name_of(config_map))] = copy.deepcopy(config_map)

    def get_infrastructure(self, name: str) -> Object:
        try:
            return copy.deepcopy(self._infrastructures[name])
        except KeyError:
            raise NotFoundError("infrastructure", name) from None

    def get_cluster_csi_driver(self, name: str) -> Object:
        try:
            return copy.deepcopy(self._cluster_csi_drivers[name])
        except KeyError:
            raise NotFoundError("clustercsidriver", name) from None

    def get_config_map(self, namespace: str, name: str) -> Object:
        try:
            return copy.deepcopy(self._config_maps[(namespace, name)])
        except KeyError:
            raise NotFoundError("configmap", name, namespace) from None


def fake_operator_cr() -> Object:
    """Return a managed ClusterCSIDriver with default log levels."""
    return {
        "apiVersion": "operator.openshift.io/v1",
        "kind": "ClusterCSIDriver",
        "metadata": {},
        "spec": {
            "managementState": "Managed",
            "logLevel": "Normal",
            "operatorLogLevel": "Normal",
            "storageClassState": "Managed",
            "driverConfig": {},
        },
        "status": {},
    }


def new_fake_clients(controller_namespace: str, cr: Object) -> Clients:
    """Create an empty store for tests, managing the given ClusterCSIDriver."""
    return Clients(control_plane_namespace=controller_namespace, operator_cr=cr)