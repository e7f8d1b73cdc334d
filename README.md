# csihooks

Hooks that adjust Kubernetes objects for CSI storage drivers running on AWS
(EBS, EFS) and Azure (Disk, File) clusters. Objects are plain Python
dictionaries in Kubernetes form (`metadata`, `spec`, `status`, ...): a
Deployment, DaemonSet, StorageClass, VolumeSnapshotClass or
CredentialsRequest. A hook changes the object in place, guided by cluster
state such as the `cluster` Infrastructure object or a ClusterCSIDriver.

The package has no runtime dependencies.

## Cluster state

`csihooks.clients.Clients` is an in-memory store of the objects the hooks
read. Stored objects are copied, and lookups return copies.

```python
from csihooks.clients import fake_operator_cr, new_fake_clients

cr = fake_operator_cr()  # a managed ClusterCSIDriver with default log levels
clients = new_fake_clients("openshift-cluster-csi-drivers", cr)

clients.add_infrastructure({
    "metadata": {"name": "cluster"},
    "status": {"platformStatus": {"aws": {"region": "us-east-1"}}},
})
clients.add_cluster_csi_driver({
    "metadata": {"name": "ebs.csi.aws.com"},
    "spec": {"driverConfig": {"driverType": "AWS", "aws": {"kmsKeyARN": "my-key"}}},
})
clients.add_config_map({
    "metadata": {"namespace": "openshift-cluster-csi-drivers", "name": "kube-cloud-config"},
    "data": {"ca-bundle.pem": "..."},
})
```

`get_infrastructure(name)`, `get_cluster_csi_driver(name)` and
`get_config_map(namespace, name)` raise `NotFoundError` (a `LookupError`)
when the object is not stored. `clients.operator_spec` is the `spec` of the
managed ClusterCSIDriver.

## Using hooks

Hook builders return a callable taking the operator spec and the object to
change:

```python
from csihooks.aws_ebs import with_aws_region, with_kms_key_hook

deployment = {"spec": {"template": {"spec": {"containers": [{"name": "csi-driver"}]}}}}
with_aws_region(clients)(clients.operator_spec, deployment)
# the csi-driver container now has env [{"name": "AWS_REGION", "value": "us-east-1"}]

storage_class = {"metadata": {"name": "gp3-csi"}, "provisioner": "ebs.csi.aws.com"}
with_kms_key_hook(clients)(clients.operator_spec, storage_class)
# storage_class["parameters"] == {"kmsKeyId": "my-key"}
```

Hooks that read the Infrastructure or a ClusterCSIDriver raise
`NotFoundError` when it is missing.

### `csihooks.aws_ebs`

- `with_aws_region(clients)` – sets `AWS_REGION` on the `csi-driver` container.
- `with_custom_endpoint(clients)` – sets `AWS_EC2_ENDPOINT` from the `ec2` service endpoint.
- `with_custom_tags(clients)` – adds `--extra-tags=key=value,...` from the resource tags.
- `with_kms_key_hook(clients)` – sets the StorageClass `kmsKeyId` parameter.
- `custom_aws_ca_bundle(clients, namespace, config_name)` – returns the ConfigMap
  name if it exists and holds `ca-bundle.pem`, otherwise `None`.
- `custom_aws_ca_bundle_hook(clients, config_map_name)` – mounts that CA bundle
  into the driver and sets `AWS_CA_BUNDLE`; raises `ValueError` if the bundle
  exists but the Deployment has no `csi-driver` container.
- `with_volume_attributes_class_hook(clients)` – adds
  `--feature-gates=VolumeAttributesClass=true` to the provisioner and resizer.

### `csihooks.aws_efs`

- `get_fips_enabled(path)` – `"true"` if the file holds exactly `1\n`, else `"false"`.
- `fips_deployment_hook(value)` / `fips_daemonset_hook(value)` – set `FIPS_ENABLED`.
- `sts_credentials_request_hook(spec, cr)` – when the `ROLEARN` environment
  variable is set, fills `spec.cloudTokenPath` and `spec.providerSpec.stsIAMRoleARN`.
- `with_volume_metrics_daemonset_hook(clients)` – adds the `--vol-metrics-*`
  arguments requested by the `efs.csi.aws.com` ClusterCSIDriver.

### `csihooks.azure_disk`

- `running_in_azure_stack_hub(infra)`, `inject_env_and_mounts(pod_spec)`,
  `azure_stack_hub_deployment_hook(flag)`, `azure_stack_hub_daemonset_hook(flag)`.
- `stack_hub_storage_class_hook()` – sets `skuname` to `Premium_LRS`.
- `kms_key_hook(clients)` – sets `diskEncryptionSetID` from the disk encryption set.
- `volume_snapshot_hook()` – sets `incremental` to `"false"`.
- `aro_csi_volume_hook(secret_provider_class)` – mounts a secrets-store CSI
  volume at `/mnt/certs`; raises `ValueError` if there are no containers.
- `extra_replacements()` – placeholder/value pairs for manifest templates,
  reading `CLUSTER_CLOUD_CONTROLLER_MANAGER_OPERATOR_IMAGE` from the environment.

### `csihooks.azure_file`

- `aro_csi_volume_hook(secret_provider_class)` and `extra_replacements()`, as above.

## What this package does not do

It does not connect to a cluster, watch objects, run controllers or apply
the changed objects anywhere, and it does not generate driver manifests. It
only changes the objects it is handed, using the state stored in `Clients`.

## Running the tests

```
pip install -e ".[test]"
pytest
```