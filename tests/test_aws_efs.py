import pytest

from csihooks.aws_efs import (
    CLOUD_TOKEN_PATH,
    STS_IAM_ROLE_ARN_ENV_VAR,
    fips_daemonset_hook,
    fips_deployment_hook,
    get_fips_enabled,
    sts_credentials_request_hook,
    with_volume_metrics_daemonset_hook,
)
from csihooks.clients import NotFoundError, fake_operator_cr, new_fake_clients

TEST_ARN = "arn:aws:iam::000000000000:role/example-efs-csi-driver-role"


def _workload(kind):
    return {
        "apiVersion": "apps/v1",
        "kind": kind,
        "metadata": {"name": "aws-efs-csi-driver"},
        "spec": {
            "template": {
                "spec": {
                    "containers": [
                        {
                            "name": "csi-driver",
                            "args": ["--endpoint=$(CSI_ENDPOINT)"],
                            "env": [{"name": "CSI_ENDPOINT", "value": "unix:///csi/csi.sock"}],
                        },
                        {"name": "csi-liveness-probe", "args": ["--probe-timeout=3s"]},
                    ]
                }
            }
        },
    }


def _container(obj, name):
    return next(c for c in obj["spec"]["template"]["spec"]["containers"] if c["name"] == name)


def _credentials_request():
    return {
        "apiVersion": "cloudcredential.openshift.io/v1",
        "kind": "CredentialsRequest",
        "metadata": {"name": "openshift-aws-efs-csi-driver"},
        "spec": {
            "providerSpec": {"apiVersion": "cloudcredential.openshift.io/v1", "kind": "AWSProviderSpec"},
            "secretRef": {"name": "aws-efs-cloud-credentials"},
        },
    }


def _nested(obj, *fields):
    for name in fields:
        if not isinstance(obj, dict) or name not in obj:
            return ""
        obj = obj[name]
    return obj


def _driver(aws_config):
    cr = fake_operator_cr()
    cr["metadata"]["name"] = "efs.csi.aws.com"
    if aws_config is not None:
        cr["spec"]["driverConfig"] = {"driverType": "AWS", "aws": aws_config}
    return cr


@pytest.mark.parametrize(
    ("hook_factory", "kind"),
    [(fips_deployment_hook, "Deployment"), (fips_daemonset_hook, "DaemonSet")],
)
@pytest.mark.parametrize("fips_enabled", ["true", "false"])
def test_fips_hooks(hook_factory, kind, fips_enabled):
    cr = fake_operator_cr()
    obj = _workload(kind)
    hook_factory(fips_enabled)(cr["spec"], obj)
    env = {e["name"]: e["value"] for e in _container(obj, "csi-driver")["env"] if e["name"] == "FIPS_ENABLED"}
    assert env == {"FIPS_ENABLED": fips_enabled}
    assert "env" not in _container(obj, "csi-liveness-probe")


def test_get_fips_enabled_true(tmp_path):
    path = tmp_path / "fips_enabled"
    path.write_bytes(b"1\n")
    assert get_fips_enabled(path) == "true"


@pytest.mark.parametrize("content", [b"0\n", b"1", b""])
def test_get_fips_enabled_false(tmp_path, content):
    path = tmp_path / "fips_enabled"
    path.write_bytes(content)
    assert get_fips_enabled(path) == "false"


def test_get_fips_enabled_missing_file(tmp_path):
    assert get_fips_enabled(tmp_path / "missing") == "false"


@pytest.mark.parametrize(
    ("env", "expected_arn", "expected_token_path"),
    [
        ({STS_IAM_ROLE_ARN_ENV_VAR: TEST_ARN}, TEST_ARN, CLOUD_TOKEN_PATH),
        ({}, "", ""),
        ({STS_IAM_ROLE_ARN_ENV_VAR: ""}, "", ""),
    ],
    ids=["sts-enabled", "no-arn", "empty-arn"],
)
def test_sts_credentials_request_hook(monkeypatch, env, expected_arn, expected_token_path):
    monkeypatch.delenv(STS_IAM_ROLE_ARN_ENV_VAR, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    cr = fake_operator_cr()
    request = _credentials_request()
    sts_credentials_request_hook(cr["spec"], request)
    assert _nested(request, "spec", "providerSpec", "stsIAMRoleARN") == expected_arn
    assert _nested(request, "spec", "cloudTokenPath") == expected_token_path


def test_sts_credentials_request_hook_creates_missing_spec(monkeypatch):
    monkeypatch.setenv(STS_IAM_ROLE_ARN_ENV_VAR, TEST_ARN)
    request = {"kind": "CredentialsRequest"}
    sts_credentials_request_hook({}, request)
    assert request["spec"] == {
        "cloudTokenPath": CLOUD_TOKEN_PATH,
        "providerSpec": {"stsIAMRoleARN": TEST_ARN},
    }


def test_sts_credentials_request_hook_rejects_non_map(monkeypatch):
    monkeypatch.setenv(STS_IAM_ROLE_ARN_ENV_VAR, TEST_ARN)
    request = {"spec": {"providerSpec": "invalid"}}
    with pytest.raises(TypeError):
        sts_credentials_request_hook({}, request)


@pytest.mark.parametrize(
    ("aws_config", "expected_args"),
    [
        (None, ["--endpoint=$(CSI_ENDPOINT)"]),
        ({}, ["--endpoint=$(CSI_ENDPOINT)"]),
        ({"efsVolumeMetrics": {"state": "Disabled"}}, ["--endpoint=$(CSI_ENDPOINT)"]),
        (
            {"efsVolumeMetrics": {"state": "RecursiveWalk"}},
            ["--endpoint=$(CSI_ENDPOINT)", "--vol-metrics-opt-in=true"],
        ),
        (
            {
                "efsVolumeMetrics": {
                    "state": "RecursiveWalk",
                    "recursiveWalk": {"refreshPeriodMinutes": 60, "fsRateLimit": 10},
                }
            },
            [
                "--endpoint=$(CSI_ENDPOINT)",
                "--vol-metrics-opt-in=true",
                "--vol-metrics-refresh-period=60",
                "--vol-metrics-fs-rate-limit=10",
            ],
        ),
        (
            {
                "efsVolumeMetrics": {
                    "state": "RecursiveWalk",
                    "recursiveWalk": {"refreshPeriodMinutes": 0, "fsRateLimit": 5},
                }
            },
            [
                "--endpoint=$(CSI_ENDPOINT)",
                "--vol-metrics-opt-in=true",
                "--vol-metrics-fs-rate-limit=5",
            ],
        ),
    ],
)
def test_volume_metrics_daemonset_hook(aws_config, expected_args):
    driver = _driver(aws_config)
    clients = new_fake_clients("clusters-test", driver)
    clients.add_cluster_csi_driver(driver)
    daemonset = _workload("DaemonSet")
    with_volume_metrics_daemonset_hook(clients)(driver["spec"], daemonset)
    assert _container(daemonset, "csi-driver")["args"] == expected_args
    assert _container(daemonset, "csi-liveness-probe")["args"] == ["--probe-timeout=3s"]


def test_volume_metrics_daemonset_hook_missing_driver():
    cr = fake_operator_cr()
    clients = new_fake_clients("clusters-test", cr)
    hook = with_volume_metrics_daemonset_hook(clients)
    with pytest.raises(NotFoundError):
        hook(cr["spec"], _workload("DaemonSet"))