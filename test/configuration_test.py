from datetime import timedelta
from typing import Any

import pytest

from fix_plugin_elasticache.configuration import AwsConfig, ElastiCacheConfig, ReconcileConfig


def test_default_config() -> None:
    config = ElastiCacheConfig()
    assert config.aws.access_key_id is None
    assert config.aws.max_retries == 11
    reconcile = config.reconcile
    assert reconcile.timeout("create") == timedelta(minutes=20)
    assert reconcile.timeout("update") == timedelta(minutes=10)
    assert reconcile.timeout("delete") == timedelta(minutes=20)
    assert reconcile.delay("create") == timedelta(seconds=10)
    assert reconcile.delay("update") == timedelta(seconds=5)
    assert reconcile.delay("delete") == timedelta(seconds=10)
    assert reconcile.min_interval() == timedelta(seconds=3)
    assert reconcile.max_interval() == timedelta(seconds=10)


def test_max_interval_is_never_below_min_interval() -> None:
    config = ReconcileConfig(min_poll_interval="30s", max_poll_interval="10s")
    assert config.max_interval() == timedelta(seconds=30)


def test_region_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("AWS_REGION", raising=False)
    monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-central-1")
    assert AwsConfig().region == "eu-central-1"
    monkeypatch.setenv("AWS_REGION", "us-west-2")
    assert AwsConfig().region == "us-west-2"


def test_from_json() -> None:
    config = ElastiCacheConfig.from_json(
        {
            "aws": {"profile": "dev", "region": "eu-west-1", "unknown": 1},
            "reconcile": {"create_timeout": "1h", "min_poll_interval": "5s"},
        }
    )
    assert config.aws.profile == "dev"
    assert config.aws.region == "eu-west-1"
    assert config.reconcile.timeout("create") == timedelta(hours=1)
    assert config.reconcile.timeout("update") == timedelta(minutes=10)
    assert config.reconcile.min_interval() == timedelta(seconds=5)
    assert ElastiCacheConfig.from_json({}).reconcile == ReconcileConfig()


def test_session() -> None:
    config = AwsConfig("test", "test", "test")
    # the session holder is created once
    assert config.sessions() is config.sessions()
    # direct session
    assert config.sessions()._session("us-east-1") == config.sessions()._session("us-east-1")
    # no test for sts session, since this requires sts setup


def test_pickle_config() -> None:
    import pickle

    config = AwsConfig("test", "test", region="us-east-1")
    config.sessions()
    again = pickle.loads(pickle.dumps(config))
    assert again.access_key_id == "test"
    assert again.region == "us-east-1"
    assert again.sessions() is not config.sessions()


def test_session_from_shared_credentials_file(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "config"))
    credentials = tmp_path / "credentials"
    credentials.write_text("[dev]\naws_access_key_id = AKIDDEV\naws_secret_access_key = dev-secret\n")
    config = ElastiCacheConfig.from_json({"aws": {"profile": "dev", "shared_credentials_file": str(credentials)}})
    assert config.aws.shared_credentials_file == str(credentials)
    session = config.aws.sessions()._session("us-east-1")
    assert session.profile_name == "dev"
    assert session.get_credentials().access_key == "AKIDDEV"
