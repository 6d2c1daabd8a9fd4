from pytest import fixture

from fix_plugin_elasticache.aws_client import AwsClient
from fix_plugin_elasticache.client import ElastiCacheClient
from fix_plugin_elasticache.configuration import AwsConfig, ReconcileConfig
from test.resources import BotoFileBasedSession, FakeClock


@fixture
def aws_config() -> AwsConfig:
    config = AwsConfig(access_key_id="foo", secret_access_key="bar", region="us-east-1")
    config.sessions().session_class_factory = BotoFileBasedSession
    return config


@fixture
def aws_client(aws_config: AwsConfig) -> AwsClient:
    return AwsClient(aws_config)


@fixture
def elasticache_client(aws_client: AwsClient) -> ElastiCacheClient:
    return ElastiCacheClient(aws_client)


@fixture
def clock() -> FakeClock:
    return FakeClock()


@fixture
def reconcile_config() -> ReconcileConfig:
    return ReconcileConfig(
        create_timeout="60s",
        update_timeout="60s",
        delete_timeout="60s",
        create_delay="10s",
        update_delay="5s",
        delete_delay="10s",
        min_poll_interval="3s",
        max_poll_interval="10s",
    )
