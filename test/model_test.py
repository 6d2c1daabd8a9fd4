import pytest

from fix_plugin_elasticache.errors import ValidationError
from fix_plugin_elasticache.model import DesiredSpec, MemberDetail, ObservedState, aws_name
from test.resources import group_json, member_json


def test_aws_name() -> None:
    assert aws_name("cache_cluster_id") == "CacheClusterId"
    assert aws_name("multi_az") == "MultiAZ"
    assert aws_name("status") == "Status"


def test_desired_spec_from_json() -> None:
    spec = DesiredSpec.from_json(
        {
            "replication_group_id": "My-Group",
            "node_type": "cache.m5.large",
            "num_cache_clusters": 2,
            "port": 6379,
            "maintenance_window": "Sun:05:00-Sun:06:00",
            "security_group_ids": ["sg-1"],
            "unknown": "ignored",
        }
    )
    assert spec.group_id == "my-group"
    assert spec.replication_group_id == "My-Group"
    assert spec.maintenance_window == "sun:05:00-sun:06:00"
    assert spec.engine == "redis"
    assert spec.automatic_failover is None
    assert spec.apply_immediately is False


def test_desired_spec_requires_fields() -> None:
    with pytest.raises(ValidationError) as ex:
        DesiredSpec.from_json({"replication_group_id": "my-group", "num_cache_clusters": 2, "port": 6379})
    assert ex.value.group_id == "my-group"
    assert any("node_type" in problem for problem in ex.value.problems)
    with pytest.raises(ValidationError):
        DesiredSpec.from_json({"replication_group_id": "my-group", "node_type": "m5", "port": "not a number"})


def test_observed_state_from_api() -> None:
    state = ObservedState.from_api(group_json(multi_az="enabled"))
    assert state.replication_group_id == "my-group"
    assert state.multi_az == "enabled"
    assert state.member_clusters == ["my-group-001", "my-group-002"]
    assert len(state.node_groups) == 1
    members = state.node_groups[0].node_group_members
    assert [m.is_primary for m in members] == [True, False]
    assert members[1].read_endpoint is not None and members[1].read_endpoint.port == 6379


def test_member_detail_from_api() -> None:
    detail = MemberDetail.from_api(member_json("my-group-001", retention=3, topic_status="active"))
    assert detail.snapshot_retention_limit == 3
    assert detail.cache_parameter_group is not None
    assert detail.cache_parameter_group.cache_parameter_group_name == "default.redis6.x"
    assert [g.security_group_id for g in detail.security_groups] == ["sg-2", "sg-1"]
    assert detail.notification_configuration is not None
    assert detail.notification_configuration.topic_status == "active"
