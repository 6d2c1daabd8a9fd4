import json
import os
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from boto3 import Session

from fix_plugin_elasticache.errors import NotFoundError
from fix_plugin_elasticache.model import DesiredSpec, MemberDetail, ObservedState, PatchRequest


class BotoDummyStsClient:
    def __getattr__(self, action_name: str) -> Callable[..., Any]:
        def call(*args: Any, **kwargs: Any) -> Any:
            return {
                "Credentials": {"AccessKeyId": "xxx", "SecretAccessKey": "xxx", "SessionToken": "xxx"},
                "Account": "123456789012",
                "Arn": "arn:aws:iam::123456789012:user/test",
                "UserId": "AIDATEST",
            }

        return call


class BotoFileClient:
    def __init__(self, service: str) -> None:
        self.service = service

    @staticmethod
    def path_from(service_name: str, action_name: str, **kwargs: Any) -> str:
        def arg_string(v: Any) -> str:
            if isinstance(v, list):
                return "_".join(arg_string(x) for x in v)
            elif isinstance(v, dict):
                return "_".join(arg_string(v) for k, v in v.items())
            else:
                return re.sub(r"[^a-zA-Z0-9]", "_", str(v))

        vals = "__" + ("_".join(arg_string(v) for _, v in sorted(kwargs.items()))) if kwargs else ""
        action = action_name.replace("_", "-")
        service = service_name.replace("-", "_")
        path = os.path.dirname(__file__) + f"/files/{service}/{action}{vals}.json"
        return os.path.abspath(path)

    def __getattr__(self, action_name: str) -> Callable[..., Any]:
        def call_action(*args: Any, **kwargs: Any) -> Any:
            assert not args, "No arguments allowed!"
            path = self.path_from(self.service, action_name, **kwargs)
            if os.path.exists(path):
                with open(path) as f:
                    return json.load(f)
            else:
                return {}

        return call_action


# use this factory in tests, to rely on API responses from file system
class BotoFileBasedSession(Session):  # type: ignore
    def client(self, service_name: str, **kwargs: Any) -> Any:
        return BotoDummyStsClient() if service_name == "sts" else BotoFileClient(service_name)


class BotoErrorClient:
    def __init__(self, exception: Exception):
        self.exception = exception

    def __getattr__(self, action_name: str) -> Callable[..., Any]:
        raise self.exception


# use this factory in tests, to check how errors of the API are translated
class BotoErrorSession(Session):  # type: ignore
    def __init__(self, exception: Exception = Exception("Test exception"), **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.exception = exception

    def client(self, service_name: str, **kwargs: Any) -> Any:
        return BotoErrorClient(self.exception)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self


def group_json(
    group_id: str = "my-group",
    status: str = "available",
    *,
    members: Optional[List[Tuple[str, str, str]]] = None,
    node_group_status: str = "available",
    node_groups: int = 1,
    automatic_failover: str = "enabled",
    multi_az: str = "disabled",
    snapshotting_cluster_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    A replication group as returned by describe-replication-groups.
    Members are defined as tuples of (cluster id, role, availability zone).
    """
    members = (
        members
        if members is not None
        else [(f"{group_id}-001", "primary", "us-east-1a"), (f"{group_id}-002", "replica", "us-east-1b")]
    )
    node_group = {
        "NodeGroupId": "0001",
        "Status": node_group_status,
        "PrimaryEndpoint": {"Address": f"{group_id}.abc.ng.0001.use1.cache.amazonaws.com", "Port": 6379},
        "NodeGroupMembers": [
            {
                "CacheClusterId": cid,
                "CacheNodeId": "0001",
                "CurrentRole": role,
                "PreferredAvailabilityZone": az,
                "ReadEndpoint": {"Address": f"{cid}.abc.0001.use1.cache.amazonaws.com", "Port": 6379},
            }
            for cid, role, az in members
        ],
    }
    js: Dict[str, Any] = {
        "ReplicationGroupId": group_id,
        "Description": "test group",
        "Status": status,
        "MemberClusters": [cid for cid, _, _ in members],
        "NodeGroups": [node_group] * node_groups,
        "AutomaticFailover": automatic_failover,
        "MultiAZ": multi_az,
        "CacheNodeType": "cache.m5.large",
    }
    if snapshotting_cluster_id:
        js["SnapshottingClusterId"] = snapshotting_cluster_id
    return js


def member_json(
    cluster_id: str,
    *,
    retention: int = 0,
    snapshot_window: str = "05:00-06:00",
    topic_status: Optional[str] = None,
    group_id: str = "my-group",
) -> Dict[str, Any]:
    js: Dict[str, Any] = {
        "CacheClusterId": cluster_id,
        "CacheClusterStatus": "available",
        "CacheNodeType": "cache.m5.large",
        "Engine": "redis",
        "EngineVersion": "6.2.6",
        "NumCacheNodes": 1,
        "PreferredAvailabilityZone": "us-east-1a",
        "CacheSubnetGroupName": "my-subnets",
        "CacheSecurityGroups": [],
        "SecurityGroups": [
            {"SecurityGroupId": "sg-2", "Status": "active"},
            {"SecurityGroupId": "sg-1", "Status": "active"},
        ],
        "CacheParameterGroup": {"CacheParameterGroupName": "default.redis6.x", "ParameterApplyStatus": "in-sync"},
        "PreferredMaintenanceWindow": "sun:05:00-sun:06:00",
        "SnapshotRetentionLimit": retention,
        "SnapshotWindow": snapshot_window,
        "ReplicationGroupId": group_id,
    }
    if topic_status:
        js["NotificationConfiguration"] = {
            "TopicArn": "arn:aws:sns:us-east-1:123456789012:topic",
            "TopicStatus": topic_status,
        }
    return js


class FakeClock:
    """
    Clock and sleep function for tests: sleeping advances the clock.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeRemoteClient:
    """
    RemoteClient that replays scripted replication group states and records every call.
    Every describe_group call consumes the next scripted state. The last state is repeated.
    A scripted state of None means: the group does not exist.
    """

    def __init__(
        self,
        states: Optional[List[Optional[Dict[str, Any]]]] = None,
        members: Optional[Dict[str, Dict[str, Any]]] = None,
        create_id: str = "my-group",
    ) -> None:
        self.states = list(states or [])
        self.members = members or {}
        self.create_id = create_id
        self.calls: List[Tuple[str, Any]] = []
        self.delete_error: Optional[Exception] = None

    def create_group(self, spec: DesiredSpec) -> str:
        self.calls.append(("create_group", spec))
        return self.create_id

    def describe_group(self, group_id: str) -> ObservedState:
        self.calls.append(("describe_group", group_id))
        state = self.states.pop(0) if len(self.states) > 1 else (self.states[0] if self.states else None)
        if state is None:
            raise NotFoundError("not found", group_id)
        return ObservedState.from_api(state)

    def describe_member(self, member_id: str) -> MemberDetail:
        self.calls.append(("describe_member", member_id))
        return MemberDetail.from_api(self.members.get(member_id) or member_json(member_id))

    def modify_group(self, group_id: str, patch: PatchRequest) -> None:
        self.calls.append(("modify_group", patch))

    def delete_group(self, group_id: str) -> None:
        self.calls.append(("delete_group", group_id))
        if self.delete_error is not None:
            raise self.delete_error

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def remote_calls(self, name: str) -> List[Any]:
        return [arg for n, arg in self.calls if n == name]
