import logging
from typing import List, Optional, Protocol

from fix_plugin_elasticache.aws_client import AwsClient
from fix_plugin_elasticache.errors import NotFoundError
from fix_plugin_elasticache.model import DesiredSpec, Json, MemberDetail, ObservedState, PatchRequest

log = logging.getLogger("fix.plugins.elasticache")

service_name = "elasticache"


class RemoteClient(Protocol):
    """
    The control plane operations needed to reconcile a replication group.
    All operations raise NotFoundError if the object does not exist and TransportError for all other failures.
    """

    def create_group(self, spec: DesiredSpec) -> str:
        ...

    def describe_group(self, group_id: str) -> ObservedState:
        ...

    def describe_member(self, member_id: str) -> MemberDetail:
        ...

    def modify_group(self, group_id: str, patch: PatchRequest) -> None:
        ...

    def delete_group(self, group_id: str) -> None:
        ...


def create_args(spec: DesiredSpec) -> Json:
    args: Json = {
        "ReplicationGroupId": spec.replication_group_id,
        "ReplicationGroupDescription": spec.description or f"Replication group {spec.group_id}",
        "CacheNodeType": spec.node_type,
        "NumCacheClusters": spec.num_cache_clusters,
        "Engine": spec.engine,
        "Port": spec.port,
    }

    def add(name: str, value: Optional[object]) -> None:
        # unset and empty values are left to the AWS defaults
        if value is not None and value != [] and value != "":
            args[name] = value

    add("EngineVersion", spec.engine_version)
    add("CacheParameterGroupName", spec.parameter_group_name)
    add("CacheSubnetGroupName", spec.subnet_group_name)
    add("CacheSecurityGroupNames", spec.security_group_names)
    add("SecurityGroupIds", spec.security_group_ids)
    add("PreferredMaintenanceWindow", spec.maintenance_window)
    add("NotificationTopicArn", spec.notification_topic_arn)
    add("SnapshotArns", spec.snapshot_arns)
    add("SnapshotWindow", spec.snapshot_window)
    add("SnapshotRetentionLimit", spec.snapshot_retention_limit)
    add("AutomaticFailoverEnabled", spec.automatic_failover)
    add("PreferredCacheClusterAZs", spec.availability_zones)
    if spec.az_mode is not None:
        args["MultiAZEnabled"] = spec.az_mode == "cross-az"
    return args


class ElastiCacheClient:
    """
    RemoteClient backed by the ElastiCache API.
    """

    def __init__(self, client: AwsClient) -> None:
        self.client = client

    def create_group(self, spec: DesiredSpec) -> str:
        if spec.snapshot_arns:
            log.debug(f"Restoring replication group {spec.group_id} from S3 snapshot: {spec.snapshot_arns}")
        group: Json = self.client.call(
            service_name, "create-replication-group", "ReplicationGroup", spec.group_id, **create_args(spec)
        )
        return str(group["ReplicationGroupId"])

    def describe_group(self, group_id: str) -> ObservedState:
        groups: List[Json] = (
            self.client.call(
                service_name, "describe-replication-groups", "ReplicationGroups", group_id, ReplicationGroupId=group_id
            )
            or []
        )
        for group in groups:
            if group.get("ReplicationGroupId") == group_id:
                log.debug(f"Found matching ElastiCache replication group: {group_id}")
                return ObservedState.from_api(group)
        raise NotFoundError("No matching replication group returned", group_id)

    def describe_member(self, member_id: str) -> MemberDetail:
        clusters: List[Json] = (
            self.client.call(
                service_name,
                "describe-cache-clusters",
                "CacheClusters",
                member_id,
                CacheClusterId=member_id,
                ShowCacheNodeInfo=True,
            )
            or []
        )
        if len(clusters) != 1:
            raise NotFoundError(f"Expected one cache cluster {member_id} but got {len(clusters)}")
        return MemberDetail.from_api(clusters[0])

    def modify_group(self, group_id: str, patch: PatchRequest) -> None:
        """
        Apply the patch. A patch changes either the settings or the number of clusters:
        AWS rejects a replica count change while the group is still modifying.
        """
        if patch.modifies_settings and patch.num_cache_clusters is not None:
            raise ValueError("Settings and number of clusters need to be modified in separate steps")
        if patch.modifies_settings:
            self.client.call(service_name, "modify-replication-group", None, group_id, **patch.modify_args(group_id))
        elif patch.num_cache_clusters is not None:
            # the number of clusters is changed by adding or removing replicas, which is always applied immediately
            previous = patch.previous_num_cache_clusters
            action = (
                "decrease-replica-count"
                if previous is not None and patch.num_cache_clusters < previous
                else "increase-replica-count"
            )
            self.client.call(
                service_name,
                action,
                None,
                group_id,
                ReplicationGroupId=group_id,
                NewReplicaCount=patch.num_cache_clusters - 1,
                ApplyImmediately=True,
            )

    def delete_group(self, group_id: str) -> None:
        self.client.call(service_name, "delete-replication-group", None, group_id, ReplicationGroupId=group_id)
