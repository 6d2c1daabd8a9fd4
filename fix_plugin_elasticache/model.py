from typing import Any, ClassVar, Dict, List, Optional, Type, TypeVar

import attrs
import cattrs
from attrs import define, field
from cattrs.errors import BaseValidationError
from cattrs.gen import make_dict_structure_fn, override

from fix_plugin_elasticache.errors import ValidationError

Json = Dict[str, Any]
AnyT = TypeVar("AnyT")

# AWS names that do not follow the simple snake_case -> CamelCase rule
_aws_renames = {"multi_az": "MultiAZ"}


def aws_name(name: str) -> str:
    return _aws_renames.get(name) or "".join(part.capitalize() for part in name.split("_"))


# structures API responses: attribute cache_cluster_id is read from key CacheClusterId
__api_converter = cattrs.Converter()
__api_converter.register_structure_hook_factory(
    attrs.has,
    lambda cls: make_dict_structure_fn(
        cls, __api_converter, **{a.name: override(rename=aws_name(a.name)) for a in attrs.fields(cls)}
    ),
)

# structures user input and renders views: attribute names are used as is
__json_converter = cattrs.Converter()


def from_api(js: Json, clazz: Type[AnyT]) -> AnyT:
    return __api_converter.structure(js, clazz)


def from_json(js: Json, clazz: Type[AnyT]) -> AnyT:
    valid = attrs.fields_dict(clazz).keys()  # type: ignore
    return __json_converter.structure({k: v for k, v in js.items() if k in valid}, clazz)


def to_json(obj: Any) -> Json:
    return __json_converter.unstructure(obj)  # type: ignore


# --------------------------------------------------------------------------------------------------
# Desired state
# --------------------------------------------------------------------------------------------------


@define(slots=False)
class DesiredSpec:
    kind: ClassVar[str] = "elasticache_replication_group"
    # names of fields that can not be changed after creation
    create_only: ClassVar[List[str]] = [
        "replication_group_id",
        "port",
        "subnet_group_name",
        "snapshot_arns",
        "availability_zones",
        "az_mode",
        "engine",
    ]
    replication_group_id: str = field(metadata={"description": "Identifier of the replication group (create-only)"})
    node_type: str = field(metadata={"description": "Cache node type, e.g. cache.m5.large"})
    num_cache_clusters: int = field(metadata={"description": "Number of clusters (primary plus replicas)"})
    port: int = field(metadata={"description": "Port of all cache nodes (create-only)"})
    description: Optional[str] = field(default=None, metadata={"description": "Replication group description"})
    engine: str = field(default="redis", metadata={"description": "Cache engine (create-only)"})
    engine_version: Optional[str] = field(default=None, metadata={"description": "Cache engine version"})
    parameter_group_name: Optional[str] = field(default=None, metadata={"description": "Cache parameter group"})
    maintenance_window: Optional[str] = field(
        default=None,
        converter=attrs.converters.optional(str.lower),
        metadata={"description": "Weekly maintenance window, e.g. sun:05:00-sun:06:00"},
    )
    notification_topic_arn: Optional[str] = field(
        default=None,
        metadata={"description": "SNS topic for notifications. The empty string disables notifications."},
    )
    subnet_group_name: Optional[str] = field(default=None, metadata={"description": "Subnet group (create-only)"})
    security_group_names: Optional[List[str]] = field(
        default=None, metadata={"description": "Names of cache security groups"}
    )
    security_group_ids: Optional[List[str]] = field(default=None, metadata={"description": "VPC security group ids"})
    snapshot_arns: Optional[List[str]] = field(
        default=None, metadata={"description": "S3 ARNs of RDB snapshots to restore from (create-only)"}
    )
    snapshot_window: Optional[str] = field(default=None, metadata={"description": "Daily snapshot window"})
    snapshot_retention_limit: Optional[int] = field(
        default=None, metadata={"description": "Number of days snapshots are retained (0-35)"}
    )
    automatic_failover: Optional[bool] = field(default=None, metadata={"description": "Enable automatic failover"})
    availability_zones: Optional[List[str]] = field(
        default=None, metadata={"description": "Preferred availability zones of the clusters (create-only)"}
    )
    az_mode: Optional[str] = field(
        default=None, metadata={"description": "single-az or cross-az placement (create-only)"}
    )
    apply_immediately: bool = field(
        default=False, metadata={"description": "Apply modifications now instead of in the maintenance window"}
    )

    @property
    def group_id(self) -> str:
        return self.replication_group_id.lower()

    @staticmethod
    def from_json(json: Json) -> "DesiredSpec":
        if not isinstance(json, dict):
            raise ValidationError([f"Expected a json object but got {type(json).__name__}"])
        try:
            return from_json(json, DesiredSpec)
        except BaseValidationError as e:
            # e.g. "required field missing @ $.node_type"
            raise ValidationError(cattrs.transform_error(e), json.get("replication_group_id")) from e


# --------------------------------------------------------------------------------------------------
# Observed state as returned by the API
# --------------------------------------------------------------------------------------------------


@define(eq=False, slots=False)
class Endpoint:
    address: Optional[str] = field(default=None)
    port: Optional[int] = field(default=None)


@define(eq=False, slots=False)
class Member:
    cache_cluster_id: str
    cache_node_id: Optional[str] = field(default=None)
    current_role: Optional[str] = field(default=None)
    read_endpoint: Optional[Endpoint] = field(default=None)
    preferred_availability_zone: Optional[str] = field(default=None)

    @property
    def is_primary(self) -> bool:
        return self.current_role == "primary"


@define(eq=False, slots=False)
class NodeGroup:
    node_group_id: Optional[str] = field(default=None)
    status: Optional[str] = field(default=None)
    primary_endpoint: Optional[Endpoint] = field(default=None)
    node_group_members: List[Member] = field(factory=list)


@define(eq=False, slots=False)
class ObservedState:
    replication_group_id: str
    status: str
    description: Optional[str] = field(default=None)
    automatic_failover: Optional[str] = field(default=None)
    multi_az: Optional[str] = field(default=None)
    snapshotting_cluster_id: Optional[str] = field(default=None)
    member_clusters: List[str] = field(factory=list)
    node_groups: List[NodeGroup] = field(factory=list)
    cache_node_type: Optional[str] = field(default=None)

    @staticmethod
    def from_api(js: Json) -> "ObservedState":
        return from_api(js, ObservedState)


@define(eq=False, slots=False)
class CacheSecurityGroupMembership:
    cache_security_group_name: Optional[str] = field(default=None)
    status: Optional[str] = field(default=None)


@define(eq=False, slots=False)
class SecurityGroupMembership:
    security_group_id: Optional[str] = field(default=None)
    status: Optional[str] = field(default=None)


@define(eq=False, slots=False)
class CacheParameterGroupStatus:
    cache_parameter_group_name: Optional[str] = field(default=None)
    parameter_apply_status: Optional[str] = field(default=None)


@define(eq=False, slots=False)
class NotificationConfiguration:
    topic_arn: Optional[str] = field(default=None)
    topic_status: Optional[str] = field(default=None)


@define(eq=False, slots=False)
class MemberDetail:
    """
    A single cache cluster as returned by describe-cache-clusters.
    Carries the fields that describe-replication-groups does not report.
    """

    cache_cluster_id: str
    cache_cluster_status: Optional[str] = field(default=None)
    cache_node_type: Optional[str] = field(default=None)
    engine: Optional[str] = field(default=None)
    engine_version: Optional[str] = field(default=None)
    num_cache_nodes: Optional[int] = field(default=None)
    preferred_availability_zone: Optional[str] = field(default=None)
    cache_subnet_group_name: Optional[str] = field(default=None)
    cache_security_groups: List[CacheSecurityGroupMembership] = field(factory=list)
    security_groups: List[SecurityGroupMembership] = field(factory=list)
    cache_parameter_group: Optional[CacheParameterGroupStatus] = field(default=None)
    preferred_maintenance_window: Optional[str] = field(default=None)
    snapshot_window: Optional[str] = field(default=None)
    snapshot_retention_limit: Optional[int] = field(default=None)
    notification_configuration: Optional[NotificationConfiguration] = field(default=None)
    replication_group_id: Optional[str] = field(default=None)

    @staticmethod
    def from_api(js: Json) -> "MemberDetail":
        return from_api(js, MemberDetail)


# --------------------------------------------------------------------------------------------------
# Modification request
# --------------------------------------------------------------------------------------------------


@define(slots=False)
class PatchRequest:
    description: Optional[str] = None
    node_type: Optional[str] = None
    engine_version: Optional[str] = None
    parameter_group_name: Optional[str] = None
    maintenance_window: Optional[str] = None
    notification_topic_arn: Optional[str] = None
    notification_topic_status: Optional[str] = None
    security_group_names: Optional[List[str]] = None
    security_group_ids: Optional[List[str]] = None
    automatic_failover: Optional[bool] = None
    snapshot_retention_limit: Optional[int] = None
    snapshot_window: Optional[str] = None
    snapshotting_cluster_id: Optional[str] = None
    num_cache_clusters: Optional[int] = None
    # number of clusters before the change: decides between adding and removing replicas
    previous_num_cache_clusters: Optional[int] = None
    apply_immediately: bool = False

    @property
    def changed(self) -> bool:
        return any(
            getattr(self, a.name) is not None
            for a in attrs.fields(PatchRequest)
            if a.name not in ("apply_immediately", "previous_num_cache_clusters")
        )

    @property
    def changed_fields(self) -> List[str]:
        return [
            a.name
            for a in attrs.fields(PatchRequest)
            if a.name not in ("apply_immediately", "previous_num_cache_clusters") and getattr(self, a.name) is not None
        ]

    @property
    def modifies_settings(self) -> bool:
        return any(name != "num_cache_clusters" for name in self.changed_fields)

    def replica_count_patch(self) -> "PatchRequest":
        return PatchRequest(
            num_cache_clusters=self.num_cache_clusters,
            previous_num_cache_clusters=self.previous_num_cache_clusters,
            apply_immediately=self.apply_immediately,
        )

    def modify_args(self, group_id: str) -> Json:
        """
        Arguments of modify-replication-group for everything except the number of clusters,
        which is changed via increase-replica-count/decrease-replica-count.
        """
        args: Json = {"ReplicationGroupId": group_id, "ApplyImmediately": self.apply_immediately}

        def add(name: str, value: Any) -> None:
            if value is not None:
                args[name] = value

        add("ReplicationGroupDescription", self.description)
        add("CacheNodeType", self.node_type)
        add("EngineVersion", self.engine_version)
        add("CacheParameterGroupName", self.parameter_group_name)
        add("PreferredMaintenanceWindow", self.maintenance_window)
        # an empty arn is not accepted: disabling is expressed via the topic status only
        add("NotificationTopicArn", self.notification_topic_arn or None)
        add("NotificationTopicStatus", self.notification_topic_status)
        add("CacheSecurityGroupNames", self.security_group_names)
        add("SecurityGroupIds", self.security_group_ids)
        add("AutomaticFailoverEnabled", self.automatic_failover)
        add("SnapshotRetentionLimit", self.snapshot_retention_limit)
        add("SnapshotWindow", self.snapshot_window)
        add("SnapshottingClusterId", self.snapshotting_cluster_id)
        return args


# --------------------------------------------------------------------------------------------------
# Read back view
# --------------------------------------------------------------------------------------------------


@define(slots=False)
class CacheNodeView:
    id: str
    role: Optional[str] = None
    address: Optional[str] = None
    port: Optional[int] = None
    availability_zone: Optional[str] = None


@define(slots=False)
class ResourceView:
    replication_group_id: str
    status: str
    description: Optional[str] = None
    automatic_failover: Optional[bool] = None
    multi_az: Optional[bool] = None
    num_cache_clusters: int = 0
    endpoint: Optional[Endpoint] = None
    cache_nodes: List[CacheNodeView] = field(factory=list)
    supported_topology: bool = True
    node_type: Optional[str] = None
    engine: Optional[str] = None
    engine_version: Optional[str] = None
    port: Optional[int] = None
    subnet_group_name: Optional[str] = None
    security_group_names: Optional[List[str]] = None
    security_group_ids: Optional[List[str]] = None
    parameter_group_name: Optional[str] = None
    maintenance_window: Optional[str] = None
    notification_topic_arn: Optional[str] = None
    notification_topic_status: Optional[str] = None
    snapshot_window: Optional[str] = None
    snapshot_retention_limit: Optional[int] = None
    snapshotting_cluster_id: Optional[str] = None

    @property
    def availability_zones(self) -> List[str]:
        return [n.availability_zone for n in self.cache_nodes if n.availability_zone]

    def to_json(self) -> Json:
        return to_json(self)
