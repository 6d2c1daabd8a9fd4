import logging
from typing import Callable, List, Optional

from fix_plugin_elasticache.errors import UnsupportedTopologyError
from fix_plugin_elasticache.model import (
    CacheNodeView,
    Endpoint,
    MemberDetail,
    NodeGroup,
    ObservedState,
    ResourceView,
)

log = logging.getLogger("fix.plugins.elasticache")


def single_node_group(observed: ObservedState) -> NodeGroup:
    if len(observed.node_groups) != 1:
        raise UnsupportedTopologyError(observed.replication_group_id, len(observed.node_groups))
    return observed.node_groups[0]


def _enabled(status: Optional[str]) -> Optional[bool]:
    return None if status is None else status in ("enabled", "enabling")


def assemble_view(observed: ObservedState, describe_member: Callable[[str], MemberDetail]) -> ResourceView:
    """
    Project the observed replication group into a flat view.

    The group level settings (node type, engine, parameter group, ...) are only reported per member.
    They are identical for all members, so the first member defines them.
    Only one member takes snapshots: the snapshot settings are taken from the member with a retention limit.

    :param observed: the replication group as described by AWS.
    :param describe_member: returns the details of a member. Errors are propagated.
    """
    group_id = observed.replication_group_id.lower()
    view = ResourceView(
        replication_group_id=group_id,
        status=observed.status,
        description=observed.description,
        automatic_failover=_enabled(observed.automatic_failover),
        multi_az=_enabled(observed.multi_az),
        num_cache_clusters=len(observed.member_clusters),
        node_type=observed.cache_node_type,
        snapshotting_cluster_id=observed.snapshotting_cluster_id,
    )
    try:
        node_group = single_node_group(observed)
    except UnsupportedTopologyError as e:
        log.warning(f"Only partial information available: {e}")
        view.supported_topology = False
        return view

    members = node_group.node_group_members
    view.num_cache_clusters = view.num_cache_clusters or len(members)
    if node_group.primary_endpoint is not None:
        view.endpoint = Endpoint(node_group.primary_endpoint.address, node_group.primary_endpoint.port)
        view.port = node_group.primary_endpoint.port
    for member in members:
        endpoint = member.read_endpoint or Endpoint()
        view.cache_nodes.append(
            CacheNodeView(
                id=member.cache_cluster_id,
                role=member.current_role,
                address=endpoint.address,
                port=endpoint.port,
                availability_zone=member.preferred_availability_zone,
            )
        )

    details: List[MemberDetail] = [describe_member(member.cache_cluster_id) for member in members]
    if details:
        first = details[0]
        view.node_type = first.cache_node_type or view.node_type
        view.engine = first.engine
        view.engine_version = first.engine_version
        view.subnet_group_name = first.cache_subnet_group_name
        view.security_group_names = sorted(
            g.cache_security_group_name for g in first.cache_security_groups if g.cache_security_group_name
        )
        view.security_group_ids = sorted(g.security_group_id for g in first.security_groups if g.security_group_id)
        if first.cache_parameter_group is not None:
            view.parameter_group_name = first.cache_parameter_group.cache_parameter_group_name
        view.maintenance_window = first.preferred_maintenance_window
        view.snapshot_window = first.snapshot_window
        view.snapshot_retention_limit = first.snapshot_retention_limit
        notification = first.notification_configuration
        if notification is not None and notification.topic_status != "inactive":
            view.notification_topic_arn = notification.topic_arn
            view.notification_topic_status = notification.topic_status
        elif notification is not None:
            view.notification_topic_arn = ""
            view.notification_topic_status = notification.topic_status

    # it is not known upfront, which member is the snapshotting one
    for detail in details:
        if detail.snapshot_retention_limit is not None and detail.snapshot_retention_limit > 0:
            view.snapshot_retention_limit = detail.snapshot_retention_limit
            view.snapshot_window = detail.snapshot_window
            view.snapshotting_cluster_id = view.snapshotting_cluster_id or detail.cache_cluster_id
            break
    return view
