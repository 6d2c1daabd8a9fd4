import logging
from typing import Any, List, Optional, Sequence

from fix_plugin_elasticache.errors import NoQualifyingDonorError, ValidationError
from fix_plugin_elasticache.model import CacheNodeView, DesiredSpec, PatchRequest, ResourceView

log = logging.getLogger("fix.plugins.elasticache")


def select_donor(group_id: Optional[str], members: Sequence[CacheNodeView]) -> str:
    """
    Select the member that takes snapshots.
    A single member is always selected. Otherwise the last replica is preferred,
    so the primary serving production traffic does not get the additional load.
    """
    donor: Optional[str] = None
    for idx, member in enumerate(members):
        if idx == 0 and len(members) == 1:
            donor = member.id
        elif member.role != "primary":
            donor = member.id
    if donor is None:
        raise NoQualifyingDonorError(group_id)
    return donor


def create_only_changes(desired: DesiredSpec, observed: ResourceView) -> List[str]:
    """
    Compare all fields that can only be defined on creation.
    A field is only compared if it is defined in the desired spec and known from the observed state.
    """
    problems: List[str] = []

    def check(name: str, wanted: Any, actual: Any) -> None:
        if wanted is not None and actual is not None and wanted != actual:
            problems.append(f"{name} can not be changed from {actual} to {wanted} - the group needs to be recreated")

    check("replication_group_id", desired.group_id, observed.replication_group_id.lower())
    check("port", desired.port, observed.port)
    check("subnet_group_name", desired.subnet_group_name, observed.subnet_group_name)
    check("engine", desired.engine, observed.engine)
    if desired.az_mode is not None and observed.multi_az is not None:
        check("az_mode", desired.az_mode, "cross-az" if observed.multi_az else "single-az")
    if desired.availability_zones and observed.availability_zones:
        check("availability_zones", sorted(set(desired.availability_zones)), sorted(set(observed.availability_zones)))
    # snapshot_arns are only used to seed the group: nothing to compare
    return problems


def diff(desired: DesiredSpec, observed: ResourceView) -> PatchRequest:
    """
    Compute the modification that brings the observed replication group to the desired state.
    Only fields defined in the desired spec are considered.

    :raises ValidationError: if a create-only field would change.
    :return: the patch. Check patch.changed to see if there is anything to do.
    """
    group_id = observed.replication_group_id
    problems = create_only_changes(desired, observed)
    if problems:
        raise ValidationError(problems, group_id)

    patch = PatchRequest(apply_immediately=desired.apply_immediately)

    def differs(wanted: Any, actual: Any) -> bool:
        return wanted is not None and wanted != actual

    if differs(desired.description, observed.description):
        patch.description = desired.description
    if differs(desired.node_type, observed.node_type):
        patch.node_type = desired.node_type
    if differs(desired.engine_version, observed.engine_version):
        patch.engine_version = desired.engine_version
    if differs(desired.parameter_group_name, observed.parameter_group_name):
        patch.parameter_group_name = desired.parameter_group_name
    if differs(desired.maintenance_window, (observed.maintenance_window or "").lower() or None):
        patch.maintenance_window = desired.maintenance_window
    if differs(desired.automatic_failover, observed.automatic_failover):
        patch.automatic_failover = desired.automatic_failover
    if desired.num_cache_clusters is not None and desired.num_cache_clusters != observed.num_cache_clusters:
        patch.num_cache_clusters = desired.num_cache_clusters
        patch.previous_num_cache_clusters = observed.num_cache_clusters
    if desired.security_group_names is not None and set(desired.security_group_names) != set(
        observed.security_group_names or []
    ):
        patch.security_group_names = sorted(desired.security_group_names)
    if desired.security_group_ids is not None and set(desired.security_group_ids) != set(
        observed.security_group_ids or []
    ):
        patch.security_group_ids = sorted(desired.security_group_ids)
    if differs(desired.notification_topic_arn, observed.notification_topic_arn or ""):
        patch.notification_topic_arn = desired.notification_topic_arn
        if desired.notification_topic_arn == "":
            # clearing the arn alone does not disable notifications
            patch.notification_topic_status = "inactive"

    retention_changed = differs(desired.snapshot_retention_limit, observed.snapshot_retention_limit or 0)
    window_changed = differs(desired.snapshot_window, observed.snapshot_window)
    if retention_changed or window_changed:
        try:
            patch.snapshotting_cluster_id = select_donor(group_id, observed.cache_nodes)
            if retention_changed:
                patch.snapshot_retention_limit = desired.snapshot_retention_limit
            if window_changed:
                patch.snapshot_window = desired.snapshot_window
        except NoQualifyingDonorError as e:
            log.warning(f"Snapshot settings of {group_id} are not changed: {e}")

    if patch.changed:
        log.info(f"Replication group {group_id} needs update of: {', '.join(patch.changed_fields)}")
    return patch
