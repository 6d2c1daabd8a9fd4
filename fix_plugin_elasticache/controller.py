import logging
import time
from contextlib import contextmanager
from datetime import timedelta
from enum import Enum
from typing import AbstractSet, Callable, Iterator, Optional

from attrs import define, field

from fix_plugin_elasticache import status
from fix_plugin_elasticache.client import RemoteClient
from fix_plugin_elasticache.configuration import ReconcileConfig
from fix_plugin_elasticache.diff import create_only_changes, diff
from fix_plugin_elasticache.durations import duration_str
from fix_plugin_elasticache.errors import NotFoundError, PollTimeoutError, ReconcileError, ValidationError
from fix_plugin_elasticache.model import DesiredSpec, PatchRequest, ResourceView
from fix_plugin_elasticache.poll import group_refresh, wait_for_state
from fix_plugin_elasticache.utils import metrics_reconcile_operations
from fix_plugin_elasticache.validation import validate_spec
from fix_plugin_elasticache.view import assemble_view

log = logging.getLogger("fix.plugins.elasticache")


class Phase(Enum):
    not_created = "not_created"
    creating = "creating"
    available = "available"
    modifying = "modifying"
    deleting = "deleting"
    deleted = "deleted"


# phase of a group, derived from the status reported by AWS
_phase_by_status = {
    status.Creating: Phase.creating,
    status.Available: Phase.available,
    status.Modifying: Phase.modifying,
    status.Snapshotting: Phase.modifying,
    status.Deleting: Phase.deleting,
}


@define(slots=False)
class ReplicationGroupState:
    """
    The local handle of a replication group.
    The id is the only durable information: everything else is derived from AWS on every read.
    """

    id: Optional[str] = None
    view: Optional[ResourceView] = None
    phase: Phase = field(default=Phase.not_created)

    def clear(self) -> None:
        self.id = None
        self.view = None
        self.phase = Phase.deleted


@contextmanager
def measured(operation: str) -> Iterator[None]:
    try:
        yield
    except PollTimeoutError:
        metrics_reconcile_operations.labels(operation=operation, outcome="timeout").inc()
        raise
    except ReconcileError:
        metrics_reconcile_operations.labels(operation=operation, outcome="error").inc()
        raise
    else:
        metrics_reconcile_operations.labels(operation=operation, outcome="success").inc()


class ReplicationGroupController:
    def __init__(
        self,
        client: RemoteClient,
        config: Optional[ReconcileConfig] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.config = config or ReconcileConfig()
        self.sleep = sleep
        self.clock = clock

    def create(self, state: ReplicationGroupState, desired: DesiredSpec, timeout: Optional[timedelta] = None) -> None:
        """
        Create the replication group and wait until it is available.
        The id of the state is defined as soon as AWS accepted the request:
        it stays defined, even if waiting for the group times out.
        """
        validate_spec(desired)
        with measured("create"):
            log.info(f"Creating replication group {desired.group_id}")
            group_id = self.client.create_group(desired)
            # AWS keeps the id in lower case, so a group with upper case characters could not be found otherwise
            state.id = group_id.lower()
            state.phase = Phase.creating
            log.debug(f"Waiting for state to become available: {state.id}")
            self.__wait(state, "create", status.Available, status.CreatePending, timeout)
            self.read(state)

    def read(self, state: ReplicationGroupState) -> Optional[ResourceView]:
        """
        Refresh the view of the replication group.
        A group that does not exist anymore is not an error: the state is cleared.
        """
        if state.id is None:
            return None
        try:
            observed = self.client.describe_group(state.id)
        except NotFoundError:
            log.warning(f"ElastiCache replication group ({state.id}) not found")
            state.clear()
            return None
        state.view = assemble_view(observed, self.client.describe_member)
        state.phase = _phase_by_status.get(observed.status, state.phase)
        return state.view

    def update(self, state: ReplicationGroupState, desired: DesiredSpec, timeout: Optional[timedelta] = None) -> None:
        """
        Modify the replication group, so it matches the desired spec.
        The group is always read first: roles of the members change with every failover.
        Nothing is modified, if the group already matches.
        A change of the number of clusters is applied before all other changes, in a step of its own.
        """
        validate_spec(desired)
        if state.view is not None:
            # fail before any remote call, if a create-only field is known to change
            problems = create_only_changes(desired, state.view)
            if problems:
                raise ValidationError(problems, state.id)
        if state.id is None:
            state.id = desired.group_id
        view = self.read(state)
        if view is None:
            raise NotFoundError("Can not update a replication group that does not exist", desired.group_id)
        patch = diff(desired, view)
        if not patch.changed:
            log.info(f"Replication group {state.id} is in the desired state")
            return
        with measured("update"):
            if patch.num_cache_clusters is not None and patch.modifies_settings:
                self.__modify(state, patch.replica_count_patch(), timeout)
                view = self.read(state)
                if view is None:
                    raise NotFoundError("Replication group disappeared during update", desired.group_id)
                # the members changed: the donor is selected again
                patch = diff(desired, view)
                # the number of clusters was changed in the step above
                patch.num_cache_clusters = None
                patch.previous_num_cache_clusters = None
            if patch.changed:
                self.__modify(state, patch, timeout)
            self.read(state)

    def __modify(self, state: ReplicationGroupState, patch: PatchRequest, timeout: Optional[timedelta]) -> None:
        assert state.id is not None
        log.info(f"Modifying replication group {state.id}: {', '.join(patch.changed_fields)}")
        self.client.modify_group(state.id, patch)
        state.phase = Phase.modifying
        self.__wait(state, "update", status.Available, status.UpdatePending, timeout)

    def delete(self, state: ReplicationGroupState, timeout: Optional[timedelta] = None) -> None:
        """
        Delete the replication group and wait until it is gone.
        """
        if state.id is None:
            return
        with measured("delete"):
            log.info(f"Deleting replication group {state.id}")
            try:
                self.client.delete_group(state.id)
            except NotFoundError:
                log.info(f"Replication group {state.id} does not exist anymore")
                state.clear()
                return
            state.phase = Phase.deleting
            log.debug(f"Waiting for deletion: {state.id}")
            self.__wait(state, "delete", "", status.DeletePending, timeout)
            state.clear()

    def __wait(
        self,
        state: ReplicationGroupState,
        operation: str,
        target: str,
        pending: AbstractSet[str],
        timeout: Optional[timedelta],
    ) -> None:
        assert state.id is not None
        timeout = timeout or self.config.timeout(operation)
        log.debug(f"Waiting up to {duration_str(timeout)} for {operation} of {state.id}")
        try:
            wait_for_state(
                group_refresh(self.client, state.id, target, pending),
                group_id=state.id,
                target=target,
                timeout=timeout,
                delay=self.config.delay(operation),
                min_interval=self.config.min_interval(),
                max_interval=self.config.max_interval(),
                sleep=self.sleep,
                clock=self.clock,
            )
        except NotFoundError:
            # the group vanished while we waited for it to become available
            log.warning(f"Replication group {state.id} disappeared during {operation}")
            state.clear()
            raise
        except PollTimeoutError as e:
            # the group still exists and AWS keeps working on it: keep the id, the view is stale
            log.error(f"Error waiting for elasticache ({state.id}) to {operation}: {e}")
            if state.phase == Phase.modifying:
                state.phase = Phase.available
            raise
