import logging
import time
from datetime import timedelta
from typing import AbstractSet, Callable, Optional, Tuple

from fix_plugin_elasticache.client import RemoteClient
from fix_plugin_elasticache.errors import NotFoundError, PollTimeoutError, UnexpectedStatusError
from fix_plugin_elasticache.model import ObservedState
from fix_plugin_elasticache.status import Classification, Gone, Match, classify

log = logging.getLogger("fix.plugins.elasticache")

RefreshResult = Tuple[Optional[ObservedState], Classification]
RefreshFn = Callable[[], RefreshResult]


def group_refresh(client: RemoteClient, group_id: str, target: str, pending: AbstractSet[str]) -> RefreshFn:
    """
    Create a refresh function that reports the classified status of the given replication group.
    A group that does not exist (anymore) is reported as Gone.
    """

    def refresh() -> RefreshResult:
        try:
            group = client.describe_group(group_id)
        except NotFoundError:
            log.debug(f"Replication group {group_id} does not exist")
            return None, Gone
        node_group_status = group.node_groups[0].status if len(group.node_groups) == 1 else None
        classification = classify(group.status, pending, target, node_group_status)
        log.debug(
            f"Replication group {group_id} status: {group.status}, node group status: {node_group_status} "
            f"-> {classification.match.value} {classification.status}"
        )
        return group, classification

    return refresh


def wait_for_state(
    refresh: RefreshFn,
    *,
    group_id: str,
    target: str,
    timeout: timedelta,
    delay: timedelta,
    min_interval: timedelta,
    max_interval: Optional[timedelta] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Optional[ObservedState]:
    """
    Poll the refresh function until the target status is reached.

    The first check happens after the given delay. Between two checks the loop waits at least min_interval,
    doubling the wait time up to max_interval while the status stays pending.

    :param refresh: reports the current state and its classification.
    :param group_id: the identity of the polled group, used in errors.
    :param target: the status to wait for. The empty string waits for the group to disappear.
    :param timeout: give up after this time.
    :param delay: wait time before the first check.
    :param min_interval: minimal wait time between two checks.
    :param max_interval: maximal wait time between two checks.
    :param sleep: suspends the current thread for the given number of seconds.
    :param clock: monotonic clock in seconds.
    :return: the state that reached the target. None if the group disappeared as expected.
    :raises PollTimeoutError: if the target is not reached within the timeout.
    :raises UnexpectedStatusError: if the group reports a status that is neither pending nor target.
    :raises NotFoundError: if the group disappeared while waiting for a target status.
    """
    timeout_s = timeout.total_seconds()
    floor = min_interval.total_seconds()
    ceiling = max(floor, max_interval.total_seconds() if max_interval else floor)
    deadline = clock() + timeout_s
    last_status: Optional[str] = None
    wait = floor
    expired = False

    sleep(delay.total_seconds())
    while True:
        # errors of the refresh function are not retried here
        state, classification = refresh()
        if classification.match == Match.gone:
            if not target:
                log.debug(f"Replication group {group_id} is gone")
                return None
            raise NotFoundError(f"Disappeared while waiting for status {target}", group_id, last_status)
        last_status = classification.status
        if classification.match == Match.target:
            return state
        if classification.match == Match.other:
            raise UnexpectedStatusError(group_id, classification.status, target)

        remaining = deadline - clock()
        if expired or remaining <= 0:
            raise PollTimeoutError(group_id, last_status, target, timeout_s)
        log.debug(f"Replication group {group_id} is {last_status}. Check again in {wait:.0f}s.")
        sleep(max(floor, min(wait, remaining)))
        wait = min(wait * 2, ceiling)
        # the deadline passed while sleeping: check one last time
        expired = clock() > deadline
