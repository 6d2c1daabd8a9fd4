from enum import Enum
from typing import AbstractSet, Optional

from attrs import frozen

# Status values reported by ElastiCache for a replication group
Creating = "creating"
Available = "available"
Modifying = "modifying"
Deleting = "deleting"
Snapshotting = "snapshotting"
CreateFailed = "create-failed"
IncompatibleParameters = "incompatible-parameters"
IncompatibleNetwork = "incompatible-network"
RestoreFailed = "restore-failed"

CreatePending = frozenset({Creating})
UpdatePending = frozenset({Modifying, Snapshotting})
# every status a group might report while it is being deleted
DeletePending = frozenset(
    {Creating, Available, Deleting, IncompatibleParameters, IncompatibleNetwork, RestoreFailed}
)


class Match(Enum):
    pending = "pending"
    target = "target"
    other = "other"
    gone = "gone"


@frozen
class Classification:
    match: Match
    status: str

    @property
    def is_pending(self) -> bool:
        return self.match == Match.pending

    @property
    def is_gone(self) -> bool:
        return self.match == Match.gone


Gone = Classification(Match.gone, "")


def classify(
    raw_status: str, pending: AbstractSet[str], target: str, node_group_status: Optional[str] = None
) -> Classification:
    """
    Decide how a poll should continue, given the raw status of a replication group.

    :param raw_status: the status reported for the group.
    :param pending: statuses that mean: keep on waiting.
    :param target: the status to wait for. The empty string waits for the pending set to clear.
    :param node_group_status: the status of the single node group, if reported.
    :return: the classification. The status of a pending match is the status to report.
    """
    if raw_status in pending:
        return Classification(Match.pending, raw_status)
    if target and raw_status == target:
        # the group can already be available while its node group is still in transition
        if node_group_status is not None and node_group_status != Available:
            return Classification(Match.pending, Creating)
        return Classification(Match.target, raw_status)
    return Classification(Match.other, raw_status)
