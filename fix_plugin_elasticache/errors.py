from typing import List, Optional


class ReconcileError(Exception):
    """
    Base for all errors raised while reconciling a replication group.
    Carries the identity of the group and the last raw status reported by AWS, if known.
    """

    def __init__(self, message: str, group_id: Optional[str] = None, status: Optional[str] = None) -> None:
        details = []
        if group_id:
            details.append(f"replication group {group_id}")
        if status:
            details.append(f"status {status}")
        super().__init__(f"{message} ({', '.join(details)})" if details else message)
        self.group_id = group_id
        self.status = status


class ValidationError(ReconcileError):
    """
    The desired spec is invalid or tries to change a create-only field.
    Raised before any remote call is made.
    """

    def __init__(self, problems: List[str], group_id: Optional[str] = None) -> None:
        super().__init__("Invalid replication group spec: " + "; ".join(problems), group_id)
        self.problems = problems


class TransportError(ReconcileError):
    """
    A call to the ElastiCache API failed for any reason other than not-found.
    """

    def __init__(
        self, message: str, group_id: Optional[str] = None, status: Optional[str] = None, code: Optional[str] = None
    ) -> None:
        super().__init__(message, group_id, status)
        self.code = code


class NotFoundError(ReconcileError):
    pass


class UnsupportedTopologyError(ReconcileError):
    def __init__(self, group_id: str, node_groups: int) -> None:
        super().__init__(f"Expected exactly one node group but found {node_groups}", group_id)
        self.node_groups = node_groups


class PollTimeoutError(ReconcileError):
    def __init__(self, group_id: str, status: Optional[str], target: str, timeout_seconds: float) -> None:
        wanted = f"status {target}" if target else "deletion"
        super().__init__(f"Timeout after {timeout_seconds:.0f}s while waiting for {wanted}", group_id, status)
        self.target = target
        self.timeout_seconds = timeout_seconds


class UnexpectedStatusError(ReconcileError):
    def __init__(self, group_id: str, status: str, target: str) -> None:
        wanted = f"status {target}" if target else "deletion"
        super().__init__(f"Unexpected status while waiting for {wanted}", group_id, status)
        self.target = target


class NoQualifyingDonorError(ReconcileError):
    """
    No member can be designated as snapshotting cluster.
    Never surfaced to the caller: the snapshot change is dropped from the patch instead.
    """

    def __init__(self, group_id: Optional[str]) -> None:
        super().__init__("No member qualifies as snapshotting cluster", group_id)
