import re
from typing import List

from fix_plugin_elasticache.errors import ValidationError
from fix_plugin_elasticache.model import DesiredSpec

MaxSnapshotRetentionDays = 35
AzModes = {"single-az", "cross-az"}


def replication_group_id_problems(value: str, name: str = "replication_group_id") -> List[str]:
    problems: List[str] = []
    if len(value) < 1 or len(value) > 20:
        problems.append(f"{name} must contain from 1 to 20 alphanumeric characters or hyphens")
    if not re.match(r"^[0-9a-z-]+$", value):
        problems.append(f"only lowercase alphanumeric characters and hyphens allowed in {name}")
    if not re.match(r"^[a-z]", value):
        problems.append(f"first character of {name} must be a letter")
    if "--" in value:
        problems.append(f"{name} cannot contain two consecutive hyphens")
    if value.endswith("-"):
        problems.append(f"{name} cannot end with a hyphen")
    return problems


def spec_problems(spec: DesiredSpec) -> List[str]:
    # AWS stores the id in lower case: mixed case input is accepted
    problems = replication_group_id_problems(spec.group_id)
    if not spec.node_type:
        problems.append("node_type is required")
    if spec.num_cache_clusters is None or spec.num_cache_clusters < 1:
        problems.append("num_cache_clusters must be at least 1")
    if spec.port is None or not 0 < spec.port < 65536:
        problems.append("port must be between 1 and 65535")
    if spec.snapshot_retention_limit is not None and not 0 <= spec.snapshot_retention_limit <= MaxSnapshotRetentionDays:
        problems.append(f"snapshot retention limit cannot be more than {MaxSnapshotRetentionDays} days")
    if spec.az_mode is not None and spec.az_mode not in AzModes:
        problems.append(f"valid values for az_mode are {', '.join(sorted(AzModes))}")
    return problems


def validate_spec(spec: DesiredSpec) -> None:
    """
    Check the desired state before any remote call is made.
    :raises ValidationError: listing all problems found.
    """
    problems = spec_problems(spec)
    if problems:
        raise ValidationError(problems, spec.replication_group_id)
