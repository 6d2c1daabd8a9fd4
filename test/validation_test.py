import pytest

from fix_plugin_elasticache.errors import ValidationError
from fix_plugin_elasticache.model import DesiredSpec
from fix_plugin_elasticache.validation import replication_group_id_problems, spec_problems, validate_spec


def spec(**kwargs: object) -> DesiredSpec:
    js = dict(replication_group_id="my-group", node_type="cache.m5.large", num_cache_clusters=2, port=6379)
    js.update(kwargs)
    return DesiredSpec.from_json(js)


@pytest.mark.parametrize("group_id", ["a", "my-group", "redis-01", "a" * 20, "a1-b2-c3"])
def test_valid_identifiers(group_id: str) -> None:
    assert replication_group_id_problems(group_id) == []


@pytest.mark.parametrize(
    "group_id,problem",
    [
        ("", "from 1 to 20"),
        ("a" * 21, "from 1 to 20"),
        ("my_group", "only lowercase alphanumeric"),
        ("My-Group", "only lowercase alphanumeric"),
        ("1group", "must be a letter"),
        ("my--group", "two consecutive hyphens"),
        ("my-group-", "end with a hyphen"),
    ],
)
def test_invalid_identifiers(group_id: str, problem: str) -> None:
    problems = replication_group_id_problems(group_id)
    assert any(problem in p for p in problems), problems


def test_mixed_case_identifier_is_accepted() -> None:
    validate_spec(spec(replication_group_id="My-Group"))


def test_spec_problems() -> None:
    assert spec_problems(spec()) == []
    assert spec_problems(spec(snapshot_retention_limit=35, az_mode="cross-az")) == []
    assert len(spec_problems(spec(num_cache_clusters=0))) == 1
    assert len(spec_problems(spec(port=0))) == 1
    assert len(spec_problems(spec(port=65536))) == 1
    assert len(spec_problems(spec(snapshot_retention_limit=36))) == 1
    assert len(spec_problems(spec(snapshot_retention_limit=-1))) == 1
    assert len(spec_problems(spec(az_mode="multi-az"))) == 1
    assert len(spec_problems(spec(node_type=""))) == 1


def test_validate_spec_reports_all_problems() -> None:
    with pytest.raises(ValidationError) as ex:
        validate_spec(spec(replication_group_id="my--group-", port=0))
    assert len(ex.value.problems) == 3
    assert ex.value.group_id == "my--group-"
    assert "my--group-" in str(ex.value)
