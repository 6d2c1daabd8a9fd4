import logging
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Optional, TypeVar, cast

from prometheus_client import Counter

log = logging.getLogger("fix.plugins.elasticache")

DecoratedFn = TypeVar("DecoratedFn", bound=Callable[..., Any])
UTC_Date_Format = "%Y-%m-%dT%H:%M:%SZ"

metrics_remote_calls = Counter(
    "fix_plugin_elasticache_remote_calls_total",
    "Calls to the ElastiCache API",
    ["action", "outcome"],
)
metrics_reconcile_operations = Counter(
    "fix_plugin_elasticache_reconcile_operations_total",
    "Reconcile operations on replication groups",
    ["operation", "outcome"],
)


def utc() -> datetime:
    return datetime.now(timezone.utc)


def utc_str(dto: Optional[datetime] = None) -> str:
    dt = dto if dto is not None else utc()
    if dt.tzinfo is not None and dt.tzname() != "UTC":
        offset = dt.tzinfo.utcoffset(dt)
        if offset is not None and offset.total_seconds() != 0:
            dt = (dt - offset).replace(tzinfo=timezone.utc)
    return dt.strftime(UTC_Date_Format)


def log_runtime(f: DecoratedFn) -> DecoratedFn:
    @wraps(f)
    def timer(*args: Any, **kwargs: Any) -> Any:
        start = time.time()
        ret = f(*args, **kwargs)
        runtime = time.time() - start
        kwargs_str = ", ".join([f"{k}={repr(v)}" for k, v in kwargs.items()])
        log.debug(f"Runtime of {f.__name__}({kwargs_str}): {runtime:.3f} seconds")
        return ret

    return cast(DecoratedFn, timer)
