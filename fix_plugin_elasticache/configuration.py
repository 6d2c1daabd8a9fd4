import logging
import os
import threading
import time
import uuid
from datetime import timedelta
from functools import lru_cache
from typing import Any, ClassVar, Dict, Optional, Type

from attrs import define, field
from boto3.session import Session as BotoSession
from botocore.client import BaseClient
from botocore.config import Config as BotoConfig
from botocore.session import Session as BotocoreSession

from fix_plugin_elasticache.durations import parse_duration
from fix_plugin_elasticache.model import Json, from_json

log = logging.getLogger("fix.plugins.elasticache")


def default_region() -> Optional[str]:
    return os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")


@define(hash=True, slots=False)
class AwsSessionHolder:
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    session_token: Optional[str] = None
    profile: Optional[str] = None
    shared_credentials_file: Optional[str] = None
    # Only here to override in tests
    session_class_factory: Type[BotoSession] = BotoSession
    session_lock: threading.Lock = threading.Lock()

    # noinspection PyUnusedLocal
    @lru_cache(maxsize=16)
    def __direct_session(self, region: Optional[str]) -> BotoSession:
        kwargs: Dict[str, Any] = {}
        if self.shared_credentials_file:
            # same as AWS_SHARED_CREDENTIALS_FILE, but only for this session
            botocore_session = BotocoreSession()
            botocore_session.set_config_variable("credentials_file", self.shared_credentials_file)
            kwargs["botocore_session"] = botocore_session
        if self.profile:
            return self.session_class_factory(profile_name=self.profile, region_name=region, **kwargs)
        else:
            return self.session_class_factory(
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                aws_session_token=self.session_token,
                region_name=region,
                **kwargs,
            )

    # noinspection PyUnusedLocal
    @lru_cache(maxsize=16)
    def __sts_session(self, role_arn: str, region: Optional[str], cache_key: int) -> BotoSession:
        sts = self.__direct_session(region).client("sts")
        log.info(f"Create AWS session by assuming role: {role_arn}.")
        token = sts.assume_role(
            RoleArn=role_arn,
            RoleSessionName=f"fix-elasticache-{str(uuid.uuid4())}",
            DurationSeconds=3600,  # 1 hour
        )
        credentials = token["Credentials"]
        return self.session_class_factory(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=region,
        )

    def _session(self, region: Optional[str], role_arn: Optional[str] = None) -> BotoSession:
        """
        Note: the session is not thread safe - caller needs to synchronize access.
        Consider using the client() method instead.
        """
        if role_arn is None:
            return self.__direct_session(region)
        else:
            # the assumed role is valid for 1 hour: renew the session every 10 minutes
            return self.__sts_session(role_arn, region, int(time.time() / 600))

    def client(
        self,
        aws_service: str,
        region: Optional[str] = None,
        role_arn: Optional[str] = None,
        config: Optional[BotoConfig] = None,
    ) -> BaseClient:
        with self.session_lock:
            session = self._session(region, role_arn)
            return session.client(aws_service, region_name=region, config=config)


@define(slots=False)
class AwsConfig:
    kind: ClassVar[str] = "aws"
    access_key_id: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Access Key ID (null to load from env - recommended)"},
    )
    secret_access_key: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Secret Access Key (null to load from env - recommended)"},
    )
    session_token: Optional[str] = field(
        default=None,
        metadata={"description": "Session token, only required for temporary security credentials"},
    )
    profile: Optional[str] = field(
        default=None,
        metadata={"description": "AWS profile to use. If not set, the default profile is used."},
    )
    shared_credentials_file: Optional[str] = field(
        default=None,
        metadata={
            "description": "Path of the shared credentials file.\n"
            "If not set, AWS_SHARED_CREDENTIALS_FILE or ~/.aws/credentials is used."
        },
    )
    role_arn: Optional[str] = field(default=None, metadata={"description": "ARN of an IAM role to assume"})
    region: Optional[str] = field(
        factory=default_region,
        metadata={"description": "The region of the replication group, e.g. us-east-1 (default: AWS_REGION)"},
    )
    max_retries: int = field(
        default=11,
        metadata={
            "description": "The maximum number of times an AWS API request is executed.\n"
            "If the API request still fails, an error is raised."
        },
    )

    _lock: threading.RLock = field(factory=threading.RLock, init=False)
    _holder: Optional[AwsSessionHolder] = field(default=None, init=False)

    def __getstate__(self) -> Dict[str, Any]:
        d = self.__dict__.copy()
        d.pop("_lock", None)
        d.pop("_holder", None)
        return d

    def __setstate__(self, d: Dict[str, Any]) -> None:
        d["_lock"] = threading.RLock()
        d["_holder"] = None
        self.__dict__.update(d)

    def sessions(self) -> AwsSessionHolder:
        if self._holder is None:
            with self._lock:
                if self._holder is None:
                    log.debug("Creating a new AWS session holder")
                    self._holder = AwsSessionHolder(
                        access_key_id=self.access_key_id,
                        secret_access_key=self.secret_access_key,
                        session_token=self.session_token,
                        profile=self.profile,
                        shared_credentials_file=self.shared_credentials_file,
                    )
        return self._holder


@define(slots=False)
class ReconcileConfig:
    kind: ClassVar[str] = "reconcile"
    create_timeout: str = field(
        default="20min",
        metadata={"type_hint": "duration", "description": "How long to wait for a new group to become available"},
    )
    update_timeout: str = field(
        default="10min",
        metadata={"type_hint": "duration", "description": "How long to wait for a modified group to become available"},
    )
    delete_timeout: str = field(
        default="20min",
        metadata={"type_hint": "duration", "description": "How long to wait for a group to disappear"},
    )
    create_delay: str = field(
        default="10s",
        metadata={"type_hint": "duration", "description": "Wait time after create, before the first status check"},
    )
    update_delay: str = field(
        default="5s",
        metadata={"type_hint": "duration", "description": "Wait time after modify, before the first status check"},
    )
    delete_delay: str = field(
        default="10s",
        metadata={"type_hint": "duration", "description": "Wait time after delete, before the first status check"},
    )
    min_poll_interval: str = field(
        default="3s",
        metadata={"type_hint": "duration", "description": "Minimal time between two status checks"},
    )
    max_poll_interval: str = field(
        default="10s",
        metadata={"type_hint": "duration", "description": "Maximal time between two status checks"},
    )

    def timeout(self, operation: str) -> timedelta:
        return parse_duration(getattr(self, f"{operation}_timeout"))

    def delay(self, operation: str) -> timedelta:
        return parse_duration(getattr(self, f"{operation}_delay"))

    def min_interval(self) -> timedelta:
        return parse_duration(self.min_poll_interval)

    def max_interval(self) -> timedelta:
        return max(parse_duration(self.max_poll_interval), self.min_interval())


@define(slots=False)
class ElastiCacheConfig:
    kind: ClassVar[str] = "elasticache"
    aws: AwsConfig = field(factory=AwsConfig, metadata={"description": "AWS credentials and region"})
    reconcile: ReconcileConfig = field(
        factory=ReconcileConfig, metadata={"description": "Timeouts and poll intervals of reconcile operations"}
    )

    @staticmethod
    def from_json(json: Json) -> "ElastiCacheConfig":
        return ElastiCacheConfig(
            aws=from_json(json.get("aws") or {}, AwsConfig),
            reconcile=from_json(json.get("reconcile") or {}, ReconcileConfig),
        )
