from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from retrying import retry

from fix_plugin_elasticache.configuration import AwsConfig
from fix_plugin_elasticache.errors import NotFoundError, TransportError
from fix_plugin_elasticache.model import Json
from fix_plugin_elasticache.utils import log_runtime, metrics_remote_calls, utc_str

log = logging.getLogger("fix.plugins.elasticache")

ThrottlingErrors = {
    "RequestThrottled",
    "RequestThrottledException",
    "ThrottledException",
    "Throttling",
    "ThrottlingException",
}
RetryableErrors = ThrottlingErrors | {
    "LimitExceededException",
    "RequestLimitExceeded",
    "RequestTimeout",
    "RequestTimeoutException",
    "TooManyRequestsException",
}
NotFoundErrors = {
    "ReplicationGroupNotFoundFault",
    "CacheClusterNotFound",
    "CacheClusterNotFoundFault",
}


def error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code") or "Unknown Code"


def is_retryable_exception(e: Exception) -> bool:
    if isinstance(e, ClientError) and error_code(e) in RetryableErrors:
        log.debug("AWS API request limit exceeded or throttling, retrying with exponential backoff")
        return True
    return False


class AwsClient:
    def __init__(self, config: AwsConfig, *, region: Optional[str] = None) -> None:
        self.config = config
        self.region = region or config.region

    def __to_json(self, node: Any) -> Any:
        if node is None or isinstance(node, (str, int, float, bool)):
            return node
        elif isinstance(node, list):
            return [self.__to_json(item) for item in node]
        elif isinstance(node, dict):
            return {key: self.__to_json(value) for key, value in node.items()}
        elif isinstance(node, datetime):
            return utc_str(node)
        elif isinstance(node, bytes):
            return node.decode("utf-8")
        else:
            raise AttributeError(f"Unsupported type: {type(node)}")

    def call_single(self, aws_service: str, action: str, result_name: Optional[str] = None, **kwargs: Any) -> Any:
        arg_info = ""
        if kwargs:
            arg_info += " with args " + ", ".join([f"{key}={value}" for key, value in kwargs.items()])
        log.debug(f"[Aws] calling service={aws_service} action={action}{arg_info}")
        py_action = action.replace("-", "_")
        # adaptive mode allows automated client-side throttling
        config = Config(retries={"max_attempts": self.config.max_retries, "mode": "adaptive"})
        client = self.config.sessions().client(aws_service, self.region, self.config.role_arn, config=config)
        try:
            result = getattr(client, py_action)(**kwargs)
            single: Json = self.__to_json(result)
            log.debug(f"[Aws] called service={aws_service} action={action}{arg_info}: single result")
            return single.get(result_name) if result_name else single
        finally:
            client.close()

    @retry(  # type: ignore
        stop_max_attempt_number=10,  # 10 attempts: 1000 max 60000: max wait time is 5 minutes
        wait_exponential_multiplier=1000,
        wait_exponential_max=60000,
        retry_on_exception=is_retryable_exception,
    )
    def call_with_retry(self, aws_service: str, action: str, result_name: Optional[str] = None, **kwargs: Any) -> Any:
        return self.call_single(aws_service, action, result_name, **kwargs)

    @log_runtime
    def call(
        self,
        aws_service: str,
        action: str,
        result_name: Optional[str] = None,
        group_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Call the given action and translate all errors.
        Throttled calls are retried with exponential backoff, all other errors are raised.

        :param aws_service: the name of the service, e.g. elasticache.
        :param action: the name of the action in cli notation, e.g. describe-replication-groups.
        :param result_name: if defined, only this property of the result is returned.
        :param group_id: the replication group this call is done for. Used in error messages.
        :param kwargs: the arguments of the api call.
        :return: the (selected) json result.
        :raises NotFoundError: if AWS reports the requested object as not existent.
        :raises TransportError: for all other errors.
        """
        try:
            result = self.call_with_retry(aws_service, action, result_name, **kwargs)
            metrics_remote_calls.labels(action=action, outcome="success").inc()
            return result
        except ClientError as e:
            code = error_code(e)
            if code in NotFoundErrors:
                metrics_remote_calls.labels(action=action, outcome="not_found").inc()
                log.debug(f"[Aws] service={aws_service} action={action} reports {code}")
                raise NotFoundError(f"{aws_service} {action} reports {code}", group_id) from e
            metrics_remote_calls.labels(action=action, outcome="error").inc()
            log.warning(
                f"An AWS API error {code} occurred while calling {aws_service} action {action} "
                f"in region {self.region}: {e}"
            )
            raise TransportError(f"{aws_service} {action} failed with {code}: {e}", group_id, code=code) from e
        except BotoCoreError as e:
            metrics_remote_calls.labels(action=action, outcome="error").inc()
            log.warning(f"Call to {aws_service} action {action} in region {self.region} failed: {e}")
            raise TransportError(f"{aws_service} {action} failed: {e}", group_id) from e

    def caller_identity(self) -> Json:
        """
        Verify the configured credentials by asking STS who we are.
        """
        result: Json = self.call("sts", "get-caller-identity")
        log.info(f"Using AWS identity {result.get('Arn')} in account {result.get('Account')}")
        return result

    def for_region(self, region: str) -> AwsClient:
        return AwsClient(self.config, region=region)
