import json
import os
from logging import DEBUG, ERROR, INFO, Formatter, LogRecord, StreamHandler, basicConfig, getLogger
from typing import Dict, Mapping, Optional

from fix_plugin_elasticache.model import Json

getLogger().setLevel(ERROR)
getLogger("fix").setLevel(INFO)


class JsonFormatter(Formatter):
    """
    Simple json log formatter.
    Inspired by: https://stackoverflow.com/questions/50144628/python-logging-into-file-as-a-dictionary-or-json
    """

    def __init__(
        self,
        fmt_dict: Mapping[str, str],
        time_format: str = "%Y-%m-%dT%H:%M:%S",
        static_values: Optional[Dict[str, str]] = None,
    ):
        super().__init__()
        self.fmt_dict = fmt_dict
        self.time_format = time_format
        self.static_values = static_values or {}
        self.__use_time = "asctime" in self.fmt_dict.values()

    def usesTime(self) -> bool:  # noqa: N802
        return self.__use_time

    def formatJsonMessage(self, record: LogRecord) -> Json:  # noqa: N802
        record.message = record.getMessage()
        if self.__use_time:
            record.asctime = self.formatTime(record, self.time_format)

        message_dict: Json = {fmt_key: record.__dict__[fmt_val] for fmt_key, fmt_val in self.fmt_dict.items()}
        message_dict.update(self.static_values)

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            message_dict["exception"] = record.exc_text
        if record.stack_info:
            message_dict["stack_info"] = self.formatStack(record.stack_info)
        return message_dict

    def format(self, record: LogRecord) -> str:
        return json.dumps(self.formatJsonMessage(record), default=str)


def setup_logger(
    proc: str,
    *,
    force: bool = True,
    verbose: bool = False,
    quiet: bool = False,
    json_format: bool = True,
) -> None:
    # override log output via env var
    plain_text = os.environ.get("FIX_LOG_TEXT", "false").lower() == "true"
    if json_format and not plain_text:
        handler = StreamHandler()
        formatter = JsonFormatter(
            {
                "timestamp": "asctime",
                "level": "levelname",
                "message": "message",
                "pid": "process",
                "thread": "threadName",
            },
            static_values={"process": proc},
        )
        handler.setFormatter(formatter)
        basicConfig(handlers=[handler], force=force)
    else:
        log_format = f"%(asctime)s|{proc}|%(levelname)5s|%(process)d|%(threadName)10s  %(message)s"
        # allow to define the log format via env var
        log_format = os.environ.get("FIX_LOG_FORMAT", log_format)
        basicConfig(format=log_format, datefmt="%y-%m-%d %H:%M:%S", force=force)
    if verbose:
        getLogger("fix").setLevel(DEBUG)
    elif quiet:
        getLogger("fix").setLevel(ERROR)
    else:
        getLogger("fix").setLevel(INFO)
