import argparse
import os
from typing import Any, Optional, Sequence, Tuple

DEFAULT_ENV_ARGS_PREFIX = "FIXELASTICACHE_"


class ArgumentParser(argparse.ArgumentParser):
    """
    Argument parser that takes the default of every --long-option from the environment.
    Example: --region defaults to the value of FIXELASTICACHE_REGION.
    """

    def __init__(self, *args: Any, env_args_prefix: str = DEFAULT_ENV_ARGS_PREFIX, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.env_args_prefix = env_args_prefix

    def env_name(self, action: argparse.Action) -> Optional[str]:
        for option_string in action.option_strings:
            if option_string.startswith("--"):
                return self.env_args_prefix + option_string[2:].replace("-", "_").upper()
        return None

    def parse_known_args(  # type: ignore
        self, args: Optional[Sequence[str]] = None, namespace: Optional[argparse.Namespace] = None
    ) -> Tuple[argparse.Namespace, list]:
        for action in self._actions:
            env_name = self.env_name(action)
            if env_name is None or action.default == argparse.SUPPRESS or env_name not in os.environ:
                continue
            value = os.environ[env_name]
            if action.nargs == 0:
                # flags like --verbose
                action.default = value.lower() in ("true", "1", "yes")
            else:
                action.default = action.type(value) if callable(action.type) else value
        return super().parse_known_args(args, namespace)
