import json
import logging
import sys
from argparse import Namespace
from typing import List, Optional

from fix_plugin_elasticache.args import ArgumentParser
from fix_plugin_elasticache.aws_client import AwsClient
from fix_plugin_elasticache.client import ElastiCacheClient
from fix_plugin_elasticache.configuration import ElastiCacheConfig
from fix_plugin_elasticache.controller import ReplicationGroupController, ReplicationGroupState
from fix_plugin_elasticache.durations import parse_duration
from fix_plugin_elasticache.errors import ReconcileError
from fix_plugin_elasticache.logger import setup_logger
from fix_plugin_elasticache.model import DesiredSpec, Json

log = logging.getLogger("fix.plugins.elasticache")


def arg_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="fix-elasticache", description="Reconcile ElastiCache replication groups")
    parser.add_argument("--config", help="Path to a json configuration file", dest="config", default=None)
    parser.add_argument("--region", help="AWS region (default: AWS_REGION)", dest="region", default=None)
    parser.add_argument("--profile", help="AWS profile to use", dest="profile", default=None)
    parser.add_argument("--timeout", help="Timeout of the operation, e.g. 30min", dest="timeout", default=None)
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--verbose", "-v", help="Verbose logging", dest="verbose", action="store_true", default=False)
    group.add_argument("--quiet", help="Only log errors", dest="quiet", action="store_true", default=False)
    commands = parser.add_subparsers(dest="command", required=True)
    apply = commands.add_parser("apply", help="Create or update the replication group defined in a json spec file")
    apply.add_argument("spec", help="Path to the json spec file")
    read = commands.add_parser("read", help="Show the replication group")
    read.add_argument("group_id", help="Id of the replication group")
    delete = commands.add_parser("delete", help="Delete the replication group")
    delete.add_argument("group_id", help="Id of the replication group")
    return parser


def load_json(path: str) -> Json:
    with open(path) as f:
        js: Json = json.load(f)
        return js


def load_config(args: Namespace) -> ElastiCacheConfig:
    config = ElastiCacheConfig.from_json(load_json(args.config)) if args.config else ElastiCacheConfig()
    if args.region:
        config.aws.region = args.region
    if args.profile:
        config.aws.profile = args.profile
    return config


def print_state(state: ReplicationGroupState) -> None:
    result = state.view.to_json() if state.view else None
    print(json.dumps({"id": state.id, "phase": state.phase.value, "view": result}, indent=2))


def run(args: Namespace) -> None:
    # an invalid spec file fails before any AWS call
    desired = DesiredSpec.from_json(load_json(args.spec)) if args.command == "apply" else None
    config = load_config(args)
    aws = AwsClient(config.aws)
    aws.caller_identity()
    controller = ReplicationGroupController(ElastiCacheClient(aws), config.reconcile)
    timeout = parse_duration(args.timeout) if args.timeout else None

    if desired is not None:
        state = ReplicationGroupState(id=desired.group_id)
        if controller.read(state) is None:
            controller.create(state, desired, timeout)
        else:
            controller.update(state, desired, timeout)
    elif args.command == "read":
        state = ReplicationGroupState(id=args.group_id.lower())
        controller.read(state)
    else:
        state = ReplicationGroupState(id=args.group_id.lower())
        controller.delete(state, timeout)
    print_state(state)


def main(argv: Optional[List[str]] = None) -> None:
    args = arg_parser().parse_args(argv)
    setup_logger("fix-elasticache", verbose=args.verbose, quiet=args.quiet)
    try:
        run(args)
    except ReconcileError as e:
        log.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
