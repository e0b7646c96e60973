"""
Main entry point for the Fleet Control Console.
This script handles command-line arguments for listing and executing
lifecycle actions against monitored agents.
"""
import argparse
import json
import os
import sys
from typing import Any, List, Optional

from fleetctl.communication import HttpClient, HttpCommandTransport
from fleetctl.config import ConfigManager
from fleetctl.core import Action, Actor, ControlPlane
from fleetctl.registry import AssetRegistry, HttpRegistry, InMemoryRegistry
from fleetctl.utils.logger import setup_logger, get_logger
from fleetctl.version import __app_name__, __version__

logger = get_logger("fleetctl.main")

CONVERGENCE_WAIT_MARGIN_SEC = 5.0


def _print_json(data: Any):
    print(json.dumps(data, indent=2))


def _load_config(args: argparse.Namespace) -> Optional[ConfigManager]:
    try:
        return ConfigManager(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Could not load configuration: {e}", file=sys.stderr)
        return None


def _setup_logging(args: argparse.Namespace, config: ConfigManager):
    setup_logger(
        name="fleetctl",
        console_level_name=args.log_level or config.get('logging.console_level', 'INFO'),
        file_level_name=config.get('logging.file_level', 'DEBUG'),
        log_file_path=config.get('logging.file_path'),
    )


def _build_http_client(args: argparse.Namespace, config: ConfigManager) -> HttpClient:
    http_client = HttpClient(config)
    if args.api_token:
        http_client.set_api_token(args.api_token)
    return http_client


def _build_registry(args: argparse.Namespace, config: ConfigManager) -> AssetRegistry:
    """
    Picks the registry: a snapshot file when given, else the configured REST API.

    :raises ValueError: If neither is available or the snapshot is unusable
    """
    if args.snapshot:
        if not os.path.isfile(args.snapshot):
            raise ValueError(f"Snapshot file not found: {args.snapshot}")
        return InMemoryRegistry(snapshot_path=args.snapshot)
    if config.get('registry.url'):
        return HttpRegistry(_build_http_client(args, config))
    raise ValueError("No asset source: pass --snapshot or set registry.url in the configuration.")


def _build_actor(args: argparse.Namespace) -> Actor:
    return Actor.from_role(args.role, name=args.user)


def _build_control_plane(args: argparse.Namespace, config: ConfigManager,
                         deliver: bool = False) -> ControlPlane:
    registry = _build_registry(args, config)
    transport = None
    if deliver:
        if isinstance(registry, HttpRegistry):
            transport = HttpCommandTransport(registry.http_client)
        elif config.get('registry.url'):
            transport = HttpCommandTransport(_build_http_client(args, config))
        else:
            raise ValueError("--deliver needs registry.url in the configuration.")
    control_plane = ControlPlane(config, registry, transport=transport)
    control_plane.load_from_registry()
    return control_plane


def _confirm(action: Action, asset_ids: List[str]) -> bool:
    """Asks the operator to confirm a destructive action."""
    target = asset_ids[0] if len(asset_ids) == 1 else f"{len(asset_ids)} assets"
    try:
        answer = input(f"'{action.value}' is destructive. Apply it to {target}? [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def _run_actions_command(args: argparse.Namespace, config: ConfigManager) -> int:
    """Handles the 'actions' CLI command."""
    try:
        actor = _build_actor(args)
        control_plane = _build_control_plane(args, config)
    except (ValueError, ConnectionError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    asset_ids = args.asset or [asset.id for asset in control_plane.assets()]
    report = []
    exit_code = 0
    for asset_id in asset_ids:
        asset = control_plane.get_asset(asset_id)
        if asset is None:
            print(f"ERROR: Unknown asset: {asset_id}", file=sys.stderr)
            exit_code = 1
            continue
        actions = control_plane.available_actions(actor, asset_id)
        report.append({
            "assetId": asset.id,
            "name": asset.name,
            "status": asset.connectivity_status.value,
            "monitoringStatus": asset.monitoring_status.value,
            "actions": [action.value for action in actions],
            "confirmationRequired": [action.value for action in actions
                                     if ControlPlane.requires_confirmation(action)],
        })
    _print_json(report)
    return exit_code


def _run_execute_command(args: argparse.Namespace, config: ConfigManager) -> int:
    """Handles the 'execute' CLI command."""
    try:
        action = Action.parse(args.action)
        actor = _build_actor(args)
        control_plane = _build_control_plane(args, config, deliver=args.deliver)
    except (ValueError, ConnectionError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        if ControlPlane.requires_confirmation(action) and not args.yes:
            if not _confirm(action, args.asset):
                print("Aborted: action was not confirmed.", file=sys.stderr)
                return 1

        if len(args.asset) == 1:
            outcome = control_plane.execute(actor, args.asset[0], action)
            _print_json(outcome.to_dict())
            succeeded = outcome.ok
        else:
            result = control_plane.execute_bulk(actor, action, args.asset)
            _print_json(result.to_dict())
            succeeded = not result.rejected and result.success_count == len(result.items)

        if args.wait:
            timeout = max(control_plane.executor.stop_convergence_delay,
                          control_plane.executor.uninstall_removal_delay) + CONVERGENCE_WAIT_MARGIN_SEC
            if not control_plane.wait_for_convergence(timeout):
                logger.warning("Timed out waiting for convergence.")

        if args.write_back:
            if isinstance(control_plane.registry, InMemoryRegistry):
                if not control_plane.registry.save():
                    print("ERROR: Could not write the snapshot file.", file=sys.stderr)
                    return 1
            else:
                logger.warning("--write-back only applies to snapshot files; ignored.")

        return 0 if succeeded else 1
    finally:
        control_plane.shutdown()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleetctl", description=f"{__app_name__} CLI.")
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('--config', help='Path to the console configuration JSON file (optional).')
    parser.add_argument('--log-level', help='Console log level, overriding logging.console_level.')
    parser.add_argument('--api-token', default=os.environ.get('FLEETCTL_API_TOKEN'),
                        help='Bearer token for the registry API, overriding registry.api_token.')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    def add_common(sub: argparse.ArgumentParser):
        sub.add_argument('--snapshot', help='Asset snapshot JSON file. Defaults to the configured registry.')
        sub.add_argument('--role', required=True, help='Role of the operator (e.g. admin, manager, user).')
        sub.add_argument('--user', help='Operator name recorded in the action history (optional).')

    actions_parser = subparsers.add_parser('actions', help='List actions the operator can take on assets.')
    add_common(actions_parser)
    actions_parser.add_argument('--asset', action='append', help='Asset ID (repeatable). Defaults to all assets.')
    actions_parser.set_defaults(func=_run_actions_command)

    execute_parser = subparsers.add_parser('execute', help='Execute a lifecycle action on one or more assets.')
    add_common(execute_parser)
    execute_parser.add_argument('--action', required=True, help='Action name (e.g. pause, stop, uninstall).')
    execute_parser.add_argument('--asset', action='append', required=True, help='Asset ID (repeatable).')
    execute_parser.add_argument('--yes', action='store_true', help='Skip the confirmation prompt for destructive actions.')
    execute_parser.add_argument('--wait', action='store_true', help='Wait for delayed convergence before exiting.')
    execute_parser.add_argument('--write-back', action='store_true', help='Write the resulting state back to the snapshot file.')
    execute_parser.add_argument('--deliver', action='store_true', help='Deliver the command to the agent through the registry API.')
    execute_parser.set_defaults(func=_run_execute_command)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to parse arguments and dispatch commands.

    :return: Process exit code
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    config = _load_config(args)
    if config is None:
        return 1
    _setup_logging(args, config)

    try:
        return args.func(args, config)
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())
