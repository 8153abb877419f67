"""
CLI Module

Architectural Intent:
- Command-line interface for stratus
- Entry point for all user interactions
- Delegates to the ComputeService via the composition root
- Supports --verbose/--debug flags for log level control
"""

import argparse
import asyncio
import logging
import sys
import traceback
from pathlib import Path

from stratus.composition_root import PROVIDERS, ComputeServiceContextFactory
from stratus.domain.errors import ComputeError, ConfigurationError, RunScriptOnNodesError
from stratus.domain.entities.template import TemplateOptions
from stratus.domain.services.node_predicates import all_nodes, running_with_tag, with_tag
from stratus.domain.value_objects.credentials import Credentials
from stratus.domain.value_objects.image import OsFamily
from stratus.domain.value_objects.run_script_options import RunScriptOptions
from stratus.infrastructure.adapters.simulated_backend import SimulatedBackend
from stratus.infrastructure.config import load_config, load_key_pair
from stratus.infrastructure.logging import configure_logging, level_from_name


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stratus: provision and drive compute nodes across providers"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument("--config", "-c", help="Path to JSON config (default: stratus.json)")
    parser.add_argument("--provider", "-p", choices=sorted(PROVIDERS), help="Provider backend")
    parser.add_argument("--identity", help="Provider account identity")
    parser.add_argument("--credential", help="Provider account credential")
    parser.add_argument(
        "--state",
        default=".stratus-state.json",
        help="File holding the simulated provider account between runs",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("images", help="List images offered by the provider")
    subparsers.add_parser("sizes", help="List hardware profiles")
    subparsers.add_parser("locations", help="List assignable locations")

    nodes_parser = subparsers.add_parser("nodes", help="List nodes")
    nodes_parser.add_argument("--tag", "-t", help="Only nodes carrying this tag")

    create_parser = subparsers.add_parser("create", help="Create nodes sharing a tag")
    create_parser.add_argument("tag", help="Tag shared by the new nodes")
    create_parser.add_argument("--count", "-n", type=int, default=1, help="Number of nodes")
    create_parser.add_argument("--image-id", help="Exact image id")
    create_parser.add_argument(
        "--os-family", choices=[f.value for f in OsFamily], help="Operating system family"
    )
    create_parser.add_argument("--location", "-l", help="Location id")
    create_parser.add_argument("--min-cores", type=float, default=0, help="Minimum cores")
    create_parser.add_argument("--min-ram", type=int, default=0, help="Minimum RAM in MB")
    create_parser.add_argument(
        "--biggest", action="store_true", help="Pick the biggest matching size"
    )
    create_parser.add_argument("--script", help="Script file run on each node after boot")
    create_parser.add_argument(
        "--authorize-key", help="Private key file whose .pub is authorized on each node"
    )
    create_parser.add_argument(
        "--with-metadata", action="store_true", help="Record provider metadata on nodes"
    )

    reboot_parser = subparsers.add_parser("reboot", help="Reboot every node with a tag")
    reboot_parser.add_argument("tag")

    destroy_parser = subparsers.add_parser("destroy", help="Destroy every node with a tag")
    destroy_parser.add_argument("tag")

    exec_parser = subparsers.add_parser("exec", help="Run a script on running nodes with a tag")
    exec_parser.add_argument("tag")
    exec_parser.add_argument("script", help="Script file to upload and run")
    exec_parser.add_argument("--user", "-u", help="Login account overriding the node's")
    exec_parser.add_argument("--key-file", "-k", help="Private key for --user")
    exec_parser.add_argument(
        "--no-root", action="store_true", help="Do not run the script via sudo"
    )
    return parser


def _print_nodes(nodes) -> None:
    if not nodes:
        print("[*] No nodes.")
    for node in nodes:
        address = node.reachable_address or "-"
        print(f"  {node.id:<22} {node.tag:<16} {node.state.name:<11} {address:<16} {node.location.id}")


def _override_credentials(args, config):
    user = args.user or (config.ssh.user if args.key_file or config.ssh.private_key_file else None)
    key_file = args.key_file or config.ssh.private_key_file
    if not user:
        return None
    if not key_file:
        raise ConfigurationError(f"--user {user} needs a --key-file")
    private_key, _ = load_key_pair(key_file)
    return Credentials(user, private_key)


async def run_command(args, context, config) -> int:
    service = context.compute_service

    if args.command == "images":
        for image in sorted(await service.list_images(), key=lambda i: i.id):
            print(
                f"  {image.id:<24} {image.os_family.value:<8} {image.version:<8} "
                f"{image.architecture:<8} {image.location_id or '*':<12} {image.name}"
            )
        return 0

    if args.command == "sizes":
        for size in sorted(await service.list_sizes(), key=lambda s: s.sort_key):
            print(f"  {size.id:<14} cores={size.cores:<4} ram={size.ram:<6} disk={size.disk}")
        return 0

    if args.command == "locations":
        for location in await service.list_assignable_locations():
            print(f"  {str(location):<24} parent={location.parent_id or '-':<12} {location.description}")
        return 0

    if args.command == "nodes":
        predicate = with_tag(args.tag) if args.tag else all_nodes
        _print_nodes(await service.list_nodes_matching(predicate))
        return 0

    if args.command == "create":
        builder = await service.template_builder()
        if args.image_id:
            builder = builder.image_id(args.image_id)
        if args.os_family:
            builder = builder.os_family(OsFamily(args.os_family))
        if args.location:
            builder = builder.location_id(args.location)
        builder = builder.min_cores(args.min_cores).min_ram(args.min_ram)
        if args.biggest:
            builder = builder.biggest()

        options = TemplateOptions()
        if args.script:
            options = options.run_script(Path(args.script).read_text())
        if args.authorize_key:
            private_key, public_key = load_key_pair(args.authorize_key)
            options = options.install_private_key(private_key)
            if public_key:
                options = options.authorize_public_key(public_key)
        if args.with_metadata:
            options = options.with_metadata()
        template = builder.options(options).build()

        print(f"[*] Creating {args.count} node(s) tagged '{args.tag}' from {template}...")
        result = await service.run_nodes_with_tag(args.tag, args.count, template)
        _print_nodes(result.succeeded)
        for node_id, error in result.failures.items():
            print(f"[-] {node_id}: {error}")
        if not result.ok:
            return 1
        print(f"[+] {len(result)} node(s) running.")
        return 0

    if args.command in ("reboot", "destroy"):
        operation = (
            service.reboot_nodes_with_tag if args.command == "reboot"
            else service.destroy_nodes_with_tag
        )
        print(f"[*] {args.command.capitalize()}ing nodes tagged '{args.tag}'...")
        result = await operation(args.tag)
        for node_id, error in result.failures.items():
            print(f"[-] {node_id}: {error}")
        if not result.ok:
            return 1
        print(f"[+] {len(result)} node(s) done.")
        return 0

    if args.command == "exec":
        options = RunScriptOptions(run_as_root=not args.no_root)
        credentials = _override_credentials(args, config)
        if credentials is not None:
            options = options.with_override(credentials)
        script = Path(args.script).read_text()
        print(f"[*] Running {args.script} on running nodes tagged '{args.tag}'...")
        try:
            responses = await service.run_script_on_nodes_matching(
                running_with_tag(args.tag), script, options
            )
        except RunScriptOnNodesError as e:
            responses = e.responses
            for node, error in e.failures.items():
                print(f"[-] {node.id}: {error}")
            status = 1
        else:
            status = 0
        for node, response in responses.items():
            print(f"[+] {node.id} exit={response.exit_status}")
            if response.output:
                print(response.output.rstrip())
        return status

    return 2


async def async_main():
    parser = build_parser()
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"[-] {e}")
        sys.exit(1)

    # Configure logging based on flags
    if args.debug:
        configure_logging(level=logging.DEBUG)
    elif args.verbose:
        configure_logging(level=logging.INFO)
    else:
        configure_logging(level=level_from_name(config.log_level))

    verbose = args.verbose or args.debug

    if args.command is None:
        parser.print_help()
        return

    provider = args.provider or config.provider.name
    identity = args.identity or config.provider.identity
    credential = args.credential or config.provider.credential

    backend = SimulatedBackend.load(args.state)
    factory = ComputeServiceContextFactory({provider: backend})
    try:
        context = await factory.create_context(provider, identity, credential, config=config)
        async with context:
            status = await run_command(args, context, config)
    except ComputeError as e:
        print(f"[-] {args.command} failed: {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"[-] {e}")
        if verbose:
            traceback.print_exc()
        sys.exit(1)
    finally:
        backend.save(args.state)

    if status:
        sys.exit(status)


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
