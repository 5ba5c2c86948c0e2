#!/usr/bin/env python3
"""
resalloc-kubernetes CLI

Allocates single-use Kubernetes pods for the resalloc framework and releases
them again by IP address.
"""

import argparse
import logging
import os
import sys

from .constants import ADDRESS_ENV_VAR, DEFAULT_NAMESPACE, DEFAULT_TIMEOUT
from .errors import ResallocError, TimedOutError
from .k8s import ClusterGateway, init_clients
from .provision import ProvisioningController
from .reclaim import ReclamationResolver
from .templates import build_manifests, build_request, render_manifests_yaml

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(debug=False):
    """Log to stderr, stdout only carries the command result."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    if not debug:
        logging.getLogger("kubernetes").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def create_gateway():
    """Connect to the cluster with ambient credentials."""
    return ClusterGateway(init_clients())


def cmd_add(args):
    """Allocate a pod and print its IP address."""
    try:
        request = build_request(
            image=args.image_tag,
            cpu=args.cpu_resource,
            memory=args.memory_resource,
            node_selector=args.node_selector,
            privileged=args.privileged,
            labels=args.additional_labels,
            volume_size=args.additional_volume_size,
            volume_class=args.additional_volume_class,
            volume_mount_path=args.additional_volume_mount_path,
            secret=args.secret,
            timeout=args.timeout,
            namespace=args.namespace,
        )

        if args.dry_run:
            print(render_manifests_yaml(build_manifests(request)), end="")
            return

        controller = ProvisioningController(create_gateway())
        result = controller.allocate(request)
    except TimedOutError as e:
        print(f"✗ Timed out: {e}", file=sys.stderr)
        print("  Retry with a larger --timeout or inspect the pod by its allocation-id label", file=sys.stderr)
        sys.exit(1)
    except ResallocError as e:
        print(f"✗ Failed to create pod resource: {e}", file=sys.stderr)
        sys.exit(1)

    print(result.address)


def cmd_delete(args):
    """Release the pod owning an IP address."""
    if not args.name:
        print(f"✗ --name is required (or set {ADDRESS_ENV_VAR})", file=sys.stderr)
        sys.exit(1)

    try:
        resolver = ReclamationResolver(create_gateway())
        result = resolver.release(args.name, args.namespace)
    except ResallocError as e:
        print(f"✗ Failed to delete pod resource: {e}", file=sys.stderr)
        sys.exit(1)

    if result.found:
        logger.info(f"Pod {result.pod_name} at {result.address} deleted")
    else:
        logger.info(f"No pod found at {result.address}, treating as already deleted")


def build_parser():
    """Build the argument parser."""
    # Accepted both before and after the subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--namespace", "-n", default=argparse.SUPPRESS,
        help=f"Kubernetes namespace (default: {DEFAULT_NAMESPACE})",
    )
    common.add_argument(
        "--debug", action="store_true", default=argparse.SUPPRESS,
        help="Enable debug logging",
    )

    parser = argparse.ArgumentParser(
        prog="resalloc-kubernetes",
        description="Allocate kubernetes pod for resalloc framework",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Allocate a pod and print its IP address
  %(prog)s add --image-tag docker.io/organization/image:tag --cpu-resource 1 --memory-resource 2Gi

  # Allocate a pod with an additional volume
  %(prog)s add --image-tag fedora:latest --cpu-resource 2 --memory-resource 4Gi \\
      --additional-volume-size 10Gi --additional-volume-class standard \\
      --additional-volume-mount-path /var/lib/copr-rpmbuild

  # Print the manifests without creating anything
  %(prog)s add --image-tag fedora:latest --cpu-resource 1 --memory-resource 1Gi --dry-run

  # Release a pod by IP address
  RESALLOC_NAME=10.0.0.5 %(prog)s delete
        """,
    )
    parser.add_argument(
        "--namespace", "-n", default=DEFAULT_NAMESPACE,
        help=f"Kubernetes namespace (default: {DEFAULT_NAMESPACE})",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Add command
    add_parser = subparsers.add_parser(
        "add", parents=[common], help="Create new pod resource"
    )
    add_parser.add_argument(
        "--timeout", type=int, default=DEFAULT_TIMEOUT,
        help=f"Timeout in seconds for waiting pod to be ready (default: {DEFAULT_TIMEOUT})",
    )
    add_parser.add_argument(
        "--image-tag", required=True,
        help="Image used for the pod, for example: docker.io/organization/image:tag",
    )
    add_parser.add_argument(
        "--cpu-resource", required=True,
        help="Request and limit cpu resource, '1', '2000m' and etc.",
    )
    add_parser.add_argument(
        "--memory-resource", required=True,
        help="Request and limit memory resource, '1024Mi', '2Gi' and etc.",
    )
    add_parser.add_argument(
        "--node-selector", action="append", default=[], metavar="KEY=VALUE",
        help="Node selector for the pod, can be specified multiple times",
    )
    add_parser.add_argument(
        "--privileged", action="store_true", help="Run pod in privileged mode"
    )
    add_parser.add_argument(
        "--additional-labels", action="append", default=[], metavar="KEY=VALUE",
        help="Additional labels for the pod, can be specified multiple times",
    )
    add_parser.add_argument(
        "--additional-volume-size",
        help="Additional persistent volume size, use together with class and mount path",
    )
    add_parser.add_argument(
        "--additional-volume-class",
        help="Additional persistent volume storage class, use together with size and mount path",
    )
    add_parser.add_argument(
        "--additional-volume-mount-path",
        help="Mount point of the additional persistent volume, use together with size and class",
    )
    add_parser.add_argument(
        "--secret", metavar="MOUNT:NAME:SUBPATH",
        help="Mount a secret key in <mountPath>:<name>:<subPath> form",
    )
    add_parser.add_argument(
        "--dry-run", action="store_true",
        help="Print the resources as YAML without creating them",
    )
    add_parser.set_defaults(func=cmd_add)

    # Delete command
    delete_parser = subparsers.add_parser(
        "delete", parents=[common], help="Delete existing pod resource by IP address"
    )
    delete_parser.add_argument(
        "--name", default=os.environ.get(ADDRESS_ENV_VAR),
        help=f"IP address of the pod to delete (default: ${ADDRESS_ENV_VAR})",
    )
    delete_parser.set_defaults(func=cmd_delete)

    return parser


def main(argv=None):
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.debug)
    args.func(args)


if __name__ == "__main__":
    main()
