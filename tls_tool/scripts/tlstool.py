#!/usr/bin/env python3
"""Generate the TLS certificates (or signing requests) of a cluster from a YAML config."""

import argparse
import sys
from pathlib import Path

from tls_tool.lib.ca_manager import CAManager
from tls_tool.lib.config import load_tool_config
from tls_tool.lib.exceptions import TlsToolError
from tls_tool.lib.generator import CertificateGenerator
from tls_tool.lib.logging_config import LOGGER, set_verbose
from tls_tool.lib.models import BuildMode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create a CA and TLS certificates or CSRs for cluster nodes and clients"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "-t",
        "--target",
        type=Path,
        default=Path("out"),
        help="Directory for generated files (default: out)",
    )
    parser.add_argument(
        "--create-ca",
        action="store_true",
        help="Create a new root CA (and intermediate CA if configured)",
    )
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "--create-cert",
        action="store_true",
        help="Create node and client certificates signed by the CA",
    )
    modes.add_argument(
        "--create-csr",
        action="store_true",
        help="Create certificate signing requests for nodes and clients",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the requested CA and certificate tasks.

    Returns:
        Exit code (0 if every entity succeeded or was skipped, 1 otherwise)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (args.create_ca or args.create_cert or args.create_csr):
        parser.error("at least one of --create-ca, --create-cert or --create-csr is required")

    set_verbose(args.verbose)

    try:
        config = load_tool_config(args.config)
        args.target.mkdir(parents=True, exist_ok=True)
        ca_manager = CAManager(config, args.target)

        context = None
        if args.create_ca:
            context, result = ca_manager.create_authority()
            LOGGER.info("Root CA: %s", result.root_cert_path)
            LOGGER.info("Signing CA: %s", result.signing_cert_path)
            if result.password_auto_generated:
                LOGGER.info("CA key passwords were generated; see root-ca.readme")

        if args.create_csr:
            if context is not None:
                context.release()
            context = ca_manager.csr_context()
        elif args.create_cert and context is None:
            context = ca_manager.load_authority()

        if context is None:
            raise TlsToolError("nothing to do")
        if not (args.create_cert or args.create_csr):
            context.release()
            return 0

        mode = BuildMode.SIGNING_REQUEST if args.create_csr else BuildMode.SIGNED_CERTIFICATE
        summary = CertificateGenerator(config, context, mode).run()

    except TlsToolError as e:
        LOGGER.error("TLS tool failed: %s", e)
        return 1

    for failure in summary.failures:
        LOGGER.error("  %s: %s", failure.entity, failure.error)
    return summary.exit_code


if __name__ == "__main__":
    sys.exit(main())
