#!/usr/bin/env python3
"""
autopass Command Line Interface

Usage:
    autopass verify --digest <hex> --signature <hex> --x <hex> --y <hex> [--backend auto|software|precompile]
    autopass point --x <hex> --y <hex>
    autopass encode-install --namespace <n> --x <hex> --y <hex>
    autopass decode-install --data <hex>
"""

import argparse
import json
import sys

from . import config


def parse_hex(value: str) -> bytes:
    if value[:2] in ("0x", "0X"):
        value = value[2:]
    return bytes.fromhex(value)


def parse_int(value: str) -> int:
    """Parse a coordinate given as hex (0x...) or decimal."""
    return int(value, 0)


def cmd_verify(args):
    """Verify a signature over SHA-256(digest)."""
    from .environment import ExecutionEnvironment
    from .keys import PublicKey
    from .precompile import NativeP256Verifier
    from .verifier import P256Verifier

    env = ExecutionEnvironment()
    if args.backend != "software":
        env.deploy(config.P256_VERIFIER_ADDRESS, NativeP256Verifier())

    verifier = P256Verifier.for_environment(env, mode=args.backend)
    key = PublicKey(parse_int(args.x), parse_int(args.y))
    valid = verifier.verify_signature(parse_hex(args.digest), parse_hex(args.signature), key)

    print(json.dumps({"valid": valid, "backend": verifier.backend.name}))
    if valid:
        print("\n✓ Signature valid", file=sys.stderr)
        return 0
    print("\n✗ Signature invalid", file=sys.stderr)
    return 1


def cmd_point(args):
    """Check that a key lies on secp256r1."""
    from .curve import is_valid_point

    valid = is_valid_point(parse_int(args.x), parse_int(args.y))
    print(json.dumps({"on_curve": valid}))
    return 0 if valid else 1


def cmd_encode_install(args):
    """Build the install payload for the credential registry."""
    from .encoding import encode_install_data
    from .keys import PublicKey

    data = encode_install_data(args.namespace, PublicKey(parse_int(args.x), parse_int(args.y)))
    print("0x" + data.hex())
    return 0


def cmd_decode_install(args):
    """Decode an install payload."""
    from .encoding import decode_install_data
    from .errors import PayloadDecodeError

    try:
        namespace_id, key = decode_install_data(parse_hex(args.data))
    except (PayloadDecodeError, ValueError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    print(json.dumps({"namespace_id": namespace_id, "key": key.to_dict(), "on_curve": key.is_valid()}, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autopass",
        description="autopass credential and automation tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  autopass verify --digest 0x.. --signature 0x.. --x 0x.. --y 0x..
  autopass point --x 0x.. --y 0x..
  autopass encode-install --namespace 0 --x 0x.. --y 0x..
  autopass decode-install --data 0x..
        """
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    verify_parser = subparsers.add_parser("verify", help="Verify a P256 signature")
    verify_parser.add_argument("-d", "--digest", required=True, help="32-byte digest (hex)")
    verify_parser.add_argument("-s", "--signature", required=True, help="64-byte r || s (hex)")
    verify_parser.add_argument("-x", "--x", required=True, help="Public key x")
    verify_parser.add_argument("-y", "--y", required=True, help="Public key y")
    verify_parser.add_argument(
        "-b", "--backend",
        choices=config.VERIFIER_MODES,
        default="auto",
        help="Verification backend",
    )

    point_parser = subparsers.add_parser("point", help="Check a public key is on the curve")
    point_parser.add_argument("-x", "--x", required=True, help="Public key x")
    point_parser.add_argument("-y", "--y", required=True, help="Public key y")

    encode_parser = subparsers.add_parser("encode-install", help="Encode a registry install payload")
    encode_parser.add_argument("-n", "--namespace", type=int, required=True, help="Namespace id")
    encode_parser.add_argument("-x", "--x", required=True, help="Public key x")
    encode_parser.add_argument("-y", "--y", required=True, help="Public key y")

    decode_parser = subparsers.add_parser("decode-install", help="Decode a registry install payload")
    decode_parser.add_argument("-D", "--data", required=True, help="Payload (hex)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    from .logging_config import configure_logging
    configure_logging(
        args.log_level,
        json_format=config.LOG_JSON,
        log_file=config.LOG_FILE or None,
        stream=sys.stderr,
        environment=config.ENV,
    )

    commands = {
        "verify": cmd_verify,
        "point": cmd_point,
        "encode-install": cmd_encode_install,
        "decode-install": cmd_decode_install,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 2
    return command(args)


if __name__ == "__main__":
    sys.exit(main())
