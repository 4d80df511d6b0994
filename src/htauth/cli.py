"""Command-line interface for htauth"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from htauth import __version__
from htauth.cache import CredentialFileCache
from htauth.files import FileFormat
from htauth.hashes import check_digest_secret, check_secret, classify_secret

logger = logging.getLogger(__name__)


def setup_logging(level: str, log_file: Optional[str]) -> None:
    """Configure logging handlers"""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    # Add file handler if log file is specified and writable
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file))
        except PermissionError:
            print(
                f"Warning: Cannot write to {log_file}, logging to stderr only",
                file=sys.stderr,
            )

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="htauth",
        description="Check passwords against htpasswd and htdigest files",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        help="Path to config file (default: auto-detect)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("verify", "Verify a user's password, exit status 0 on match"),
        ("lookup", "Show which hash scheme a user's secret uses"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("file", help="htpasswd or htdigest file")
        cmd.add_argument("user", help="Username to check")
        cmd.add_argument("--realm", default="", help="Realm (htdigest files only)")
        cmd.add_argument(
            "--digest",
            action="store_true",
            help="Treat FILE as an htdigest file",
        )
        if name == "verify":
            cmd.add_argument(
                "--password-stdin",
                action="store_true",
                help="Read the password from stdin instead of prompting",
            )
    return parser


def _read_password(from_stdin: bool) -> str:
    if from_stdin:
        return sys.stdin.readline().rstrip("\r\n")
    return getpass.getpass("Password: ")


def run(args: argparse.Namespace) -> int:
    """Run a parsed command, returning the process exit status"""
    file_format = FileFormat.HTDIGEST if args.digest else FileFormat.HTPASSWD
    cache = CredentialFileCache(args.file, file_format)
    realm = args.realm if args.digest else None
    secret = cache.lookup(args.user, realm)

    if args.command == "lookup":
        if not secret:
            print(f"{args.user}: not found", file=sys.stderr)
            return 1
        scheme = "digest-md5" if args.digest else classify_secret(secret).value
        print(f"{args.user}: {scheme}")
        return 0

    password = _read_password(args.password_stdin)
    if args.digest:
        ok = check_digest_secret(args.user, args.realm, password, secret)
    else:
        ok = check_secret(password, secret)

    if ok:
        print(f"Password for user {args.user} correct.")
        return 0
    print("password verification failed", file=sys.stderr)
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    from htauth.config import load_config

    config = load_config(args.config)
    level = "DEBUG" if args.verbose else config.logging.level
    setup_logging(level, config.logging.file or None)

    return run(args)


if __name__ == "__main__":
    sys.exit(main())
