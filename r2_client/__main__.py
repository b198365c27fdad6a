"""Command line entry point: ``python -m r2_client``."""
from __future__ import annotations

import argparse
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, TextIO

from .client import R2Client
from .config import R2Configuration, RetryConfiguration
from .errors import R2ClientError
from .profiles import ProfileStorage
from .settings import ClientSettings, SettingsStorage
from .transport import create_transport
from .utils import configure_logging, format_last_modified, format_size

LOGGER = logging.getLogger(__name__)

ClientFactory = Callable[[R2Configuration, ClientSettings], R2Client]


def _default_client_factory(configuration: R2Configuration, settings: ClientSettings) -> R2Client:
    return R2Client(configuration, transport=create_transport(settings.transport, timeout=settings.timeout))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="r2_client", description="Work with objects in a Cloudflare R2 bucket.")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--profile", help="saved connection profile (defaults to R2_* environment variables)")
    parser.add_argument("--bucket", help="override the bucket of the profile or environment")
    commands = parser.add_subparsers(dest="command", required=True)

    ls_cmd = commands.add_parser("ls", help="list objects")
    ls_cmd.add_argument("prefix", nargs="?", default="")

    get_cmd = commands.add_parser("get", help="download an object")
    get_cmd.add_argument("key")
    get_cmd.add_argument("destination", nargs="?", help="output file (stdout when omitted)")

    put_cmd = commands.add_parser("put", help="upload a file")
    put_cmd.add_argument("source")
    put_cmd.add_argument("key")
    put_cmd.add_argument("--content-type")
    put_cmd.add_argument("--max-size-mb", type=int, help="refuse files larger than this many megabytes")

    rm_cmd = commands.add_parser("rm", help="delete an object")
    rm_cmd.add_argument("key")
    return parser


def load_configuration(
    args: argparse.Namespace,
    settings: ClientSettings,
    *,
    profile_storage: Optional[ProfileStorage] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> R2Configuration:
    if args.profile:
        profile = (profile_storage or ProfileStorage()).get(args.profile)
        return profile.to_configuration(settings, bucket=args.bucket)
    overrides: dict[str, object] = {
        "retry": RetryConfiguration(max_retries=settings.max_retries),
        "max_upload_size_mb": settings.max_upload_size_mb or None,
        "timeout": settings.timeout,
    }
    if args.bucket:
        overrides["bucket"] = args.bucket
    return R2Configuration.from_env(environ, **overrides)


def run_command(
    client: R2Client,
    args: argparse.Namespace,
    settings: ClientSettings,
    stdout: TextIO,
) -> None:
    if args.command == "ls":
        for obj in client.iter_objects(prefix=args.prefix, page_size=settings.page_size):
            stdout.write(f"{format_size(obj.size):>10}  {format_last_modified(obj.last_modified):<23}  {obj.key}\n")
    elif args.command == "get":
        data = client.download(args.key, allow_empty_data=True)
        if args.destination:
            Path(args.destination).write_bytes(data)
        elif hasattr(stdout, "buffer"):
            stdout.buffer.write(data)
        else:
            stdout.write(data.decode("utf-8", "replace"))
    elif args.command == "put":
        source = Path(args.source)
        content_type = args.content_type or mimetypes.guess_type(source.name)[0]
        etag = client.upload(
            args.key,
            source.read_bytes(),
            content_type=content_type,
            max_upload_size_mb=args.max_size_mb,
        )
        stdout.write(f"uploaded {args.key} ({etag or 'no etag'})\n")
    elif args.command == "rm":
        client.delete(args.key)
        stdout.write(f"deleted {args.key}\n")


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    settings_storage: Optional[SettingsStorage] = None,
    profile_storage: Optional[ProfileStorage] = None,
    client_factory: Optional[ClientFactory] = None,
    environ: Optional[Mapping[str, str]] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    args = build_parser().parse_args(argv)
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    configure_logging(level=logging.DEBUG if args.verbose else None)

    settings = (settings_storage or SettingsStorage()).load()
    try:
        configuration = load_configuration(args, settings, profile_storage=profile_storage, environ=environ)
        with (client_factory or _default_client_factory)(configuration, settings) as client:
            run_command(client, args, settings, stdout)
    except (R2ClientError, ValueError, OSError) as exc:
        LOGGER.debug("Command '%s' failed", args.command, exc_info=True)
        stderr.write(f"error: {exc}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
