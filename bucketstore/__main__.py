"""Command-line entry point for bucketstore."""
from __future__ import annotations

import argparse
from contextlib import closing
from dataclasses import asdict, replace
import getpass
import logging
import os
import shutil
import sys
from typing import BinaryIO, Sequence, TextIO

from .controller import StorageController
from .errors import NotFoundError, StorageError
from .formatting import compose_key, format_modified, format_object, format_size, load_package_info, parse_size
from .profiles import ConnectionProfile

LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def build_parser() -> argparse.ArgumentParser:
    info = load_package_info()
    parser = argparse.ArgumentParser(prog="bucketstore", description="Manage objects in remote buckets")
    parser.add_argument("--version", action="version", version=f"%(prog)s {info.version}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log provider requests")
    commands = parser.add_subparsers(dest="command", required=True)

    profile = commands.add_parser("profile", help="Manage saved connections")
    profile_commands = profile.add_subparsers(dest="profile_command", required=True)
    add = profile_commands.add_parser("add", help="Save a connection profile")
    add.add_argument("name")
    add.add_argument("endpoint", help="e.g. b2://bucket.s3.us-west-004.backblazeb2.com")
    add.add_argument("access_key", help="Application key id")
    add.add_argument("--secret", help="Application key (prompted when omitted)")
    profile_commands.add_parser("list", help="Show saved profiles")
    remove = profile_commands.add_parser("remove", help="Delete a saved profile")
    remove.add_argument("name")

    config = commands.add_parser("config", help="Show or change settings")
    config_commands = config.add_subparsers(dest="config_command", required=True)
    config_commands.add_parser("show", help="Print current settings")
    config_set = config_commands.add_parser("set", help="Change one setting")
    config_set.add_argument("name")
    config_set.add_argument("value")

    ls = commands.add_parser("ls", help="List objects under a prefix")
    ls.add_argument("profile")
    ls.add_argument("prefix", nargs="?", default="")
    ls.add_argument("-H", "--human", action="store_true", help="Human readable sizes")

    stat = commands.add_parser("stat", help="Show object attributes")
    stat.add_argument("profile")
    stat.add_argument("key")

    cat = commands.add_parser("cat", help="Write object content to stdout")
    cat.add_argument("profile")
    cat.add_argument("key")
    cat.add_argument("--offset", type=int, default=0)
    cat.add_argument("--length", type=int, default=-1, help="Bytes to read (default: to end)")

    put = commands.add_parser("put", help="Upload a file or stdin")
    put.add_argument("profile")
    put.add_argument("key", help="Destination key; a trailing '/' appends the file name")
    put.add_argument("file", nargs="?", help="Source file (default: stdin)")

    cp = commands.add_parser("cp", help="Copy an object within the bucket")
    cp.add_argument("profile")
    cp.add_argument("src")
    cp.add_argument("dst")

    rm = commands.add_parser("rm", help="Delete objects")
    rm.add_argument("profile")
    rm.add_argument("keys", nargs="+")
    return parser


def _binary(stream) -> BinaryIO:
    return getattr(stream, "buffer", stream)


def _coerce_setting(name: str, value: str, current: object) -> object:
    if isinstance(current, bool):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{name} expects true or false")
    parsed = parse_size(value) if name == "spool_max_size" else None
    if parsed is None:
        try:
            parsed = int(value)
        except ValueError as exc:
            raise ValueError(f"{name} expects a positive integer") from exc
    if parsed <= 0:
        raise ValueError(f"{name} expects a positive integer")
    return parsed


def _run_profile(args, controller: StorageController, out: TextIO) -> int:
    if args.profile_command == "add":
        secret = args.secret if args.secret is not None else getpass.getpass("Application key: ")
        controller.save_profile(
            ConnectionProfile(
                name=args.name,
                endpoint=args.endpoint,
                access_key=args.access_key,
                secret_key=secret,
            )
        )
        print(f"Saved profile '{args.name}'", file=out)
    elif args.profile_command == "list":
        for profile in controller.list_profiles():
            print(f"{profile.name}\t{profile.endpoint}\t{profile.access_key}", file=out)
    else:
        controller.delete_profile(args.name)
        print(f"Removed profile '{args.name}'", file=out)
    return 0


def _run_config(args, controller: StorageController, out: TextIO) -> int:
    settings = controller.settings
    if args.config_command == "show":
        for name, value in asdict(settings).items():
            print(f"{name} = {value}", file=out)
        return 0
    values = asdict(settings)
    if args.name not in values:
        raise ValueError(f"Unknown setting '{args.name}'")
    value = _coerce_setting(args.name, args.value, values[args.name])
    controller.save_settings(replace(settings, **{args.name: value}))
    print(f"{args.name} = {value}", file=out)
    return 0


def _run_storage(args, controller: StorageController, stdin, out: TextIO) -> int:
    storage = controller.open(args.profile)
    if args.command == "ls":
        for obj in storage.list_all(args.prefix, controller.settings.list_limit):
            print(format_object(obj, human=args.human), file=out)
    elif args.command == "stat":
        obj = storage.head(args.key)
        print(f"key: {obj.key}", file=out)
        print(f"size: {obj.size} ({format_size(obj.size)})", file=out)
        print(f"uploaded: {format_modified(obj.modified_at)}", file=out)
        print(f"directory: {'yes' if obj.is_dir else 'no'}", file=out)
    elif args.command == "cat":
        target = _binary(out)
        with closing(storage.get(args.key, args.offset, args.length)) as reader:
            shutil.copyfileobj(reader, target)
        target.flush()
    elif args.command == "put":
        key = args.key
        if args.file:
            if key.endswith("/"):
                key = compose_key(key, os.path.basename(args.file))
            with open(args.file, "rb") as source:
                storage.put(key, source)
        else:
            storage.put(key, _binary(stdin))
        print(f"Uploaded {storage}{key}", file=out)
    elif args.command == "cp":
        storage.copy(args.dst, args.src)
        print(f"Copied {storage}{args.src} -> {storage}{args.dst}", file=out)
    elif args.command == "rm":
        for key in args.keys:
            storage.delete(key)
            print(f"Deleted {storage}{key}", file=out)
    return 0


def main(
    argv: Sequence[str] | None = None,
    *,
    controller: StorageController | None = None,
    stdin=None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    out = stdout or sys.stdout
    err = stderr or sys.stderr
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    controller = controller or StorageController()
    try:
        if args.command == "profile":
            return _run_profile(args, controller, out)
        if args.command == "config":
            return _run_config(args, controller, out)
        return _run_storage(args, controller, stdin or sys.stdin, out)
    except NotFoundError as exc:
        print(f"error: not found: {exc}", file=err)
        return 2
    except (StorageError, ValueError) as exc:
        LOGGER.debug("Command '%s' failed", args.command, exc_info=True)
        print(f"error: {exc}", file=err)
        return 1


if __name__ == "__main__":
    sys.exit(main())
