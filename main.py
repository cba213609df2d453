#!/usr/bin/env python3
"""
shadowc -- login distribution client.

Fetches password hashes (and optionally SSH keys) for local accounts from
shadowd servers and writes them into /etc/shadow and ~/.ssh/authorized_keys.

Usage:
  shadowc -s shadowd1:443 -s shadowd2:443 -u root
  shadowc -s shadowd1:443 -p team1 -u alice -u bob -K
  shadowc -s shadowd1:443 --all --update
  shadowc -s shadowd1:443 -p team1 --all-in-pool -c -K
  shadowc -s shadowd1:443 -p team1 -u alice --change-password

Environment variables (all optional, flags win):
  SHADOWC_SERVERS      Comma-separated shadowd addresses, in failover order.
  SHADOWC_POOL         Pool name.
  SHADOWC_CERT_PATH    Trusted root certificate (default /etc/shadowc/cert.pem).
  SHADOWC_SHADOW_PATH  Credential file (default /etc/shadow).
  SHADOWC_LOG_LEVEL    DEBUG, INFO, WARNING, ... (default INFO).
"""

import argparse
import getpass
import logging
import os
import sys
from typing import Optional

from pydantic import ValidationError

from core.config import Settings, get_settings
from core.errors import AccountNotFoundError, ShadowcError
from core.models import AuthorizedKeys, SyncReport, describe_user
from core.pipeline import change_password, get_authorized_keys, get_pool_usernames, get_shadows
from core.tls import make_session
from core.upstream import ShadowdUpstream
from state.accounts import chown_to_user, create_user
from state.authorized_keys import AuthorizedKeysFile
from state.passwd import get_home_dirs
from state.shadow_file import ShadowFile

logger = logging.getLogger("shadowc")

_DEFAULT_USER = "root"


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shadowc",
        description="Retrieve password hashes and SSH keys from shadowd servers.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  shadowc -s shadowd1:443 -u root
  shadowc -s shadowd1:443 -s shadowd2:443 -p team1 -u alice -K
  shadowc -s shadowd1:443 --all --update
  shadowc -s shadowd1:443 -p team1 --all-in-pool -c
  shadowc -s shadowd1:443 -u alice --change-password
        """,
    )
    parser.add_argument(
        "-s",
        "--server",
        dest="servers",
        action="append",
        metavar="ADDR",
        help="shadowd address as host[:port]; repeat for failover, first is preferred",
    )
    parser.add_argument("-p", "--pool", default=None, help="Pool the accounts belong to")
    parser.add_argument(
        "-u",
        "--user",
        dest="users",
        action="append",
        metavar="LOGIN",
        help=f"Account to update; repeatable (default: {_DEFAULT_USER})",
    )
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--all",
        action="store_true",
        help="Update every account that already has a password hash in the shadow file",
    )
    scope.add_argument(
        "--all-in-pool",
        action="store_true",
        help="Update every account the servers know in the pool (requires --pool)",
    )
    parser.add_argument("--shadow", metavar="PATH", help="Shadow file to update")
    parser.add_argument("--passwd", metavar="PATH", help="passwd file used to find home directories")
    parser.add_argument("--cert", metavar="PATH", help="Trusted root certificate (PEM)")
    parser.add_argument(
        "-K",
        "--ssh-keys",
        action="store_true",
        help="Also retrieve SSH keys into ~/.ssh/authorized_keys",
    )
    parser.add_argument(
        "--overwrite-keys",
        action="store_true",
        help="Replace authorized_keys instead of merging into it",
    )
    parser.add_argument(
        "-c",
        "--create",
        action="store_true",
        help="Create accounts missing from the shadow file with useradd",
    )
    parser.add_argument(
        "--update",
        action="store_true",
        help="Best effort: skip accounts the servers do not know instead of failing",
    )
    parser.add_argument(
        "--change-password",
        action="store_true",
        help="Change the password of a single --user on the servers",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def resolve_usernames(
    args: argparse.Namespace, pool: str, shadow_file: ShadowFile, upstream: ShadowdUpstream
) -> list[str]:
    if args.all:
        return shadow_file.users_with_hashes()
    if args.all_in_pool:
        return get_pool_usernames(upstream, pool)

    usernames: list[str] = []
    for username in args.users or [_DEFAULT_USER]:
        if username not in usernames:
            usernames.append(username)
    return usernames


def ensure_accounts(
    usernames: list[str], shadow_file: ShadowFile, create: bool, useradd_command: str
) -> ShadowFile:
    """Fail (or create the accounts) before anything is fetched.

    Hashes are single-use on the server; fetching one for an account that
    can't be written would waste it.
    """
    known = set(shadow_file.usernames())
    missing = [username for username in usernames if username not in known]
    if not missing:
        return shadow_file
    if not create:
        raise AccountNotFoundError(missing[0], shadow_file.path)

    for username in missing:
        create_user(username, useradd_command)
    return ShadowFile.read(shadow_file.path)


def sync_shadows(
    upstream: ShadowdUpstream,
    pool: str,
    usernames: list[str],
    shadow_file: ShadowFile,
    skip_missing: bool,
    report: SyncReport,
) -> None:
    shadows = get_shadows(upstream, pool, usernames, skip_missing=skip_missing)
    for shadow in shadows:
        shadow_file.set_shadow(shadow)
        report.updated_users.append(shadow.username)

    retrieved = {shadow.username for shadow in shadows}
    report.skipped_users.extend(username for username in usernames if username not in retrieved)

    if shadows:
        shadow_file.persist()


def sync_ssh_keys(
    authorized_keys: AuthorizedKeys, home_dirs: dict[str, str], overwrite: bool, report: SyncReport
) -> None:
    """Write each user's keys; a failure for one user is logged and the rest continue."""
    for username, keys in authorized_keys.items():
        home = home_dirs.get(username)
        if home is None:
            logger.error("can't write ssh keys for %s: no home directory in passwd", username)
            continue

        ssh_dir = os.path.join(home, ".ssh")
        path = os.path.join(ssh_dir, "authorized_keys")
        try:
            keys_file = AuthorizedKeysFile(path) if overwrite else AuthorizedKeysFile.read(path)
            added = 0
            for key in keys:
                if keys_file.add_key(key):
                    added += 1
            keys_file.persist()
            chown_to_user(ssh_dir, username)
            chown_to_user(path, username)
        except (OSError, LookupError) as e:
            logger.error("can't write ssh keys for %s to %s: %s", username, path, e)
            continue

        report.added_keys += added
        report.existing_keys += len(keys) - added
        logger.info("%s: %d new ssh key(s), %d already present", username, added, len(keys) - added)


def run_change_password(upstream: ShadowdUpstream, pool: str, usernames: Optional[list[str]]) -> None:
    if not usernames or len(usernames) != 1:
        raise ShadowcError("--change-password needs exactly one --user")
    username = usernames[0]

    old_password = getpass.getpass(f"Current password for {describe_user(pool, username)}: ")
    new_password = getpass.getpass("New password: ")
    if getpass.getpass("Repeat new password: ") != new_password:
        raise ShadowcError("new passwords do not match")

    host = change_password(upstream, pool, username, old_password, new_password)
    print(f"Password for {describe_user(pool, username)} changed on {host.address}.")


def run(args: argparse.Namespace, settings: Settings) -> None:
    servers = args.servers or settings.servers
    if not servers:
        raise ShadowcError("no shadowd servers given: use -s or SHADOWC_SERVERS")
    pool = args.pool if args.pool is not None else settings.pool
    if args.all_in_pool and not pool:
        raise ShadowcError("--all-in-pool requires --pool")

    session = make_session(args.cert or settings.cert_path)
    upstream = ShadowdUpstream.from_addresses(servers, session, timeout=settings.request_timeout)

    if args.change_password:
        run_change_password(upstream, pool, args.users)
        return

    shadow_file = ShadowFile.read(args.shadow or settings.shadow_path)
    usernames = resolve_usernames(args, pool, shadow_file, upstream)
    if not usernames:
        logger.warning("no accounts to update")
        return

    shadow_file = ensure_accounts(usernames, shadow_file, args.create, settings.useradd_command)

    report = SyncReport()
    sync_shadows(upstream, pool, usernames, shadow_file, args.update, report)

    if args.ssh_keys:
        home_dirs = get_home_dirs(args.passwd or settings.passwd_path)
        authorized_keys = get_authorized_keys(upstream, pool, report.updated_users, skip_missing=True)
        sync_ssh_keys(authorized_keys, home_dirs, args.overwrite_keys, report)

    print(f"Updated {len(report.updated_users)} account(s): {', '.join(report.updated_users) or '-'}")
    if report.skipped_users:
        skipped = ", ".join(report.skipped_users)
        print(f"Skipped {len(report.skipped_users)} account(s) unknown to shadowd: {skipped}")
    if args.ssh_keys:
        print(f"SSH keys: {report.added_keys} added, {report.existing_keys} already present.")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        _setup_logging("INFO")
        logger.error("invalid configuration: %s", e)
        return 1

    _setup_logging("DEBUG" if args.debug else settings.log_level)

    try:
        run(args, settings)
    except (ShadowcError, OSError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
