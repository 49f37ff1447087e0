#!/usr/bin/env python3
"""
otp_cli.py: Command line authenticator over the sqlite vault.

Subcommands:
- add     : add an entry (Base32 secret)
- codes   : print the current code of every entry
- watch   : show codes in real time, refreshing on each window boundary
- clear   : remove every entry
- conceal : toggle code concealment
- uri     : print otpauth:// URIs for export

The master passphrase comes from --passphrase, $OTP_VAULT_PASSPHRASE or a prompt.
"""

import argparse
import getpass
import logging
import os
import sys
import time
from functools import partial

from authenticator.models import (
    DEFAULT_DIGITS,
    DEFAULT_TIME_STEP,
    Algorithm,
    InvalidParameter,
    Snapshot,
    VaultEntry,
    decode_base32_secret,
)
from authenticator.otp_core import format_otpauth_uri, validate_entry
from authenticator.scheduler import entries_due, next_refresh, regenerate
from authenticator.vault_state import (
    AddVaultEntry,
    ClearVault,
    InitializeVault,
    ToggleConcealTokens,
    VaultStore,
)
from database import db_manager

logger = logging.getLogger(__name__)


# --- Store setup -------------------------------------------------------------
def _passphrase(args) -> str:
    return args.passphrase or os.environ.get("OTP_VAULT_PASSPHRASE") or getpass.getpass("Master passphrase: ")


def open_store(args) -> VaultStore:
    """Unlock the database and return a VaultStore wired to persist every change."""
    db_path = args.db or db_manager.DATABASE_FILE
    store = VaultStore(Snapshot(settings=db_manager.load_settings(db_path)))
    store.subscribe(partial(db_manager.persist_snapshot, db_path=db_path))
    key, vault = db_manager.unlock_vault(_passphrase(args), db_path)
    store.dispatch(InitializeVault(key, vault))
    logger.debug("Opened %s with %d entries", db_path, len(vault))
    return store


def format_code(entry: VaultEntry, code, conceal: bool, now: int) -> str:
    if code is None:
        return f"{entry.label:<32} (invalid entry, skipped)"
    value = "*" * len(code.value) if conceal else code.value
    return f"{entry.label:<32} {value:>8}  (valid ~{code.remaining(now):2d}s)"


# --- CLI command handlers ---
def cmd_add(args):
    entry = VaultEntry(
        issuer=args.issuer,
        account=args.account,
        secret=decode_base32_secret(args.secret),
        algorithm=Algorithm.parse(args.algorithm),
        digits=args.digits,
        period=args.period,
    )
    validate_entry(entry)
    snapshot = open_store(args).dispatch(AddVaultEntry(entry))
    print(f"[+] Added {entry.label} ({len(snapshot.vault)} entries)")


def cmd_codes(args, clock=time.time):
    snapshot = open_store(args).snapshot
    if not snapshot.vault:
        print("Your vault is empty.")
        return
    now = int(clock())
    for entry, code in regenerate(snapshot.vault, now):
        print(format_code(entry, code, snapshot.settings.conceal_tokens, now))


def cmd_watch(args, clock=time.time, sleep=time.sleep):
    store = open_store(args)
    print("Press Ctrl+C to quit. Codes refresh on every window boundary...\n")
    refreshes = 0
    try:
        now = int(clock())
        due = list(store.snapshot.vault)
        while True:
            snapshot = store.snapshot
            for entry, code in regenerate(due, now):
                print(format_code(entry, code, snapshot.settings.conceal_tokens, now))
            refreshes += 1
            if args.count and refreshes >= args.count:
                break
            wake_at, periods_due = next_refresh(snapshot.vault, now)
            print(f".. next refresh in {wake_at - now:2d}s")
            sleep(max(0.0, wake_at - clock()))
            now = wake_at
            due = entries_due(store.snapshot.vault, periods_due)
    except KeyboardInterrupt:
        print("\nBye.")


def cmd_clear(args):
    open_store(args).dispatch(ClearVault())
    print("[+] Vault cleared")


def cmd_conceal(args):
    snapshot = open_store(args).dispatch(ToggleConcealTokens())
    state = "on" if snapshot.settings.conceal_tokens else "off"
    print(f"[+] Code concealment {state}")


def cmd_uri(args):
    for entry in open_store(args).snapshot.vault:
        print(format_otpauth_uri(entry))


def cmd_help(args):
    print("No command specified. Use -h for help.")


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="TOTP authenticator backed by a local vault")
    p.add_argument("--db", help="Vault database file (default: $OTP_VAULT_DB or otp_vault.db)")
    p.add_argument("--passphrase", help="Master passphrase (default: $OTP_VAULT_PASSPHRASE or prompt)")
    p.add_argument("--verbose", action="store_true", help="Verbose output")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_help)

    # add
    pa = sub.add_parser("add", help="Add an entry to the vault")
    pa.add_argument("--issuer", required=True, help="Service name, e.g. GitHub")
    pa.add_argument("--account", required=True, help="Account label, e.g. alice@example.com")
    pa.add_argument("--secret", required=True, help="Base32 secret shown by the service")
    pa.add_argument("--algorithm", default=Algorithm.SHA1.value, choices=[a.value for a in Algorithm])
    pa.add_argument("--digits", type=int, default=DEFAULT_DIGITS, help="Number of code digits (6-8)")
    pa.add_argument("--period", type=int, default=DEFAULT_TIME_STEP, help="TOTP time step (seconds)")
    pa.set_defaults(func=cmd_add)

    # codes
    pc = sub.add_parser("codes", help="Print the current codes")
    pc.set_defaults(func=cmd_codes)

    # watch
    pw = sub.add_parser("watch", help="Show codes in real time")
    pw.add_argument("--count", type=int, default=0, help="Stop after N refreshes (0 = run until Ctrl+C)")
    pw.set_defaults(func=cmd_watch)

    # clear
    pcl = sub.add_parser("clear", help="Remove every entry")
    pcl.set_defaults(func=cmd_clear)

    # conceal
    pco = sub.add_parser("conceal", help="Toggle code concealment")
    pco.set_defaults(func=cmd_conceal)

    # uri
    pu = sub.add_parser("uri", help="Print otpauth URIs of all entries")
    pu.set_defaults(func=cmd_uri)

    return p


def _log_level(args) -> int:
    if args.verbose:
        return logging.DEBUG
    name = os.environ.get("OTP_VAULT_LOG_LEVEL", "WARNING").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        print(f"[!] Unknown log level {name!r}, using WARNING")
        return logging.WARNING
    return level


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=_log_level(args),
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    try:
        args.func(args)
    except (InvalidParameter, db_manager.VaultLocked) as e:
        print(f"[!] {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
