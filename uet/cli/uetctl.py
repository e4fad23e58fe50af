#!/usr/bin/env python3
"""
uetctl - UET Configuration Control CLI

Operator tool for the configuration document: encrypt or decrypt the
sensitive fields in place, inspect their state, and validate or list the
configured tenants and applications.

Commands:
    encrypt         Encrypt every sensitive field (enables encryption)
    decrypt         Write a plaintext copy (disables encryption)
    status          Count encrypted and plaintext sensitive fields
    validate        Load and validate every tenant and application
    list            Show tenants with their applications

Usage:
    uetctl encrypt config.yaml
    uetctl decrypt config.yaml -o plain.yaml
    uetctl status
    uetctl validate config.yaml
    uetctl list

Environment:
    UET_CONFIG_PATH   Path to the configuration file
    UET_MASTER_KEY    Master encryption key (otherwise .uet_key is used/created)
    UET_KEY_FILE      Path to the generated key file
"""

import argparse
import sys
from collections import defaultdict
from typing import List, Optional

from ..config.models import ConfigDocument, document_problems
from ..config.sensitive_fields import SENSITIVE_FIELDS, count_fields
from ..config.store import ConfigStore, read_raw_document
from ..constants import default_config_path
from ..crypto.key_material import KeyMaterialResolver
from ..exceptions import UETError
from ..logging_config import configure_from_environment, get_logger

logger = get_logger('uet.cli.uetctl')


def _open_store(args) -> ConfigStore:
    resolver = KeyMaterialResolver(key_file=args.key_file)
    store = ConfigStore(args.config_file, key_resolver=resolver)
    store.load()
    return store


def cmd_encrypt(args):
    """Encrypt sensitive fields in place."""
    store = _open_store(args)
    store.set_encryption_enabled(True)

    print(f"Encrypted secrets in {store.path}")
    print("\nEncrypted fields:")
    print("  - admin_api_secret (in tenants)")
    print("  - client_secret (in applications)")
    print("  - signing_key (in applications)")
    print(f"\nTo decrypt, use: uetctl decrypt {store.path}")


def cmd_decrypt(args):
    """Write the document with every sensitive field in plaintext."""
    store = _open_store(args)

    if args.output:
        store.export(args.output, encryption_enabled=False)
        print(f"Wrote plaintext copy of {store.path} to {args.output}")
    else:
        store.set_encryption_enabled(False)
        print(f"Decrypted secrets in {store.path}")
    print("WARNING: the output contains plaintext secrets", file=sys.stderr)


def cmd_status(args):
    """Show the encryption state of the document without decrypting it."""
    raw = read_raw_document(args.config_file)
    data = raw if isinstance(raw, dict) else {}

    print(f"Config file: {args.config_file}")
    print(f"Encryption enabled: {'yes' if data.get('encryption_enabled') else 'no'}")
    print()
    print(f"{'SECTION':<14} {'RECORDS':>8} {'ENCRYPTED':>10} {'PLAINTEXT':>10}")
    print("-" * 45)

    total_plain = 0
    for section in ("tenants", "applications"):
        records = data.get(section) or []
        encrypted = plaintext = 0
        for record in records:
            if isinstance(record, dict):
                e, p = count_fields(record)
                encrypted += e
                plaintext += p
        total_plain += plaintext
        print(f"{section:<14} {len(records):>8} {encrypted:>10} {plaintext:>10}")

    if data.get('encryption_enabled') and total_plain:
        print(f"\n{total_plain} sensitive field(s) will be encrypted on next save")
    elif not data.get('encryption_enabled') and total_plain:
        print(f"\nSensitive fields ({', '.join(SENSITIVE_FIELDS)}) are stored in plaintext")


def cmd_validate(args):
    """Validate every tenant and application."""
    store = _open_store(args)
    problems = document_problems(store.snapshot())

    if problems:
        print(f"✗ Configuration has {len(problems)} problem(s):")
        for problem in problems:
            print(f"  - {problem}")
        return 1

    print("✓ Configuration is valid")
    return 0


def _print_application(app, indent: str = "  "):
    state = "enabled" if app.enabled else "disabled"
    print(f"{indent}{app.id:<38} {app.application_type.value:<7} {state:<9} {app.name}")


def cmd_list(args):
    """List tenants and their applications."""
    store = _open_store(args)
    document: ConfigDocument = store.snapshot()

    by_tenant = defaultdict(list)
    for app in document.applications:
        by_tenant[app.tenant_id].append(app)

    if not document.tenants and not document.applications:
        print("No tenants or applications configured.")
        return

    tenant_ids = set()
    for tenant in document.tenants:
        tenant_ids.add(tenant.id)
        print(f"Tenant {tenant.name} ({tenant.id}) - {tenant.api_hostname}")
        apps = by_tenant.get(tenant.id, [])
        if not apps:
            print("  (no applications)")
        for app in apps:
            _print_application(app)

    unassigned = [a for a in document.applications if a.tenant_id not in tenant_ids]
    if unassigned:
        print("Unassigned applications")
        for app in unassigned:
            _print_application(app)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='uetctl',
        description='UET Configuration Control CLI',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--key-file', '-k', help='Path to the generated key file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose logging')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    def add_command(name, func, help_text):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('config_file', nargs='?', default=None,
                         help='Config file path (default: UET_CONFIG_PATH or config.yaml)')
        sub.set_defaults(func=func)
        return sub

    add_command('encrypt', cmd_encrypt, 'Encrypt sensitive fields in place')

    decrypt_parser = add_command('decrypt', cmd_decrypt, 'Decrypt sensitive fields')
    decrypt_parser.add_argument('--output', '-o', help='Write plaintext copy here instead of in place')

    add_command('status', cmd_status, 'Show encryption status')
    add_command('validate', cmd_validate, 'Validate configuration')
    add_command('list', cmd_list, 'List tenants and applications')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    configure_from_environment(verbose=args.verbose)

    if args.config_file is None:
        args.config_file = default_config_path()

    try:
        result = args.func(args)
    except UETError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return result if result else 0


if __name__ == "__main__":
    sys.exit(main())
