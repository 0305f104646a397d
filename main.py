#!/usr/bin/env python3
"""
Auto Shop Back Office - Google Sheets backed management CLI

CLI Commands:
    doctor             - Run preflight checks (Python, deps, configs, connectivity)
    init-sheets        - Create missing sheets and header rows
    list <table>       - Print the rows of one table
    sync               - Replay writes queued while offline
    seed-admin         - Create the default admin user if none exists
    sms-balance        - Show remaining SMS gateway credit
    serve              - Run the HTTP API

Usage:
    python main.py doctor
    python main.py init-sheets
    python main.py list receptions --json
    python main.py sync
    python main.py seed-admin --password changeme
    python main.py serve --port 8000
"""

import argparse
import json
import os
import sys
from pathlib import Path

from core.config import ConfigurationError, load_config_from_env
from core.logging_config import setup_logging
from core.secrets import check_production_readiness
from schemas.sheets_schema import get_column_names, get_table_names
from services.sheets import SheetsError
from services.sms import SMSGatewayError

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))


def _load_context(require_sms: bool = False):
    from stores.context import create_context

    config = load_config_from_env()
    setup_logging(level=config.log_level, format_type=config.log_format)
    config.validate(require_sheets=True, require_sms=require_sms)
    return create_context(config)


def cmd_doctor(args):
    """Run preflight checks to ensure system is ready."""
    print("=" * 50)
    print(" Auto Shop Back Office - System Check")
    print("=" * 50)
    print()

    all_ok = True
    warnings = []

    # Check 1: Python version
    print("[1/5] Python version...")
    py_version = sys.version_info
    if py_version >= (3, 9):
        print(f"  OK: Python {py_version.major}.{py_version.minor}.{py_version.micro}")
    else:
        print(f"  FAIL: Python 3.9+ required (found {py_version.major}.{py_version.minor})")
        all_ok = False

    # Check 2: Dependencies
    print("[2/5] Dependencies...")
    required_deps = [
        ("googleapiclient", "Google Sheets/Drive API", "google-api-python-client"),
        ("google.oauth2", "Google credentials", "google-auth"),
        ("google_auth_oauthlib", "OAuth login flow", "google-auth-oauthlib"),
        ("google_auth_httplib2", "Connectivity probe", "google-auth-httplib2"),
        ("requests", "SMS gateway client"),
        ("dotenv", "Environment loading", "python-dotenv"),
        ("tenacity", "Retry logic"),
        ("fastapi", "HTTP API"),
        ("uvicorn", "HTTP server"),
    ]
    for dep in required_deps:
        module_name = dep[0]
        description = dep[1]
        pip_name = dep[2] if len(dep) > 2 else module_name
        try:
            __import__(module_name)
            print(f"  OK: {pip_name} ({description})")
        except ImportError:
            print(f"  FAIL: {pip_name} not installed")
            all_ok = False

    # Check 3: Configuration files
    print("[3/5] Configuration files...")
    config_files = [
        (".env", "Environment variables", False),
        ("config/credentials.json", "Google credentials", False),
    ]
    for filename, description, required in config_files:
        path = Path(PROJECT_ROOT) / filename
        if path.exists():
            print(f"  OK: {filename} ({description})")
        elif required:
            print(f"  FAIL: {filename} missing ({description})")
            all_ok = False
        else:
            print(f"  SKIP: {filename} missing (optional)")

    # Check 4: Configuration validation
    print("[4/5] Configuration validation...")
    config = load_config_from_env()
    try:
        config.validate(require_sheets=True)
        print(f"  OK: Spreadsheet {config.sheets.spreadsheet_id[:20]}...")
    except ConfigurationError as e:
        print(f"  FAIL: {e}")
        all_ok = False
    if not config.sms.enabled:
        warnings.append("SMS sending disabled (SMS_ENABLED=false)")
    warnings.extend(check_production_readiness(config.sheets.credentials_file))

    # Check 5: Connectivity
    print("[5/5] Spreadsheet connectivity...")
    if all_ok:
        from stores.context import create_context

        context = create_context(config)
        if context.sheets.check_connection():
            print("  OK: Spreadsheet reachable")
            pending = len(context.offline_cache.pending_actions())
            if pending:
                warnings.append(f"{pending} offline write(s) waiting (run: python main.py sync)")
        else:
            print("  FAIL: Spreadsheet unreachable")
            all_ok = False
    else:
        print("  SKIP: fix the failures above first")

    # Summary
    print()
    print("=" * 50)
    if all_ok and not warnings:
        print(" STATUS: ALL CHECKS PASSED")
    elif all_ok:
        print(f" STATUS: PASSED WITH {len(warnings)} WARNING(S)")
        for w in warnings:
            print(f"   - {w}")
    else:
        print(" STATUS: SOME CHECKS FAILED")
        print(" Fix the issues above before proceeding.")
    print("=" * 50)

    return 0 if all_ok else 1


def cmd_init_sheets(args):
    """Create missing sheets and their header rows."""
    context = _load_context()
    print(f"Initializing spreadsheet {context.config.sheets.spreadsheet_id}...")
    for table, created in context.ensure_tables().items():
        print(f"  {'CREATED' if created else 'OK'}: {table}")
    return 0


def cmd_list(args):
    """Print all rows of one table, newest first."""
    context = _load_context()
    store = context.store_for(args.table)
    result = store.load()
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1
    if store.warning:
        print(f"WARNING: {store.warning}", file=sys.stderr)

    records = [entity.to_record() for entity in store.items[: args.limit]]
    if args.json:
        print(json.dumps(records, indent=2, ensure_ascii=False))
        return 0

    columns = [c for c in get_column_names(args.table) if c != "password_hash"][:5]
    print(" | ".join(columns))
    print("-" * 60)
    for record in records:
        print(" | ".join(record.get(c, "")[:24] for c in columns))
    print(f"\n{len(store.items)} row(s)")
    return 0


def cmd_sync(args):
    """Replay writes that were queued while offline."""
    context = _load_context()
    pending = context.offline_cache.pending_actions()
    print(f"Pending actions: {len(pending)}")
    if not pending:
        return 0

    result = context.sync_pending()
    if not result.online:
        print(f"ERROR: {result.error}")
        return 1

    print(f"  Replayed: {len(result.drain.replayed)}")
    for action in result.drain.failed:
        print(f"  FAILED: {action.type} {action.table} ({action.last_error})")
    print(f"  Remaining: {result.drain.remaining}")
    return 0 if result.drain.success else 1


def cmd_seed_admin(args):
    """Create the default admin account when no admin exists."""
    context = _load_context()
    result = context.users.seed_default_admin(args.password)
    if result is None:
        print("An admin user already exists")
        return 0
    if not result.ok:
        print(f"ERROR: {result.error}")
        return 1
    print("Created user 'admin'. Change the password after first login.")
    return 0


def cmd_sms_balance(args):
    """Show remaining SMS credit."""
    context = _load_context(require_sms=True)
    try:
        balance = context.sms.balance()
    except SMSGatewayError as e:
        print(f"ERROR: {e}")
        return 1
    print(f"SMS credit: {balance:,.0f}")
    return 0


def cmd_serve(args):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from api.main import create_app

    app = create_app(_load_context())
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Auto Shop Back Office - Google Sheets backed management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py doctor
    python main.py init-sheets
    python main.py list tasks --limit 20
    python main.py sync
    python main.py serve --host 0.0.0.0 --port 8000
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("doctor", help="Run preflight checks")
    subparsers.add_parser("init-sheets", help="Create missing sheets and header rows")

    list_parser = subparsers.add_parser("list", help="Print the rows of a table")
    list_parser.add_argument("table", choices=get_table_names(), help="Table name")
    list_parser.add_argument("--json", action="store_true", help="Output as JSON")
    list_parser.add_argument("--limit", type=int, default=50, help="Maximum rows to print")

    subparsers.add_parser("sync", help="Replay writes queued while offline")

    seed_parser = subparsers.add_parser("seed-admin", help="Create the default admin user")
    seed_parser.add_argument("--password", required=True, help="Initial admin password")

    subparsers.add_parser("sms-balance", help="Show SMS gateway credit")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "doctor": cmd_doctor,
        "init-sheets": cmd_init_sheets,
        "list": cmd_list,
        "sync": cmd_sync,
        "seed-admin": cmd_seed_admin,
        "sms-balance": cmd_sms_balance,
        "serve": cmd_serve,
    }

    try:
        return commands[args.command](args)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 1
    except SheetsError as e:
        print(f"ERROR: Spreadsheet request failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
