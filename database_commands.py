#!/usr/bin/env python3
"""
Database Management Commands for Travel Ops

Usage:
    python database_commands.py --help
    python database_commands.py init
    python database_commands.py seed-admin --email admin@example.com --password secret123
    python database_commands.py recalculate-balances
    python database_commands.py cleanup-logs --days 365
    python database_commands.py status
"""

import os
import sys
import argparse
import logging
from datetime import datetime
from sqlalchemy import inspect, text
from app import create_app, db
from utils.config_validator import check_production_readiness

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def setup_app_context():
    """Setup Flask application context for database operations."""
    # Set a temporary SESSION_SECRET for CLI operations if not set
    if not os.environ.get('SESSION_SECRET'):
        os.environ['SESSION_SECRET'] = 'cli_temp_secret_not_for_production'

    app = create_app()
    return app.app_context()


def cmd_init(args):
    """Create every table that does not exist yet."""
    with setup_app_context():
        db.create_all()
        tables = inspect(db.engine).get_table_names()
        print(f"✅ Database initialized: {len(tables)} tables")


def cmd_seed_admin(args):
    """Create the first admin login."""
    from models import UserRole
    from services import UserService

    with setup_app_context():
        success, error, user = UserService().create_user(
            args.email, args.password, {'full_name': args.name, 'role': UserRole.ADMIN})
        if not success:
            print(f"❌ Could not create admin: {error}")
            sys.exit(1)
        print(f"✅ Admin created: {user.email}")


def cmd_recalculate_balances(args):
    """Rebuild every customer balance from its transaction ledger."""
    from models import Customer
    from services import BalanceService

    with setup_app_context():
        changed = 0
        customers = Customer.query.order_by(Customer.id).all()
        for customer in customers:
            before = customer.balance or 0.0
            after = BalanceService.recalculate_customer_balance(customer.id)
            if after is not None and abs(after - before) > 0.005:
                changed += 1
                print(f"  {customer.name}: {before:.2f} -> {after:.2f}")
        db.session.commit()
        print(f"✅ Recalculated {len(customers)} balances, {changed} changed")


def cmd_cleanup_logs(args):
    """Delete activity log entries older than the given number of days."""
    from services import ActivityService

    with setup_app_context():
        deleted = ActivityService.cleanup_old_logs(args.days)
        print(f"✅ Deleted {deleted} activity log entries older than {args.days} days")


def cmd_status(args):
    """Display connection status and row counts."""
    with setup_app_context():
        print("=" * 60)
        print("DATABASE STATUS REPORT")
        print("=" * 60)

        try:
            db.session.execute(text('SELECT 1'))
            print("Connection Status: ✅ HEALTHY")
        except Exception as e:
            print("Connection Status: ❌ FAILED")
            print(f"Connection Error: {str(e)}")
            sys.exit(1)

        print(f"Engine: {db.engine.dialect.name}")
        tables = sorted(inspect(db.engine).get_table_names())
        print(f"Tables: {len(tables)}")
        print("\nTable Statistics:")
        for table in tables:
            count = db.session.execute(text(f'SELECT COUNT(*) FROM "{table}"')).scalar()
            print(f"  {table}: {count} records")

        readiness = check_production_readiness()
        print(f"\nProduction Ready: {'✅' if readiness['production_ready'] else '❌'}")
        for issue in readiness['issues']:
            print(f"  - {issue}")

        print(f"\nReport Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")


COMMANDS = {
    'init': cmd_init,
    'seed-admin': cmd_seed_admin,
    'recalculate-balances': cmd_recalculate_balances,
    'cleanup-logs': cmd_cleanup_logs,
    'status': cmd_status,
}


def build_parser():
    parser = argparse.ArgumentParser(
        description="Database Management Commands for Travel Ops",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('init', help='Create database tables')

    seed_parser = subparsers.add_parser('seed-admin', help='Create an admin login')
    seed_parser.add_argument('--email', required=True, help='Admin email')
    seed_parser.add_argument('--password', required=True, help='Admin password (6+ characters)')
    seed_parser.add_argument('--name', default='Administrator', help='Full name')

    subparsers.add_parser('recalculate-balances', help='Rebuild customer balances from their ledgers')

    cleanup_parser = subparsers.add_parser('cleanup-logs', help='Delete old activity log entries')
    cleanup_parser.add_argument('--days', type=int, default=365, help='Keep entries newer than this')

    subparsers.add_parser('status', help='Display database status')
    return parser


def main(argv=None):
    """Main command line interface."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error occurred")
        print(f"❌ Unexpected error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
