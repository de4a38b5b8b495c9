"""
Run a named migration against the configured database.

    python scripts/run_migration.py up 001_booking_active_slot_index
    python scripts/run_migration.py down 002_student_batch_roll_index
"""
import argparse
import os
import sys

# Add the project root to Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


def main(argv=None):
    from cdc_attendance.migrations import MIGRATIONS

    parser = argparse.ArgumentParser(description='Run a database migration')
    parser.add_argument('direction', choices=['up', 'down'])
    parser.add_argument('name', choices=MIGRATIONS)
    args = parser.parse_args(argv)

    from cdc_attendance import create_app
    from cdc_attendance.migrations import run_migration
    from config import config

    app = create_app(config[os.environ.get('FLASK_CONFIG', 'default')])
    with app.app_context():
        try:
            run_migration(args.name, args.direction)
        except Exception as e:
            print(f"❌ Migration {args.name} {args.direction} failed: {e}")
            return 1
    print(f"✅ Migration {args.name} {args.direction} completed")
    return 0


if __name__ == '__main__':
    sys.exit(main())
