"""
Flask CLI commands for bootstrapping and maintenance
"""
import click

from cdc_attendance import db


def register_cli(app):
    """Register CLI commands"""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet"""
        db.create_all()
        click.echo("Database tables created")

    @app.cli.command('create-admin')
    @click.option('--name', prompt=True)
    @click.option('--email', prompt=True)
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    def create_admin_command(name, email, password):
        """Create an admin account"""
        from cdc_attendance.services.auth_service import AuthService
        from cdc_attendance.services.error_service import APIError
        from cdc_attendance.services.validation_service import ValidationService
        from cdc_attendance.utils.constants import ROLE_ADMIN

        for check, value in ((ValidationService.validate_email, email),
                             (ValidationService.validate_password, password)):
            is_valid, message = check(value)
            if not is_valid:
                raise click.BadParameter(message)
        try:
            user = AuthService.register(name, email, password, ROLE_ADMIN)
        except APIError as e:
            raise click.ClickException(e.message)
        click.echo(f"Admin created: {user.email} ({user.employee_id})")

    @app.cli.command('seed-lab')
    @click.option('--rows', default=4, show_default=True)
    @click.option('--per-row', default=10, show_default=True)
    def seed_lab_command(rows, per_row):
        """Create the default lab grid when no PCs exist"""
        from cdc_attendance.services.lab_service import LabService

        pcs = LabService.create_sample_grid(rows, per_row)
        click.echo(f"{len(pcs)} PCs created" if pcs else "Lab inventory already exists")

    @app.cli.command('run-migration')
    @click.argument('direction', type=click.Choice(['up', 'down']))
    @click.argument('name')
    def run_migration_command(direction, name):
        """Apply (up) or revert (down) a data migration by name"""
        from cdc_attendance.migrations import run_migration

        run_migration(name, direction)
        click.echo(f"Migration {name} {direction} completed")
