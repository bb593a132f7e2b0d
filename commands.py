"""
Commandes de maintenance exposées via ``flask <command>``.
"""

import click
from flask.cli import with_appcontext
from sqlalchemy import inspect

from extensions import db
import models  # noqa: F401  (registers every table on the metadata)
from services.archive_service import archive_service
from services.hierarchy_store import hierarchy_store


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Crée toutes les tables définies dans les modèles SQLAlchemy."""
    db.create_all()
    tables = inspect(db.engine).get_table_names()
    click.echo(f"Tables créées ({len(tables)}):")
    for table in sorted(tables):
        click.echo(f"  - {table}")


@click.command("rebuild-folder-tree")
@with_appcontext
def rebuild_folder_tree_command():
    """Recompute nested-set bounds from parent links, then verify them."""
    count = hierarchy_store.rebuild()
    db.session.commit()
    problems = hierarchy_store.verify()
    if problems:
        for problem in problems:
            click.echo(f"  ! {problem}", err=True)
        raise click.ClickException(f"Folder tree still inconsistent ({len(problems)} problems)")
    click.echo(f"Folder tree rebuilt: {count} folders")


@click.command("cleanup-temporary-files")
@click.option("--max-age-hours", type=float, default=None,
              help="Remove temporary archives older than this (default: TEMP_FILE_MAX_AGE_HOURS)")
@with_appcontext
def cleanup_temporary_files_command(max_age_hours):
    """Supprime les archives temporaires expirées."""
    removed = archive_service.cleanup_temporary_files(max_age_hours)
    click.echo(f"Removed {removed} temporary files")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(rebuild_folder_tree_command)
    app.cli.add_command(cleanup_temporary_files_command)
