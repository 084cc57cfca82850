"""Server command for the recordsync CLI.

Commands:
- serve: Run the recordsync server
"""

from __future__ import annotations

import click


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", default=8000, show_default=True, type=int, help="Bind port.")
@click.option("--db-path", type=click.Path(), default=None,
              help="Database file (default: RECORDSYNC_DB_PATH or ./recordsync.db).")
@click.option("--storage-path", type=click.Path(), default=None,
              help="Blob directory (default: RECORDSYNC_STORAGE_PATH or ./storage).")
@click.option("--log-path", type=click.Path(), default=None,
              help="Log file (default: RECORDSYNC_LOG_PATH or ./recordsync-server.log).")
@click.option("--token", default=None, help="Require this bearer token on /api routes.")
def serve(
    host: str,
    port: int,
    db_path: str | None,
    storage_path: str | None,
    log_path: str | None,
    token: str | None,
) -> None:
    """Run the recordsync server."""
    from pathlib import Path

    import uvicorn

    from recordsync.server.app import (
        api_token_from_env,
        create_app,
        db_path_from_env,
        log_path_from_env,
        setup_logging,
        storage_path_from_env,
    )
    from recordsync.server.database import Database
    from recordsync.server.storage import LocalFSStorage

    setup_logging(Path(log_path) if log_path else log_path_from_env())
    app = create_app(
        db=Database(Path(db_path) if db_path else db_path_from_env()),
        storage=LocalFSStorage(Path(storage_path) if storage_path else storage_path_from_env()),
        api_token=token or api_token_from_env(),
    )
    click.echo(f"Serving on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port)
