"""
Server command.
"""

import click


@click.command()
@click.option("--host", default=None, help="Host to bind to (default from settings)")
@click.option("--port", default=None, type=int, help="Port to bind to (default from settings)")
@click.option("--workers", default=None, type=int, help="Number of worker processes")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host, port, workers, reload: bool):
    """Start the ComplyHub API server."""
    import uvicorn

    from complyhub.server.config import get_settings

    server = get_settings().server
    uvicorn.run(
        "complyhub.server.app:app",
        host=host or server.host,
        port=port or server.port,
        # Scan runs live in-process; use one worker unless runs may be lost.
        workers=1 if reload else (workers or server.workers),
        reload=reload,
    )
