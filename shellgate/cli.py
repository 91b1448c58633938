import logging
import os
from typing import Optional

import click
import uvicorn
from dotenv import load_dotenv

from shellgate.config.provider import EnvConfigProvider
from shellgate.logging_config import configure_logging, get_logging_config
from shellgate.modules.shell import DIALECTS

logger = logging.getLogger("shellgate.cli")


@click.command()
@click.option("--host", "host", default=None, help="Bind address (API_HOST).")
@click.option("--port", "port", type=int, default=None, help="Port (API_PORT).")
@click.option(
    "--dialect",
    "dialect",
    type=click.Choice(sorted(DIALECTS), case_sensitive=False),
    default=None,
    help="Interpreter dialect (SHELL_DIALECT).",
)
@click.option("--shell", "executable", default=None, help="Interpreter executable (SHELL_EXECUTABLE).")
def main(host: Optional[str], port: Optional[int], dialect: Optional[str], executable: Optional[str]):
    """Serve persistent interactive shell sessions over HTTP."""
    load_dotenv()

    # Command line options win over the environment; the app factory reads the environment
    overrides = {
        "API_HOST": host,
        "API_PORT": str(port) if port is not None else None,
        "SHELL_DIALECT": dialect,
        "SHELL_EXECUTABLE": executable,
    }
    for name, value in overrides.items():
        if value is not None:
            os.environ[name] = value

    try:
        provider = EnvConfigProvider()
        api_config = provider.get_api_config()
        shell_config = provider.get_shell_config()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    configure_logging(api_config.log_level)
    if api_config.host not in ("127.0.0.1", "localhost", "::1"):
        logger.warning(
            f"Binding to {api_config.host}: every client can run {shell_config.dialect} commands "
            "with this service's privileges, expose it to trusted networks only"
        )

    logger.info(f"Server starting on {api_config.host}:{api_config.port}...")
    uvicorn.run(
        "shellgate.main:create_app",
        factory=True,
        host=api_config.host,
        port=api_config.port,
        log_level=api_config.log_level.lower(),
        reload=api_config.debug,
        log_config=get_logging_config(api_config.log_level),
    )
