import asyncio
import json
import sys

import click
import uvicorn
from dotenv import load_dotenv

from deskready.config.provider import EnvConfigProvider
from deskready.logging_config import configure_logging, get_logging_config
from deskready.modules.bridge import DesktopControlBridge, HttpChannel
from deskready.modules.readiness import DesktopControlStatus

load_dotenv()


@click.group()
def main():
    """Desktop control readiness service."""


@main.command()
@click.option("--host", "host", default=None, help="Bind address (DESKREADY_API_HOST)")
@click.option("--port", "port", default=None, type=int, help="Bind port (DESKREADY_API_PORT)")
def serve(host, port):
    """Run the readiness HTTP API."""
    api_config = EnvConfigProvider().get_api_config()
    configure_logging(api_config.log_level)

    uvicorn.run(
        "deskready.main:app",
        host=host or api_config.host,
        port=port or api_config.port,
        log_config=get_logging_config(api_config.log_level),
    )


async def _fetch_status(url: str, force_refresh: bool):
    async with HttpChannel(url) as channel:
        bridge = DesktopControlBridge(channel)
        return await bridge.get_status({"force_refresh": force_refresh})


@main.command()
@click.option("--url", "url", default=None, help="Deskready API URL")
@click.option("--force-refresh", is_flag=True, help="Bypass the readiness cache")
def status(url, force_refresh):
    """Print the readiness snapshot; exit 1 unless desktop control is ready."""
    api_config = EnvConfigProvider().get_api_config()
    configure_logging(api_config.log_level)

    url = url or f"http://{api_config.host}:{api_config.port}"
    snapshot = asyncio.run(_fetch_status(url, force_refresh))

    click.echo(json.dumps(snapshot.model_dump(mode="json"), indent=2))
    sys.exit(0 if snapshot.status is DesktopControlStatus.READY else 1)


if __name__ == "__main__":
    main()
