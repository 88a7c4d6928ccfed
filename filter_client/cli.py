"""
Command line front end for the filter service
"""
import asyncio
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console

from .api import UploadClient
from .auth import TokenCache
from .config import get_settings
from .errors import ApiError, ErrorKind, FilterClientError
from .log import configure_logging, mask_token
from .models import UploadState
from .notifications import NotificationRegistrar, StaticPushTokenSupplier
from .retry import RetryPolicy, generate_with_retry

console = Console()
app = typer.Typer(help="Apply AI style filters to photos.")

PROGRESS_MESSAGES = {
    UploadState.AUTHENTICATING: "Authenticating...",
    UploadState.UPLOADING: "Uploading image...",
    UploadState.AWAITING_RESPONSE: "Applying filter effect, this may take a while...",
}


def describe_error(error: FilterClientError) -> str:
    """Human readable guidance for a failed request."""
    if error.kind is ErrorKind.VALIDATION:
        return f"Invalid input: {error.message}"
    if error.kind is ErrorKind.AUTH:
        return "Authentication failed. Please try again later."
    if error.kind is ErrorKind.NETWORK:
        return "Network error. Please check your connection and ensure the server is running."
    if error.kind is ErrorKind.TIMEOUT:
        return "Request timed out. The server may be down or unreachable."
    if isinstance(error, ApiError) and error.status >= 500:
        return f"Server error ({error.status}): {error.message}"
    return error.message


def _registrar(push_token: Optional[str]) -> NotificationRegistrar:
    settings = get_settings()
    return NotificationRegistrar(StaticPushTokenSupplier(push_token or settings.push_token), settings)


def _fail(error: FilterClientError) -> NoReturn:
    console.print(describe_error(error), style="red", markup=False)
    raise typer.Exit(code=1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    configure_logging("DEBUG" if verbose else get_settings().log_level)


@app.command()
def generate(
    image: Path = typer.Argument(..., help="Photo to upload"),
    style: str = typer.Option(..., "--style", "-s", help="Filter name, e.g. Ghibli"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Save the result here"),
    push_token: Optional[str] = typer.Option(None, "--push-token", help="Device push token"),
    retries: int = typer.Option(1, "--retries", min=1, help="Attempts before giving up"),
) -> None:
    """Upload IMAGE and print the URL of the filtered result."""
    client = UploadClient(push_tokens=_registrar(push_token))

    def progress(state: UploadState) -> None:
        if state in PROGRESS_MESSAGES:
            console.print(PROGRESS_MESSAGES[state], style="dim")

    async def run() -> str:
        result = await generate_with_retry(
            client, image, style, policy=RetryPolicy(max_attempts=retries), on_state=progress
        )
        if output is not None:
            output.write_bytes(await client.download_result(result.image_url))
        return result.image_url

    try:
        image_url = asyncio.run(run())
    except FilterClientError as e:
        _fail(e)
    console.print(image_url)
    if output is not None:
        console.print(f"Result saved as: {output}", style="green")


@app.command()
def register(
    user_id: str = typer.Argument(..., help="Account the device belongs to"),
    push_token: Optional[str] = typer.Option(None, "--push-token", help="Device push token"),
) -> None:
    """Register this device's push token with the backend."""
    registrar = _registrar(push_token)
    try:
        registered = asyncio.run(registrar.register_device(user_id))
    except FilterClientError as e:
        _fail(e)
    if not registered:
        console.print("[yellow]No push token available, nothing registered[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"Device {registrar.device_id()} registered", style="green")


@app.command()
def token() -> None:
    """Fetch a bearer token from the auth service."""
    cache = TokenCache.from_settings(get_settings())
    try:
        credential = asyncio.run(cache.get_token())
    except FilterClientError as e:
        _fail(e)
    minutes = int(cache.ttl // 60)
    console.print(f"{mask_token(credential.token, 20)} (cached for {minutes} minutes)")
