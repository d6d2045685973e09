"""drivepush CLI - Main commands."""
import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TransferSpeedColumn,
)
from rich.table import Table

app = typer.Typer(
    name="drivepush",
    help="Upload large files to Google Drive",
    add_completion=False
)
console = Console()

CLIENT_ID_ENV = "DRIVEPUSH_CLIENT_ID"
CLIENT_SECRET_ENV = "DRIVEPUSH_CLIENT_SECRET"
REFRESH_TOKEN_ENV = "DRIVEPUSH_REFRESH_TOKEN"
OVERSEER_EMAIL_ENV = "DRIVEPUSH_OVERSEER_EMAIL"


# Session path: ~/.config/drivepush/session.session
def get_session_path() -> Path:
    config_dir = Path.home() / ".config" / "drivepush"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "session"


def run_async(coro):
    """Run async function."""
    return asyncio.run(coro)


def make_client(
    client_id: Optional[str],
    client_secret: Optional[str],
    refresh_token: Optional[str],
    overseer_email: Optional[str] = None
):
    from drivepush import DriveClient, DriveConfig

    session_path = get_session_path()
    return DriveClient(
        session_path.name,
        base_path=session_path.parent,
        client_id=client_id,
        client_secret=client_secret,
        refresh_token=refresh_token,
        config=DriveConfig(overseer_email=overseer_email),
        resumable_journal=True,
    )


ClientIdOption = typer.Option(None, "--client-id", envvar=CLIENT_ID_ENV, help="OAuth client id")
ClientSecretOption = typer.Option(
    None, "--client-secret", envvar=CLIENT_SECRET_ENV, help="OAuth client secret"
)
RefreshTokenOption = typer.Option(
    None, "--refresh-token", envvar=REFRESH_TOKEN_ENV, help="OAuth refresh token"
)


@app.command()
def login(
    client_id: str = ClientIdOption,
    client_secret: str = ClientSecretOption,
    refresh_token: str = RefreshTokenOption,
):
    """Obtain an access token and verify Drive access."""
    from drivepush import DriveException

    if not refresh_token:
        refresh_token = typer.prompt("Refresh token", hide_input=True)

    async def do_login():
        async with make_client(client_id, client_secret, refresh_token) as drive:
            try:
                user = await drive.sign_in()
            except DriveException as e:
                console.print(f"[red]Login failed: {e}[/red]")
                raise typer.Exit(1)
            console.print(f"[green]Signed in as {user.get('emailAddress', 'unknown')}[/green]")
            console.print(f"Session saved to: {get_session_path()}.session")

    run_async(do_login())


@app.command()
def logout(
    client_id: str = ClientIdOption,
    client_secret: str = ClientSecretOption,
    refresh_token: str = RefreshTokenOption,
):
    """Revoke the access token and clear the session."""
    session_file = get_session_path().with_suffix(".session")
    if not session_file.exists():
        console.print("[yellow]No active session[/yellow]")
        return

    async def do_logout():
        async with make_client(client_id, client_secret, refresh_token) as drive:
            await drive.sign_out()
        console.print("[green]Logged out successfully[/green]")

    run_async(do_logout())


@app.command()
def status():
    """Show whether a valid access token is stored."""
    from drivepush.core.auth import CredentialStore
    from drivepush.core.session import SQLiteStorage

    session_path = get_session_path()
    with SQLiteStorage(session_path.name, session_path.parent) as storage:
        credential = storage.load()
        # peek() purges an expired token
        valid = CredentialStore(storage).peek()

    table = Table(show_header=False)
    table.add_row("Session", f"{session_path}.session")
    if valid is not None:
        minutes = round(valid.remaining() / 60)
        table.add_row("Status", f"[green]Signed in[/green] (token expires in {minutes} minutes)")
    elif credential is not None:
        table.add_row("Status", "[yellow]Token expired[/yellow]")
    else:
        table.add_row("Status", "[red]Not signed in[/red]")
    console.print(table)


@app.command()
def upload(
    file_path: Path = typer.Argument(..., help="Local file to upload", exists=True, dir_okay=False),
    dest: str = typer.Option(..., "--dest", "-d", help="Destination folder id or link"),
    name: str = typer.Option(None, "--name", "-n", help="Custom file name"),
    content_type: str = typer.Option(None, "--type", "-t", help="MIME type"),
    overseer: str = typer.Option(
        None, "--share-with", envvar=OVERSEER_EMAIL_ENV, help="Grant this address read access"
    ),
    client_id: str = ClientIdOption,
    client_secret: str = ClientSecretOption,
    refresh_token: str = RefreshTokenOption,
):
    """
    Upload a file to a Drive folder.

    Interrupted resumable uploads continue where they stopped when the
    same command is run again.
    """
    from drivepush import AuthRequired, DriveClient, DriveException, ProgressEvent

    async def do_upload():
        drive = make_client(client_id, client_secret, refresh_token, overseer)
        async with drive:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                DownloadColumn(),
                TransferSpeedColumn(),
                console=console
            ) as progress:
                task = progress.add_task(
                    f"Uploading {name or file_path.name}",
                    total=file_path.stat().st_size
                )

                def on_progress(p: ProgressEvent):
                    progress.update(task, completed=p.bytes_sent)

                try:
                    result = await drive.upload_file(
                        file_path,
                        DriveClient.extract_drive_file_id(dest),
                        on_progress=on_progress,
                        upload_key=str(file_path),
                        rename_to=name,
                        content_type=content_type,
                    )
                except AuthRequired:
                    console.print("[red]Not signed in. Run 'drivepush login' first.[/red]")
                    raise typer.Exit(1)
                except DriveException as e:
                    console.print(f"[red]Upload failed: {e}[/red]")
                    raise typer.Exit(1)

        console.print(f"[green]Uploaded:[/green] {result.display_name}")
        console.print(f"Id: {result.remote_id}")
        console.print(f"Size: {result.byte_size:,} bytes")
        if result.view_link:
            console.print(f"Link: {result.view_link}")

    try:
        run_async(do_upload())
    except KeyboardInterrupt:
        console.print("[yellow]Upload interrupted; run the same command again to resume[/yellow]")
        raise typer.Exit(130)


@app.command()
def download(
    file: str = typer.Argument(..., help="File id or share link"),
    output: Path = typer.Option(None, "--output", "-o", help="Output file path"),
    client_id: str = ClientIdOption,
    client_secret: str = ClientSecretOption,
    refresh_token: str = RefreshTokenOption,
):
    """Download a file from Drive."""
    from drivepush import DriveClient, DriveException

    async def do_download():
        file_id = DriveClient.extract_drive_file_id(file)
        async with make_client(client_id, client_secret, refresh_token) as drive:
            with console.status(f"Downloading {file_id}..."):
                try:
                    data = await drive.download_as_bytes(file_id)
                except DriveException as e:
                    console.print(f"[red]Download failed: {e}[/red]")
                    raise typer.Exit(1)

        output_path = output or Path(file_id)
        output_path.write_bytes(data)
        console.print(f"[green]Downloaded:[/green] {output_path} ({len(data):,} bytes)")

    run_async(do_download())


@app.command()
def mkdir(
    name: str = typer.Argument(..., help="Folder name"),
    parent: str = typer.Option(None, "--parent", "-p", help="Parent folder id"),
    share_with: str = typer.Option(None, "--share-with", help="Share the folder with this address"),
    client_id: str = ClientIdOption,
    client_secret: str = ClientSecretOption,
    refresh_token: str = RefreshTokenOption,
):
    """Create a folder (or reuse an existing one with the same name)."""
    from drivepush import DriveException

    async def do_mkdir():
        async with make_client(client_id, client_secret, refresh_token) as drive:
            try:
                folder_id = await drive.find_folder(name, parent)
                if folder_id:
                    console.print(f"[yellow]Folder exists:[/yellow] {name}")
                else:
                    folder_id = await drive.create_folder(name, parent)
                    console.print(f"[green]Created folder:[/green] {name}")
                if share_with and not await drive.share_folder(folder_id, share_with):
                    console.print(f"[yellow]Could not share folder with {share_with}[/yellow]")
            except DriveException as e:
                console.print(f"[red]{e}[/red]")
                raise typer.Exit(1)
            console.print(f"Id: {folder_id}")

    run_async(do_mkdir())


@app.command()
def rm(
    file: str = typer.Argument(..., help="File id or share link"),
    force: bool = typer.Option(False, "-f", "--force", help="Force delete without confirmation"),
    client_id: str = ClientIdOption,
    client_secret: str = ClientSecretOption,
    refresh_token: str = RefreshTokenOption,
):
    """Delete a file or folder."""
    from drivepush import DriveClient, DriveException

    file_id = DriveClient.extract_drive_file_id(file)
    if not force and not typer.confirm(f"Delete {file_id}?"):
        raise typer.Abort()

    async def do_rm():
        async with make_client(client_id, client_secret, refresh_token) as drive:
            try:
                await drive.delete_file(file_id)
            except DriveException as e:
                console.print(f"[red]{e}[/red]")
                raise typer.Exit(1)
        console.print(f"[green]Deleted:[/green] {file_id}")

    run_async(do_rm())


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
