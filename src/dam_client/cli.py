# cli.py
import functools
import logging
import sys

import click

from dam_client.client import DamClient
from dam_client.config.settings import configure_logging, get_settings
from dam_client.errors import DamClientError
from dam_client.permissions import role_display_name
from dam_client.schemas import AssetFilters, AssetStatus, AuditFilters, UploadMetadata
from dam_client.uploads import UploadStatus

# Configure logging
logger = logging.getLogger(__name__)


def handle_errors(func):
    """Turn client errors into a one-line message and exit code 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DamClientError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return wrapper


def _restored_client(ctx: click.Context) -> DamClient:
    client: DamClient = ctx.obj
    if client.auth.restore_session() is None:
        raise click.ClickException("Not logged in. Run `dam login` first.")
    return client


@click.group()
@click.pass_context
def cli(ctx):
    """Command line access to the digital asset manager"""
    configure_logging()
    ctx.obj = DamClient.from_settings(
        on_session_expired=lambda: click.echo("Session expired, please run `dam login`.", err=True),
    )


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  API Base URL: {settings.api_base_url}")
    print(f"  Request Timeout: {settings.request_timeout}s")
    print(f"  Upload Timeout: {settings.upload_timeout or 'transport default'}")
    print(f"  Upload Workers: {settings.upload_max_workers}")
    print(f"  Token Store: {settings.token_store_path}")
    print(f"  Cache TTL: {settings.cache_ttl_seconds}")
    print(f"  Log Level: {settings.log_level}")


# ---- session ----

@cli.command()
@click.option("--username", prompt=True, help="Account username")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
@handle_errors
def login(ctx, username, password):
    """Log in and store the session tokens"""
    client: DamClient = ctx.obj
    user = client.auth.login(username, password)
    click.echo(f"Logged in as {user.username} ({role_display_name(user.role)})")


@cli.command()
@click.pass_context
def logout(ctx):
    """Forget the stored session"""
    ctx.obj.auth.logout()
    click.echo("Logged out")


@cli.command()
@click.pass_context
@handle_errors
def whoami(ctx):
    """Show the current user and what they may do"""
    client = _restored_client(ctx)
    user = client.auth.current_user
    click.echo(f"{user.username} <{user.email}> role={role_display_name(user.role)}")
    click.echo("Permissions: " + ", ".join(client.permissions.granted()))


# ---- assets ----

@cli.group()
def assets():
    """Browse and manage assets"""


@assets.command("list")
@click.option("--page", type=int, default=None)
@click.option("--page-size", type=int, default=None)
@click.option("--search", default=None)
@click.option("--folder", default=None, help="Folder ID")
@click.option("--tag", default=None, help="Tag ID")
@click.option("--status", type=click.Choice([s.value for s in AssetStatus]), default=None)
@click.option("--deleted/--no-deleted", default=None, help="Show soft-deleted assets")
@click.pass_context
@handle_errors
def list_assets(ctx, page, page_size, search, folder, tag, status, deleted):
    """List assets"""
    client = _restored_client(ctx)
    filters = AssetFilters(
        page=page, page_size=page_size, search=search, folder=folder,
        tag=tag, status=status, deleted=deleted,
    )
    result = client.assets.list_assets(filters)
    for item in result.results:
        click.echo(f"{item.id}  {item.status.value:<8}  {item.size_bytes:>10}  {item.filename_original}")
    click.echo(f"{len(result.results)} of {result.count} assets")


@assets.command("show")
@click.argument("asset_id")
@click.pass_context
@handle_errors
def show_asset(ctx, asset_id):
    """Show one asset"""
    client = _restored_client(ctx)
    asset = client.assets.get_asset(asset_id)
    click.echo(asset.model_dump_json(indent=2))


@assets.command("approve")
@click.argument("asset_id")
@click.pass_context
@handle_errors
def approve_asset(ctx, asset_id):
    """Approve an asset"""
    client = _restored_client(ctx)
    if not client.permissions.can_edit:
        raise click.ClickException("Your role cannot approve assets")
    asset = client.assets.approve_asset(asset_id)
    click.echo(f"Approved {asset.filename_original}")


@assets.command("delete")
@click.argument("asset_id")
@click.pass_context
@handle_errors
def delete_asset(ctx, asset_id):
    """Soft-delete an asset"""
    client = _restored_client(ctx)
    if not client.permissions.can_delete:
        raise click.ClickException("Your role cannot delete assets")
    client.assets.delete_asset(asset_id)
    click.echo(f"Deleted {asset_id}")


@assets.command("restore")
@click.argument("asset_id")
@click.pass_context
@handle_errors
def restore_asset(ctx, asset_id):
    """Restore a soft-deleted asset"""
    client = _restored_client(ctx)
    asset = client.assets.restore_asset(asset_id)
    click.echo(f"Restored {asset.filename_original}")


# ---- uploads ----

@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--folder", default=None, help="Target folder ID")
@click.option("--tag", "tag_ids", multiple=True, help="Tag ID (repeatable)")
@click.option("--status", type=click.Choice([s.value for s in AssetStatus]), default=None)
@click.option("--alt-text", default=None)
@click.option("--caption", default=None)
@click.pass_context
@handle_errors
def upload(ctx, files, folder, tag_ids, status, alt_text, caption):
    """Upload one or more files"""
    client = _restored_client(ctx)
    if not client.permissions.can_upload:
        raise click.ClickException("Your role cannot upload files")

    client.uploads.add_listener(lambda progress: click.echo(str(progress)))
    metadata = UploadMetadata(
        tag_ids=list(tag_ids) or None,
        status=status,
        alt_text=alt_text,
        caption=caption,
    )
    tasks = client.uploads.upload_many(files, folder=folder, metadata=metadata)

    failed = [task for task in tasks if task.status == UploadStatus.ERROR]
    click.echo(f"Uploaded {len(tasks) - len(failed)}/{len(tasks)} files")
    if failed:
        sys.exit(1)


# ---- folders ----

@cli.group()
def folders():
    """Manage folders"""


@folders.command("list")
@click.pass_context
@handle_errors
def list_folders(ctx):
    """List folders"""
    client = _restored_client(ctx)
    for folder in client.folders.list_folders():
        click.echo(f"{folder.id}  {folder.full_path or folder.name}")


@folders.command("create")
@click.argument("name")
@click.option("--parent", default=None, help="Parent folder ID")
@click.pass_context
@handle_errors
def create_folder(ctx, name, parent):
    """Create a folder"""
    client = _restored_client(ctx)
    folder = client.folders.create_folder(name, parent=parent)
    click.echo(f"Created folder {folder.id}")


@folders.command("rename")
@click.argument("folder_id")
@click.argument("name")
@click.pass_context
@handle_errors
def rename_folder(ctx, folder_id, name):
    """Rename a folder"""
    client = _restored_client(ctx)
    folder = client.folders.update_folder(folder_id, name=name)
    click.echo(f"Renamed folder to {folder.name}")


@folders.command("delete")
@click.argument("folder_id")
@click.pass_context
@handle_errors
def delete_folder(ctx, folder_id):
    """Delete a folder"""
    client = _restored_client(ctx)
    client.folders.delete_folder(folder_id)
    click.echo(f"Deleted folder {folder_id}")


# ---- tags ----

@cli.group()
def tags():
    """Manage tags"""


@tags.command("list")
@click.pass_context
@handle_errors
def list_tags(ctx):
    """List tags"""
    client = _restored_client(ctx)
    for tag in client.tags.list_tags():
        click.echo(f"{tag.id}  {tag.name}")


@tags.command("create")
@click.argument("name")
@click.pass_context
@handle_errors
def create_tag(ctx, name):
    """Create a tag"""
    client = _restored_client(ctx)
    tag = client.tags.create_tag(name)
    click.echo(f"Created tag {tag.id}")


@tags.command("rename")
@click.argument("tag_id")
@click.argument("name")
@click.pass_context
@handle_errors
def rename_tag(ctx, tag_id, name):
    """Rename a tag"""
    client = _restored_client(ctx)
    tag = client.tags.update_tag(tag_id, name)
    click.echo(f"Renamed tag to {tag.name}")


@tags.command("delete")
@click.argument("tag_id")
@click.pass_context
@handle_errors
def delete_tag(ctx, tag_id):
    """Delete a tag"""
    client = _restored_client(ctx)
    client.tags.delete_tag(tag_id)
    click.echo(f"Deleted tag {tag_id}")


# ---- audit ----

@cli.command()
@click.option("--page", type=int, default=1)
@click.option("--action", default=None, help="Only entries with this action")
@click.pass_context
@handle_errors
def audit(ctx, page, action):
    """Show the audit log"""
    client = _restored_client(ctx)
    if not client.permissions.can_view_audit:
        raise click.ClickException("Your role cannot view the audit log")
    result = client.audit.list_audit_logs(AuditFilters(page=page, action=action))
    for entry in result.results:
        when = entry.created_at.isoformat() if entry.created_at else "-"
        click.echo(f"{when}  {entry.actor_username or '-':<12}  {entry.action:<16}  {entry.target_type}:{entry.target_id}")
    click.echo(f"Page {page}, {result.count} entries total")


if __name__ == "__main__":
    cli()
