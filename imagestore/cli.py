"""
ImageStore Command-Line Interface

Album and image management against the configured blob store.
"""

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click

from imagestore import __version__
from imagestore.core.config_manager import ConfigManager, ImageStoreConfig
from imagestore.core.logging_config import set_correlation_id, setup_logging
from imagestore.exceptions import ImageStoreError
from imagestore.repository import ImageRepository
from imagestore.storage import compute_md5

logger = logging.getLogger("imagestore.cli")


def _run(ctx: click.Context, action: Callable[[ImageRepository], Awaitable[Any]]) -> Any:
    """Run an async action against a repository built from the loaded configuration."""
    config: ImageStoreConfig = ctx.obj["config"]

    async def runner():
        # One correlation id for every repository call made by this command
        set_correlation_id()
        async with ImageRepository.from_config(config) as repository:
            return await action(repository)

    try:
        return asyncio.run(runner())
    except ImageStoreError as e:
        click.echo(f"[ERROR] {e.error_code}: {e.message}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="imagestore")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level (overrides configuration)",
)
@click.pass_context
def cli(ctx, config: Optional[Path], log_level: Optional[str]):
    """
    ImageStore - versioned image albums on block blob storage.

    Storage is selected by configuration (storage.type, or
    IMAGESTORE_STORAGE_TYPE). Use "azure" for albums that outlive the
    command: the default "memory" store is created empty for every
    invocation and discarded when it exits, so it only suits trying out a
    single command.
    """
    ctx.ensure_object(dict)
    overrides = {"logging": {"level": log_level.upper()}} if log_level else None
    loaded = ConfigManager().load(
        config_file=str(config) if config else None,
        cli_overrides=overrides,
    )
    setup_logging(
        level=loaded.logging.level,
        format_type=loaded.logging.format,
        log_file=loaded.logging.file,
        rotation_bytes=loaded.logging.rotation_bytes,
        rotation_count=loaded.logging.rotation_count,
        module_levels=loaded.logging.module_levels,
    )
    ctx.obj["config"] = loaded


@cli.command()
@click.pass_context
def albums(ctx):
    """List albums."""
    names = _run(ctx, lambda repository: repository.list_containers())
    for name in sorted(names):
        click.echo(name)


@cli.command("delete-album")
@click.argument("name")
@click.pass_context
def delete_album(ctx, name: str):
    """Delete an album and everything in it."""
    _run(ctx, lambda repository: repository.delete_container(name))
    click.echo(f"Deleted album {name}")


@cli.command()
@click.argument("album")
@click.argument("pathname")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--content-type", default=None, help="Content type (guessed from the file name when omitted)")
@click.option(
    "--chunk-size",
    default=None,
    type=click.IntRange(min=1),
    help="Upload in chunks of this many bytes instead of in one request",
)
@click.pass_context
def upload(ctx, album: str, pathname: str, source: Path, content_type: Optional[str], chunk_size: Optional[int]):
    """
    Upload SOURCE as ALBUM/PATHNAME.

    Examples:
        imagestore upload trip 2024/06/01/raw/a.jpg ./a.jpg
        imagestore upload trip 2024/06/01/raw/a.jpg ./a.jpg --chunk-size 1048576
    """
    content_type = content_type or mimetypes.guess_type(source.name)[0]
    data = source.read_bytes()

    async def whole(repository: ImageRepository):
        return await repository.upload_whole(album, pathname, data, content_type)

    async def chunked(repository: ImageRepository):
        await repository.begin_chunked(album, pathname)
        chunk_ids = []
        for index, offset in enumerate(range(0, len(data), chunk_size)):
            chunk = data[offset:offset + chunk_size]
            # Equal-length ids, as block blob storage requires
            chunk_id = f"{index:08d}"
            await repository.put_chunk(album, pathname, chunk_id, chunk, compute_md5(chunk))
            chunk_ids.append(chunk_id)
        return await repository.commit_chunked(album, pathname, chunk_ids, content_type)

    # An empty file has no chunks to commit
    result = _run(ctx, chunked if chunk_size and data else whole)
    click.echo(f"Uploaded {album}/{pathname} ({result.content_length} bytes)")
    if result.previous_version:
        click.echo(f"Previous version: {result.previous_version}")


@cli.command("list")
@click.argument("album")
@click.option("--prefix", default="", help="Only list images under this prefix")
@click.option(
    "--page-size",
    default=None,
    type=click.IntRange(min=1),
    help="Images per listing request (defaults to repository.default_page_size)",
)
@click.pass_context
def list_images(ctx, album: str, prefix: str, page_size: Optional[int]):
    """List the images in an album, following continuation ids to the end."""

    async def action(repository: ImageRepository):
        names = []
        continuation_id = None
        while True:
            page = await repository.list_images(album, prefix, continuation_id, page_size)
            names.extend(image.name for image in page.images)
            continuation_id = page.continuation_id
            if continuation_id is None:
                return names

    for name in _run(ctx, action):
        click.echo(name)


@cli.command()
@click.argument("album")
@click.argument("pathname")
@click.argument("output", type=click.Path(dir_okay=False, writable=True, path_type=Path))
@click.option("--snapshot", default=None, help="Download this preserved version instead of the current one")
@click.pass_context
def download(ctx, album: str, pathname: str, output: Path, snapshot: Optional[str]):
    """Download ALBUM/PATHNAME to OUTPUT."""
    image = _run(ctx, lambda repository: repository.get_image(album, pathname, snapshot))
    output.write_bytes(image.content)
    click.echo(f"Saved {len(image.content)} bytes ({image.content_type}) to {output}")


@cli.command()
@click.argument("album")
@click.argument("pathname")
@click.pass_context
def versions(ctx, album: str, pathname: str):
    """List preserved versions of an image."""
    for version in _run(ctx, lambda repository: repository.list_image_versions(album, pathname)):
        click.echo(f"{version.snapshot_id}  {version.content_length:>10}  {version.content_type}")


@cli.command()
@click.argument("source_album")
@click.argument("pathname")
@click.argument("target_album")
@click.pass_context
def copy(ctx, source_album: str, pathname: str, target_album: str):
    """Start copying an image into another album. Prints the copy id."""
    click.echo(_run(ctx, lambda repository: repository.copy_image(source_album, pathname, target_album)))


@cli.command("abort-copy")
@click.argument("album")
@click.argument("pathname")
@click.argument("copy_id")
@click.pass_context
def abort_copy(ctx, album: str, pathname: str, copy_id: str):
    """Abort a pending copy into ALBUM/PATHNAME."""
    _run(ctx, lambda repository: repository.abort_copy(album, pathname, copy_id))
    click.echo(f"Abort requested for copy {copy_id}")


@cli.command()
@click.argument("album")
@click.argument("pathname")
@click.pass_context
def delete(ctx, album: str, pathname: str):
    """Delete an image and its versions."""
    _run(ctx, lambda repository: repository.delete_image(album, pathname))
    click.echo(f"Deleted {album}/{pathname}")


@cli.command()
def version():
    """Show ImageStore version."""
    click.echo(f"ImageStore version {__version__}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
