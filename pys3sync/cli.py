"""CLI interface for pys3sync."""

import logging
import sys
from pathlib import Path
from typing import Any, Iterator, Optional

import click

from . import __version__
from .api import S3Client
from .cli_progress import run_sync_with_progress
from .config import Config
from .exceptions import InvalidLocatorError, ListingError, S3SyncError
from .locator import RemoteLocator, parse_remote
from .merge import MergeEngine, MergeOptions
from .models import ListResult, ObjectEntry
from .multipart import clean_uploads, list_uploads
from .objects import (
    download_object,
    put_file,
    put_file_multipart,
    range_header,
    stream_object,
    target_locator,
    write_tar,
)
from .output import OutputFormatter
from .raw import parse_header, signed_request
from .sync import SyncEngine, SyncOptions, SyncPair
from .sync.catalog import RemoteCatalogBuilder
from .utils import DEFAULT_CONTENT_TYPE, LIST_PAGE_SIZE, PRESIGN_EXPIRES, PUT_SPLIT_SIZE

logger = logging.getLogger(__name__)

MIB = 1024 * 1024


def _get_client(ctx: Any) -> S3Client:
    """Build a client from the resolved configuration and global options."""
    cfg: Config = ctx.obj["config"]
    settings = cfg.to_settings(**ctx.obj["overrides"])
    if settings.debug:
        logging.getLogger("pys3sync").setLevel(logging.DEBUG)
    client = S3Client(settings)
    ctx.call_on_close(client.close)
    return client


def _remote_args(urls: tuple[str, ...]) -> list[RemoteLocator]:
    return [parse_remote(url) for url in urls]


def _pages(
    client: S3Client, bucket: str, prefix: str, delimiter: str
) -> Iterator[ListResult]:
    """Yield listing pages until the listing is no longer truncated."""
    marker = ""
    while True:
        page = client.list_objects(
            bucket,
            prefix=prefix,
            delimiter=delimiter,
            marker=marker,
            max_keys=LIST_PAGE_SIZE,
        )
        yield page
        if not page.truncated or not page.next_marker:
            return
        marker = page.next_marker


def _show_object(
    out: OutputFormatter, bucket: str, obj: ObjectEntry, long_format: bool
) -> dict[str, Any]:
    """Print one listed object and return its JSON row."""
    url = f"s3://{bucket}/{obj.key}"
    modified = obj.last_modified.isoformat() if obj.last_modified else ""
    if long_format:
        out.print(f"{modified:24} {obj.size:>10}  {obj.etag} {obj.owner} {url}")
    else:
        out.print(f"{modified:24} {obj.size:>10}  {url}")
    return {"type": "object", "url": url, **obj.to_dict()}


def _sources_and_dest(args: tuple[str, ...]) -> tuple[tuple[str, ...], RemoteLocator]:
    """Split ``SRC... DST`` arguments; DST must be remote."""
    if len(args) < 2:
        raise click.UsageError("Expected at least one source and a destination")
    return args[:-1], parse_remote(args[-1])


@click.group()
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON credential file (default: ~/.config/pys3sync/credential.json)",
)
@click.option(
    "--s3cfg",
    "-s",
    "s3cfg_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="s3cmd config file (default: ~/.s3cfg)",
)
@click.option("--access-key", help="Access Key ID")
@click.option("--secret-key", help="Secret Access Key")
@click.option("--endpoint", help="Endpoint URL")
@click.option("--region", help="Region name")
@click.option(
    "--force-path-style", is_flag=True, help="Use path-style bucket addressing"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="pys3sync")
@click.pass_context
def main(
    ctx: Any,
    config_file: Optional[Path],
    s3cfg_file: Optional[Path],
    access_key: Optional[str],
    secret_key: Optional[str],
    endpoint: Optional[str],
    region: Optional[str],
    force_path_style: bool,
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pys3sync - Sync directory trees with and merge objects in S3 storage."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["config"] = Config(credential_file=config_file, s3cfg_file=s3cfg_file)
    ctx.obj["overrides"] = {
        "access_key": access_key,
        "secret_key": secret_key,
        "endpoint": endpoint,
        "region": region,
        "force_path_style": force_path_style,
    }
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        # Enable debug logging for pys3sync modules
        logging.getLogger("pys3sync").setLevel(logging.DEBUG)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


# =============================================================================
# Listing
# =============================================================================


@main.command()
@click.argument("urls", nargs=-1)
@click.option("--long", "-l", "long_format", is_flag=True, help="Use long listing format")
@click.option("--recursive", "-R", is_flag=True, help="List all keys below the prefix")
@click.pass_context
def ls(ctx: Any, urls: tuple[str, ...], long_format: bool, recursive: bool) -> None:
    """List buckets, or objects below s3:// URLs.

    Examples:
        pys3sync ls                         # List buckets
        pys3sync ls s3://bucket/dir/        # List one level
        pys3sync ls -lR s3://bucket/dir/    # List everything with ETags
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)

        if not urls:
            owner, buckets = client.list_buckets()
            if out.json_output:
                out.output_json(
                    {
                        "owner": owner,
                        "buckets": [
                            {
                                "name": b.name,
                                "creation_date": (
                                    b.creation_date.isoformat()
                                    if b.creation_date
                                    else None
                                ),
                            }
                            for b in buckets
                        ],
                    }
                )
                return
            out.print(f"Owner: {owner}")
            for bucket in buckets:
                created = bucket.creation_date.isoformat() if bucket.creation_date else ""
                out.print(f"{created}  s3://{bucket.name}")
            return

        delimiter = "" if recursive else "/"
        rows: list[dict[str, Any]] = []
        failed = False
        for locator in _remote_args(urls):
            try:
                for page in _pages(client, locator.bucket, locator.key, delimiter):
                    for prefix in page.common_prefixes:
                        url = f"s3://{locator.bucket}/{prefix}"
                        rows.append({"type": "dir", "url": url})
                        out.print(f"{'':24} {'DIR':>10}  {url}")
                    for obj in page.contents:
                        rows.append(_show_object(out, locator.bucket, obj, long_format))
            except ListingError as e:
                out.error(str(e))
                failed = True

        if out.json_output:
            out.output_json(rows)
        if failed:
            ctx.exit(1)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


def _usage(builder: RemoteCatalogBuilder, bucket: str, prefix: str) -> tuple[int, int]:
    """Total size and object count below a prefix, listed recursively."""
    catalog = builder.build(bucket, prefix, delimiter="")
    return sum(e.size for e in catalog.values()), len(catalog)


def _show_usage(out: OutputFormatter, rows: list[dict[str, Any]], total: bool) -> None:
    """Print usage rows as JSON or as a table, optionally with a total row."""
    if out.json_output:
        out.output_json(rows)
        return
    table_rows = list(rows)
    if total:
        table_rows.append(
            {
                "url": "total",
                "size": sum(r["size"] for r in rows),
                "count": sum(r["count"] for r in rows),
            }
        )
    out.output_table(
        table_rows,
        ["size", "count", "url"],
        {"size": "Bytes", "count": "Objects", "url": "URL"},
    )


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.pass_context
def du(ctx: Any, urls: tuple[str, ...]) -> None:
    """Show total size and object count below s3:// URLs.

    Examples:
        pys3sync du s3://bucket/logs/ s3://bucket/data/
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        builder = RemoteCatalogBuilder(_get_client(ctx))
        rows = []
        for locator in _remote_args(urls):
            size, count = _usage(builder, locator.bucket, locator.key)
            rows.append({"url": locator.url, "size": size, "count": count})
        _show_usage(out, rows, total=len(rows) > 1)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.pass_context
def da(ctx: Any) -> None:
    """Show size and object count of every bucket."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        builder = RemoteCatalogBuilder(client)
        _, buckets = client.list_buckets()
        rows = []
        for bucket in buckets:
            size, count = _usage(builder, bucket.name, "")
            rows.append({"url": f"s3://{bucket.name}", "size": size, "count": count})
        _show_usage(out, rows, total=True)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command(name="list-all")
@click.option("--long", "-l", "long_format", is_flag=True, help="Use long listing format")
@click.pass_context
def list_all(ctx: Any, long_format: bool) -> None:
    """List every object in every bucket."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        _, buckets = client.list_buckets()
        rows: list[dict[str, Any]] = []
        failed = False
        for bucket in buckets:
            try:
                for page in _pages(client, bucket.name, "", ""):
                    for obj in page.contents:
                        rows.append(_show_object(out, bucket.name, obj, long_format))
            except ListingError as e:
                out.error(str(e))
                failed = True

        if out.json_output:
            out.output_json(rows)
        if failed:
            ctx.exit(1)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command(name="url")
@click.argument("urls", nargs=-1, required=True)
@click.option("--recursive", "-R", is_flag=True, help="Include every key below the prefix")
@click.option(
    "--expires",
    type=click.IntRange(min=1),
    default=PRESIGN_EXPIRES,
    show_default=True,
    help="Lifetime of the URLs in seconds",
)
@click.pass_context
def list_url(ctx: Any, urls: tuple[str, ...], recursive: bool, expires: int) -> None:
    """Print pre-signed GET URLs for the objects below s3:// URLs.

    Examples:
        pys3sync url s3://bucket/reports/
        pys3sync url -R --expires 600 s3://bucket/reports/
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        delimiter = "" if recursive else "/"
        rows = []
        for locator in _remote_args(urls):
            for page in _pages(client, locator.bucket, locator.key, delimiter):
                for obj in page.contents:
                    signed = client.presigned_url(locator.bucket, obj.key, expires)
                    rows.append({"url": f"s3://{locator.bucket}/{obj.key}", "signed": signed})
                    out.print(signed)

        if out.json_output:
            out.output_json(rows)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.pass_context
def exists(ctx: Any, urls: tuple[str, ...]) -> None:
    """Check that objects exist; exit with status 1 at the first missing one."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        for locator in _remote_args(urls):
            if not client.object_exists(locator.bucket, locator.key):
                out.error(f"{locator} does not exist")
                ctx.exit(1)
                return
            out.print(locator.url)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.pass_context
def head(ctx: Any, urls: tuple[str, ...]) -> None:
    """Show the response headers of objects."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        rows = []
        for locator in _remote_args(urls):
            headers = client.head_object(locator.bucket, locator.key)
            rows.append({"url": locator.url, "headers": headers})
            out.print(locator.url)
            for name, value in headers.items():
                out.print(f"{name}: {value}")
            out.print()

        if out.json_output:
            out.output_json(rows)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--recursive", "-R", is_flag=True, help="Delete every key below the prefix")
@click.pass_context
def rm(ctx: Any, urls: tuple[str, ...], recursive: bool) -> None:
    """Delete objects.

    Without -R each URL names one key; with -R every object below the
    prefix is deleted with quiet batch deletes.

    Examples:
        pys3sync rm s3://bucket/file.txt
        pys3sync rm -R s3://bucket/old/
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        results = []
        for locator in _remote_args(urls):
            if not recursive:
                client.delete_object(locator.bucket, locator.key)
                out.success(f"Deleted {locator}")
                results.append({"url": locator.url, "deleted": 1, "errors": []})
                continue

            catalog = RemoteCatalogBuilder(client).build(
                locator.bucket, locator.key, delimiter=""
            )
            keys = sorted(locator.key + key for key in catalog)
            errors = client.delete_objects(locator.bucket, keys, quiet=True) if keys else []
            for error in errors:
                out.error(
                    f"s3://{locator.bucket}/{error.get('Key', '')}: "
                    f"{error.get('Code', '')} {error.get('Message', '')}"
                )
            out.success(f"Deleted {len(keys) - len(errors)} object(s) below {locator}")
            results.append(
                {
                    "url": locator.url,
                    "deleted": len(keys) - len(errors),
                    "errors": errors,
                }
            )

        if out.json_output:
            out.output_json(results)
        if any(r["errors"] for r in results):
            ctx.exit(1)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


main.add_command(ls, name="list")
main.add_command(rm, name="del")
main.add_command(list_all, name="la")
main.add_command(list_url, name="list-url")


# =============================================================================
# Objects
# =============================================================================


@main.command()
@click.argument("args", nargs=-1, required=True)
@click.option(
    "--content-type",
    "-t",
    default=DEFAULT_CONTENT_TYPE,
    show_default=True,
    help="Content type of the new objects",
)
@click.pass_context
def put(ctx: Any, args: tuple[str, ...], content_type: str) -> None:
    """Upload local files with one request each.

    With several files, or a destination ending in '/', every file is
    stored below the destination under its own name.

    Examples:
        pys3sync put report.pdf s3://bucket/docs/report.pdf
        pys3sync put a.txt b.txt s3://bucket/texts/
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        sources, dest = _sources_and_dest(args)
        client = _get_client(ctx)
        results = []
        for name in sources:
            path = Path(name)
            if not path.is_file():
                out.error(f"Not a file: {name}")
                ctx.exit(1)
                return
            target = target_locator(dest, path.name, many=len(sources) > 1)
            result = put_file(client, path, target, content_type)
            out.success(f"{path} => {target} ({out.format_size(result.size)})")
            results.append(result.to_dict())

        if out.json_output:
            out.output_json(results)

    except (S3SyncError, OSError) as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("args", nargs=-1, required=True)
@click.option(
    "--split",
    type=int,
    default=PUT_SPLIT_SIZE // MIB,
    show_default=True,
    help="Part size in MiB",
)
@click.option(
    "--content-type",
    "-t",
    default=DEFAULT_CONTENT_TYPE,
    show_default=True,
    help="Content type of the new objects",
)
@click.pass_context
def putmulti(ctx: Any, args: tuple[str, ...], split: int, content_type: str) -> None:
    """Upload local files as multipart uploads.

    A failed upload is aborted so no parts are left behind.

    Examples:
        pys3sync putmulti disk.img s3://bucket/images/
        pys3sync putmulti --split 64 big.tar s3://bucket/big.tar
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        sources, dest = _sources_and_dest(args)
        client = _get_client(ctx)
        results = []
        for name in sources:
            path = Path(name)
            if not path.is_file():
                out.error(f"Not a file: {name}")
                ctx.exit(1)
                return
            target = target_locator(dest, path.name, many=len(sources) > 1)
            result = put_file_multipart(
                client, path, target, split * MIB, content_type
            )
            out.success(
                f"{path} => {target} "
                f"({out.format_size(result.size)}, {max(result.parts, 1)} part(s))"
            )
            results.append(result.to_dict())

        if out.json_output:
            out.output_json(results)

    except (S3SyncError, OSError, ValueError) as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    help="Directory to write the files into (default: current directory)",
)
@click.pass_context
def get(ctx: Any, urls: tuple[str, ...], output_dir: Path) -> None:
    """Download objects into files named after the last part of their keys.

    Examples:
        pys3sync get s3://bucket/docs/report.pdf
        pys3sync get -o /tmp s3://bucket/a.txt s3://bucket/b.txt
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        results = []
        for locator in _remote_args(urls):
            name = locator.key.rsplit("/", 1)[-1]
            if not name:
                out.error(f"{locator} does not name an object")
                ctx.exit(1)
                return
            output_dir.mkdir(parents=True, exist_ok=True)
            target = output_dir / name
            written = download_object(client, locator, target)
            out.success(f"{locator} => {target} ({out.format_size(written)})")
            results.append({"url": locator.url, "path": str(target), "size": written})

        if out.json_output:
            out.output_json(results)

    except (S3SyncError, OSError) as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--recursive", "-R", is_flag=True, help="Write every object below the prefix"
)
@click.pass_context
def cat(ctx: Any, urls: tuple[str, ...], recursive: bool) -> None:
    """Write objects to standard output.

    With -R every non-empty object below each prefix is written in key order.

    Examples:
        pys3sync cat s3://bucket/notes.txt
        pys3sync cat -R s3://bucket/logs/2024-01-01/ | gzip > day.log.gz
    """
    out: OutputFormatter = ctx.obj["out"]
    stdout = click.get_binary_stream("stdout")

    try:
        client = _get_client(ctx)
        for locator in _remote_args(urls):
            if not recursive:
                stream_object(client, locator, stdout)
                continue
            catalog = RemoteCatalogBuilder(client).build(
                locator.bucket, locator.key, delimiter=""
            )
            for key in sorted(catalog):
                if catalog[key].size:
                    source = RemoteLocator(locator.bucket, locator.key + key)
                    stream_object(client, source, stdout)
        stdout.flush()

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--range",
    "-r",
    "byte_range",
    required=True,
    help="Byte range: FIRST-LAST, FIRST- or -SUFFIX",
)
@click.pass_context
def getrange(ctx: Any, urls: tuple[str, ...], byte_range: str) -> None:
    """Write the same byte range of each object to standard output.

    Examples:
        pys3sync getrange -r 0-99 s3://bucket/big.bin
        pys3sync getrange -r -512 s3://bucket/big.bin
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        headers = range_header(byte_range)
    except ValueError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    try:
        client = _get_client(ctx)
        stdout = click.get_binary_stream("stdout")
        for locator in _remote_args(urls):
            stream_object(client, locator, stdout, headers=headers)
        stdout.flush()

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("args", nargs=-1, required=True)
@click.pass_context
def copy(ctx: Any, args: tuple[str, ...]) -> None:
    """Copy objects server-side.

    Examples:
        pys3sync copy s3://a/data.csv s3://b/data.csv
        pys3sync copy s3://a/x s3://a/y s3://b/archive/
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        names, dest = _sources_and_dest(args)
        sources = _remote_args(names)
        client = _get_client(ctx)
        results = []
        for source in sources:
            target = target_locator(dest, source.key, many=len(sources) > 1)
            etag = client.copy_object(
                target.bucket, target.key, source.bucket, source.key
            )
            out.success(f"{source} => {target}")
            results.append({"source": source.url, "url": target.url, "etag": etag})

        if out.json_output:
            out.output_json(results)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--gzip", "-z", "compress", is_flag=True, help="Compress the archive")
@click.option(
    "--file",
    "-f",
    "archive_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Archive file to write (default: standard output)",
)
@click.pass_context
def tar(
    ctx: Any, urls: tuple[str, ...], compress: bool, archive_file: Optional[Path]
) -> None:
    """Archive every object below s3:// prefixes as a tar stream.

    Members are named BUCKET/KEY.

    Examples:
        pys3sync tar -f backup.tar s3://bucket/docs/
        pys3sync tar -z s3://bucket/logs/ > logs.tar.gz
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        prefixes = _remote_args(urls)
        client = _get_client(ctx)
        if archive_file is None:
            stdout = click.get_binary_stream("stdout")
            count = write_tar(client, prefixes, stdout, compress)
        else:
            with open(archive_file, "wb") as f:
                count = write_tar(client, prefixes, f, compress)
            out.success(f"Archived {count} object(s) into {archive_file}")
        logger.debug(f"Archived {count} object(s)")

    except (S3SyncError, OSError) as e:
        out.error(str(e))
        ctx.exit(1)


main.add_command(put, name="write")
main.add_command(putmulti, name="pm")
main.add_command(get, name="read")
main.add_command(cat, name="dd")
main.add_command(getrange, name="readrange")
main.add_command(copy, name="cp")


# =============================================================================
# Buckets
# =============================================================================


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--acl",
    default="private",
    show_default=True,
    help="Canned ACL of the new buckets",
)
@click.pass_context
def makebucket(ctx: Any, urls: tuple[str, ...], acl: str) -> None:
    """Create buckets.

    Examples:
        pys3sync makebucket s3://new-bucket
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        for locator in _remote_args(urls):
            client.create_bucket(locator.bucket, acl=acl)
            out.success(f"Created s3://{locator.bucket}")

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.pass_context
def removebucket(ctx: Any, urls: tuple[str, ...]) -> None:
    """Delete empty buckets.

    Examples:
        pys3sync removebucket s3://old-bucket
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        for locator in _remote_args(urls):
            client.delete_bucket(locator.bucket)
            out.success(f"Removed s3://{locator.bucket}")

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


main.add_command(makebucket, name="mb")
main.add_command(removebucket, name="rb")


# =============================================================================
# Sync and merge
# =============================================================================


@main.command()
@click.argument("source", type=str)
@click.argument("dest", type=str)
@click.option(
    "--parallel",
    "-p",
    type=int,
    default=1,
    help="Number of parallel transfer workers (default: 1)",
)
@click.option(
    "--size-only",
    "-s",
    is_flag=True,
    help="Compare sizes only, skip content digests",
)
@click.option(
    "--delete",
    "-d",
    is_flag=True,
    help="Delete destination files that are absent from the source",
)
@click.option(
    "--dry-run", "-n", is_flag=True, help="Show what would be synced without syncing"
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.pass_context
def sync(
    ctx: Any,
    source: str,
    dest: str,
    parallel: int,
    size_only: bool,
    delete: bool,
    dry_run: bool,
    no_progress: bool,
) -> None:
    """Make DEST mirror SOURCE.

    SOURCE and DEST are local directories or s3:// prefixes; at least one
    must be remote.

    Examples:
        pys3sync sync ./photos s3://bucket/photos          # Upload changes
        pys3sync sync s3://bucket/photos ./photos -p 8     # Download, 8 workers
        pys3sync sync s3://a/data s3://b/data -d           # Copy and delete extras
        pys3sync sync ./data s3://bucket/data -n           # Preview changes
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        options = SyncOptions(
            parallelism=parallel,
            verify_content=not size_only,
            delete=delete,
            dry_run=dry_run,
        )
    except ValueError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    try:
        pair = SyncPair(source=source, dest=dest, options=options)
        client = _get_client(ctx)
        engine = SyncEngine(client, out)
        report = run_sync_with_progress(
            engine,
            pair,
            show_progress=not (no_progress or out.quiet or out.json_output),
        )
    except KeyboardInterrupt:
        out.warning("Sync cancelled by user")
        ctx.exit(130)
        return
    except InvalidLocatorError as e:
        out.error(f"Invalid location: {e}")
        ctx.exit(1)
        return
    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(report.to_dict())
    if not report.success:
        ctx.exit(1)


@main.command()
@click.argument("dest", type=str)
@click.argument("sources", nargs=-1, required=True)
@click.option(
    "--content-type",
    "-t",
    default=DEFAULT_CONTENT_TYPE,
    show_default=True,
    help="Content type of the merged object",
)
@click.option("--dry-run", "-n", is_flag=True, help="Show the plan without merging")
@click.option(
    "--part-threshold",
    type=int,
    default=5,
    show_default=True,
    help="Size in MiB above which a source is copied as a part server-side",
)
@click.pass_context
def merge(
    ctx: Any,
    dest: str,
    sources: tuple[str, ...],
    content_type: str,
    dry_run: bool,
    part_threshold: int,
) -> None:
    """Concatenate the objects below SOURCES into the object DEST.

    Sources are listed recursively and merged in URL order.

    Examples:
        pys3sync merge s3://bucket/all.log s3://bucket/logs/
        pys3sync merge -n s3://bucket/big.bin s3://bucket/chunks/
    """
    out: OutputFormatter = ctx.obj["out"]

    if part_threshold < 5:
        out.error("Part threshold must be at least 5 MiB")
        ctx.exit(1)
        return

    try:
        destination = parse_remote(dest)
        source_locators = _remote_args(sources)
        client = _get_client(ctx)
        engine = MergeEngine(client)
        outcome = engine.merge(
            source_locators,
            destination,
            MergeOptions(
                part_threshold=part_threshold * MIB,
                dry_run=dry_run,
                content_type=content_type,
            ),
        )
    except S3SyncError as e:
        upload_id = getattr(e, "upload_id", "")
        out.error(str(e))
        if upload_id:
            out.info(
                f"Multipart upload {upload_id} was left open; inspect it with "
                f"'pys3sync listmulti -l' and remove it with "
                f"'pys3sync cleanmulti --id {upload_id}'"
            )
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(outcome.to_dict())
        return

    out.print_summary(
        "Merge plan" if dry_run else "Merge",
        [
            (
                "Copy",
                f"{outcome.copy_count} object(s), "
                f"{out.format_size(outcome.copy_bytes)}",
            ),
            (
                "Download",
                f"{outcome.buffer_count} object(s), "
                f"{out.format_size(outcome.buffer_bytes)}",
            ),
            ("Path", outcome.path.value),
            ("Parts", str(len(outcome.parts))),
        ],
    )
    if not dry_run and outcome.source_count:
        out.success(f"Merged {outcome.source_count} object(s) into {destination}")


main.add_command(merge, name="join")


# =============================================================================
# Multipart maintenance
# =============================================================================


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--long", "-l", "long_format", is_flag=True, help="Show uploaded parts")
@click.option("--recursive", "-R", is_flag=True, help="Include sub-prefixes")
@click.pass_context
def listmulti(
    ctx: Any, urls: tuple[str, ...], long_format: bool, recursive: bool
) -> None:
    """List unfinished multipart uploads."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        rows = []
        for locator in _remote_args(urls):
            listing = list_uploads(
                client,
                locator.bucket,
                locator.key,
                recursive=recursive,
                with_parts=long_format or out.json_output,
            )
            for prefix in listing.prefixes:
                out.print(f"{'':24} {'DIR':>10}  s3://{locator.bucket}/{prefix}")
            for summary in listing.uploads:
                out.print(summary.to_text(long_format))
                rows.append(
                    {
                        "url": summary.session.url,
                        "upload_id": summary.session.upload_id,
                        "initiated": (
                            summary.session.initiated.isoformat()
                            if summary.session.initiated
                            else None
                        ),
                        "parts": [
                            {"number": p.number, "etag": p.etag, "size": p.size}
                            for p in summary.parts
                        ],
                        "current_size": summary.current_size,
                    }
                )

        if out.json_output:
            out.output_json(rows)

    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--recursive", "-R", is_flag=True, help="Include sub-prefixes")
@click.option(
    "--complete",
    is_flag=True,
    help="Complete uploads with the parts already uploaded instead of aborting",
)
@click.option("--id", "upload_id", help="Only act on the upload with this id")
@click.pass_context
def cleanmulti(
    ctx: Any,
    urls: tuple[str, ...],
    recursive: bool,
    complete: bool,
    upload_id: Optional[str],
) -> None:
    """Abort (or complete) unfinished multipart uploads."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = _get_client(ctx)
        results = []
        for locator in _remote_args(urls):
            results.extend(
                clean_uploads(
                    client,
                    locator.bucket,
                    locator.key,
                    recursive=recursive,
                    upload_id=upload_id,
                    complete=complete,
                )
            )
    except S3SyncError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json([r.to_dict() for r in results])
    else:
        for result in results:
            label = f"{result.session.url}  {result.session.upload_id}"
            if result.success:
                detail = f" ({result.parts} parts)" if result.action == "complete" else ""
                out.success(f"{result.action}: {label}{detail}")
            else:
                out.error(f"{result.action} failed: {label}: {result.error}")
        if not results:
            out.info("No matching multipart uploads")

    if any(not r.success for r in results):
        ctx.exit(1)


main.add_command(listmulti, name="lm")
main.add_command(cleanmulti, name="cm")


# =============================================================================
# Raw requests
# =============================================================================


def _dump_headers(headers: Any) -> None:
    for name, value in headers.items():
        click.echo(f"{name}: {value}")
    click.echo()


@main.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--method", "-X", "-m", default="GET", show_default=True, help="HTTP method")
@click.option("--header", "-H", "headers", multiple=True, help="Add an HTTP header")
@click.option(
    "--upload-file",
    "-T",
    type=click.Path(allow_dash=True),
    help="Send FILE as the request body ('-' for stdin)",
)
@click.option("--dump-header", "-D", is_flag=True, help="Dump request and response headers")
@click.pass_context
def call(
    ctx: Any,
    urls: tuple[str, ...],
    method: str,
    headers: tuple[str, ...],
    upload_file: Optional[str],
    dump_header: bool,
) -> None:
    """Send a signed request to http(s) URLs and write the body to stdout.

    Examples:
        pys3sync call https://s3.example.com/bucket?acl
        pys3sync call -X PUT -T data.bin https://s3.example.com/bucket/key
        pys3sync call -D -H "Range: bytes=0-99" https://s3.example.com/b/k
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        header_map = dict(parse_header(h) for h in headers)
    except ValueError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    body: Optional[bytes] = None
    if upload_file == "-":
        body = sys.stdin.buffer.read()
    elif upload_file:
        try:
            body = Path(upload_file).read_bytes()
        except OSError as e:
            out.error(f"Cannot read {upload_file}: {e}")
            ctx.exit(1)
            return

    cfg: Config = ctx.obj["config"]
    settings = cfg.to_settings(**ctx.obj["overrides"])
    stdout = click.get_binary_stream("stdout")
    failed = False

    for url in urls:
        try:
            with signed_request(method, url, settings, header_map, body) as (
                sent,
                response,
            ):
                if dump_header:
                    _dump_headers(sent)
                    click.echo(f"HTTP {response.status_code} {response.reason_phrase}")
                    _dump_headers(response.headers)
                for chunk in response.iter_bytes():
                    stdout.write(chunk)
                stdout.flush()
                if response.status_code >= 400:
                    failed = True
        except S3SyncError as e:
            out.error(str(e))
            failed = True

    if failed:
        ctx.exit(1)


if __name__ == "__main__":
    main()
