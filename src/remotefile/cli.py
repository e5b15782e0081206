"""CLI implementation for remotefile."""

import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import BinaryIO, Optional

import typer

from .core.model import Metadata, RemoteFileError
from .io import (
    close_global_client, get_client, get_session, open_remote_file, open_remote_file_async,
    probe, probe_async,
)
from .io.base import CHUNK_SIZE

app = typer.Typer(add_completion=False, help="Random access into remote files over HTTP range requests.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every HTTP request")):
    """Inspect and read byte ranges of remote files without downloading them."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _copy_sync(url: str, offset: int, length: Optional[int], sink: BinaryIO) -> int:
    copied = 0
    with open_remote_file(url) as f:
        f.seek(offset)
        while length is None or copied < length:
            want = CHUNK_SIZE if length is None else min(CHUNK_SIZE, length - copied)
            data = f.read(want)
            if not data:
                break
            sink.write(data)
            copied += len(data)
    return copied


async def _copy_async(url: str, offset: int, length: Optional[int], sink: BinaryIO) -> int:
    copied = 0
    try:
        async with await open_remote_file_async(url) as f:
            await f.seek(offset)
            while length is None or copied < length:
                want = CHUNK_SIZE if length is None else min(CHUNK_SIZE, length - copied)
                data = await f.read(want)
                if not data:
                    break
                sink.write(data)
                copied += len(data)
    finally:
        await close_global_client()
    return copied


async def _probe_async(url: str) -> Metadata:
    try:
        return await probe_async(get_client(), url)
    finally:
        await close_global_client()


@app.command()
def info(
    url: str = typer.Argument(..., help="URL of the remote file"),
    sync: bool = typer.Option(False, "--sync", help="Force synchronous I/O"),
):
    """Print size, etag and content type of a remote file as JSON."""
    try:
        meta = probe(get_session(), url) if sync else asyncio.run(_probe_async(url))
    except RemoteFileError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)
    json.dump(dataclasses.asdict(meta), sys.stdout, indent=2)
    sys.stdout.write("\n")


@app.command()
def cat(
    url: str = typer.Argument(..., help="URL of the remote file"),
    offset: int = typer.Option(0, "--offset", min=0, help="First byte to read"),
    length: Optional[int] = typer.Option(None, "--length", min=0, help="Bytes to read (default: to the end)"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to PATH instead of stdout"),
    sync: bool = typer.Option(False, "--sync", help="Force synchronous I/O"),
):
    """Copy a byte range of a remote file to stdout or a file."""
    sink = open(output, "wb") if output else typer.get_binary_stream("stdout")
    try:
        if sync:
            _copy_sync(url, offset, length, sink)
        else:
            asyncio.run(_copy_async(url, offset, length, sink))
    except RemoteFileError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        if output:
            sink.close()
        else:
            sink.flush()


if __name__ == "__main__":
    app()
