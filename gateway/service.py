from __future__ import annotations

import logging
import re
from contextlib import closing
from typing import List, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from gateway.errors import error_response, verbose_error
from gateway.models import ObjectRef, UploadDescriptor
from gateway.streams import RequestBodyReader, iter_object_chunks
from providers.storage import DEFAULT_CONTENT_TYPE, UNKNOWN_SIZE, StorageError, StorageProvider

log = logging.getLogger(__name__)

_DECIMAL_RE = re.compile(r"[+-]?[0-9]+")


# ---------------------------------------------------------------------
# Upload (create / modify)
# ---------------------------------------------------------------------

def parse_declared_size(raw: Optional[str], ref: ObjectRef) -> int:
    """
    Content-Length as a base-10 integer, or UNKNOWN_SIZE.

    A malformed or negative value is logged and treated as unknown; it never
    fails the request on its own.
    """
    if raw is None or raw == "":
        return UNKNOWN_SIZE
    if not _DECIMAL_RE.fullmatch(raw):
        log.warning("Error parsing Content-Length: %s: invalid syntax %r", ref, raw)
        return UNKNOWN_SIZE
    size = int(raw)
    if size < 0:
        log.warning("Error parsing Content-Length: %s: negative value %d", ref, size)
        return UNKNOWN_SIZE
    return size


def upload_descriptor_from_request(request: Request, ref: ObjectRef) -> UploadDescriptor:
    return UploadDescriptor(
        body=RequestBodyReader(request.stream()),
        content_type=request.headers.get("content-type") or None,
        declared_size=parse_declared_size(request.headers.get("content-length"), ref),
    )


async def _discard_partial(storage: StorageProvider, ref: ObjectRef) -> None:
    try:
        await run_in_threadpool(storage.remove_object, ref.bucket, ref.key)
    except StorageError as exc:
        log.error("Error removing partial object: %s: %s", ref, verbose_error(exc))


async def upload_object(
    storage: StorageProvider,
    ref: ObjectRef,
    upload: UploadDescriptor,
    success_status: int = 201,
) -> Response:
    try:
        n = await run_in_threadpool(
            storage.put_object,
            ref.bucket,
            ref.key,
            upload.body,
            upload.declared_size,
            upload.content_type,
        )
    except StorageError as exc:
        log.error("Error putting object: %s: %s", ref, verbose_error(exc))
        return error_response("Error putting object")

    if upload.size_known and n != upload.declared_size:
        log.error("Error putting object: %s: partial write [%d != %d]", ref, n, upload.declared_size)
        await _discard_partial(storage, ref)
        return error_response("Error putting object")

    log.info("Create %s: successfully uploaded %d bytes", ref, n)
    return PlainTextResponse(f"{ref}: OK", status_code=success_status)


# ---------------------------------------------------------------------
# Download (read)
# ---------------------------------------------------------------------

def resolve_object_headers(storage: StorageProvider, ref: ObjectRef) -> Tuple[str, List[Tuple[str, str]]]:
    """
    Content type plus custom metadata headers for a read response.

    Stat failure is not fatal: the transfer proceeds as application/octet-stream
    without custom headers.
    """
    try:
        info = storage.stat_object(ref.bucket, ref.key)
    except StorageError as exc:
        log.warning("Error getting object info: %s: %s", ref, verbose_error(exc))
        return DEFAULT_CONTENT_TYPE, []

    extra: List[Tuple[str, str]] = []
    for name, values in (info.metadata or {}).items():
        for value in values:
            extra.append((name, value))
    return info.content_type or DEFAULT_CONTENT_TYPE, extra


async def read_object(storage: StorageProvider, ref: ObjectRef, chunk_size: int) -> Response:
    try:
        reader = await run_in_threadpool(storage.get_object, ref.bucket, ref.key)
    except StorageError as exc:
        log.error("Error getting object: %s: %s", ref, verbose_error(exc))
        return error_response(str(exc))

    try:
        content_type, extra = await run_in_threadpool(resolve_object_headers, storage, ref)
        response = StreamingResponse(
            iter_object_chunks(reader, chunk_size, str(ref)),
            headers={"Content-Type": content_type},
            # body may never be iterated (client gone); close() is idempotent
            background=BackgroundTask(reader.close),
        )
        for name, value in extra:
            try:
                response.headers.append(name, value)
            except UnicodeEncodeError:
                log.warning("Skipping non latin-1 metadata header %r: %s", name, ref)
    except BaseException:
        reader.close()
        raise
    return response


# ---------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------

async def list_object_keys(storage: StorageProvider, ref: ObjectRef) -> Response:
    """
    Drain the backend listing into a JSON array.

    The first element carrying an error aborts the request; keys gathered so
    far are dropped. Leaving the `closing` block stops the backend enumeration.
    """
    keys: List[str] = []
    with closing(storage.list_objects(ref.bucket, ref.key, recursive=True)) as entries:
        async for entry in iterate_in_threadpool(entries):
            if entry.error is not None:
                log.error("Error getting list of objects: %s: %s", ref, verbose_error(entry.error))
                return error_response("Error listing objects")
            keys.append(entry.key)

    return JSONResponse(keys)


# ---------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------

async def delete_object(storage: StorageProvider, ref: ObjectRef) -> Response:
    try:
        await run_in_threadpool(storage.remove_object, ref.bucket, ref.key)
    except StorageError as exc:
        if not exc.is_not_found:
            log.error("Error deleting object: %s: %s", ref, verbose_error(exc))
            return error_response("Error deleting object")
        log.info("Delete %s: object already absent", ref)
        return PlainTextResponse(f"{ref}: OK")

    log.info("Delete %s: removed", ref)
    return PlainTextResponse(f"{ref}: OK")
