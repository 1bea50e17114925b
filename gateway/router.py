from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from core.deps import IdentityDep, StorageDep, StreamSettingsDep
from core.identity import RequestIdentity
from gateway import service
from gateway.models import ObjectRef

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------
# Router
#   /api/{bucket}/{path...}/{verb}
#   bucket: one path segment, path: everything up to the verb
# ---------------------------------------------------------------------

router = APIRouter(prefix="/api", tags=["objects"])


def _object_ref(request: Request, identity: RequestIdentity, bucket: str, path: str) -> ObjectRef:
    log.info(
        "Request: %s %s {user: %s, email: %s, bucket: %s, path: %s}",
        request.method,
        request.url,
        identity.user,
        identity.email,
        bucket,
        path,
    )
    try:
        return ObjectRef(bucket=bucket, key=path)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


# ---------------------------------------------------------------------
# POST /api/{bucket}/{path}/create
# ---------------------------------------------------------------------
@router.post("/{bucket}/{path:path}/create", status_code=201, response_class=PlainTextResponse)
async def create_object(
    bucket: str,
    path: str,
    request: Request,
    storage: StorageDep,
    identity: IdentityDep,
) -> Response:
    """Stream the request body into bucket/path."""
    ref = _object_ref(request, identity, bucket, path)
    upload = service.upload_descriptor_from_request(request, ref)
    return await service.upload_object(storage, ref, upload, success_status=201)


# ---------------------------------------------------------------------
# GET /api/{bucket}/{path}/read
# ---------------------------------------------------------------------
@router.get("/{bucket}/{path:path}/read", response_class=StreamingResponse)
async def read_object(
    bucket: str,
    path: str,
    request: Request,
    storage: StorageDep,
    identity: IdentityDep,
    stream_settings: StreamSettingsDep,
) -> Response:
    """Stream bucket/path back with its content type and custom metadata."""
    ref = _object_ref(request, identity, bucket, path)
    return await service.read_object(storage, ref, stream_settings.download_chunk_size)


# ---------------------------------------------------------------------
# GET /api/{bucket}/{path}/list
# ---------------------------------------------------------------------
@router.get("/{bucket}/{path:path}/list", response_class=JSONResponse)
async def list_objects(
    bucket: str,
    path: str,
    request: Request,
    storage: StorageDep,
    identity: IdentityDep,
) -> Response:
    """JSON array of every key under the prefix (recursive)."""
    ref = _object_ref(request, identity, bucket, path)
    return await service.list_object_keys(storage, ref)


# ---------------------------------------------------------------------
# DELETE /api/{bucket}/{path}/delete
# ---------------------------------------------------------------------
@router.delete("/{bucket}/{path:path}/delete", response_class=PlainTextResponse)
async def delete_object(
    bucket: str,
    path: str,
    request: Request,
    storage: StorageDep,
    identity: IdentityDep,
) -> Response:
    ref = _object_ref(request, identity, bucket, path)
    return await service.delete_object(storage, ref)


# ---------------------------------------------------------------------
# PUT /api/{bucket}/{path}/modify
# ---------------------------------------------------------------------
@router.put("/{bucket}/{path:path}/modify", response_class=PlainTextResponse)
async def modify_object(
    bucket: str,
    path: str,
    request: Request,
    storage: StorageDep,
    identity: IdentityDep,
) -> Response:
    """Overwrite bucket/path with the request body."""
    ref = _object_ref(request, identity, bucket, path)
    upload = service.upload_descriptor_from_request(request, ref)
    return await service.upload_object(storage, ref, upload, success_status=200)
