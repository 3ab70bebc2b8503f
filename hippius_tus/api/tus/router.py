"""tus 1.0.0 endpoints: OPTIONS, POST (creation), HEAD and PATCH.

Handlers only translate between HTTP and the engine; all protocol decisions
live in ``UploadProtocolEngine``.
"""

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from fastapi import Response

from hippius_tus.api.tus.headers import http_date
from hippius_tus.dependencies import get_engine
from hippius_tus.protocol.capabilities import describe_capabilities
from hippius_tus.protocol.engine import OFFSET_CONTENT_TYPE
from hippius_tus.protocol.engine import UploadProtocolEngine
from hippius_tus.protocol.metadata import serialize_metadata
from hippius_tus.services.ray_id_service import upload_key_context


router = APIRouter(tags=["tus"])


@router.options("")
@router.options("/{key}")
async def options_upload(engine: UploadProtocolEngine = Depends(get_engine)) -> Response:
    """Capability negotiation."""
    return Response(status_code=200, headers=describe_capabilities(engine.max_size).to_headers())


@router.post("")
async def create_upload(request: Request, engine: UploadProtocolEngine = Depends(get_engine)) -> Response:
    result = await engine.create_session(
        declared_size=request.headers.get("Upload-Length"),
        metadata_header=request.headers.get("Upload-Metadata"),
        checksum_header=request.headers.get("Upload-Checksum"),
        base_url=str(request.url.replace(query="")),
        upload_key=request.headers.get("Upload-Key"),
    )
    upload_key_context.set(result.key)
    request.state.logger.info(f"Created upload length={request.headers.get('Upload-Length')}")
    return Response(
        status_code=201,
        headers={
            "Location": result.location,
            "Upload-Expires": http_date(result.expires_at),
        },
    )


@router.head("/{key}")
async def upload_status(key: str, request: Request, engine: UploadProtocolEngine = Depends(get_engine)) -> Response:
    upload_key_context.set(key)
    status = await engine.get_status(key)
    request.state.logger.debug(f"Status offset={status.offset}/{status.total_size}")
    headers = {
        "Upload-Length": str(status.total_size),
        "Upload-Offset": str(status.offset),
        "Upload-Expires": http_date(status.expires_at),
        "Cache-Control": "no-store",
    }
    if status.metadata:
        headers["Upload-Metadata"] = serialize_metadata(status.metadata)
    return Response(status_code=200, headers=headers)


@router.patch("/{key}")
async def upload_chunk(key: str, request: Request, engine: UploadProtocolEngine = Depends(get_engine)) -> Response:
    upload_key_context.set(key)
    body = await request.body()
    result = await engine.apply_chunk(
        key,
        claimed_offset=request.headers.get("Upload-Offset"),
        content_type=request.headers.get("Content-Type"),
        body=body,
    )
    request.state.logger.info(f"Accepted chunk size={len(body)} offset={result.offset}")
    return Response(
        status_code=204,
        headers={
            "Content-Type": OFFSET_CONTENT_TYPE,
            "Upload-Expires": http_date(result.expires_at),
            "Upload-Offset": str(result.offset),
        },
    )
