"""Signed upload target for local development storage.

In production the caller uploads straight to Supabase and this router is
not mounted.
"""

from fastapi import APIRouter, Depends, Query, Request

from app.core.exceptions import ValidationError
from app.dependencies import get_storage
from app.services.storage_service import BaseStorageService

router = APIRouter()

# Images are compressed by the caller before upload
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


@router.put("/{path:path}")
async def upload_to_signed(
    path: str,
    request: Request,
    token: str = Query(...),
    storage: BaseStorageService = Depends(get_storage),
):
    """Store the request body at ``path`` if ``token`` was minted for it."""
    content = await request.body()
    if not content:
        raise ValidationError("file", "Empty file uploaded")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError("file", "File exceeds 5MB limit")

    content_type = request.headers.get("content-type", "application/octet-stream")
    await storage.upload_to_signed(path, token, content, content_type)
    return {"success": True, "path": path}
