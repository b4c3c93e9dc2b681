# communiserver/routers/uploads.py
from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ..auth import require_any_permission
from ..config import settings
from ..domain.permissions import Permission as P
from ..schemas import UploadOut
from ..services.storage_client import StorageError, UploadItem, upload_files

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("", response_model=UploadOut, status_code=201)
async def upload(
    files: list[UploadFile] = File(...),
    folder: str = Form(default="reports"),
    p=Depends(require_any_permission(P.ADD_ACTIVITY_REPORT, P.ADD_TASK_REPORT)),
):
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")

    items: list[UploadItem] = []
    for f in files:
        content = await f.read()
        if len(content) > settings.upload_max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"{f.filename} exceeds the {settings.upload_max_bytes} byte limit",
            )
        items.append(
            UploadItem(
                filename=f.filename or "file",
                content=content,
                content_type=f.content_type or "application/octet-stream",
            )
        )

    try:
        urls = upload_files(items, folder=folder)
    except StorageError:
        raise HTTPException(status_code=502, detail="upload failed")
    return {"urls": urls}
