import os

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from babypeek.api.deps import storage_dep
from babypeek.storage import InvalidSignedUrl, Storage

router = APIRouter(tags=["files"])


@router.get("/files/{token}")
def download(token: str, storage: Storage = Depends(storage_dep)) -> FileResponse:
    """Serve an object behind a signed, unexpired URL."""
    try:
        path = storage.path_for(storage.verify(token))
    except InvalidSignedUrl as e:
        raise HTTPException(status_code=403, detail={"code": "LINK_EXPIRED", "message": str(e)}) from e
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "File not found."})
    return FileResponse(path)
