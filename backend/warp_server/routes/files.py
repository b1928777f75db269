from fastapi import APIRouter, Depends, File, UploadFile

from warp_server.routes.dependencies import envelope, get_server

router = APIRouter()


@router.post("/files")
async def upload_file(file: UploadFile = File(...), server=Depends(get_server)):
    """Store an uploaded file; returns its storage key and URL"""
    data = await file.read()
    return envelope(await server.storage.upload(file.filename or "unnamed", data))


@router.delete("/files/{key}")
async def destroy_file(key: str, server=Depends(get_server)):
    return envelope(await server.storage.destroy(key))
