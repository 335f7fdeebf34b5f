"""Chunked archive uploads, single-file image uploads and screenshot listing."""

from __future__ import annotations

import re
from typing import Any

from litestar import Controller, Request, delete, get, post
from litestar.datastructures import UploadFile
from litestar.exceptions import ValidationException

from packhub.auth.api_key import api_key_guard
from packhub.lib.storage import BlobPathResolver, Category, ChunkAssembler
from packhub.lib.storage.files import delete_file, save_upload

IMAGE_PATTERN = re.compile(r"\.(png|jpe?g|webp|gif)(-\d+)?$", re.IGNORECASE)


def _int_field(form, name: str) -> int:
    value = form.get(name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationException(detail=f"{name} must be an integer") from None


class UploadController(Controller):
    path = "/"

    @post("/upload-zip", guards=[api_key_guard], status_code=200)
    async def upload_chunk(self, request: Request) -> dict[str, Any]:
        """Receive one chunk of an archive; the last index triggers assembly."""
        form = await request.form()
        chunk = form.get("chunk")
        if not isinstance(chunk, UploadFile):
            raise ValidationException(detail="No chunk uploaded")

        filename = form.get("fileName")
        if not isinstance(filename, str) or not filename:
            raise ValidationException(detail="fileName is required")

        chunk_index = _int_field(form, "chunkIndex")
        total_chunks = _int_field(form, "totalChunks")

        assembler: ChunkAssembler = request.app.state.assembler
        result = await assembler.receive_chunk(
            filename, chunk_index, total_chunks, await chunk.read()
        )
        if result.assembled:
            return {"status": result.status, "filename": result.final_path.name}
        return {"status": result.status}

    @post("/upload", guards=[api_key_guard], status_code=200)
    async def upload_file(self, request: Request) -> dict[str, Any]:
        """Store a thumbnail, screenshot or background under its original filename."""
        form = await request.form()
        uploads = [(field, value) for field, value in form.multi_items() if isinstance(value, UploadFile)]
        if not uploads:
            raise ValidationException(detail="No file uploaded")

        field, upload = uploads[0]
        resolver: BlobPathResolver = request.app.state.resolver
        if resolver.category_for_field(field) is None:
            raise ValidationException(detail="Invalid file field name")

        path = await save_upload(resolver, field, upload.filename, await upload.read())
        return {"message": "File uploaded successfully", "filename": path.name}

    @get("/screenshots")
    async def list_screenshots(self, request: Request) -> dict[str, list[str]]:
        resolver: BlobPathResolver = request.app.state.resolver
        files = resolver.list_files(Category.SCREENSHOTS)
        return {"screenshots": [f for f in files if IMAGE_PATTERN.search(f)]}

    @delete("/screenshots/{filename:str}", guards=[api_key_guard], status_code=200)
    async def delete_screenshot(self, request: Request, filename: str) -> dict[str, str]:
        """Delete a screenshot file directly, without checking references."""
        resolver: BlobPathResolver = request.app.state.resolver
        await delete_file(resolver, Category.SCREENSHOTS, filename)
        return {"message": "Screenshot deleted successfully"}
