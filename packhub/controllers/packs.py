"""Pack record endpoints and archive download."""

from __future__ import annotations

import logging
from typing import Any, Literal

from litestar import Controller, Request, delete, get, post, put
from litestar.background_tasks import BackgroundTask
from litestar.exceptions import NotFoundException
from litestar.response import File, Response
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from packhub.auth.api_key import api_key_guard
from packhub.db.services import pack_service
from packhub.lib.storage import BlobPathResolver, Category, GarbageCollector

logger = logging.getLogger(__name__)


# --- Request models ---


class VersionIn(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str | None = None
    name: str | None = None
    zip: str | None = None
    size: str | None = None
    changelog: str | None = None
    date: str | None = None
    visible: bool | None = None
    clean: bool | None = None


class PackUpdate(BaseModel):
    """Partial pack update. Only fields present in the body are applied."""

    name: str | None = None
    index: int = 0
    thumbnail: str | None = None
    background: str | None = None
    status: str | None = None
    jvmArgs: str | None = None
    mainVersion: VersionIn | None = None
    versions: list[VersionIn] | Literal["empty"] | None = None
    screenshots: list[str] | None = None


def _collect_task(request: Request, filenames: set[str]) -> BackgroundTask | None:
    """Run the garbage collector after the response has been sent."""
    if not filenames:
        return None
    collector: GarbageCollector = request.app.state.collector
    return BackgroundTask(collector.collect, filenames)


async def _get_pack_or_404(db_session: AsyncSession, pack_id: str):
    pack = await pack_service.get_pack(db_session, pack_id)
    if pack is None:
        raise NotFoundException(detail="Modpack not found")
    return pack


class PackController(Controller):
    """CRUD on pack records. Mutations hand dropped filenames to the collector."""

    path = "/"

    @get("/")
    async def list_packs(self, db_session: AsyncSession) -> list[dict[str, Any]]:
        packs = await pack_service.list_packs(db_session)
        return [pack_service.serialize_pack(p) for p in packs]

    @post("/template", guards=[api_key_guard])
    async def create_template(self, db_session: AsyncSession) -> dict[str, Any]:
        pack = await pack_service.create_template(db_session)
        return {
            "message": "Modpack template created successfully",
            "modpack": pack_service.serialize_pack(pack),
        }

    @put("/{pack_id:str}", guards=[api_key_guard])
    async def update_pack(
        self,
        request: Request,
        db_session: AsyncSession,
        pack_id: str,
        data: PackUpdate,
    ) -> Response:
        """Apply a partial update; old assets it replaced are collected afterwards."""
        pack = await _get_pack_or_404(db_session, pack_id)

        changes = data.model_dump(include=data.model_fields_set)
        dropped = await pack_service.update_pack(
            db_session, pack, changes, locks=request.app.state.locks
        )
        return Response(
            content={
                "message": "Modpack updated successfully",
                "modpack": pack_service.serialize_pack(pack),
            },
            status_code=200,
            background=_collect_task(request, dropped),
        )

    @get("/{pack_id:str}/main")
    async def download_main(self, request: Request, db_session: AsyncSession, pack_id: str) -> File:
        """Stream the main version's archive as an attachment."""
        pack = await _get_pack_or_404(db_session, pack_id)
        archive = (pack.main_version or {}).get("zip")
        if not archive:
            raise NotFoundException(detail="Main version file missing")

        resolver: BlobPathResolver = request.app.state.resolver
        path = resolver.resolve(archive, Category.ARCHIVES)
        if not path.is_file():
            raise NotFoundException(detail="File not found")

        return File(
            path=path,
            filename=archive,
            media_type="application/octet-stream",
            content_disposition_type="attachment",
        )

    @delete("/{pack_id:str}", guards=[api_key_guard], status_code=200)
    async def delete_pack(self, request: Request, db_session: AsyncSession, pack_id: str) -> Response:
        pack = await _get_pack_or_404(db_session, pack_id)
        dropped = await pack_service.delete_pack(db_session, pack)
        logger.info("Deleted pack %s", pack_id)
        return Response(
            content={"message": "Deleted modpack successfully"},
            status_code=200,
            background=_collect_task(request, dropped),
        )

    @delete("/{pack_id:str}/versions/{version_id:str}", guards=[api_key_guard], status_code=200)
    async def delete_version(
        self,
        request: Request,
        db_session: AsyncSession,
        pack_id: str,
        version_id: str,
    ) -> Response:
        pack = await _get_pack_or_404(db_session, pack_id)
        dropped = await pack_service.delete_version(db_session, pack, version_id)
        if dropped is None:
            raise NotFoundException(detail="Version not found")

        return Response(
            content={"message": "Version deleted successfully"},
            status_code=200,
            background=_collect_task(request, dropped),
        )
