"""Pack service: CRUD on pack records and asset reference bookkeeping.

Every mutation that can drop an asset reference returns the set of filenames
it dropped. Callers hand that set to the garbage collector after the commit;
the collector decides per filename whether anything still references it.
"""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from packhub.db.models import Pack, PackScreenshot, PackVersion
from packhub.lib.storage.locks import KeyedLock

# JSON field -> model attribute for plain scalar columns
SCALAR_FIELDS = {
    "name": "name",
    "index": "sort_index",
    "thumbnail": "thumbnail",
    "background": "background",
    "status": "status",
    "jvmArgs": "jvm_args",
}

VERSION_FIELDS = ("name", "zip", "size", "changelog", "date", "visible", "clean")


def serialize_version(version: PackVersion) -> dict[str, Any]:
    data = {field: getattr(version, field) for field in VERSION_FIELDS}
    data["id"] = version.version_id
    return data


def serialize_pack(pack: Pack) -> dict[str, Any]:
    return {
        "id": pack.public_id,
        "index": pack.sort_index,
        "name": pack.name,
        "thumbnail": pack.thumbnail,
        "background": pack.background,
        "status": pack.status,
        "jvmArgs": pack.jvm_args,
        "mainVersion": pack.main_version,
        "versions": [serialize_version(v) for v in pack.versions],
        "screenshots": [s.filename for s in pack.screenshots],
    }


def referenced_filenames(pack: Pack) -> set[str]:
    """Every asset filename the pack currently points at."""
    names = {pack.thumbnail, pack.background}
    names.update(v.zip for v in pack.versions)
    names.update(s.filename for s in pack.screenshots)
    if pack.main_version:
        names.add(pack.main_version.get("zip"))
    return {n for n in names if n}


async def count_asset_references(db_session: AsyncSession, filename: str) -> int:
    """Count packs referencing *filename* in any asset field.

    Checks thumbnail, background, every screenshot slot, the main version's
    archive and the archive of every version.
    """
    query = select(func.count()).select_from(Pack).where(
        or_(
            Pack.thumbnail == filename,
            Pack.background == filename,
            Pack.main_version["zip"].as_string() == filename,
            Pack.versions.any(PackVersion.zip == filename),
            Pack.screenshots.any(PackScreenshot.filename == filename),
        )
    )
    result = await db_session.execute(query)
    return result.scalar() or 0


async def list_packs(db_session: AsyncSession) -> list[Pack]:
    result = await db_session.execute(
        select(Pack).order_by(Pack.sort_index.asc(), Pack.created_at.asc())
    )
    return list(result.scalars().all())


async def get_pack(db_session: AsyncSession, public_id: str) -> Pack | None:
    result = await db_session.execute(select(Pack).where(Pack.public_id == public_id))
    return result.scalar_one_or_none()


async def create_template(db_session: AsyncSession) -> Pack:
    """Create an empty pack whose public id is the current time in milliseconds."""
    stamp = time.time_ns() // 1_000_000
    while await get_pack(db_session, str(stamp)) is not None:
        stamp += 1
    pack = Pack(public_id=str(stamp), versions=[], screenshots=[])
    db_session.add(pack)
    await db_session.commit()
    await db_session.refresh(pack)
    return pack


def _build_versions(items: list[dict[str, Any]]) -> list[PackVersion]:
    versions = []
    for position, item in enumerate(items):
        fields = {field: item.get(field) for field in VERSION_FIELDS}
        versions.append(PackVersion(version_id=item.get("id"), position=position, **fields))
    return versions


def _dropped_by_update(pack: Pack, changes: dict[str, Any]) -> set[str]:
    dropped: set[str] = set()

    if "versions" in changes:
        kept = {item.get("zip") for item in changes["versions"]}
        dropped.update(v.zip for v in pack.versions if v.zip and v.zip not in kept)

    for field in ("thumbnail", "background"):
        old_value = getattr(pack, field)
        if field in changes and old_value and changes[field] != old_value:
            dropped.add(old_value)

    if "screenshots" in changes:
        kept = set(changes["screenshots"] or [])
        dropped.update(s.filename for s in pack.screenshots if s.filename not in kept)

    if "mainVersion" in changes and pack.main_version:
        old_zip = pack.main_version.get("zip")
        new_zip = (changes["mainVersion"] or {}).get("zip")
        if old_zip and new_zip != old_zip:
            dropped.add(old_zip)

    return dropped


def _apply_changes(pack: Pack, changes: dict[str, Any]) -> None:
    for key, attr in SCALAR_FIELDS.items():
        if key in changes:
            setattr(pack, attr, changes[key])

    if "versions" in changes:
        pack.versions = _build_versions(changes["versions"])

    if "screenshots" in changes:
        pack.screenshots = [
            PackScreenshot(filename=name, position=position)
            for position, name in enumerate(changes["screenshots"] or [])
        ]

    if "mainVersion" in changes:
        pack.main_version = changes["mainVersion"] or None


async def update_pack(
    db_session: AsyncSession,
    pack: Pack,
    changes: dict[str, Any],
    locks: KeyedLock | None = None,
) -> set[str]:
    """Apply a partial JSON update to *pack* and return the filenames it dropped.

    ``versions == "empty"`` clears the version list and a null list is left
    unchanged. Clearing ``thumbnail`` or ``background`` drops the old file the
    same way replacing it does. Filenames the update introduces are locked
    while the change is committed, so a concurrent collection of the same
    name either sees the new reference or finishes before it lands.
    """
    changes = dict(changes)
    if changes.get("versions") == "empty":
        changes["versions"] = []
    # An explicit null leaves the list untouched
    for key in ("versions", "screenshots"):
        if key in changes and changes[key] is None:
            del changes[key]

    before = referenced_filenames(pack)
    dropped = _dropped_by_update(pack, changes)
    _apply_changes(pack, changes)
    introduced = referenced_filenames(pack) - before

    locks = locks or KeyedLock()
    async with locks.hold_many(introduced):
        await db_session.commit()
    await db_session.refresh(pack)
    return dropped


async def delete_pack(db_session: AsyncSession, pack: Pack) -> set[str]:
    """Delete *pack* and return every filename it referenced."""
    dropped = referenced_filenames(pack)
    await db_session.delete(pack)
    await db_session.commit()
    return dropped


async def delete_version(db_session: AsyncSession, pack: Pack, version_id: str) -> set[str] | None:
    """Remove one version from *pack*.

    Returns the dropped archive filename (empty set if the version had none),
    or None when the pack has no version with that id.
    """
    version = next((v for v in pack.versions if v.version_id == version_id), None)
    if version is None:
        return None

    pack.versions.remove(version)
    await db_session.commit()
    return {version.zip} if version.zip else set()
