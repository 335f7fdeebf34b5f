"""Map asset filenames to paths inside the upload tree."""

from __future__ import annotations

from pathlib import Path

from packhub.lib.storage.base import (
    PROBE_ORDER,
    STAGING_DIRNAME,
    Category,
    validate_filename,
)

# Multipart field name -> category for the single-file upload path.
UPLOAD_FIELDS: dict[str, Category] = {
    "thumbnailFile": Category.THUMBNAILS,
    "screenshotFile": Category.SCREENSHOTS,
    "backgroundFile": Category.BACKGROUNDS,
}


class BlobPathResolver:
    """Resolve asset filenames against a fixed set of category directories.

    Records only store the bare filename, so lookups without a category probe
    each directory in ``PROBE_ORDER`` and take the first regular file found.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path).resolve()

    @property
    def base_path(self) -> Path:
        return self._base_path

    @property
    def staging_root(self) -> Path:
        return self._base_path / STAGING_DIRNAME

    def category_dir(self, category: Category) -> Path:
        if category is Category.ROOT:
            return self._base_path
        return self._base_path / category.dirname

    def ensure_layout(self) -> None:
        """Create the base directory, every category directory and the staging root."""
        for category in PROBE_ORDER:
            self.category_dir(category).mkdir(parents=True, exist_ok=True)
        self.staging_root.mkdir(parents=True, exist_ok=True)

    def resolve(self, filename: str, category: Category | None = None) -> Path | None:
        """Return the path for *filename*.

        With a category the path is deterministic and may not exist yet.
        Without one, return the first existing file in probe order, or None.
        """
        validate_filename(filename)
        if category is not None:
            return self.category_dir(category) / filename

        for candidate in PROBE_ORDER:
            path = self.category_dir(candidate) / filename
            if path.is_file():
                return path
        return None

    def staging_dir(self, filename: str) -> Path:
        validate_filename(filename)
        return self.staging_root / filename

    def list_files(self, category: Category) -> list[str]:
        directory = self.category_dir(category)
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir() if p.is_file())

    @staticmethod
    def category_for_field(field_name: str) -> Category | None:
        return UPLOAD_FIELDS.get(field_name)
