"""Сбор исходных свойств файла: размеры, размер на диске, EXIF."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from PIL import ExifTags, Image, UnidentifiedImageError

from image_manager.errors import DecodeError
from image_manager.models.image_model import ImageFormat, ImageMetadata

logger = logging.getLogger(__name__)

# orientations that swap width and height
_TRANSPOSED_ORIENTATIONS = (6, 8)


class MetadataService:
    def read(self, file_path: str | Path, original_name: Optional[str] = None, autorotate: bool = False) -> ImageMetadata:
        """Читает свойства исходного файла.

        Args:
            file_path: Путь до файла изображения.
            original_name: Имя, под которым файл был получен (по умолчанию имя файла).
            autorotate: Учитывать EXIF Orientation при определении размеров.

        Raises:
            FileNotFoundError: если файла нет.
            DecodeError: если файл не распознан как изображение.
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"Файл не найден: {path}")

        try:
            with Image.open(path) as source:
                width, height = source.size
                exif = self._read_exif(path, source)
        except UnidentifiedImageError as exc:
            raise DecodeError(f"Файл не является изображением: {path}") from exc

        if autorotate and exif.get("Orientation") in _TRANSPOSED_ORIENTATIONS:
            width, height = height, width

        return ImageMetadata(
            asset_path=path,
            original_name=original_name or path.name,
            original_width=width,
            original_height=height,
            original_file_size=path.stat().st_size,
            exif=exif,
        )

    @staticmethod
    def _read_exif(path: Path, source: Image.Image) -> dict[str, Any]:
        # only available for jpeg images
        try:
            if ImageFormat.from_extension(path.suffix) is not ImageFormat.JPEG:
                return {}
        except ValueError:
            return {}
        raw = source.getexif()
        return {ExifTags.TAGS.get(tag, str(tag)): value for tag, value in raw.items()}
