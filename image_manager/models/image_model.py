"""Модели данных для изображений.

Принципы:
- SRP: только структура данных, без логики обработки.
- Чистый код: неизменяемость (`frozen=True`) для предсказуемости; операции
  над изображением возвращают новый экземпляр.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, NamedTuple, Optional

from PIL import Image

from image_manager.errors import UnsupportedFormatError


class ImageFormat(Enum):
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    ENCRYPTED = "wdImage"

    @classmethod
    def from_extension(cls, extension: str | None) -> "ImageFormat":
        """Возвращает формат по расширению файла (`.JPG`, `jpeg`, `wdImage`...).

        Raises:
            UnsupportedFormatError: если расширение не распознано.
        """
        key = (extension or "").lower().lstrip(".")
        try:
            return _EXTENSIONS[key]
        except KeyError:
            raise UnsupportedFormatError(extension) from None

    @property
    def extension(self) -> str:
        """Каноническое расширение для сохранения."""
        return "jpg" if self is ImageFormat.JPEG else self.value

    @property
    def pil_format(self) -> Optional[str]:
        return _PIL_FORMATS.get(self)

    @property
    def has_alpha(self) -> bool:
        return self in (ImageFormat.PNG, ImageFormat.GIF)


_EXTENSIONS = {
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
    "png": ImageFormat.PNG,
    "gif": ImageFormat.GIF,
    "wdimage": ImageFormat.ENCRYPTED,
}

_PIL_FORMATS = {
    ImageFormat.JPEG: "JPEG",
    ImageFormat.PNG: "PNG",
    ImageFormat.GIF: "GIF",
}


class Dimensions(NamedTuple):
    width: int
    height: int


@dataclass(frozen=True)
class RasterImage:
    """Изображение либо в виде пикселей, либо в виде зашифрованного контейнера.

    Fields:
        format: Текущий формат; `ImageFormat.ENCRYPTED` ровно тогда, когда
            изображение зашифровано.
        width: Ширина, px. Может быть `None` у контейнера, загруженного с диска.
        height: Высота, px.
        pixels: Буфер PIL (только для незашифрованного изображения).
        payload: `base64(IV ‖ ciphertext)` (только для зашифрованного).
        extension: Расширение, с которым `save()` пишет файл по умолчанию.
        plain_format: Формат, который вернёт расшифровка.
    """
    format: ImageFormat
    width: Optional[int]
    height: Optional[int]
    pixels: Optional[Image.Image] = field(default=None, repr=False, compare=False)
    payload: Optional[bytes] = field(default=None, repr=False)
    extension: Optional[str] = None
    plain_format: ImageFormat = ImageFormat.JPEG

    def __post_init__(self) -> None:
        if self.encrypted and self.payload is None:
            raise ValueError("encrypted image requires a payload")
        if not self.encrypted and self.pixels is None:
            raise ValueError("plain image requires a pixel buffer")

    @property
    def encrypted(self) -> bool:
        return self.format is ImageFormat.ENCRYPTED

    @property
    def dimensions(self) -> Dimensions:
        if self.width is None or self.height is None:
            raise ValueError("dimensions are unknown while the image is encrypted")
        return Dimensions(self.width, self.height)

    def release(self) -> None:
        """Освобождает пиксельный буфер. Повторный вызов безопасен."""
        if self.pixels is not None:
            self.pixels.close()


class WatermarkSize(Enum):
    COVER = "cover"
    CONTAIN = "contain"
    PERCENTAGE = "percentage"
    ORIGINAL = "original"


@dataclass(frozen=True)
class WatermarkPlacement:
    """Расположение водяного знака.

    `top` и `left` заданы долями (0..1); по умолчанию правый нижний угол.
    """
    top: float = 1.0
    left: float = 1.0
    size: WatermarkSize = WatermarkSize.ORIGINAL
    percentage: int = 100

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, Any]) -> "WatermarkPlacement":
        """Разбирает запрос вида `{"position": {"top", "left"}, "size": ...}`.

        `size` может быть "cover", "contain" или числом процентов.
        """
        top = left = 1.0
        position = parameters.get("position")
        if position is not None:
            # a missing coordinate keeps the bottom/right anchor
            top = _percent(position.get("top", 100), "position.top") / 100
            left = _percent(position.get("left", 100), "position.left") / 100

        size = parameters.get("size")
        if size is None:
            return cls(top=top, left=left)
        if size == WatermarkSize.COVER.value:
            return cls(top=top, left=left, size=WatermarkSize.COVER)
        if size == WatermarkSize.CONTAIN.value:
            return cls(top=top, left=left, size=WatermarkSize.CONTAIN)
        return cls(top=top, left=left, size=WatermarkSize.PERCENTAGE, percentage=_percent(size, "size"))


def _percent(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Некорректный параметр водяного знака {name!r}: {value!r}") from exc


@dataclass(frozen=True)
class ImageMetadata:
    """Исходные свойства обработанного файла.

    Fields:
        asset_path: Путь к файлу.
        original_name: Имя, под которым файл был получен.
        original_width: Ширина, px (с учётом автоповорота).
        original_height: Высота, px (с учётом автоповорота).
        original_file_size: Размер файла, байт.
        exif: EXIF-теги по именам (только JPEG).
    """
    asset_path: Path
    original_name: str
    original_width: int
    original_height: int
    original_file_size: int
    exif: dict[str, Any] = field(default_factory=dict)
