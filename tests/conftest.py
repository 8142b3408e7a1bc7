from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from image_manager.controllers.image_controller import ImageManager

SECRET = "test-secret"


def make_image(path: Path, size: tuple[int, int], color=(200, 30, 30), mode: str = "RGB") -> Path:
    """Пишет на диск однотонное изображение и возвращает путь."""
    Image.new(mode, size, color).save(path)
    return path


@pytest.fixture
def manager() -> ImageManager:
    return ImageManager(secret=SECRET)


@pytest.fixture
def jpeg_path(tmp_path: Path) -> Path:
    return make_image(tmp_path / "photo.jpg", (1000, 500))


@pytest.fixture
def png_path(tmp_path: Path) -> Path:
    return make_image(tmp_path / "logo.png", (200, 200), (0, 0, 255, 128), mode="RGBA")
