from __future__ import annotations

import base64

import numpy as np
import pytest
from PIL import Image

from conftest import SECRET, make_image
from image_manager.config import Settings
from image_manager.controllers.image_controller import ImageManager
from image_manager.errors import AlreadyEncryptedError, CryptoOperationError, NoImageLoadedError


def test_operations_require_loaded_image(manager) -> None:
    with pytest.raises(NoImageLoadedError):
        manager.resize(10, 10)


def test_resize_fit(manager, jpeg_path) -> None:
    manager.load_image(jpeg_path).resize(400, 400)

    assert manager.image.dimensions == (400, 200)
    assert manager.image.pixels.size == (400, 200)


def test_resize_with_crop_gives_exact_box(manager, jpeg_path) -> None:
    manager.load_image(jpeg_path).resize(400, 400, crop=True)

    assert manager.image.dimensions == (400, 400)
    assert manager.image.pixels.size == (400, 400)


def test_resize_releases_previous_buffer(manager, jpeg_path) -> None:
    manager.load_image(jpeg_path)
    original = manager.image.pixels

    manager.resize(100, 100)

    assert manager.image.pixels is not original
    with pytest.raises(ValueError):
        original.load()


def test_crop_center(manager, tmp_path) -> None:
    path = tmp_path / "grid.png"
    pixels = Image.new("RGB", (1000, 1000), (255, 255, 255))
    pixels.paste((255, 0, 0), (300, 350, 700, 650))
    pixels.save(path)

    manager.load_image(path).crop(400, 300)

    result = np.asarray(manager.image.pixels)[..., :3]
    assert manager.image.dimensions == (400, 300)
    assert (result == (255, 0, 0)).all()


def test_crop_smaller_source_scales_up(manager, tmp_path) -> None:
    path = make_image(tmp_path / "small.png", (100, 100), (0, 255, 0, 255), mode="RGBA")

    manager.load_image(path).crop(200, 100)

    assert manager.image.dimensions == (200, 100)
    assert manager.image.pixels.getpixel((199, 99)) == (0, 255, 0, 255)


def test_resize_encrypted_image_stays_encrypted(manager, jpeg_path) -> None:
    manager.load_image(jpeg_path).encrypt().resize(400, 400)

    assert manager.image.encrypted
    manager.decrypt()
    assert manager.image.dimensions == (400, 200)


def test_crop_encrypted_container_from_disk(manager, jpeg_path, tmp_path) -> None:
    manager.load_image(jpeg_path).encrypt().save_image(tmp_path, "vault")

    other = ImageManager(secret=SECRET)
    other.load_image(tmp_path / "vault.wdImage").crop(100, 100)

    assert other.image.encrypted
    assert other.decrypt().image.dimensions == (100, 100)


def test_encrypt_twice_fails(manager, jpeg_path) -> None:
    manager.load_image(jpeg_path).encrypt()
    payload = manager.image.payload

    with pytest.raises(AlreadyEncryptedError):
        manager.encrypt()

    assert manager.image.payload == payload


def test_save_encrypted_ignores_extension(manager, png_path, tmp_path) -> None:
    manager.load_image(png_path).encrypt()

    assert manager.save_image(tmp_path / "out", "vault", extension=None) is True
    assert manager.save_image(tmp_path / "out", "again", extension="png") is True

    written = (tmp_path / "out" / "vault.wdImage").read_bytes()
    assert written == manager.image.payload
    assert not (tmp_path / "out" / "again.png").exists()
    base64.b64decode(written, validate=True)


def test_save_plain_returns_false(manager, png_path, tmp_path) -> None:
    manager.load_image(png_path)

    assert manager.save_image(tmp_path, "copy") is False
    with Image.open(tmp_path / "copy.png") as saved:
        assert saved.size == (200, 200)


def test_watermark_from_file(manager, tmp_path) -> None:
    base = make_image(tmp_path / "base.png", (800, 600), (255, 255, 255))
    logo = make_image(tmp_path / "logo.png", (100, 100), (255, 0, 0, 255), mode="RGBA")

    manager.load_image(base).add_watermark({"file": str(logo), "position": {"top": 0, "left": 0}})

    assert manager.image.pixels.getpixel((50, 50)) == (255, 0, 0, 255)
    assert manager.image.pixels.getpixel((150, 150)) == (255, 255, 255, 255)


def test_watermark_on_encrypted_image(manager, tmp_path) -> None:
    base = make_image(tmp_path / "base.png", (80, 60), (255, 255, 255, 255), mode="RGBA")
    logo = make_image(tmp_path / "logo.png", (20, 20), (255, 0, 0, 255), mode="RGBA")

    manager.load_image(base).encrypt().add_watermark({"file": str(logo), "size": "contain"})

    assert manager.image.encrypted
    assert manager.decrypt().image.dimensions == (80, 60)


def test_watermark_missing_file(manager, jpeg_path, tmp_path) -> None:
    manager.load_image(jpeg_path)

    with pytest.raises(FileNotFoundError):
        manager.add_watermark({"file": str(tmp_path / "nope.png")})
    assert manager.image.pixels.size == (1000, 500)


def test_create_blank(manager) -> None:
    manager.create(30, 40, "gif")

    assert manager.image.dimensions == (30, 40)
    assert manager.image.extension == "gif"


def test_load_bytes(manager, png_path) -> None:
    manager.load_bytes(png_path.read_bytes(), "png")

    assert manager.image.dimensions == (200, 200)


def test_metadata_swaps_dimensions_when_autorotating(tmp_path) -> None:
    path = tmp_path / "portrait.jpg"
    exif = Image.Exif()
    exif[0x0112] = 8
    Image.new("RGB", (40, 20)).save(path, exif=exif)

    plain = ImageManager(secret=SECRET).metadata(path, "upload.jpg")
    rotated = ImageManager(secret=SECRET, autorotate=True).metadata(path)

    assert (plain.original_width, plain.original_height) == (40, 20)
    assert plain.original_name == "upload.jpg"
    assert plain.exif["Orientation"] == 8
    assert plain.original_file_size == path.stat().st_size
    assert (rotated.original_width, rotated.original_height) == (20, 40)


def test_metadata_png_has_no_exif(manager, png_path) -> None:
    assert manager.metadata(png_path).exif == {}


def test_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("IMAGE_MANAGER_SECRET", SECRET)
    monkeypatch.setenv("IMAGE_MANAGER_AUTOROTATE", "true")
    monkeypatch.setenv("IMAGE_MANAGER_DEFAULT_QUALITY", "80")

    manager = ImageManager.from_settings(Settings(_env_file=None))

    assert manager.secret == SECRET
    assert manager.autorotate is True
    assert manager.default_quality == 80


def test_crop_to_zero_width_is_rejected(manager, jpeg_path) -> None:
    manager.load_image(jpeg_path)

    with pytest.raises(ValueError):
        manager.crop(0, 10)


def test_watermark_released_when_primary_cannot_be_decrypted(manager, tmp_path, monkeypatch) -> None:
    base = make_image(tmp_path / "base.png", (40, 40), (255, 255, 255))
    logo = make_image(tmp_path / "logo.png", (10, 10), (255, 0, 0, 255), mode="RGBA")
    foreign = ImageManager(secret="someone-else").load_image(base).encrypt().image

    loaded = []
    load_image = manager._image_service.load_image

    def tracking_load(*args, **kwargs):
        image = load_image(*args, **kwargs)
        loaded.append(image)
        return image

    monkeypatch.setattr(manager._image_service, "load_image", tracking_load)

    with pytest.raises(CryptoOperationError):
        manager.add_image_watermark(foreign, {"file": str(logo)})

    with pytest.raises(ValueError):
        loaded[0].pixels.load()


def test_decrypted_primary_released_when_compositing_fails(manager, tmp_path, monkeypatch) -> None:
    base = make_image(tmp_path / "base.png", (40, 40), (255, 255, 255))
    logo = make_image(tmp_path / "logo.png", (10, 10), (255, 0, 0, 255), mode="RGBA")
    encrypted = manager.load_image(base).encrypt().image

    decrypted = []
    decrypt_image = manager.decrypt_image

    def tracking_decrypt(image):
        result = decrypt_image(image)
        decrypted.append(result)
        return result

    def failing_apply(*args, **kwargs):
        raise RuntimeError("compositing failed")

    monkeypatch.setattr(manager, "decrypt_image", tracking_decrypt)
    monkeypatch.setattr(manager._watermark_service, "apply", failing_apply)

    with pytest.raises(RuntimeError):
        manager.add_image_watermark(encrypted, {"file": str(logo)})

    assert manager.image.payload == encrypted.payload
    with pytest.raises(ValueError):
        decrypted[0].pixels.load()
