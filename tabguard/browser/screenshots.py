"""
Обработка скриншотов: уменьшение до заданных размеров.
"""

import io
import logging

from PIL import Image, UnidentifiedImageError


logger = logging.getLogger(__name__)


def downscale_png(data: bytes, max_width: int, max_height: int) -> bytes:
    """
    Уменьшает PNG, если он больше max_width x max_height.

    Пропорции сохраняются. Если изображение не удалось прочитать,
    возвращаются исходные байты.

    Args:
        data: PNG в байтах
        max_width: Максимальная ширина
        max_height: Максимальная высота

    Returns:
        bytes: PNG в байтах
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Не удалось прочитать скриншот для resize: {e}")
        return data

    width, height = img.size
    if width <= max_width and height <= max_height:
        return data

    ratio = min(max_width / width, max_height / height)
    new_size = (max(1, int(width * ratio)), max(1, int(height * ratio)))
    img = img.resize(new_size, Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG", optimize=True)
    resized = buffer.getvalue()

    logger.debug(
        f"Screenshot resized: {width}x{height} -> {new_size[0]}x{new_size[1]}, "
        f"{len(data):,} -> {len(resized):,} bytes"
    )
    return resized
