# -*- coding: utf-8 -*-
import io
import logging
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from modules.errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

# Output extension -> Pillow format name.
SUPPORTED_OUTPUT_FORMATS = {
    "jpg": "JPEG",
    "png": "PNG",
    "gif": "GIF",
    "tif": "TIFF",
}

# Modes each target can store without conversion.
_STORABLE_MODES = {
    "jpg": ("RGB", "L", "CMYK"),
    "png": ("RGB", "RGBA", "L", "LA", "P", "I", "1"),
    "gif": ("P", "L", "RGB", "RGBA"),
    "tif": ("RGB", "RGBA", "L", "LA", "CMYK", "P", "I", "F", "1"),
}


class ImageInspector:
    """Decodes staged files, re-encodes them and reports their pixel dimensions."""

    def decode(self, local_path: str):
        raise NotImplementedError

    def encode(self, image, output_format: str, quality: int) -> bytes:
        raise NotImplementedError

    def dimensions(self, image) -> Tuple[int, int]:
        raise NotImplementedError


def prepare_image_for_save(img: Image.Image, output_format: str) -> Image.Image:
    """Converts the image to a mode the target format can store."""
    original_mode = img.mode
    if img.mode in _STORABLE_MODES[output_format]:
        return img

    if output_format == "jpg" and img.mode in ("RGBA", "LA", "P", "PA"):
        rgba = img.convert("RGBA")
        save_img = Image.new("RGB", img.size, (255, 255, 255))
        save_img.paste(rgba, mask=rgba.split()[3])
        logger.debug(f"Flattened '{original_mode}' onto white background for JPG output.")
        return save_img

    has_alpha = img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info
    target_mode = "RGBA" if has_alpha and "RGBA" in _STORABLE_MODES[output_format] else "RGB"
    save_img = img.convert(target_mode)
    logger.debug(f"Image mode converted: '{original_mode}' -> '{save_img.mode}' (Target output format: {output_format})")
    return save_img


class PillowInspector(ImageInspector):

    def decode(self, local_path: str) -> Image.Image:
        try:
            with Image.open(local_path) as img:
                img.load()
                logger.debug(f"Decoded '{local_path}' (Format: {img.format}, Size: {img.size}, Mode: {img.mode})")
                return img.copy()
        except UnidentifiedImageError as e:
            raise DecodeError(f"Invalid or corrupt image file. Pillow cannot recognize '{local_path}'.") from e
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            # SyntaxError is how several Pillow plugins (PSD included) report malformed headers.
            raise DecodeError(f"Could not decode '{local_path}': {e}") from e

    def encode(self, image: Image.Image, output_format: str, quality: int) -> bytes:
        output_format = output_format.lower()
        if output_format not in SUPPORTED_OUTPUT_FORMATS:
            raise EncodeError(f"Unsupported output format '{output_format}'.")
        if not 0 <= quality <= 100:
            raise EncodeError(f"Quality must be between 0 and 100, got {quality}.")

        save_kwargs = {}
        if output_format == "jpg":
            save_kwargs.update({"quality": quality, "optimize": True})
        elif output_format == "png":
            save_kwargs.update({"optimize": True})
        elif output_format == "tif":
            save_kwargs.update({"compression": "tiff_lzw"})

        buffer = io.BytesIO()
        try:
            save_img = prepare_image_for_save(image, output_format)
            save_img.save(buffer, format=SUPPORTED_OUTPUT_FORMATS[output_format], **save_kwargs)
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(f"Encoding to {SUPPORTED_OUTPUT_FORMATS[output_format]} failed: {e}") from e
        return buffer.getvalue()

    def dimensions(self, image: Image.Image) -> Tuple[int, int]:
        return image.size
