"""
Image file I/O for the command line.

Decodes files into PixelBuffers and encodes buffers back with Pillow. The
filtering engine itself never touches files.
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from .processing.buffer import PixelBuffer

logger = logging.getLogger(__name__)

# Formats without an alpha channel
_OPAQUE_FORMATS = {'.jpg', '.jpeg', '.bmp'}


def load_buffer(path: Union[str, Path]) -> PixelBuffer:
    """
    Decode an image file into an RGB or RGBA buffer.

    Palette, greyscale and other modes are converted; images carrying
    transparency become RGBA.
    """
    with Image.open(path) as image:
        if image.mode == 'RGBA' or 'transparency' in image.info or image.mode in ('LA', 'PA'):
            mode = 'RGBA'
        else:
            mode = 'RGB'
        array = np.asarray(image.convert(mode), dtype=np.uint8)

    logger.debug(f"Loaded {path}: {array.shape[1]}x{array.shape[0]} {mode}")
    return PixelBuffer.from_array(array)


def save_buffer(buffer: PixelBuffer, path: Union[str, Path]) -> Path:
    """Encode a buffer; alpha is dropped for formats that cannot store it."""
    path = Path(path)
    # (H, W, 3) uint8 maps to RGB, (H, W, 4) to RGBA
    image = Image.fromarray(buffer.to_array())
    if buffer.has_alpha and path.suffix.lower() in _OPAQUE_FORMATS:
        image = image.convert('RGB')

    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path)
    logger.debug(f"Saved {path}")
    return path
