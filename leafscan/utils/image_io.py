# leafscan/utils/image_io.py
import io

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from leafscan.core.config import Config
from leafscan.core.errors import PreprocessingError
from leafscan.models.scan_types import PreprocessedImage, RawCapture


def _read_source(raw: RawCapture) -> bytes:
    src = raw.source
    if isinstance(src, (bytes, bytearray)):
        return bytes(src)
    if isinstance(src, str) and src.startswith("file://"):
        src = src[len("file://"):]
    with open(src, "rb") as f:
        return f.read()


def encode_jpeg(img: Image.Image, quality: int = None) -> bytes:
    quality = int(Config.JPEG_QUALITY if quality is None else quality)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def decode_to_tensor(jpeg_bytes: bytes) -> np.ndarray:
    """
    JPEG bytes -> flat uint8 array (H*W*3), row-major RGB.
    """
    img = Image.open(io.BytesIO(jpeg_bytes)).convert("RGB")
    arr = np.asarray(img, dtype=np.uint8)
    return arr.reshape(-1)


def preprocess(raw: RawCapture, width: int = None, height: int = None) -> PreprocessedImage:
    """
    Raw capture -> PreprocessedImage:
    - resize to the fixed model input size
    - re-encode as JPEG (preview / storage artifact)
    - decode that same JPEG back into the model tensor

    The tensor is derived from the stored bytes, so what the user sees
    is exactly what the models saw.
    """
    width = int(Config.IMG_WIDTH if width is None else width)
    height = int(Config.IMG_HEIGHT if height is None else height)

    try:
        image_bytes = _read_source(raw)
        img = Image.open(io.BytesIO(image_bytes))
        # Camera photos often carry the rotation in EXIF only
        img = ImageOps.exif_transpose(img)
        img = img.convert("RGB")
        img = img.resize((width, height), Image.BILINEAR)

        encoded = encode_jpeg(img)
        tensor = decode_to_tensor(encoded)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise PreprocessingError(f"Cannot preprocess image: {e}") from e

    expected = width * height * Config.IMG_CHANNELS
    if tensor.size != expected:
        raise PreprocessingError(
            f"Tensor size {tensor.size} does not match {width}x{height}x{Config.IMG_CHANNELS}"
        )

    # shared across the concurrent model runs
    tensor.setflags(write=False)

    return PreprocessedImage(
        width=width,
        height=height,
        channels=Config.IMG_CHANNELS,
        encoded=encoded,
        tensor=tensor,
    )
