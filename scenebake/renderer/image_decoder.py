import dataclasses
import logging
import pathlib as pl
import typing
import numpy as np
import numpy.typing as npt
import cv2
from scenebake.core.common_types import TextureFormat
from scenebake.core.errors import ImageDecodeError

logger = logging.getLogger(__name__)

@dataclasses.dataclass
class DecodedImage:
    # pixels: (height, width, channels) uint8, rows already in upload order
    pixels: npt.NDArray[np.uint8]
    width: int
    height: int
    channels: int

    @property
    def format(self) -> TextureFormat:
        return texture_format_for(self.channels)

def texture_format_for(channels: int) -> TextureFormat:
    try:
        return TextureFormat(channels)
    except ValueError:
        raise ValueError(f"No 8-bit texture format with {channels} channels") from None

def _to_uint8(data: npt.NDArray[typing.Any]) -> npt.NDArray[np.uint8]:
    if data.dtype == np.uint8:
        return data
    if data.dtype == np.uint16:
        return (data >> 8).astype(dtype=np.uint8)
    # Float images (EXR, HDR) are clamped to [0, 1] first.
    return (np.clip(data.astype(dtype=np.float32), 0.0, 1.0) * 255.0 + 0.5).astype(dtype=np.uint8)

def decode_image(path: str | pl.Path, flip_vertically: bool = True) -> DecodedImage:
    """
    Reads an image file into 8-bit pixels ready for a 1, 2 or 4 channel texture.
    OpenCV hands out BGR(A); the result is RGB(A), with 3-channel images widened to RGBA
    since there is no 3-channel device format. With flip_vertically the first row is
    the bottom of the image, which is what OpenGL samples at v = 0.
    """
    path = pl.Path(path)
    if not path.is_file():
        raise ImageDecodeError(path=path, reason="file not found")

    loaded_data: npt.NDArray[typing.Any] | None = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if loaded_data is None:
        raise ImageDecodeError(path=path, reason="unsupported or corrupt image")

    if loaded_data.ndim == 3 and loaded_data.shape[2] == 1:
        loaded_data = loaded_data[:, :, 0]

    if loaded_data.ndim == 2:
        pixels: npt.NDArray[typing.Any] = loaded_data[:, :, np.newaxis]
    elif loaded_data.shape[2] == 2:
        pixels = loaded_data
    elif loaded_data.shape[2] == 3:
        pixels = cv2.cvtColor(loaded_data, cv2.COLOR_BGR2RGBA)
    elif loaded_data.shape[2] == 4:
        pixels = cv2.cvtColor(loaded_data, cv2.COLOR_BGRA2RGBA)
    else:
        raise ImageDecodeError(path=path, reason=f"unsupported channel count {loaded_data.shape[2]}")

    pixels = _to_uint8(pixels)
    if flip_vertically:
        pixels = np.flipud(pixels)
    pixels = np.ascontiguousarray(pixels)

    height, width, channels = pixels.shape
    logger.debug("Decoded %s: %dx%d, %d channels", path, width, height, channels)
    return DecodedImage(pixels=pixels, width=int(width), height=int(height), channels=int(channels))
