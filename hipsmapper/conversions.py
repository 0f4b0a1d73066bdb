import numpy as np
from loguru import logger


def normalize_to_uint8(data: np.ndarray) -> np.ndarray:
    """Normalize image data to 8-bit range (0-255)"""
    if data.dtype == np.uint8:
        return data

    if data.dtype == np.uint16:
        logger.debug("Converting uint16 to uint8")
        return (data // 256).astype(np.uint8)

    if data.dtype == np.bool_:
        return data.astype(np.uint8) * 255

    # For other types, normalize to 0-255 range
    data = data.astype(np.float64)
    data_min = np.min(data)
    data_max = np.max(data)
    if data_max > data_min:
        data = (data - data_min) * 255.0 / (data_max - data_min)
    return np.clip(data, 0, 255).astype(np.uint8)


def to_rgba(image: np.ndarray) -> np.ndarray:
    """
    Convert a decoded image to an (H, W, 4) uint8 array.

    Grayscale values are copied to the three color channels and an
    opaque alpha channel is added when the image has none.
    """
    image = normalize_to_uint8(image)
    if image.ndim == 2:
        image = image[:, :, np.newaxis]
    if image.ndim != 3:
        raise ValueError(f"Image must be 2D or 3D, got shape {image.shape}")

    channels = image.shape[2]
    opaque = np.full(image.shape[:2] + (1,), 255, dtype=np.uint8)
    if channels == 1:
        return np.concatenate([image, image, image, opaque], axis=2)
    if channels == 2:
        # gray + alpha
        gray = image[:, :, :1]
        return np.concatenate([gray, gray, gray, image[:, :, 1:]], axis=2)
    if channels == 3:
        return np.concatenate([image, opaque], axis=2)
    if channels == 4:
        return np.ascontiguousarray(image)
    raise ValueError(f"Unsupported number of channels: {channels}")
