from typing import Tuple

import numpy as np


def letterbox(
    image: np.ndarray,
    side: int = 640,
    color: Tuple[int, int, int] = (114, 114, 114),
    scale_fill: bool = True,
):
    """
    Resize an image to a `side` x `side` model input.

    With `scale_fill` (the default) the image is stretched to the square, so
    normalized box coordinates map straight back onto the original frame.
    Otherwise the aspect ratio is kept and the remainder padded with `color`.

    Returns:
        resized: square image
        ratio: (w_ratio, h_ratio)
        pad: (dw, dh) padding applied on the left/top
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    h, w = image.shape[:2]
    if h == 0 or w == 0:
        raise ValueError(f"Cannot resize an empty image of shape {image.shape}")

    if scale_fill:
        resized = cv2.resize(image, (side, side), interpolation=cv2.INTER_LINEAR)
        return resized, (side / w, side / h), (0.0, 0.0)

    r = min(side / w, side / h)
    resized_w, resized_h = int(round(w * r)), int(round(h * r))
    dw, dh = (side - resized_w) / 2, (side - resized_h) / 2

    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
    left, right = int(round(dw - 0.1)), int(round(dw + 0.1))
    padded = cv2.copyMakeBorder(image, top, bottom, left, right, cv2.BORDER_CONSTANT, value=color)

    return padded, (r, r), (dw, dh)
