"""Local edge map extraction with OpenCV.

grayscale -> Gaussian blur -> fit inside 1024px -> Sobel magnitude threshold -> PNG
"""

import cv2
import numpy as np

MAX_EDGE_SIZE = 1024
BLUR_SIGMA = 1.5
EDGE_THRESHOLD = 50


def extract_edge_map(image_bytes: bytes) -> bytes:
    """Return a white-on-black PNG edge map of the photo.

    Raises ValueError when the bytes don't decode as an image.
    """
    buf = np.frombuffer(image_bytes, dtype=np.uint8)
    gray = cv2.imdecode(buf, cv2.IMREAD_GRAYSCALE)
    if gray is None or gray.size == 0:
        raise ValueError("Could not decode image for edge detection")

    blurred = cv2.GaussianBlur(gray, (0, 0), BLUR_SIGMA)

    h, w = blurred.shape[:2]
    scale = min(MAX_EDGE_SIZE / w, MAX_EDGE_SIZE / h, 1.0)
    if scale < 1.0:
        blurred = cv2.resize(
            blurred,
            (max(1, round(w * scale)), max(1, round(h * scale))),
            interpolation=cv2.INTER_AREA,
        )

    gx = cv2.Sobel(blurred, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(blurred, cv2.CV_32F, 0, 1, ksize=3)
    magnitude = cv2.magnitude(gx, gy)
    edges = np.where(magnitude > EDGE_THRESHOLD, 255, 0).astype(np.uint8)

    ok, encoded = cv2.imencode(".png", edges)
    if not ok:
        raise ValueError("Could not encode edge map")
    return encoded.tobytes()
