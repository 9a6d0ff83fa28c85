#!/usr/bin/env python3
"""
decoder.py — product barcode reader for food-package photos.

Strategy:
- Whole image first (most uploads are close-ups of the barcode)
- Barcode-shaped regions found from image gradients, each tried with
  several scales, small rotations and preprocessing variants
- Whole image again with the full set of scales and rotations
- GTINs with a valid check digit beat any other decoded text

Usage:
    python decoder.py /path/to/photo.jpg

Output:
    Prints decoded barcode text to stdout. Exit 0 on success, 1 on failure.

Deps:
    pip install pillow
    pip install pyzbar         # plus system zbar
    pip install opencv-python
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Tuple

import cv2
import numpy as np
from PIL import Image
from pyzbar.pyzbar import decode as zbar_decode, ZBarSymbol

logger = logging.getLogger(__name__)

# ----------------- tunable constants -----------------

# Retail symbologies printed on food packaging, plus QR for newer GS1 labels.
SYMBOLS = [
    ZBarSymbol.EAN13,
    ZBarSymbol.EAN8,
    ZBarSymbol.UPCA,
    ZBarSymbol.UPCE,
    ZBarSymbol.CODE128,
    ZBarSymbol.QRCODE,
]

GTIN_LENGTHS = (8, 12, 13, 14)

# Ignore junk hits shorter than an EAN-8 minus its check digit.
MIN_CODE_LEN = 6

# Size normalisation before decoding.
MIN_ROI_WIDTH = 640
MAX_ROI_LONG_SIDE = 1600

SCALE_FACTORS = [1.0, 1.5, 0.75]
ROTATION_ANGLES = [0, -4, 4, -8, 8]

# Candidate regions kept from gradient search.
MAX_REGIONS = 4

# ----------------- validation -----------------


def is_valid_gtin(code: str) -> bool:
    """GS1 mod-10 check for EAN-8, UPC-A, EAN-13 and GTIN-14."""
    if not code.isdigit() or len(code) not in GTIN_LENGTHS:
        return False
    digits = [int(c) for c in code]
    body, check = digits[:-1], digits[-1]
    # Weights alternate 3, 1 starting from the digit next to the check digit.
    total = sum(d * (3 if i % 2 == 0 else 1) for i, d in enumerate(reversed(body)))
    return (10 - total % 10) % 10 == check


# ----------------- decoders -----------------


def _decode_with_pyzbar(gray: np.ndarray) -> List[str]:
    """Run ZBar on a single grayscale image."""
    hits: List[str] = []
    for r in zbar_decode(Image.fromarray(gray), symbols=SYMBOLS):
        s = r.data.decode("utf-8", "replace")
        if s:
            hits.append(s)
    return hits


def _decode_with_cv(bgr: np.ndarray) -> List[str]:
    """
    OpenCV barcode detector (if available in this build).
    """
    factory = (getattr(getattr(cv2, "barcode", None), "BarcodeDetector", None)
               or getattr(cv2, "barcode_BarcodeDetector", None))
    if factory is None:
        return []

    det = factory()
    # 4.8+ exposes detectAndDecodeMulti; older contrib builds return the
    # same leading (ok, infos, ...) tuple from detectAndDecode.
    detect = getattr(det, "detectAndDecodeMulti", det.detectAndDecode)
    try:
        result = detect(bgr)
    except cv2.error:
        return []

    if not isinstance(result, tuple) or len(result) < 2:
        return []
    ok, infos = result[0], result[1]
    if ok and isinstance(infos, (list, tuple)):
        return [s for s in infos if s]
    return []


# ----------------- preprocessing -----------------


def _preprocessing_variants(gray: np.ndarray) -> List[np.ndarray]:
    """Contrast and threshold variants for glossy or badly lit packaging."""
    variants: List[np.ndarray] = [gray]

    kernel = np.array([[0, -1, 0],
                       [-1, 5, -1],
                       [0, -1, 0]])
    variants.append(cv2.filter2D(gray, -1, kernel))

    clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
    variants.append(clahe.apply(gray))

    blurred = cv2.GaussianBlur(gray, (3, 3), 0)
    _, otsu = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    variants.append(otsu)

    variants.append(cv2.adaptiveThreshold(
        gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 31, 5
    ))
    return variants


def _normalize_size(bgr: np.ndarray) -> np.ndarray:
    """Upscale thin crops and shrink large phone photos."""
    H, W = bgr.shape[:2]
    longest = max(H, W)

    scale = float(MIN_ROI_WIDTH) / float(W) if W < MIN_ROI_WIDTH else 1.0
    if longest * scale > MAX_ROI_LONG_SIDE:
        scale = float(MAX_ROI_LONG_SIDE) / float(longest)

    if np.isclose(scale, 1.0):
        return bgr
    return _resize(bgr, scale)


def _resize(bgr: np.ndarray, scale: float) -> np.ndarray:
    """Resize by ``scale``, never collapsing a side below one pixel."""
    H, W = bgr.shape[:2]
    size = (max(1, int(round(W * scale))), max(1, int(round(H * scale))))
    interp = cv2.INTER_CUBIC if scale > 1.0 else cv2.INTER_AREA
    return cv2.resize(bgr, size, interpolation=interp)


def _rotate(bgr: np.ndarray, angle: float) -> np.ndarray:
    if angle == 0:
        return bgr
    H, W = bgr.shape[:2]
    M = cv2.getRotationMatrix2D((W // 2, H // 2), angle, 1.0)
    return cv2.warpAffine(bgr, M, (W, H), borderMode=cv2.BORDER_REPLICATE)


# ----------------- selection -----------------


def _best_barcode(hits: List[str]) -> str:
    """
    Choose the best text among raw hits: valid GTINs first, then the
    longest remaining text.
    """
    cleaned = {h.strip() for h in hits if h and len(h.strip()) >= MIN_CODE_LEN}
    if not cleaned:
        return ""
    ranked = sorted(cleaned, key=lambda s: (not is_valid_gtin(s), -len(s), s))
    return ranked[0]


# ----------------- region selection -----------------


def _find_barcode_regions(bgr: np.ndarray) -> List[np.ndarray]:
    """
    Locate areas with dense parallel bars: strong gradient along one axis,
    closed into wide blobs. Both orientations are searched because packages
    are often photographed sideways.
    """
    crops: List[np.ndarray] = []
    H, W = bgr.shape[:2]
    if H == 0 or W == 0:
        return crops

    gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
    grad_x = cv2.convertScaleAbs(cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=-1))
    grad_y = cv2.convertScaleAbs(cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=-1))

    boxes: List[Tuple[int, int, int, int]] = []
    for grad, ksize in ((cv2.subtract(grad_x, grad_y), (21, 7)),
                        (cv2.subtract(grad_y, grad_x), (7, 21))):
        blurred = cv2.blur(grad, (9, 9))
        _, thr = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, ksize)
        closed = cv2.morphologyEx(thr, cv2.MORPH_CLOSE, kernel)
        closed = cv2.erode(closed, None, iterations=4)
        closed = cv2.dilate(closed, None, iterations=4)

        contours, _hier = cv2.findContours(closed, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)[-2:]
        for c in contours:
            x, y, w, h = cv2.boundingRect(c)
            if w * h >= 0.01 * W * H:
                boxes.append((x, y, w, h))

    boxes.sort(key=lambda b: b[2] * b[3], reverse=True)

    for (x, y, w, h) in boxes[:MAX_REGIONS]:
        pad_x = max(10, int(0.15 * w))
        pad_y = max(10, int(0.15 * h))
        x0 = max(0, x - pad_x)
        y0 = max(0, y - pad_y)
        x1 = min(W, x + w + pad_x)
        y1 = min(H, y + h + pad_y)
        crops.append(bgr[y0:y1, x0:x1].copy())

    return crops


# ----------------- decoding per ROI -----------------


def _decode_once(bgr: np.ndarray) -> str:
    """Decode a single ROI at its current size and rotation."""
    cv_best = _best_barcode(_decode_with_cv(bgr))
    if is_valid_gtin(cv_best):
        return cv_best

    hits: List[str] = [cv_best] if cv_best else []
    gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
    for variant in _preprocessing_variants(gray):
        hits.extend(_decode_with_pyzbar(variant))
        best = _best_barcode(hits)
        if is_valid_gtin(best):
            return best

    return _best_barcode(hits)


def _decode_roi(bgr: np.ndarray, scales: List[float], angles: List[int]) -> str:
    """Try an ROI across scales, then small rotations per scale."""
    roi = _normalize_size(bgr)
    for scale in scales:
        if scale != 1.0:
            scaled = _resize(roi, scale)
        else:
            scaled = roi

        for angle in angles:
            text = _decode_once(_rotate(scaled, angle))
            if text:
                return text

    return ""


# ----------------- main API -----------------


def _scan(bgr: np.ndarray) -> str:
    """Run the decode phases; returns "" when nothing decodes."""
    # Phase 1: plain decode of the whole photo
    hits: List[str] = []
    text = _decode_roi(bgr, [1.0], [0])
    if is_valid_gtin(text):
        logger.debug("Decoded %s from full image", text)
        return text
    if text:
        hits.append(text)

    # Phase 2: gradient-located regions
    for roi in _find_barcode_regions(bgr):
        text = _decode_roi(roi, SCALE_FACTORS, ROTATION_ANGLES)
        if text:
            hits.append(text)
    best = _best_barcode(hits)
    if is_valid_gtin(best):
        logger.debug("Decoded %s from %d candidate(s)", best, len(hits))
        return best

    # Phase 3: whole photo with every scale and rotation
    text = _decode_roi(bgr, SCALE_FACTORS, ROTATION_ANGLES)
    if text:
        hits.append(text)
    return _best_barcode(hits)


def read_barcode(image_path: str) -> str:
    """
    Read the product barcode on a food-package photo.

    Raises:
        FileNotFoundError
        ValueError if the image cannot be read or no barcode is decodable.
    """
    p = Path(image_path)
    if not p.exists():
        raise FileNotFoundError(image_path)

    bgr = cv2.imread(str(p))
    if bgr is None:
        raise ValueError(f"Could not read image: {image_path}")

    try:
        text = _scan(bgr)
    except cv2.error as e:
        raise ValueError(f"Could not read image: {image_path}") from e
    if not text:
        raise ValueError("No decodable barcode found.")
    return text


# ----------------- CLI -----------------


def main() -> int:
    ap = argparse.ArgumentParser(
        description="Read the product barcode in a photo and print its text."
    )
    ap.add_argument("image", help="Path to the image file.")
    args = ap.parse_args()
    try:
        print(read_barcode(args.image))
        return 0
    except (OSError, ValueError) as e:
        sys.stderr.write(f"Error: {e}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
