import cv2
import numpy as np
import pytest

# EAN-13 element patterns (1 = bar), indexed by digit.
L_CODES = ["0001101", "0011001", "0010011", "0111101", "0100011",
           "0110001", "0101111", "0111011", "0110111", "0001011"]
G_CODES = ["0100111", "0110011", "0011011", "0100001", "0011101",
           "0111001", "0000101", "0010001", "0001001", "0010111"]
R_CODES = ["1110010", "1100110", "1101100", "1000010", "1011100",
           "1001110", "1010000", "1000100", "1001000", "1110100"]
# Left-half parity selected by the leading digit.
PARITY = ["LLLLLL", "LLGLGG", "LLGGLG", "LLGGGL", "LGLLGG",
          "LGGLLG", "LGGGLL", "LGLGLG", "LGLGGL", "LGGLGL"]

NUTELLA = "3017620422003"


def ean13_modules(code):
    first, left, right = int(code[0]), code[1:7], code[7:]
    bits = "101"
    for parity, d in zip(PARITY[first], left):
        bits += (L_CODES if parity == "L" else G_CODES)[int(d)]
    bits += "01010"
    for d in right:
        bits += R_CODES[int(d)]
    return bits + "101"


def draw_ean13(code, module_px=4, height=160, quiet=12, margin=30):
    """Render a clean EAN-13 as a BGR image on a white background."""
    bits = "0" * quiet + ean13_modules(code) + "0" * quiet
    row = np.array([0 if b == "1" else 255 for b in bits], dtype=np.uint8)
    row = np.repeat(row, module_px)
    gray = np.tile(row, (height, 1))
    gray = cv2.copyMakeBorder(gray, margin, margin, margin, margin,
                              cv2.BORDER_CONSTANT, value=255)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def barcode_photo(tmp_path):
    """PNG file holding a clean EAN-13 for NUTELLA."""
    path = tmp_path / "barcode.png"
    cv2.imwrite(str(path), draw_ean13(NUTELLA))
    return path


@pytest.fixture
def blank_photo(tmp_path):
    path = tmp_path / "blank.png"
    cv2.imwrite(str(path), np.full((300, 400, 3), 255, dtype=np.uint8))
    return path


@pytest.fixture
def product_json():
    """Trimmed Open Food Facts v2 ``product`` object."""
    return {
        "code": NUTELLA,
        "product_name": "Nutella",
        "serving_size": "15 g",
        "selected_images": {
            "front": {
                "display": {
                    "en": "https://images.openfoodfacts.org/front_en.400.jpg",
                    "fr": "https://images.openfoodfacts.org/front_fr.400.jpg",
                }
            }
        },
        "image_front_url": "https://images.openfoodfacts.org/front.jpg",
        "nutriments": {
            "energy-kcal_serving": 80,
            "carbohydrates_serving": 8.62,
            "proteins_serving": "0.9",
            "fat_serving": 4.6,
        },
    }
