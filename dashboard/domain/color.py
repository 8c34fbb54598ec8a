from __future__ import annotations

import math
from typing import Any, Optional

from .models import ColorXY

# CIE XYZ (D65) to linear sRGB
_XYZ_TO_RGB = (
    (3.2404542, -1.5371385, -0.4985314),
    (-0.9692660, 1.8760108, 0.0415560),
    (0.0556434, -0.2040259, 1.0572252),
)


def _clamp(v: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, v))


def _gamma(v: float) -> float:
    if v <= 0.0031308:
        return 12.92 * v
    return 1.055 * math.pow(v, 1.0 / 2.4) - 0.055


def _channel(v: float) -> int:
    # round half-up
    return int(math.floor(_clamp(_gamma(v)) * 255 + 0.5))


def xy_to_hex(x: float, y: float) -> str:
    """Hex colour of a CIE xy chromaticity at full luminance."""
    x, y = _clamp(x), _clamp(y)
    if y == 0:
        return "#FFFFFF"
    big_y = 1.0
    big_x = (x / y) * big_y
    big_z = ((1.0 - x - y) / y) * big_y
    r, g, b = (
        _channel(row[0] * big_x + row[1] * big_y + row[2] * big_z)
        for row in _XYZ_TO_RGB
    )
    return f"#{r:02x}{g:02x}{b:02x}"


def mirek_to_xy(mirek: float) -> ColorXY:
    """Approximate xy of a colour temperature (Planckian locus fit)."""
    mirek = _clamp(mirek, 153, 500)
    kelvin = 1_000_000 / mirek
    if kelvin < 4000:
        x = (-0.2661239e9 / kelvin ** 3 - 0.2343580e6 / kelvin ** 2
             + 0.8776956e3 / kelvin + 0.179910)
    else:
        x = (-3.0258469e9 / kelvin ** 3 + 2.1070379e6 / kelvin ** 2
             + 0.2226347e3 / kelvin + 0.240390)
    y = -3.0 * x ** 2 + 2.87 * x - 0.275
    return ColorXY(x=_clamp(x), y=_clamp(y))


def parse_xy(raw: Any) -> Optional[ColorXY]:
    """Accept ``{"x": .., "y": ..}`` or ``[x, y]``."""
    if isinstance(raw, dict) and raw.get("x") is not None and raw.get("y") is not None:
        return ColorXY(x=float(raw["x"]), y=float(raw["y"]))
    if isinstance(raw, (list, tuple)) and len(raw) >= 2:
        return ColorXY(x=float(raw[0]), y=float(raw[1]))
    return None
