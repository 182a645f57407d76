"""HDR to 8-bit display mapping: exposure, ACES tone curve and gamma."""

from __future__ import annotations

import numpy as np

_A = np.float32(2.51)
_B = np.float32(0.03)
_C = np.float32(2.43)
_D = np.float32(0.59)
_E = np.float32(0.14)


def _result(arr: np.ndarray):
    return float(arr) if arr.ndim == 0 else arr


def aces_tonemap(x):
    """ACES filmic curve clamped to [0, 1]; accepts scalars or arrays."""
    v = np.asarray(x, dtype=np.float32)
    with np.errstate(invalid="ignore", over="ignore", divide="ignore"):
        res = np.clip((v * (_A * v + _B)) / (v * (_C * v + _D) + _E), 0.0, 1.0)
    return _result(np.asarray(res, dtype=np.float32))


def apply_gamma(value, gamma_inv):
    """Raise ``value`` to ``gamma_inv``, with shortcuts for common settings."""
    gi = float(gamma_inv)
    v = np.asarray(value, dtype=np.float32)
    with np.errstate(invalid="ignore"):
        if abs(gi - 0.45454545) < 0.001:
            s = np.sqrt(v)
            res = s * np.sqrt(s)
        elif abs(gi - 0.5) < 0.001:
            res = np.sqrt(v)
        elif abs(gi - 1.0) < 0.001:
            res = v
        else:
            res = np.power(v, np.float32(gi))
    return _result(np.asarray(res, dtype=np.float32))


def _to_u8(v: np.ndarray) -> np.ndarray:
    scaled = np.floor(np.asarray(v, dtype=np.float32) * np.float32(255.0) + np.float32(0.5))
    return np.clip(np.nan_to_num(scaled, nan=0.0), 0, 255).astype(np.uint8)


def process_pixels(pixels, exposure: float, gamma: float) -> np.ndarray:
    """Map an array of RGBA float pixels (last axis 4) to RGBA uint8."""
    px = np.asarray(pixels, dtype=np.float32)
    if px.shape[-1:] != (4,):
        raise ValueError("pixels must have a last axis of length 4")
    multiplier = np.float32(2.0) ** np.float32(exposure)
    g = np.float32(gamma)
    gamma_inv = np.float32(1.0) / (g if g > np.float32(1e-4) else np.float32(1e-4))

    with np.errstate(invalid="ignore", over="ignore"):
        rgb = px[..., :3]
        rgb = np.where(np.isfinite(rgb), np.maximum(rgb, 0.0), 0.0).astype(np.float32)
        alpha = px[..., 3]
        alpha = np.where(np.isfinite(alpha), np.clip(alpha, 0.0, 1.0), 1.0)
        mapped = apply_gamma(aces_tonemap(rgb * multiplier), gamma_inv)

    out = np.empty(px.shape, dtype=np.uint8)
    out[..., :3] = _to_u8(mapped)
    out[..., 3] = _to_u8(alpha)
    return out


def process_pixel(r: float, g: float, b: float, a: float, exposure: float, gamma: float) -> tuple[int, int, int, int]:
    """Map one HDR pixel to an 8-bit ``(r, g, b, a)`` tuple."""
    out = process_pixels(np.array([[r, g, b, a]], dtype=np.float32), exposure, gamma)[0]
    return tuple(int(c) for c in out)