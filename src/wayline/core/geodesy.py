from __future__ import annotations

import numpy as np

# WGS84
WGS84_A = 6378137.0
WGS84_F = 1.0 / 298.257223563
WGS84_E2 = WGS84_F * (2.0 - WGS84_F)
WGS84_B = WGS84_A * (1.0 - WGS84_F)


def geodetic_to_ecef(lon_deg: float, lat_deg: float, height_m: float = 0.0) -> np.ndarray:
    """Convert geodetic longitude/latitude/height to an ECEF position in metres."""
    lon = np.radians(float(lon_deg))
    lat = np.radians(float(lat_deg))

    s_lat = np.sin(lat)
    c_lat = np.cos(lat)
    n = WGS84_A / np.sqrt(1.0 - WGS84_E2 * s_lat * s_lat)

    h = float(height_m)
    return np.array(
        [
            (n + h) * c_lat * np.cos(lon),
            (n + h) * c_lat * np.sin(lon),
            (n * (1.0 - WGS84_E2) + h) * s_lat,
        ],
        dtype=np.float64,
    )


def ecef_to_geodetic(position: np.ndarray | tuple[float, float, float] | list[float]) -> tuple[float, float, float]:
    """Convert an ECEF position back to (lon_deg, lat_deg, height_m).

    Uses Bowring's closed form followed by two refinement passes, which is well
    below a millimetre for anything near the Earth's surface.
    """
    x, y, z = (float(v) for v in np.asarray(position, dtype=np.float64).reshape(3))
    lon = np.arctan2(y, x)
    p = float(np.hypot(x, y))

    if p < 1e-9:
        # On the polar axis.
        lat = np.pi / 2.0 if z >= 0.0 else -np.pi / 2.0
        return float(np.degrees(lon)), float(np.degrees(lat)), abs(z) - WGS84_B

    ep2 = (WGS84_A * WGS84_A - WGS84_B * WGS84_B) / (WGS84_B * WGS84_B)
    theta = np.arctan2(z * WGS84_A, p * WGS84_B)
    lat = np.arctan2(
        z + ep2 * WGS84_B * np.sin(theta) ** 3,
        p - WGS84_E2 * WGS84_A * np.cos(theta) ** 3,
    )
    for _ in range(2):
        s_lat = np.sin(lat)
        n = WGS84_A / np.sqrt(1.0 - WGS84_E2 * s_lat * s_lat)
        h = p / np.cos(lat) - n
        lat = np.arctan2(z, p * (1.0 - WGS84_E2 * n / (n + h)))

    s_lat = np.sin(lat)
    n = WGS84_A / np.sqrt(1.0 - WGS84_E2 * s_lat * s_lat)
    h = p / np.cos(lat) - n
    return float(np.degrees(lon)), float(np.degrees(lat)), float(h)


def distance(a: np.ndarray | tuple[float, float, float], b: np.ndarray | tuple[float, float, float]) -> float:
    """Straight-line distance between two ECEF positions."""
    va = np.asarray(a, dtype=np.float64).reshape(3)
    vb = np.asarray(b, dtype=np.float64).reshape(3)
    return float(np.linalg.norm(vb - va))


def validate_geodetic(lon: object, lat: object, height: object = 0.0) -> tuple[float, float, float]:
    """Coerce and check a geographic coordinate; raises ValueError when unusable."""
    try:
        lon_v = float(lon)  # type: ignore[arg-type]
        lat_v = float(lat)  # type: ignore[arg-type]
        h_v = float(height) if height is not None else 0.0  # type: ignore[arg-type]
    except (TypeError, ValueError) as ex:
        raise ValueError("lon, lat and height must be numbers") from ex

    if not (np.isfinite(lon_v) and np.isfinite(lat_v) and np.isfinite(h_v)):
        raise ValueError("lon, lat and height must be finite")
    if not -180.0 <= lon_v <= 180.0:
        raise ValueError(f"lon must be within [-180, 180], got {lon_v}")
    if not -90.0 <= lat_v <= 90.0:
        raise ValueError(f"lat must be within [-90, 90], got {lat_v}")
    return lon_v, lat_v, h_v
