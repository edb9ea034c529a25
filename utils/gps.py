"""Форматирование GPS-координат попыток вручения."""

from __future__ import annotations

from typing import Mapping

GOOGLE_MAPS_URL = "https://www.google.com/maps?q={lat},{lon}"


def google_maps_url(latitude: float, longitude: float) -> str:
    return GOOGLE_MAPS_URL.format(lat=latitude, lon=longitude)


def format_coordinates(latitude: float, longitude: float) -> str:
    """Координаты в виде ``40.712800° N, 74.006000° W``."""
    lat_dir = "N" if latitude >= 0 else "S"
    lon_dir = "E" if longitude >= 0 else "W"
    return f"{abs(latitude):.6f}° {lat_dir}, {abs(longitude):.6f}° {lon_dir}"


def coordinates_from_mapping(value: Mapping | None) -> dict[str, float] | None:
    """Выбрать широту/долготу (и точность, если есть) из произвольного словаря."""
    if not value:
        return None
    try:
        coords = {
            "latitude": float(value["latitude"]),
            "longitude": float(value["longitude"]),
        }
    except (KeyError, TypeError, ValueError):
        return None
    if value.get("accuracy") is not None:
        coords["accuracy"] = float(value["accuracy"])
    return coords
