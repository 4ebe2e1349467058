"""Catalog of known OSM extracts offered for offline sync."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse


@dataclass(frozen=True)
class Preset:
    """A downloadable geographic extract with rough cost estimates."""
    id: str
    name: str
    url: str
    size: str
    disk_space: str
    import_time: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "size": self.size,
            "diskSpace": self.disk_space,
            "importTime": self.import_time,
            "description": self.description,
        }


PRESETS: List[Preset] = [
    Preset(
        id="california",
        name="California, USA",
        url="https://download.geofabrik.de/north-america/us/california-latest.osm.pbf",
        size="2.5 GB",
        disk_space="~21 GB",
        import_time="2-4 hours",
        description="Complete map data for California state",
    ),
    Preset(
        id="texas",
        name="Texas, USA",
        url="https://download.geofabrik.de/north-america/us/texas-latest.osm.pbf",
        size="3 GB",
        disk_space="~25 GB",
        import_time="2-5 hours",
        description="Complete map data for Texas state",
    ),
    Preset(
        id="new-york",
        name="New York, USA",
        url="https://download.geofabrik.de/north-america/us/new-york-latest.osm.pbf",
        size="1.8 GB",
        disk_space="~15 GB",
        import_time="1-3 hours",
        description="Complete map data for New York state",
    ),
    Preset(
        id="us",
        name="United States (Complete)",
        url="https://download.geofabrik.de/north-america/us-latest.osm.pbf",
        size="11 GB",
        disk_space="~106 GB",
        import_time="12-24 hours",
        description="Complete map data for entire United States",
    ),
    Preset(
        id="planet",
        name="Full Planet (World)",
        url="https://planet.openstreetmap.org/pbf/planet-latest.osm.pbf",
        size="84+ GB",
        disk_space="~684 GB",
        import_time="2-3 days",
        description="Complete worldwide map data - requires significant resources",
    ),
]

_BY_ID: Dict[str, Preset] = {p.id: p for p in PRESETS}


def list_presets() -> List[Preset]:
    return list(PRESETS)


def get_preset(preset_id: Optional[str]) -> Optional[Preset]:
    if not preset_id:
        return None
    return _BY_ID.get(preset_id)


def custom_preset(url: str) -> Preset:
    """Wrap a user-supplied extract URL as a synthetic preset."""
    return Preset(
        id="custom",
        name="Custom Extract",
        url=url,
        size="Unknown",
        disk_space="Unknown",
        import_time="Unknown",
    )


def resolve(preset_id: Optional[str] = None, custom_url: Optional[str] = None) -> Preset:
    """Pick the extract a sync request refers to.

    A custom URL wins over a preset id. Raises ValueError when neither
    names a usable source.
    """
    if custom_url:
        parsed = urlparse(custom_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Custom URL must be an http(s) URL")
        return custom_preset(custom_url)

    preset = get_preset(preset_id)
    if preset is None:
        raise ValueError("Invalid preset or custom URL required")
    return preset
