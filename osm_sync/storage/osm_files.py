"""On-disk layout for downloaded extracts and generated tile packages."""

import os
from pathlib import Path
from typing import Optional, Union

from osm_sync.config import settings


class OsmDataStore:
    """Fixed paths shared by every sync job.

    downloads/  raw extracts, named after the source URL
    data/       current.osm.pbf alias to the latest extract
    tiles/      world.mbtiles served by the tile server
    """

    def __init__(
        self,
        base_dir: Union[str, Path, None] = None,
        current_name: str = "current.osm.pbf",
        tiles_name: str = "world.mbtiles",
    ):
        self._base_dir = Path(base_dir or settings.osm_base_dir).resolve()
        self.downloads_dir = self._base_dir / "downloads"
        self.data_dir = self._base_dir / "data"
        self.tiles_dir = self._base_dir / "tiles"
        self.current_extract = self.data_dir / current_name
        self.tile_package = self.tiles_dir / tiles_name

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def ensure_dirs(self) -> None:
        for directory in (self.downloads_dir, self.data_dir, self.tiles_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def download_path(self, filename: str) -> Path:
        return self.downloads_dir / filename

    def link_current(self, target: Path) -> None:
        """Point the current-extract alias at target, replacing any old alias.

        Raises OSError when the link cannot be created.
        """
        if self.current_extract.is_symlink() or self.current_extract.exists():
            self.current_extract.unlink()
        os.symlink(target, self.current_extract)

    def extract_size(self) -> Optional[int]:
        """Size in bytes of the current extract, None when absent."""
        if not self.current_extract.exists():
            return None
        return self.current_extract.stat().st_size

    def tiles_generated(self) -> bool:
        return self.tile_package.exists()
