"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Supabase (session validation)
    supabase_url: str = ""
    supabase_anon_key: str = ""

    # OSM data layout
    osm_base_dir: str = "./osm-data"
    current_extract_name: str = "current.osm.pbf"
    tile_package_name: str = "world.mbtiles"

    # Transfer stage
    download_timeout_seconds: float = 300.0
    download_chunk_bytes: int = 1024 * 1024

    # External tools
    import_command: str = "osm2pgsql"
    import_args: str = (
        "-c -d osm -U osm -H localhost --slim -C 4000 "
        "--number-processes 4 --hstore --multi-geometry"
    )
    osm_db_password: str = ""
    tiles_command: str = "tilemaker"
    tile_server_restart_command: str = "pm2 restart osm-tiles"

    # Service probes
    osm_database_url: str = "postgresql+asyncpg://osm@localhost:5432/osm"
    tile_server_url: str = "http://localhost:8081/"
    geocoder_url: str = "http://localhost:7070"
    probe_timeout_seconds: float = 2.0
    geocoder_timeout_seconds: float = 5.0

    # Job bookkeeping
    job_log_max_entries: int = 2000
    job_log_tail: int = 50
    job_retention_hours: int = 24
    max_retained_jobs: int = 50

    # Server
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    log_level: str = "INFO"
    port: int = 8001

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
