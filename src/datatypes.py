"""Configuration dataclasses for the TMDB discovery add-on."""
from dataclasses import dataclass, field
from typing import List


@dataclass
class TMDBConfig:
    """Upstream access: credentials, locale, and retry/timeout behaviour."""

    api_key: str = ""
    language: str = "en-GB"
    base_url: str = "https://api.themoviedb.org/3"
    image_base_url: str = "https://image.tmdb.org/t/p/w500"
    backdrop_base_url: str = "https://image.tmdb.org/t/p/w1280"
    retries: int = 3
    initial_backoff: float = 0.5
    max_backoff: float = 4.0
    timeout_seconds: float = 30.0
    connect_timeout_seconds: float = 10.0


@dataclass
class CatalogConfig:
    """Windowing limits applied to catalog rails."""

    page_size: int = 20
    max_return: int = 100
    search_page_size: int = 50
    search_max_pages: int = 10
    recommendations_limit: int = 20
    strict_paging: bool = False


@dataclass
class ServerConfig:
    """Bind address and CORS policy for the add-on HTTP server."""

    host: str = "0.0.0.0"
    port: int = 7000
    log_level: str = "info"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class AddonConfig:
    """Identity fields published in the add-on manifest."""

    id: str = "org.example.tmdb.onair"
    version: str = "2.1.0"
    name: str = "TMDB Recommendations & Popular"
    description: str = (
        "Discovery-focused add-on. Optional rails: “On the air” (TV) and "
        "“Recommendations” (TV/Movies). Open titles from this add-on to see a "
        "Recommendations list for quick discovery. Use the Popular rails to browse "
        "trending titles and jump between related ones."
    )


@dataclass
class AppConfig:
    """Aggregated configuration loaded from the optional TOML file."""

    tmdb: TMDBConfig = field(default_factory=TMDBConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    addon: AddonConfig = field(default_factory=AddonConfig)
