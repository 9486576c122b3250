from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml

from .models import DEFAULT_ENDPOINTS, SHAPES, EndpointSpec

DEFAULT_PARAMS_PATH = Path(__file__).resolve().parents[2] / "config" / "params.yaml"


@dataclass(slots=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass(slots=True)
class FetchConfig:
    timeout_sec: float = 10.0
    user_agent: str = "AvatarValueProxy/2.0"


@dataclass(slots=True)
class CacheConfig:
    ttl_sec: float = 60 * 60
    # Cache a zero even when no endpoint answered, to avoid hammering upstream
    cache_upstream_failures: bool = True


@dataclass(slots=True)
class RankingConfig:
    max_value: int = 10**10
    prefer_aggregate: bool = False


@dataclass(slots=True)
class ProxyConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    endpoints: List[EndpointSpec] = field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    debug_snippet_chars: int = 20000
    subject_id_pattern: str = r"^\d{1,20}$"


def _parse_endpoints(raw: Any) -> List[EndpointSpec]:
    if not isinstance(raw, list) or not raw:
        return list(DEFAULT_ENDPOINTS)
    endpoints: List[EndpointSpec] = []
    for entry in raw:
        if isinstance(entry, str):
            url, shape = entry, "json"
        elif isinstance(entry, dict):
            url = str(entry.get("url", "")).strip()
            shape = str(entry.get("shape", "json")).strip().lower()
        else:
            raise ValueError(f"Invalid endpoint entry: {entry!r}")
        if "{subject_id}" not in url:
            raise ValueError(f"Endpoint template must contain {{subject_id}}: {url}")
        if shape not in SHAPES:
            raise ValueError(f"Endpoint shape must be one of {SHAPES}: {shape}")
        endpoints.append(EndpointSpec(url, shape))
    return endpoints


def load_config(
    params_path: Path | None = None,
    env: Optional[Mapping[str, str]] = None,
) -> ProxyConfig:
    """Build the proxy config from an optional params.yaml plus env overrides."""
    env = os.environ if env is None else env
    path = params_path or DEFAULT_PARAMS_PATH
    params: dict[str, Any] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as fh:
            params = yaml.safe_load(fh) or {}
    elif params_path is not None:
        raise FileNotFoundError(f"params file not found: {params_path}")

    server_cfg = params.get("server", {}) or {}
    fetch_cfg = params.get("fetch", {}) or {}
    cache_cfg = params.get("cache", {}) or {}
    ranking_cfg = params.get("ranking", {}) or {}

    server = ServerConfig(
        host=str(env.get("HOST") or server_cfg.get("host", "0.0.0.0")),
        port=int(env.get("PORT") or server_cfg.get("port", 3000)),
    )
    fetch = FetchConfig(
        timeout_sec=float(
            env.get("PROXY_FETCH_TIMEOUT_SEC") or fetch_cfg.get("timeout_sec", 10.0)
        ),
        user_agent=str(
            env.get("PROXY_USER_AGENT")
            or fetch_cfg.get("user_agent", "AvatarValueProxy/2.0")
        ),
    )
    cache = CacheConfig(
        ttl_sec=float(env.get("PROXY_CACHE_TTL_SEC") or cache_cfg.get("ttl_sec", 3600)),
        cache_upstream_failures=bool(cache_cfg.get("cache_upstream_failures", True)),
    )
    ranking = RankingConfig(
        max_value=int(ranking_cfg.get("max_value", 10**10)),
        prefer_aggregate=bool(ranking_cfg.get("prefer_aggregate", False)),
    )

    if fetch.timeout_sec <= 0:
        raise ValueError("fetch.timeout_sec must be positive")
    if cache.ttl_sec <= 0:
        raise ValueError("cache.ttl_sec must be positive")

    return ProxyConfig(
        server=server,
        fetch=fetch,
        cache=cache,
        ranking=ranking,
        endpoints=_parse_endpoints(params.get("endpoints")),
        debug_snippet_chars=int(params.get("debug_snippet_chars", 20000)),
        subject_id_pattern=str(params.get("subject_id_pattern", r"^\d{1,20}$")),
    )
