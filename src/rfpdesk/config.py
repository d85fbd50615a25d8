"""rfpdesk configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (RFPDESK_DB_PATH, RFPDESK_GENERATION_MODEL, ...)
  3. Per-project rfpdesk.yaml  (in the working directory)
  4. Global ~/.rfpdesk/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".rfpdesk"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "rfpdesk.yaml"

# Key names that look like credentials; rejected in the global config.
# Does NOT match legitimate config keys like token_budget or max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Top-level sections; anything else triggers a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["server", "database", "storage", "generation", "summarizer", "context", "scraper"]
)

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ServerCfg:
    """HTTP server configuration (rfpdesk.yaml: server:)."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class DatabaseCfg:
    """SQLite database location (rfpdesk.yaml: database:)."""

    path: str = "rfpdesk.db"


@dataclass
class StorageCfg:
    """Uploaded file storage (rfpdesk.yaml: storage:)."""

    upload_dir: str = "uploads"
    max_upload_mb: int = 50


@dataclass
class GenerationCfg:
    """LLM generation configuration for answers and drafts (rfpdesk.yaml: generation:)."""

    model: str = "openai/gpt-4o"
    max_tokens: int = 4_000
    temperature: float = 0.7


@dataclass
class SummarizerCfg:
    """Document summarizer configuration (rfpdesk.yaml: summarizer:).

    Attributes:
        model: LiteLLM model string used for summaries.
        small_threshold: Texts shorter than this are wrapped without a model call.
        large_threshold: Texts longer than this are chunked before summarizing.
        chunk_size: Maximum characters per chunk for large texts.
        max_key_points: Key points requested from a single model call.
        max_tokens: Output token limit per summary call.
        fallback_chars: Raw-text truncation used when no summary is available.
    """

    model: str = "openai/gpt-4o-mini"
    small_threshold: int = 2_000
    large_threshold: int = 15_000
    chunk_size: int = 15_000
    max_key_points: int = 10
    max_tokens: int = 2_000
    fallback_chars: int = 2_000


@dataclass
class ContextCfg:
    """Answer-generation context assembly (rfpdesk.yaml: context:)."""

    token_budget: int = 12_000
    max_source_chars: int = 5_000


@dataclass
class ScraperCfg:
    """Web scraper configuration (rfpdesk.yaml: scraper:)."""

    timeout: int = 30
    browser_timeout_ms: int = 30_000
    max_bytes: int = 5 * 1024 * 1024
    browser_fallback: bool = True


@dataclass
class RfpDeskConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    server: ServerCfg = field(default_factory=ServerCfg)
    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    summarizer: SummarizerCfg = field(default_factory=SummarizerCfg)
    context: ContextCfg = field(default_factory=ContextCfg)
    scraper: ScraperCfg = field(default_factory=ScraperCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Reject credential-looking keys anywhere in the global config tree."""
    stack: list[tuple[str, Any]] = [("", data)]
    while stack:
        prefix, node = stack.pop()
        if not isinstance(node, dict):
            continue
        for key, value in node.items():
            dotted = f"{prefix}.{key}" if prefix else str(key)
            if _API_KEY_RE.search(str(key)):
                raise ConfigError(
                    f"'{dotted}' is not allowed in {source}: credentials are read from "
                    f"the environment only.\n"
                    f"  Delete it and set  export {str(key).upper().replace('-', '_')}=<value>"
                )
            stack.append((dotted, value))


def _validate_summarizer(cfg: SummarizerCfg) -> None:
    """Raise ConfigError if the summarizer size bands are inconsistent."""
    if cfg.small_threshold < 1 or cfg.chunk_size < 1:
        raise ConfigError(
            "summarizer.small_threshold and summarizer.chunk_size must be positive."
        )
    if cfg.large_threshold < cfg.small_threshold:
        raise ConfigError(
            f"summarizer.large_threshold ({cfg.large_threshold}) must be >= "
            f"summarizer.small_threshold ({cfg.small_threshold})."
        )


def _validate_log_level(level: str) -> str:
    normalized = level.upper()
    if normalized not in _LOG_LEVELS:
        raise ConfigError(
            f"server.log_level must be one of {', '.join(sorted(_LOG_LEVELS))}, got '{level}'."
        )
    return normalized


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    unknown = sorted(str(k) for k in data if k not in _KNOWN_SECTIONS)
    if unknown:
        warnings.warn(
            f"{source}: ignoring unknown section(s) {', '.join(unknown)}",
            UserWarning,
            stacklevel=4,
        )


def _read_layer(path: Path) -> dict[str, Any]:
    """Parse one YAML config file; an empty file is an empty layer."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path} is not valid YAML: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping of sections, got {type(raw).__name__}.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _merge(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    """Overlay *upper* on *lower*; nested sections merge key by key."""
    merged = dict(lower)
    for key, value in upper.items():
        below = merged.get(key)
        merged[key] = _merge(below, value) if isinstance(below, dict) and isinstance(value, dict) else value
    return merged


def _cfg_from_dict(data: dict[str, Any]) -> RfpDeskConfig:
    """Build a *RfpDeskConfig* from a merged raw YAML dict."""
    cfg = RfpDeskConfig()

    if "server" in data:
        s = data["server"] or {}
        origins = s.get("cors_origins", cfg.server.cors_origins)
        if isinstance(origins, str):
            origins = [o.strip() for o in origins.split(",") if o.strip()]
        cfg.server = ServerCfg(
            host=str(s.get("host", cfg.server.host)),
            port=int(s.get("port", cfg.server.port)),
            log_level=_validate_log_level(str(s.get("log_level", cfg.server.log_level))),
            cors_origins=[str(o) for o in origins],
        )

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "storage" in data:
        st = data["storage"] or {}
        cfg.storage = StorageCfg(
            upload_dir=str(st.get("upload_dir", cfg.storage.upload_dir)),
            max_upload_mb=int(st.get("max_upload_mb", cfg.storage.max_upload_mb)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
        )

    if "summarizer" in data:
        sm = data["summarizer"] or {}
        defaults = cfg.summarizer
        cfg.summarizer = SummarizerCfg(
            model=str(sm.get("model", defaults.model)),
            small_threshold=int(sm.get("small_threshold", defaults.small_threshold)),
            large_threshold=int(sm.get("large_threshold", defaults.large_threshold)),
            chunk_size=int(sm.get("chunk_size", defaults.chunk_size)),
            max_key_points=int(sm.get("max_key_points", defaults.max_key_points)),
            max_tokens=int(sm.get("max_tokens", defaults.max_tokens)),
            fallback_chars=int(sm.get("fallback_chars", defaults.fallback_chars)),
        )

    if "context" in data:
        c = data["context"] or {}
        cfg.context = ContextCfg(
            token_budget=int(c.get("token_budget", cfg.context.token_budget)),
            max_source_chars=int(c.get("max_source_chars", cfg.context.max_source_chars)),
        )

    if "scraper" in data:
        sc = data["scraper"] or {}
        cfg.scraper = ScraperCfg(
            timeout=int(sc.get("timeout", cfg.scraper.timeout)),
            browser_timeout_ms=int(
                sc.get("browser_timeout_ms", cfg.scraper.browser_timeout_ms)
            ),
            max_bytes=int(sc.get("max_bytes", cfg.scraper.max_bytes)),
            browser_fallback=bool(sc.get("browser_fallback", cfg.scraper.browser_fallback)),
        )

    return cfg


def _apply_env_overrides(cfg: RfpDeskConfig) -> RfpDeskConfig:
    """Apply RFPDESK_* environment variable overrides (layer 2)."""
    if path := os.environ.get("RFPDESK_DB_PATH"):
        cfg.database.path = path
    if model := os.environ.get("RFPDESK_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("RFPDESK_SUMMARY_MODEL"):
        cfg.summarizer.model = model
    if upload_dir := os.environ.get("RFPDESK_UPLOAD_DIR"):
        cfg.storage.upload_dir = upload_dir
    if level := os.environ.get("RFPDESK_LOG_LEVEL"):
        cfg.server.log_level = _validate_log_level(level)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> RfpDeskConfig:
    """Merge the global file, the project's rfpdesk.yaml and RFPDESK_* variables.

    CLI flags are applied by the caller on the returned object.

    Args:
        project_dir: Directory holding *rfpdesk.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: On unreadable YAML, credentials in the global file, or an
            out-of-range value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    project_path = (project_dir if project_dir is not None else Path.cwd()) / _PROJECT_CONFIG_NAME

    merged: dict[str, Any] = {}
    if global_path.exists():
        layer = _read_layer(global_path)
        _check_no_api_keys(layer, global_path)
        _warn_unknown_keys(layer, global_path)
        merged = _merge(merged, layer)
    if project_path.exists():
        layer = _read_layer(project_path)
        _warn_unknown_keys(layer, project_path)
        merged = _merge(merged, layer)

    cfg = _cfg_from_dict(merged)
    _validate_summarizer(cfg.summarizer)
    return _apply_env_overrides(cfg)


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.rfpdesk/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# rfpdesk global configuration: model defaults only.\n"
            "# Never store API keys here. Use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "#   export ANTHROPIC_API_KEY=sk-ant-...\n"
            "\n"
            "generation:\n"
            "  model: openai/gpt-4o\n"
            "\n"
            "summarizer:\n"
            "  model: openai/gpt-4o-mini\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
