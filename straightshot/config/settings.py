"""
Centralized Configuration Settings for StraightShot Auto

All configuration values for the edge service and the page agent live here.
Values are read from the environment (optionally populated from a .env file)
and grouped into dataclass configs.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

# ============================================================
# ENVIRONMENT LOADING
# ============================================================
# Try .env in package dir first, then project root
env_path = Path(__file__).parent.parent / ".env"
if not env_path.exists():
    env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
    print(f"[CONFIG] Loaded .env from {env_path}")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


# ============================================================
# PATHS
# ============================================================
BASE_DIR = Path(__file__).parent.parent.parent
CLIENT_STORAGE_PATH = Path(os.getenv("CLIENT_STORAGE_PATH", str(BASE_DIR / "client_storage.json")))

# ============================================================
# SERVER SETTINGS
# ============================================================
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8787"))
DEBUG = _env_bool("DEBUG")

# ============================================================
# API KEYS & CREDENTIALS
# ============================================================
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")

# ============================================================
# RATE LIMITING (edge, per client IP)
# ============================================================
@dataclass
class RateLimitConfig:
    """Dual-window admission control: hard spacing plus hourly quota"""
    min_interval_ms: int = int(os.getenv("RATE_MIN_INTERVAL_MS", "5000"))   # 5s between calls
    window_ms: int = int(os.getenv("RATE_WINDOW_MS", str(60 * 60 * 1000)))  # trailing hour
    max_requests: int = int(os.getenv("RATE_MAX_REQUESTS", "30"))            # per window

RATE_LIMIT = RateLimitConfig()

# ============================================================
# CACHE SETTINGS
# ============================================================
@dataclass
class CacheConfig:
    """Content-addressed analysis cache"""
    ttl_seconds: int = int(os.getenv("CACHE_TTL_SECONDS", str(60 * 60 * 24)))  # 24 hours
    # Bump whenever the prompt or output schema changes
    schema_version: str = os.getenv("CACHE_SCHEMA_VERSION", "v2")
    max_size: int = int(os.getenv("CACHE_MAX_SIZE", "2000"))

CACHE = CacheConfig()

# ============================================================
# AI MODEL SETTINGS
# ============================================================
@dataclass
class ModelConfig:
    """Upstream language model selection"""
    provider: str = os.getenv("MODEL_PROVIDER", "openai").lower()  # "openai" or "anthropic"
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    anthropic_model: str = os.getenv("ANTHROPIC_MODEL", "claude-3-5-haiku-20241022")
    temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.3"))
    max_tokens: int = int(os.getenv("MODEL_MAX_TOKENS", "2000"))
    timeout: float = float(os.getenv("MODEL_TIMEOUT", "60"))  # seconds

MODEL = ModelConfig()

# ============================================================
# AUTH / SUBSCRIPTION VALIDATION
# ============================================================
@dataclass
class AuthConfig:
    """Identity provider used to resolve bearer tokens"""
    auth_url: Optional[str] = os.getenv("AUTH_URL")
    auth_api_key: Optional[str] = os.getenv("AUTH_API_KEY")
    validated_emails: Tuple[str, ...] = field(default_factory=lambda: _env_list("VALIDATED_EMAILS"))
    timeout: float = float(os.getenv("AUTH_TIMEOUT", "8"))

AUTH = AuthConfig()

# ============================================================
# PAGE AGENT (client) SETTINGS
# ============================================================
@dataclass
class ClientConfig:
    """Analysis lifecycle settings for the page agent"""
    edge_url: str = os.getenv("EDGE_URL", f"http://{HOST}:{PORT}")
    free_limit: int = int(os.getenv("FREE_LIMIT", "3"))
    min_request_interval: float = 6.0   # seconds between completed calls
    request_timeout: float = 45.0       # absolute deadline per analysis call
    auth_timeout: float = 8.0           # token refresh / status check deadline
    rate_limit_floor: float = 10.0      # minimum cool-down after a 429
    loading_slow_after: float = 8.0     # switch to the secondary loading message
    debounce_seconds: float = 0.9       # DOM mutation debounce
    refresh_margin: float = 60.0        # refresh tokens this close to expiry
    storage_namespace: str = "fbco"

CLIENT = ClientConfig()

LOADING_TEXT = "Analyzing…"
LOADING_TEXT_SLOW = "Still working… large listings can take a bit longer"

if not OPENAI_API_KEY and MODEL.provider == "openai":
    print("[CONFIG] WARNING: OPENAI_API_KEY not set! /analyze will return 503.")
if not ANTHROPIC_API_KEY and MODEL.provider == "anthropic":
    print("[CONFIG] WARNING: ANTHROPIC_API_KEY not set! /analyze will return 503.")
