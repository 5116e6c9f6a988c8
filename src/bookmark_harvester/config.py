"""Configuration loading and saving.

Config file location: ~/.config/bookmark-harvester/config.toml

Schema:
    [auth]
    auth_token = "..."
    ct0 = "..."

    [state]
    state_dir = ".state"

    [fetch]
    delay = 1.5      # pause between thread/article candidates
    timeout = 10.0   # per-request timeout
    retries = 2      # retries after the first attempt
    settle = 4.0     # wait for article pages to render
    headless = true

    [sync]           # optional
    url = "https://<project>.supabase.co"
    api_key = "..."
    user_id = "..."
    access_token = "..."
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

CONFIG_DIR = Path.home() / ".config" / "bookmark-harvester"
CONFIG_FILE = CONFIG_DIR / "config.toml"


@dataclass
class AuthConfig:
    auth_token: str
    ct0: str


@dataclass
class FetchConfig:
    delay: float = 1.5
    timeout: float = 10.0
    retries: int = 2
    settle: float = 4.0
    headless: bool = True


@dataclass
class SyncConfig:
    url: str = ""
    api_key: str = ""
    user_id: str = ""
    access_token: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.url and self.api_key and self.user_id)


@dataclass
class AppConfig:
    auth: AuthConfig
    state_dir: Path = Path(".state")
    fetch: FetchConfig = field(default_factory=FetchConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)


def load_config(config_path: Path = CONFIG_FILE) -> AppConfig:
    """Load and validate config from TOML file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    auth_data = data.get("auth", {})
    auth_token = auth_data.get("auth_token", "")
    ct0 = auth_data.get("ct0", "")

    if not auth_token or not ct0:
        raise ValueError("Config missing required auth.auth_token and auth.ct0")

    state_data = data.get("state", {})
    fetch_data = data.get("fetch", {})
    sync_data = data.get("sync", {})

    return AppConfig(
        auth=AuthConfig(auth_token=auth_token, ct0=ct0),
        state_dir=Path(state_data.get("state_dir", ".state")),
        fetch=FetchConfig(
            delay=float(fetch_data.get("delay", 1.5)),
            timeout=float(fetch_data.get("timeout", 10.0)),
            retries=int(fetch_data.get("retries", 2)),
            settle=float(fetch_data.get("settle", 4.0)),
            headless=bool(fetch_data.get("headless", True)),
        ),
        sync=SyncConfig(
            url=sync_data.get("url", ""),
            api_key=sync_data.get("api_key", ""),
            user_id=sync_data.get("user_id", ""),
            access_token=sync_data.get("access_token"),
        ),
    )


def save_config(config: AppConfig, config_path: Path = CONFIG_FILE) -> None:
    """Write config to TOML file with restricted permissions."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "auth": {
            "auth_token": config.auth.auth_token,
            "ct0": config.auth.ct0,
        },
        "state": {
            "state_dir": str(config.state_dir),
        },
        "fetch": {
            "delay": config.fetch.delay,
            "timeout": config.fetch.timeout,
            "retries": config.fetch.retries,
            "settle": config.fetch.settle,
            "headless": config.fetch.headless,
        },
    }

    if config.sync.configured:
        sync_data = {
            "url": config.sync.url,
            "api_key": config.sync.api_key,
            "user_id": config.sync.user_id,
        }
        if config.sync.access_token:
            sync_data["access_token"] = config.sync.access_token
        data["sync"] = sync_data

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)

    # Restrict permissions - file contains auth secrets
    os.chmod(config_path, 0o600)


def config_exists(config_path: Path = CONFIG_FILE) -> bool:
    """Check if config file exists."""
    return config_path.exists()
