from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "payne"
KEYRING_SERVICE = "payne"
KEYRING_API_KEY = "exchange-rate-api-key"
KEYRING_PAYER_KEY = "payer-private-key"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Returns None if only platformdirs would resolve and that dir does not exist yet.
    """
    from_env = os.environ.get("PAYNE_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default.

    Priority: 1) env var, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/payne/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("PAYNE_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("PAYNE_DATA_DIR", "data", kind="data")


EXCHANGE_RATE_URL = "https://v6.exchangerate-api.com/v6/{api_key}/latest/USD"
USDC_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"
GEO_URL = "http://ip-api.com/json/{ip}"
# ip-api field mask: status, message, country, countryCode, currency, query
GEO_FIELDS = "8413187"
USER_AGENT = "Payne App/1.0"

RATES_TIMEOUT = 15
GEO_TIMEOUT = 10
RECEIPT_TIMEOUT = 180

RATE_CACHE_TTL = timedelta(hours=1)

USDC_DECIMALS = 6
DEFAULT_CURRENCY = "USD"
DEFAULT_ORIGIN = "http://localhost:3000"


def get_rpc_url() -> str:
    """Return the EVM JSON-RPC endpoint. Raises KeyError if RPC_URL is not set."""
    return os.environ["RPC_URL"]


def get_usdc_address() -> str:
    """Return the USDC token contract address. Raises KeyError if USDC_ADDRESS is not set."""
    return os.environ["USDC_ADDRESS"]


def get_chain_id() -> int | None:
    value = os.environ.get("CHAIN_ID")
    return int(value) if value else None


# --- Keyring helpers ---


def _get_keyring_secret(username: str) -> str | None:
    """Try to get a secret from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, username)
    except Exception:
        return None


def _set_keyring_secret(username: str, secret: str) -> bool:
    """Store a secret in the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.set_password(KEYRING_SERVICE, username, secret)
        return True
    except Exception:
        return False


def _delete_keyring_secret(username: str) -> bool:
    """Remove a secret from the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.delete_password(KEYRING_SERVICE, username)
        return True
    except Exception:
        return False


def _get_secret(env_var: str, keyring_username: str) -> str:
    value = os.environ.get(env_var)
    if value is not None:
        return value
    value = _get_keyring_secret(keyring_username)
    if value is not None:
        return value
    raise KeyError(env_var)


def get_exchange_rate_api_key() -> str:
    """Return the exchange-rate API key.

    Priority: 1) EXCHANGE_RATE_API_KEY env var, 2) OS keyring.
    Raises KeyError if neither source has the key.
    """
    return _get_secret("EXCHANGE_RATE_API_KEY", KEYRING_API_KEY)


def get_payer_private_key() -> str:
    """Return the payer wallet private key (env var first, then OS keyring)."""
    return _get_secret("PAYER_PRIVATE_KEY", KEYRING_PAYER_KEY)


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict."""
    return yaml.safe_load(path.read_text())


def load_merchant() -> dict:
    """Load the merchant profile from config/merchant.yaml."""
    return load_yaml(get_config_dir() / "merchant.yaml")


def save_merchant(data: dict) -> Path:
    """Save the merchant profile to config/merchant.yaml (atomic write)."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / "merchant.yaml"
    tmp = path.with_suffix(".tmp")
    tmp.write_text(yaml.dump(data, default_flow_style=False, allow_unicode=True))
    os.replace(tmp, path)
    return path
