"""Network settings for deployed diamonds and the CLI's persisted defaults.

Settings are read from the environment (a ``.env`` file is loaded first)::

    BSC_TESTNET_RPC_URL=https://...
    BSC_TESTNET_WSS_URL=wss://...
    BSC_TESTNET_DIAMOND_ADDRESS=0x...
    ACCOUNT_PRIVATE_KEY=0x...
    NON_DEPLOYER_ACCOUNT_PRIVATE_KEY=0x...
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

CONFIG_FILE = Path.home() / ".diamondpay_config.json"

DEFAULT_NETWORK = "bsc_testnet"

KNOWN_NETWORKS = ["localhost", "sepolia", "goerli", "mainnet", "bsc_testnet", "bsc"]

DEFAULT_RPC_URLS = {
    "localhost": "http://127.0.0.1:8545",
}

# Deployed diamonds
DEFAULT_DIAMOND_ADDRESSES = {
    "bsc_testnet": "0xaC504dBF800Aa13d1E4d6043D032F4aF334Bc112",
    "bsc": "0x664FB0022a4340dFEEf7Ff8484dA0b16F71D3780",
}


class NetworkSettings(BaseModel):
    name: str
    rpc_url: Optional[str] = None
    wss_url: Optional[str] = None
    diamond_address: Optional[str] = None


class Settings(BaseModel):
    networks: dict[str, NetworkSettings] = Field(default_factory=dict)
    deployer_private_key: Optional[str] = None
    non_deployer_private_key: Optional[str] = None

    def network(self, name: str) -> NetworkSettings:
        """Settings of ``name``; unknown networks get an empty entry."""
        return self.networks.get(name) or NetworkSettings(name=name)


def _env(key: str) -> Optional[str]:
    value = os.getenv(key)
    return value if value else None


def load_settings(overrides: Optional[dict[str, Any]] = None, dotenv: bool = True) -> Settings:
    """Build settings from the environment, then apply CLI config overrides.

    Args:
        overrides: Content of the JSON config file. ``diamond_addresses`` and
            ``rpc_urls`` (network to value maps) replace environment values.
        dotenv: Whether to load a ``.env`` file first.
    """
    if dotenv:
        load_dotenv()
    overrides = overrides or {}
    diamond_overrides = overrides.get("diamond_addresses", {})
    rpc_overrides = overrides.get("rpc_urls", {})

    networks = {}
    for name in KNOWN_NETWORKS:
        prefix = name.upper()
        networks[name] = NetworkSettings(
            name=name,
            rpc_url=rpc_overrides.get(name) or _env(f"{prefix}_RPC_URL") or DEFAULT_RPC_URLS.get(name),
            wss_url=_env(f"{prefix}_WSS_URL"),
            diamond_address=diamond_overrides.get(name)
            or _env(f"{prefix}_DIAMOND_ADDRESS")
            or DEFAULT_DIAMOND_ADDRESSES.get(name),
        )

    return Settings(
        networks=networks,
        deployer_private_key=_env("ACCOUNT_PRIVATE_KEY"),
        non_deployer_private_key=_env("NON_DEPLOYER_ACCOUNT_PRIVATE_KEY"),
    )


def load_config(path: Path = CONFIG_FILE) -> dict:
    if path.exists():
        with path.open("r") as f:
            return json.load(f)
    return {}


def save_config(config: dict, path: Path = CONFIG_FILE) -> None:
    with path.open("w") as f:
        json.dump(config, f, indent=2)
