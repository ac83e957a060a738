"""
Configuration module for environment variable validation and type-safe config.

This module validates the operator environment variables and provides a
type-safe configuration object. Every value has a default matching the local
sealevel/sovereign devnet, so the scripts run unconfigured against it.
"""
import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_SOVEREIGN_ROLLUP_URL = "http://localhost:12346"
DEFAULT_SOLANA_RPC_URL = "http://localhost:8899"
DEFAULT_AGENT_CONFIG = "agents/config.json"
DEFAULT_WARP_ROUTE_DIR = (
    "chains/solana/environments/local/warp-routes/sealevel-sovereignsolana"
)
DEFAULT_SOLANA_KEYPAIR = (
    "chains/solana/environments/local/accounts/signer_keypair.json"
)


def _url_from_env(name: str, default: str) -> str:
    value = os.environ.get(name) or default
    if not value.startswith(("http://", "https://")):
        raise ValueError(
            f"{name} must be an http(s) URL, got: {value}"
        )
    return value.rstrip("/")


def _positive_float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got: {raw}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got: {raw}")
    return value


@dataclass
class Config:
    """Type-safe configuration object with validated environment variables."""

    sovereign_rollup_url: str = DEFAULT_SOVEREIGN_ROLLUP_URL
    solana_rpc_url: str = DEFAULT_SOLANA_RPC_URL
    agent_config_path: str = DEFAULT_AGENT_CONFIG
    warp_route_dir: str = DEFAULT_WARP_ROUTE_DIR
    solana_keypair_path: str = DEFAULT_SOLANA_KEYPAIR
    sovereign_signer_secret_name: Optional[str] = None
    solana_signer_secret_name: Optional[str] = None
    sovereign_signer_private_key: Optional[str] = None
    poll_interval_seconds: float = 0.5
    poll_timeout_seconds: float = 120.0
    sovereign_max_fee: int = 100_000_000
    aws_region: str = "us-east-1"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create Config instance from environment variables.

        Raises:
            ValueError: If an environment variable is present but invalid.
        """
        sovereign_rollup_url = _url_from_env(
            "SOVEREIGN_ROLLUP_URL", DEFAULT_SOVEREIGN_ROLLUP_URL
        )
        solana_rpc_url = _url_from_env("SOLANA_RPC_URL", DEFAULT_SOLANA_RPC_URL)

        agent_config_path = os.environ.get(
            "HYPERLANE_AGENT_CONFIG", DEFAULT_AGENT_CONFIG
        )
        warp_route_dir = os.environ.get("WARP_ROUTE_DIR", DEFAULT_WARP_ROUTE_DIR)
        solana_keypair_path = os.environ.get(
            "SOLANA_KEYPAIR_PATH", DEFAULT_SOLANA_KEYPAIR
        )

        sovereign_signer_secret_name = os.environ.get("SOVEREIGN_SIGNER_SECRET_NAME")
        solana_signer_secret_name = os.environ.get("SOLANA_SIGNER_SECRET_NAME")
        sovereign_signer_private_key = os.environ.get("SOVEREIGN_SIGNER_PRIVATE_KEY")

        poll_interval_seconds = _positive_float_from_env("POLL_INTERVAL_SECONDS", 0.5)
        poll_timeout_seconds = _positive_float_from_env("POLL_TIMEOUT_SECONDS", 120.0)

        raw_max_fee = os.environ.get("SOVEREIGN_MAX_FEE") or "100000000"
        if not raw_max_fee.isdigit():
            raise ValueError(
                f"SOVEREIGN_MAX_FEE must be a non-negative integer, got: {raw_max_fee}"
            )
        sovereign_max_fee = int(raw_max_fee)

        aws_region = os.environ.get("AWS_REGION", "us-east-1")
        log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

        # Validate log level
        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_log_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {valid_log_levels}, got: {log_level}"
            )

        return cls(
            sovereign_rollup_url=sovereign_rollup_url,
            solana_rpc_url=solana_rpc_url,
            agent_config_path=agent_config_path,
            warp_route_dir=warp_route_dir,
            solana_keypair_path=solana_keypair_path,
            sovereign_signer_secret_name=sovereign_signer_secret_name,
            solana_signer_secret_name=solana_signer_secret_name,
            sovereign_signer_private_key=sovereign_signer_private_key,
            poll_interval_seconds=poll_interval_seconds,
            poll_timeout_seconds=poll_timeout_seconds,
            sovereign_max_fee=sovereign_max_fee,
            aws_region=aws_region,
            log_level=log_level,
        )


_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Returns:
        Config: The validated configuration object

    Raises:
        ValueError: If environment variables are invalid.
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
