"""
Readers for the local environment registry files.

The devnet tooling writes these files:

- ``agents/config.json``: Hyperlane agent config, ``chains.<name>.domainId``
  and ``chains.<name>.mailbox``
- ``<warp route dir>/program-ids.json``: deployed warp route ids per chain
- ``<warp route dir>/token-config.json``: token settings per chain
- ``signer_keypair.json``: Solana keypair as a 64-integer JSON array
"""
import json
import os
from dataclasses import dataclass
from typing import Any, Dict
from config import Config
from logger_config import get_logger

logger = get_logger(__name__)


def _load_json(path: str) -> Any:
    if not os.path.exists(path):
        raise ValueError(f"Registry file not found: {path}")
    with open(path, "r") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Registry file {path} is not valid JSON: {e}") from e


def _require(data: Dict[str, Any], *keys: str) -> Any:
    node: Any = data
    for depth, key in enumerate(keys):
        if not isinstance(node, dict) or key not in node:
            raise ValueError(f"Registry is missing key: {'.'.join(keys[:depth + 1])}")
        node = node[key]
    return node


def load_agent_config(path: str) -> Dict[str, Any]:
    return _load_json(path)


def load_program_ids(warp_route_dir: str) -> Dict[str, Any]:
    return _load_json(os.path.join(warp_route_dir, "program-ids.json"))


def load_token_config(warp_route_dir: str) -> Dict[str, Any]:
    return _load_json(os.path.join(warp_route_dir, "token-config.json"))


def load_keypair_file(path: str) -> bytes:
    """Read a Solana CLI keypair file (JSON array of 64 integers)."""
    data = _load_json(path)
    if not isinstance(data, list) or len(data) != 64:
        raise ValueError(f"Keypair file {path} must hold a 64-integer array")
    return bytes(data)


@dataclass
class LocalRegistry:
    """Values from the local registry files that the operator scripts share."""

    agent_config: Dict[str, Any]
    program_ids: Dict[str, Any]
    token_config: Dict[str, Any]
    solana_rpc_url: str
    sovereign_rollup_url: str

    @classmethod
    def from_config(cls, config: Config) -> "LocalRegistry":
        logger.info(
            f'Loading registry from {config.agent_config_path} and {config.warp_route_dir}'
        )
        return cls(
            agent_config=load_agent_config(config.agent_config_path),
            program_ids=load_program_ids(config.warp_route_dir),
            token_config=load_token_config(config.warp_route_dir),
            solana_rpc_url=config.solana_rpc_url,
            sovereign_rollup_url=config.sovereign_rollup_url,
        )

    @property
    def sealevel_domain_id(self) -> int:
        return int(_require(self.agent_config, "chains", "sealevel", "domainId"))

    @property
    def sovereign_domain_id(self) -> int:
        return int(_require(self.agent_config, "chains", "sovereign", "domainId"))

    @property
    def mailbox(self) -> str:
        return _require(self.agent_config, "chains", "sealevel", "mailbox")

    @property
    def solana_token_id(self) -> str:
        return _require(self.program_ids, "sealevel", "base58")

    @property
    def sovereign_token_id(self) -> str:
        return _require(self.program_ids, "sovereign", "hex")

    @property
    def sovereign_collateral(self) -> Any:
        return (self.token_config.get("sovereign") or {}).get("token")

    @property
    def sealevel_igp(self) -> Any:
        """Optional IGP accounts of the sealevel warp route (``program_id``, ``account``)."""
        return (self.token_config.get("sealevel") or {}).get("igp")

    def chain_metadata(self) -> Dict[str, Dict[str, Any]]:
        """Chain metadata for the warp core, keyed by chain name."""
        chains = _require(self.agent_config, "chains")
        return {
            "sealevel": {
                **chains["sealevel"],
                "name": "sealevel",
                "chainId": self.sealevel_domain_id,
                "protocol": "sealevel",
                "rpcUrls": [{"http": self.solana_rpc_url}],
            },
            "sovereign": {
                **_require(chains, "sovereign"),
                "name": "sovereign",
                "chainId": self.sovereign_domain_id,
                "protocol": "sovereign",
                "rpcUrls": [{"http": self.sovereign_rollup_url}],
            },
        }
