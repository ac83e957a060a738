"""
Key service for resolving signer key material.

Keys are looked up in AWS Secrets Manager first when a secret name is
configured, then in the environment or on disk, so the same scripts run
against the local devnet and against shared environments.
"""
import json
import boto3
import base58
from botocore.exceptions import ClientError
from typing import Any, Optional
from solders.keypair import Keypair
from config import Config, get_config
from constants import LOCAL_DEV_SOVEREIGN_PRIVATE_KEY
from logger_config import get_logger
from registry import load_keypair_file
from signers import Ed25519Signer
from utils.exceptions import KeyLoadingError

logger = get_logger(__name__)


def parse_private_key(value: Any) -> bytes:
    """
    Decode key material given as hex (optionally ``0x``-prefixed), base58 or
    a list of integers.

    Raises:
        ValueError: If the value cannot be decoded
    """
    if isinstance(value, list):
        if not all(isinstance(b, int) and 0 <= b <= 255 for b in value):
            raise ValueError("Key integer list must contain values 0-255")
        return bytes(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Key must be a non-empty string or integer list")

    text = value.strip()
    if text.lower().startswith("0x"):
        return bytes.fromhex(text[2:])
    try:
        return bytes.fromhex(text)
    except ValueError:
        pass
    try:
        return base58.b58decode(text)
    except ValueError as e:
        raise ValueError(f"Key is neither hex nor base58: {e}") from e


def get_secret_json(secret_name: str, region: str) -> dict:
    """
    Fetch a JSON secret from Secrets Manager.

    Raises:
        KeyLoadingError: If the secret cannot be read
        ValueError: If the secret is not a JSON object
    """
    secrets_client = boto3.client('secretsmanager', region_name=region)
    try:
        response = secrets_client.get_secret_value(SecretId=secret_name)
    except ClientError as e:
        error_code = e.response.get('Error', {}).get('Code', '')
        raise KeyLoadingError(
            f"Cannot read secret {secret_name}: {error_code or str(e)}", source=secret_name
        ) from e
    secret_data = json.loads(response['SecretString'])
    if not isinstance(secret_data, dict):
        raise ValueError(f"Secret {secret_name} is not a JSON object")
    return secret_data


def get_sovereign_signer(config: Optional[Config] = None) -> Ed25519Signer:
    """
    Resolve the rollup transaction signer.

    Order: Secrets Manager (``private_key``), ``SOVEREIGN_SIGNER_PRIVATE_KEY``,
    then the local devnet key.

    Raises:
        KeyLoadingError: If a configured key is malformed
    """
    config = config or get_config()

    if config.sovereign_signer_secret_name:
        try:
            secret_data = get_secret_json(config.sovereign_signer_secret_name, config.aws_region)
            private_key = secret_data.get('private_key')
            if private_key:
                signer = Ed25519Signer(parse_private_key(private_key))
                logger.info(
                    f'Loaded rollup signer {signer.public_key_hex} from '
                    f'Secrets Manager: {config.sovereign_signer_secret_name}'
                )
                return signer
            logger.warning(
                f'Secrets Manager secret {config.sovereign_signer_secret_name} '
                f'exists but has no private_key, falling back to env vars'
            )
        except Exception as e:
            logger.warning(
                f'Failed to retrieve rollup signer from Secrets Manager '
                f'({config.sovereign_signer_secret_name}): {str(e)}. '
                f'Falling back to environment variables.'
            )

    if config.sovereign_signer_private_key:
        try:
            signer = Ed25519Signer(parse_private_key(config.sovereign_signer_private_key))
        except ValueError as e:
            raise KeyLoadingError(
                f"SOVEREIGN_SIGNER_PRIVATE_KEY is invalid: {e}", source="env"
            ) from e
        logger.info(f'Using rollup signer {signer.public_key_hex} from environment variables')
        return signer

    signer = Ed25519Signer(LOCAL_DEV_SOVEREIGN_PRIVATE_KEY)
    logger.warning(f'No rollup signer configured, using local devnet key {signer.public_key_hex}')
    return signer


def get_solana_keypair(config: Optional[Config] = None) -> Keypair:
    """
    Resolve the Solana payer keypair.

    Order: Secrets Manager (``secret_key`` as a 64-integer list or base58),
    then the keypair file at ``SOLANA_KEYPAIR_PATH``.

    Raises:
        KeyLoadingError: If no keypair can be loaded
    """
    config = config or get_config()

    if config.solana_signer_secret_name:
        try:
            secret_data = get_secret_json(config.solana_signer_secret_name, config.aws_region)
            secret_key = secret_data.get('secret_key')
            if secret_key:
                keypair = Keypair.from_bytes(parse_private_key(secret_key))
                logger.info(
                    f'Loaded Solana keypair {keypair.pubkey()} from '
                    f'Secrets Manager: {config.solana_signer_secret_name}'
                )
                return keypair
            logger.warning(
                f'Secrets Manager secret {config.solana_signer_secret_name} '
                f'exists but has no secret_key, falling back to keypair file'
            )
        except Exception as e:
            logger.warning(
                f'Failed to retrieve Solana keypair from Secrets Manager '
                f'({config.solana_signer_secret_name}): {str(e)}. '
                f'Falling back to keypair file.'
            )

    try:
        keypair = Keypair.from_bytes(load_keypair_file(config.solana_keypair_path))
    except ValueError as e:
        error_msg = (
            'Solana keypair not found in Secrets Manager or keypair file. '
            f'Keypair path: {config.solana_keypair_path} ({e})'
        )
        logger.error(error_msg)
        raise KeyLoadingError(error_msg, source=config.solana_keypair_path) from e

    logger.info(f'Using Solana keypair {keypair.pubkey()} from {config.solana_keypair_path}')
    return keypair
