"""
Unit tests for configuration module.
"""
import pytest
import os
from unittest.mock import patch
from config import Config, get_config


class TestConfig:
    """Tests for Config class."""

    @patch.dict(os.environ, {}, clear=True)
    def test_from_env_defaults(self):
        """Test Config.from_env falls back to the local devnet defaults."""
        config = Config.from_env()
        assert config.sovereign_rollup_url == 'http://localhost:12346'
        assert config.solana_rpc_url == 'http://localhost:8899'
        assert config.poll_interval_seconds == 0.5
        assert config.poll_timeout_seconds == 120.0
        assert config.sovereign_max_fee == 100_000_000
        assert config.sovereign_signer_secret_name is None
        assert config.aws_region == 'us-east-1'
        assert config.log_level == 'INFO'

    @patch.dict(os.environ, {
        'SOVEREIGN_ROLLUP_URL': 'https://rollup.example.com/',
        'SOLANA_RPC_URL': 'https://solana.example.com',
        'HYPERLANE_AGENT_CONFIG': '/etc/agents.json',
        'WARP_ROUTE_DIR': '/etc/warp',
        'SOLANA_KEYPAIR_PATH': '/etc/keypair.json',
        'SOVEREIGN_SIGNER_SECRET_NAME': 'rollup-signer',
        'SOLANA_SIGNER_SECRET_NAME': 'solana-signer',
        'POLL_INTERVAL_SECONDS': '2',
        'POLL_TIMEOUT_SECONDS': '30.5',
        'SOVEREIGN_MAX_FEE': '5000',
        'AWS_REGION': 'us-west-2',
        'LOG_LEVEL': 'debug',
    }, clear=True)
    def test_from_env_all_variables(self):
        """Test Config.from_env with all variables set."""
        config = Config.from_env()
        assert config.sovereign_rollup_url == 'https://rollup.example.com'
        assert config.solana_rpc_url == 'https://solana.example.com'
        assert config.agent_config_path == '/etc/agents.json'
        assert config.warp_route_dir == '/etc/warp'
        assert config.solana_keypair_path == '/etc/keypair.json'
        assert config.sovereign_signer_secret_name == 'rollup-signer'
        assert config.solana_signer_secret_name == 'solana-signer'
        assert config.poll_interval_seconds == 2.0
        assert config.poll_timeout_seconds == 30.5
        assert config.sovereign_max_fee == 5000
        assert config.aws_region == 'us-west-2'
        assert config.log_level == 'DEBUG'

    @patch.dict(os.environ, {'SOVEREIGN_ROLLUP_URL': 'localhost:12346'}, clear=True)
    def test_from_env_invalid_url(self):
        """Test Config.from_env rejects URLs without a scheme."""
        with pytest.raises(ValueError, match="SOVEREIGN_ROLLUP_URL"):
            Config.from_env()

    @patch.dict(os.environ, {'POLL_INTERVAL_SECONDS': 'soon'}, clear=True)
    def test_from_env_invalid_poll_interval(self):
        """Test Config.from_env rejects non-numeric poll intervals."""
        with pytest.raises(ValueError, match="POLL_INTERVAL_SECONDS"):
            Config.from_env()

    @patch.dict(os.environ, {'POLL_TIMEOUT_SECONDS': '0'}, clear=True)
    def test_from_env_non_positive_timeout(self):
        """Test Config.from_env rejects a zero timeout."""
        with pytest.raises(ValueError, match="POLL_TIMEOUT_SECONDS"):
            Config.from_env()

    @patch.dict(os.environ, {'SOVEREIGN_MAX_FEE': '-1'}, clear=True)
    def test_from_env_invalid_max_fee(self):
        """Test Config.from_env rejects a negative max fee."""
        with pytest.raises(ValueError, match="SOVEREIGN_MAX_FEE"):
            Config.from_env()

    @patch.dict(os.environ, {'SOVEREIGN_MAX_FEE': ''}, clear=True)
    def test_from_env_empty_max_fee_uses_default(self):
        """Test Config.from_env treats an empty max fee as unset."""
        config = Config.from_env()

        assert config.sovereign_max_fee == 100_000_000

    @patch.dict(os.environ, {'LOG_LEVEL': 'INVALID'}, clear=True)
    def test_from_env_invalid_log_level(self):
        """Test Config.from_env raises error for invalid log level."""
        with pytest.raises(ValueError, match="LOG_LEVEL"):
            Config.from_env()

    @patch.dict(os.environ, {}, clear=True)
    def test_get_config_singleton(self):
        """Test get_config returns singleton instance."""
        import config
        config._config = None

        config1 = get_config()
        config2 = get_config()

        assert config1 is config2
        config._config = None
