"""
Unit tests for dex/config.py

Verifies YAML loading, schema validation and environment overrides.
"""

import copy
import os
import tempfile
import unittest
from decimal import Decimal
from unittest.mock import patch

import yaml

from dex.config import ConfigError, DexConfig, apply_env_overrides, load_config
from dex.types import VenueKind

POOL_ID = "0x" + "0b" * 32

MINIMAL = {
    "network": "base",
    "engine": {"trade_amount": "10", "min_profit": "0.1"},
    "networks": {
        "base": {
            "chain_id": 8453,
            "rpc_url": "https://mainnet.base.org",
            "native_token": "WETH",
            "base_assets": ["USDC"],
            "tokens": {
                "USDC": {"address": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "decimals": 6},
                "DAI": {"address": "0x50c5725949a6f0c72e6c4a641f24049a917db0cb", "decimals": 18},
                "WETH": {"address": "0x4200000000000000000000000000000000000006", "decimals": 18},
            },
            "venues": [
                {
                    "name": "Uniswap V3",
                    "kind": "MultiHopQuoter",
                    "address": "0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",
                    "fee_tiers": [3000, 500],
                },
                {
                    "name": "Sushiswap V2",
                    "kind": "ConstantProductRouter",
                    "address": "0x6e086AbE2ECB3f660b15Fb3a3ef0028BE6a4a1e0",
                    "fee_tiers": [3000],
                },
            ],
        }
    },
}


def minimal(**engine):
    config = copy.deepcopy(MINIMAL)
    config["engine"].update(engine)
    return config


class TestBundledConfig(unittest.TestCase):
    """Test the shipped configs/dex_base.yaml."""

    def test_defaults(self):
        config = load_config(env={})

        self.assertEqual(config.network_name, "base")
        self.assertEqual(config.chain_id, 8453)
        self.assertEqual(
            [v.name for v in config.venues],
            ["Uniswap V3", "BaseSwap", "Aerodrome", "Sushiswap V2"],
        )
        self.assertEqual(len(config.pairs()), 8)
        self.assertTrue(config.scan_only)
        self.assertIsNone(config.contract_address)
        self.assertEqual(config.native_token.symbol, "WETH")
        self.assertEqual(config.bridge_token.symbol, "WETH")

        usdc = config.tokens["USDC"]
        self.assertEqual(config.trade_amount_for(usdc), 10_000_000)
        self.assertEqual(config.min_profit_for(usdc), 500_000)
        self.assertEqual(config.min_profit_for(config.tokens["DAI"]), 5 * 10**17)

        # 3 attempts of 1500ms plus 1000 + 2000ms of backoff
        self.assertEqual(config.venue_timeout_ms, 7500)

    def test_uniswap_venue(self):
        venue = load_config(env={}).venues[0]
        self.assertEqual(venue.kind, VenueKind.MULTI_HOP_QUOTER)
        self.assertEqual(venue.quoter_version, 2)
        self.assertEqual(venue.fee_tiers, (500, 3000, 10000))
        self.assertEqual(
            venue.factory_address.lower(), "0x33128a8fc17869897dce68ed026d694621f6fdfd"
        )

    def test_arbitrum(self):
        config = load_config(env={"NETWORK": "arbitrum"})
        self.assertEqual(config.chain_id, 42161)
        self.assertEqual(config.tokens["WBTC"].decimals, 8)
        # Lower-case catalog entries come back checksummed
        self.assertEqual(
            config.tokens["WETH"].address, "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1"
        )
        # 3 base assets x 5 other catalog tokens
        self.assertEqual(len(config.pairs()), 15)


class TestEnvOverrides(unittest.TestCase):
    """Test environment variable overrides."""

    def test_scalar_overrides(self):
        config = DexConfig.from_dict(
            minimal(),
            env={
                "TRADE_AMOUNT": "250.5",
                "MIN_PROFIT": "2",
                "CHECK_INTERVAL": "1000",
                "QUOTE_TIMEOUT_MS": "800",
                "MAX_RETRIES": "5",
                "RETRY_BASE_DELAY_MS": "10",
                "SCAN_ONLY": "0",
                "SAFETY_MARGIN_BPS": "500",
                "RPC_URL": "https://rpc.example.org",
            },
        )
        self.assertEqual(config.trade_amount, Decimal("250.5"))
        self.assertEqual(config.trade_amount_for(config.tokens["USDC"]), 250_500_000)
        self.assertEqual(config.check_interval_ms, 1000)
        self.assertEqual(config.quote_timeout_ms, 800)
        self.assertEqual(config.retry_policy.max_attempts, 5)
        self.assertEqual(config.retry_policy.base_delay_ms, 10)
        self.assertEqual(config.venue_timeout_ms, 5 * 800 + 10 + 20 + 40 + 80)
        self.assertFalse(config.scan_only)
        self.assertEqual(config.safety_margin_bps, 500)
        self.assertEqual(config.rpc_url, "https://rpc.example.org")

    def test_empty_values_are_ignored(self):
        config = DexConfig.from_dict(minimal(), env={"TRADE_AMOUNT": "", "SCAN_ONLY": ""})
        self.assertEqual(config.trade_amount, Decimal("10"))
        self.assertTrue(config.scan_only)

    def test_invalid_bool(self):
        with self.assertRaises(ConfigError):
            DexConfig.from_dict(minimal(), env={"SCAN_ONLY": "maybe"})

    def test_contract_address(self):
        config = DexConfig.from_dict(
            minimal(), env={"CONTRACT_ADDRESS": "0x1111111111111111111111111111111111111111"}
        )
        self.assertEqual(config.contract_address, "0x1111111111111111111111111111111111111111")

    def test_balancer_and_curve_venues(self):
        env = {
            "BALANCER_VAULT": "0xBA12222222228d8Ba445958a75a0704d566BF2C8",
            "BALANCER_POOLID_USDC_DAI": POOL_ID,
            "CURVE_ROUTER": "0xd6681e74eEA20d196c15038C580f721EF2aB6320",
        }
        config = DexConfig.from_dict(minimal(), env=env)
        by_name = {v.name: v for v in config.venues}

        balancer = by_name["Balancer"]
        self.assertEqual(balancer.kind, VenueKind.BATCH_VAULT_ROUTER)
        self.assertEqual(balancer.pool_ids, {"DAI/USDC": POOL_ID})
        self.assertEqual(
            balancer.pool_id_for(config.tokens["DAI"], config.tokens["USDC"]), POOL_ID
        )
        self.assertEqual(by_name["Curve"].kind, VenueKind.CURVE_ROUTER)
        self.assertEqual(len(config.venues), 4)

    def test_overrides_do_not_mutate_input(self):
        original = minimal()
        apply_env_overrides(original, {"TRADE_AMOUNT": "99", "CURVE_ROUTER": "0x1"})
        self.assertEqual(original, minimal())


class TestValidation(unittest.TestCase):
    """Test that invalid configs are rejected with ConfigError."""

    def assertInvalid(self, config_dict, env=None):
        with self.assertRaises(ConfigError):
            DexConfig.from_dict(config_dict, env=env)

    def test_minimal_is_valid(self):
        config = DexConfig.from_dict(minimal())
        self.assertEqual(config.venues[0].fee_tiers, (500, 3000))
        self.assertEqual([t.symbol for t in config.catalog], ["USDC", "DAI", "WETH"])
        self.assertEqual(len(config.pairs()), 2)

    def test_unknown_network(self):
        self.assertInvalid(minimal(), env={"NETWORK": "solana"})

    def test_quoter_without_fee_tiers(self):
        config = minimal()
        del config["networks"]["base"]["venues"][0]["fee_tiers"]
        self.assertInvalid(config)

    def test_unknown_venue_kind(self):
        config = minimal()
        config["networks"]["base"]["venues"][1]["kind"] = "Orderbook"
        self.assertInvalid(config)

    def test_unknown_symbol(self):
        config = minimal()
        config["networks"]["base"]["base_assets"] = ["USDT"]
        self.assertInvalid(config)

    def test_bad_address(self):
        config = minimal()
        config["networks"]["base"]["tokens"]["DAI"]["address"] = "0x123"
        self.assertInvalid(config)

    def test_duplicate_venue_names(self):
        config = minimal()
        config["networks"]["base"]["venues"][1]["name"] = "Uniswap V3"
        self.assertInvalid(config)

    def test_bad_pool_id(self):
        config = minimal()
        venues = config["networks"]["base"]["venues"]
        venues.append(
            {
                "name": "Balancer",
                "kind": "BatchVaultRouter",
                "address": "0xBA12222222228d8Ba445958a75a0704d566BF2C8",
                "pool_ids": {"USDC/DAI": "0x1234"},
            }
        )
        self.assertInvalid(config)

    def test_unknown_keys(self):
        config = minimal()
        config["engine"]["trade_size"] = 5
        self.assertInvalid(config)

    def test_no_enabled_venues(self):
        config = minimal()
        for venue in config["networks"]["base"]["venues"]:
            venue["enabled"] = False
        self.assertInvalid(config)

    def test_trade_amount_below_one_unit(self):
        self.assertInvalid(minimal(trade_amount="0.0000001"))

    def test_non_positive_trade_amount(self):
        self.assertInvalid(minimal(trade_amount="0"))


class TestLoadConfig(unittest.TestCase):
    """Test file handling in load_config."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def _write(self, name, text):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "w") as f:
            f.write(text)
        return path

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            load_config(os.path.join(self.tmpdir.name, "nope.yaml"), env={})

    def test_bad_yaml(self):
        path = self._write("bad.yaml", "network: [unclosed\n")
        with self.assertRaises(ConfigError):
            load_config(path, env={})

    def test_not_a_mapping(self):
        path = self._write("list.yaml", "- a\n- b\n")
        with self.assertRaises(ConfigError):
            load_config(path, env={})

    def test_yaml_file(self):
        path = self._write("ok.yaml", yaml.safe_dump(minimal()))
        config = load_config(path, env={"MIN_PROFIT": "1"})
        self.assertEqual(config.min_profit, Decimal("1"))

    def test_dotenv_file(self):
        path = self._write("ok.yaml", yaml.safe_dump(minimal()))
        dotenv = self._write(".env", "TRADE_AMOUNT=42\nSCAN_ONLY=false\n")
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(path, dotenv_path=dotenv)
        self.assertEqual(config.trade_amount, Decimal("42"))
        self.assertFalse(config.scan_only)


if __name__ == "__main__":
    unittest.main()
