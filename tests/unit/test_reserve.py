"""
test_reserve.py - Unit tests for ReserveConfig and ReserveRegistry

Tests:
- Configuration validation
- Reserve initialization defaults
- Lookup of unknown and inactive reserves
- Snapshot / restore
"""

import pytest
from dataclasses import replace
from datetime import datetime

from lending import (
    WAD, AdminCapability, ReceiptToken, Reserve, ReserveConfig, ReserveRegistry,
    AlreadyActive, InvalidConfig, ReserveNotActive, to_wad,
)


NOW = datetime(2025, 1, 1)


@pytest.fixture
def a_weth(assets):
    return ReceiptToken(assets, "aWETH", "Pool WETH", "WETH", AdminCapability("deployer"))


@pytest.fixture
def config():
    return ReserveConfig.from_percentages("0.75", "0.80", "0.05", "0.5")


@pytest.fixture
def registry():
    return ReserveRegistry()


class TestReserveConfig:
    """Tests for ReserveConfig validation."""

    def test_from_percentages(self, config):
        assert config.ltv == to_wad("0.75")
        assert config.liquidation_threshold == to_wad("0.80")
        assert config.liquidation_bonus == to_wad("0.05")
        assert config.close_factor == WAD // 2

    def test_ltv_equal_to_threshold_allowed(self):
        config = ReserveConfig.from_percentages("0.8", "0.8", "0", "1")
        assert config.ltv == config.liquidation_threshold

    def test_ltv_above_threshold_rejected(self):
        with pytest.raises(InvalidConfig, match="exceeds liquidation threshold"):
            ReserveConfig.from_percentages("0.85", "0.80", "0.05", "0.5")

    def test_threshold_above_one_rejected(self):
        with pytest.raises(InvalidConfig):
            ReserveConfig.from_percentages("0.9", "1.1", "0.05", "0.5")

    @pytest.mark.parametrize("close_factor", ["0", "1.01"])
    def test_close_factor_out_of_range(self, close_factor):
        with pytest.raises(InvalidConfig):
            ReserveConfig.from_percentages("0.75", "0.80", "0.05", close_factor)

    def test_negative_bonus_rejected(self):
        with pytest.raises(InvalidConfig):
            ReserveConfig(ltv=0, liquidation_threshold=0, liquidation_bonus=-1, close_factor=WAD)


class TestReserveRegistry:
    """Tests for ReserveRegistry."""

    def test_init_reserve_defaults(self, registry, a_weth, config):
        reserve = registry.init_reserve("WETH", a_weth, config, NOW)
        assert reserve.total_liquidity == 0
        assert reserve.total_borrowed == 0
        assert reserve.liquidity_index == WAD
        assert reserve.borrow_index == WAD
        assert reserve.last_accrual_timestamp == NOW
        assert reserve.active
        assert reserve.ltv == config.ltv
        assert reserve.liquidation_threshold == config.liquidation_threshold
        assert reserve.liquidation_bonus == config.liquidation_bonus
        assert reserve.close_factor == config.close_factor

    def test_double_init_rejected(self, registry, a_weth, config):
        registry.init_reserve("WETH", a_weth, config, NOW)
        with pytest.raises(AlreadyActive):
            registry.init_reserve("WETH", a_weth, config, NOW)

    def test_token_for_other_asset_rejected(self, registry, a_weth, config):
        with pytest.raises(InvalidConfig, match="wraps WETH"):
            registry.init_reserve("DAI", a_weth, config, NOW)

    def test_unknown_reserve(self, registry):
        with pytest.raises(ReserveNotActive):
            registry.get("WETH")
        assert not registry.is_active("WETH")

    def test_update_unknown_reserve(self, registry, a_weth):
        orphan = Reserve(
            asset="WETH", receipt_token=a_weth, ltv=0, liquidation_threshold=0,
            liquidation_bonus=0, close_factor=WAD, last_accrual_timestamp=NOW,
        )
        with pytest.raises(ReserveNotActive):
            registry.update(orphan)

    def test_update_replaces_record(self, registry, a_weth, config):
        reserve = registry.init_reserve("WETH", a_weth, config, NOW)
        registry.update(replace(reserve, total_liquidity=5 * WAD))
        assert registry.get("WETH").total_liquidity == 5 * WAD

    def test_snapshot_restore(self, registry, a_weth, config):
        reserve = registry.init_reserve("WETH", a_weth, config, NOW)
        snapshot = registry.snapshot()
        registry.update(replace(reserve, total_liquidity=5 * WAD))
        registry.restore(snapshot)
        assert registry.get("WETH").total_liquidity == 0

    def test_container_protocol(self, registry, a_weth, config):
        registry.init_reserve("WETH", a_weth, config, NOW)
        assert "WETH" in registry
        assert len(registry) == 1
        assert registry.assets() == ["WETH"]
