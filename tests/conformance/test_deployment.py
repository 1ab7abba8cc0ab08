"""
Deployment Conformance Tests

INVARIANT: At most one vault per collateral asset, and every deployed vault
can issue the peg currency.

    deploy(config) twice for the same asset ⟹ DuplicateCollateral
    lookup(asset) == symbol of the one vault serving it
    symbol ∈ peg.minters for every deployed vault
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from pegvault import DuplicateCollateral, ValuationEngine, VaultRegistry, create_token_unit
from tests.helpers import GOV, PEG_FEED, WETH_FEED, make_ledger, make_oracle, weth_config, wbtc_config


def fresh_registry():
    ledger = make_ledger()
    registry = VaultRegistry.create(ledger, ValuationEngine(make_oracle(), peg_feed=PEG_FEED), governance=GOV)
    return ledger, registry


class TestDeploymentProperties:

    @given(st.lists(st.sampled_from(["WETH", "WBTC", "LINK", "UNI"]), min_size=1, max_size=12))
    @settings(max_examples=50, deadline=None)
    def test_one_vault_per_asset(self, assets):
        """
        PROPERTY: Deploying an asset a second time always fails and never
        changes the directory.
        """
        ledger, registry = fresh_registry()
        for extra in ("LINK", "UNI"):
            ledger.register_unit(create_token_unit(extra, extra, 18, owner=GOV))

        deployed = {}
        for asset in assets:
            config = weth_config(collateral_asset=asset)
            if asset in deployed:
                with pytest.raises(DuplicateCollateral) as exc_info:
                    registry.deploy_vault(GOV, config)
                assert exc_info.value.existing == deployed[asset]
            else:
                if asset == "WBTC":
                    config = wbtc_config()
                deployed[asset] = registry.deploy_vault(GOV, config)
            assert registry.vaults() == deployed

        minters = ledger.get_unit_state("PEG")['minters']
        assert set(deployed.values()) <= set(minters)


class TestDeploymentExamples:

    def test_custom_symbol_does_not_bypass_duplicate_check(self, registry):
        registry.deploy_vault(GOV, weth_config())
        with pytest.raises(DuplicateCollateral):
            registry.deploy_vault(GOV, weth_config(price_feed=WETH_FEED), vault_symbol="VAULT-WETH-2")
        assert registry.vaults() == {"WETH": "VAULT-WETH"}

    def test_different_terms_still_duplicate(self, registry):
        registry.deploy_vault(GOV, weth_config())
        with pytest.raises(DuplicateCollateral):
            registry.deploy_vault(GOV, weth_config(liquidation_threshold=60, close_factor=100))
