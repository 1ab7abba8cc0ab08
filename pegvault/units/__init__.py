"""
Units module - Token and vault units.

- Token units: collateral assets and the peg currency, with allowances and
  minter capability
- Collateral vault units: per-asset vaults issuing the peg currency

All unit factories and related functions are re-exported here for convenience.
"""

# Token units
from .token import (
    create_token_unit,
    create_peg_currency_unit,
    balance_of,
    decimals,
    allowance,
    is_minter,
    spend_allowance,
    require_minter,
    compute_approve,
    compute_grant_minter,
    compute_issue,
    compute_burn,
    compute_transfer,
    compute_transfer_from,
    transact as token_transact,
)

# Collateral vaults
from .collateral_vault import (
    # Frozen dataclasses
    VaultConfig,
    AccountLedger,
    VaultState,
    AccountStatus,
    LiquidationPlan,
    # Adapter functions
    load_vault,
    to_state_dict,
    create_vault_unit,
    # Pure calculation functions
    validate_percentage,
    calculate_adjusted_collateral,
    calculate_health_factor,
    calculate_max_repay,
    calculate_liquidation_bonus,
    calculate_max_mintable,
    calculate_max_withdrawable,
    is_solvent,
    # Compute functions
    compute_health_factor,
    compute_account_status,
    compute_liquidatable_accounts,
    compute_deposit,
    compute_mint,
    compute_withdraw,
    compute_repay,
    plan_liquidation,
    compute_liquidation,
    compute_update_parameter,
    compute_set_liquidation_threshold,
    compute_set_liquidation_spread,
    compute_set_close_factor,
    compute_set_price_feed,
    compute_transfer_ownership,
    transact as vault_transact,
    RISK_PARAMETERS,
)
