"""
pegvault - Over-collateralized peg currency vaults on a double-entry ledger

Users lock an approved collateral token in a vault, borrow the peg currency
against it, and can be partially liquidated when the collateral's value
falls relative to their debt.

Usage:
    from pegvault import (
        Ledger, PriceOracle, StaticPriceFeed, ValuationEngine, VaultRegistry,
        VaultConfig, create_token_unit, compute_approve,
    )

    ledger = Ledger("main", test_mode=True)
    ledger.register_unit(create_token_unit("WETH", "Wrapped Ether", 18, owner="gov"))
    ledger.register_wallet("alice")
    ledger.set_balance("alice", "WETH", 3 * 10**18)

    oracle = PriceOracle({
        "WETH/USD": StaticPriceFeed.from_decimal("1607.84", 8),
        "PEG/USD": StaticPriceFeed.from_decimal("1.2156", 8),
    })
    valuation = ValuationEngine(oracle, peg_feed="PEG/USD")
    registry = VaultRegistry.create(ledger, valuation, governance="gov")

    symbol = registry.deploy_vault("gov", VaultConfig("WETH", 18, "WETH/USD", 8))
    vault = registry.vault("WETH")

    ledger.execute_or_raise(compute_approve(ledger, "WETH", "alice", symbol, 3 * 10**18))
    vault.deposit_collateral("alice", 3 * 10**18)
    vault.mint_debt("alice", 3000 * 10**18)
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    empty_pending_transaction,
    make_origin,
    Unit,
    UnitStateChange,
    ExecuteResult,
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    TransactionRejected,
    SYSTEM_WALLET,
    UNIT_TYPE_TOKEN,
    UNIT_TYPE_PEG_CURRENCY,
    UNIT_TYPE_COLLATERAL_VAULT,
    UNIT_TYPE_VAULT_REGISTRY,
    PEG_DECIMALS,
    HEALTH_FACTOR_PRECISION,
    MAX_HEALTH_FACTOR,
    UINT256_MAX,
    PERCENT_BASE,
)

# Ledger
from .ledger import Ledger

# Errors
from .errors import (
    VaultError,
    InvalidAmount,
    InvalidAddress,
    InvalidReference,
    InvalidPercentage,
    SolvencyViolation,
    HealthNotImproved,
    NotLiquidatable,
    CloseFactorExceeded,
    DuplicateCollateral,
    Unauthorized,
    OracleFault,
    InsufficientCollateral,
    ExcessiveRepayment,
    InsufficientAllowance,
    ArithmeticOverflow,
    TransferRejected,
)

# Fixed-point normalization
from .normalizer import rescale, mul_div, scaled_mul_div, checked_mul

# Oracle
from .oracle import (
    PriceQuote,
    PriceFeed,
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    PriceOracle,
    to_scaled_price,
)

# Valuation
from .valuation import (
    ValuationEngine,
    calculate_collateral_to_peg,
    calculate_peg_to_collateral,
)

# Tokens
from .units.token import (
    create_token_unit,
    create_peg_currency_unit,
    balance_of,
    allowance,
    compute_approve,
    compute_grant_minter,
    compute_issue,
    compute_burn,
    compute_transfer,
    compute_transfer_from,
)

# Collateral vaults
from .units.collateral_vault import (
    VaultConfig,
    AccountLedger,
    VaultState,
    AccountStatus,
    LiquidationPlan,
    load_vault,
    calculate_health_factor,
    calculate_max_repay,
    calculate_liquidation_bonus,
    calculate_max_mintable,
    calculate_max_withdrawable,
    transact as vault_transact,
)
from .vault import CollateralVault

# Registry
from .registry import (
    VaultRegistry,
    create_registry_unit,
    compute_create_registry,
    compute_deploy_vault,
    lookup_vault,
)

# Events
from .events import VaultEvent, events_for, EVENT_TYPES
