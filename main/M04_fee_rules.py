# ====================================================================================================
# M04_fee_rules.py
# ----------------------------------------------------------------------------------------------------
# Step 4 – Fee rule engine
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Turn per-platform gross revenue into a franchise fee under the franchisee's fee model.
#   - Report the blended (effective) percentage for display on the invoice.
#   - Compute the informational direct-platform (Slerp) fee.
#
# Models:
#   • flat-percentage          fee = round2(total gross × rate / 100)
#   • per-platform-percentage  fee = Σ round2(platform gross × platform rate / 100)   (round, THEN sum)
#   • fixed-monthly            fee = monthly fee, gross recorded as 0
#
# Notes:
#   - Pure functions: no storage, no logging side effects beyond DEBUG.
#   - effective_percentage is display-only and never fed back into fee_amount.
# ----------------------------------------------------------------------------------------------------
# Author:        Gerry Pidgeon
# Created:       2025-11-05
# Project:       Franchise Fee Reconciliation
# ====================================================================================================


# ====================================================================================================
# 1. SYSTEM IMPORTS
# ----------------------------------------------------------------------------------------------------
# Add parent directory to sys.path so this module can import other "processes" packages.
# ====================================================================================================
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.dont_write_bytecode = True


# ====================================================================================================
# 2. PROJECT IMPORTS
# ----------------------------------------------------------------------------------------------------
# All standard and third-party packages are centrally imported in P00_set_packages.py
# ====================================================================================================
from processes.P00_set_packages import *
from processes.P03_shared_functions import round_money, to_decimal
from processes.P05_error_types import ConfigurationError
from processes.P06_class_items import AGGREGATOR_PLATFORMS, FeeConfiguration, FeeModel, FeeResult, Platform

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


# ====================================================================================================
# 3. FEE ENGINE
# ====================================================================================================

def compute_fee(fee_config: FeeConfiguration, per_platform_gross: Dict) -> FeeResult:
    """
    Compute the franchise fee for one billing period.

    Args:
        fee_config (FeeConfiguration): The franchisee's fee model and rates.
        per_platform_gross (dict[Platform | str, Decimal]): Gross revenue per aggregator platform.
            Direct-platform (Slerp) figures are ignored here.

    Returns:
        FeeResult: total_gross, fee_amount, effective_percentage and per-platform fees.

    Raises:
        ConfigurationError: Fixed-monthly model without a positive monthly fee.

    Example:
        >>> config = FeeConfiguration(FeeModel.PER_PLATFORM_PERCENTAGE, deliveroo_rate=Decimal(6), ubereats_rate=Decimal(8))
        >>> compute_fee(config, {"deliveroo": 1000, "ubereats": 500}).fee_amount
        Decimal('100.00')
    """
    # ------------------------------------------------------------------------------------------------
    # STEP 1: Normalise inputs (platform keys, Decimal amounts, aggregators only)
    # ------------------------------------------------------------------------------------------------
    gross_by_platform: Dict[Platform, Decimal] = {}
    for key, amount in (per_platform_gross or {}).items():
        platform = Platform.parse(key)
        if platform not in AGGREGATOR_PLATFORMS:
            continue
        gross_by_platform[platform] = gross_by_platform.get(platform, Decimal("0")) + to_decimal(amount, Decimal("0"))

    total_gross = round_money(sum(gross_by_platform.values(), Decimal("0")))

    # ------------------------------------------------------------------------------------------------
    # STEP 2: Apply the fee model
    # ------------------------------------------------------------------------------------------------
    platform_fees: Dict[Platform, Decimal] = {}

    if fee_config.model is FeeModel.FIXED_MONTHLY:
        monthly_fee = fee_config.monthly_fee
        if monthly_fee is None or monthly_fee <= 0:
            raise ConfigurationError("Monthly fee must be set and greater than 0.")
        return FeeResult(
            total_gross=Decimal("0.00"),
            fee_amount=round_money(monthly_fee),
            effective_percentage=round_money(fee_config.nominal_rate),
        )

    if fee_config.model is FeeModel.PER_PLATFORM_PERCENTAGE:
        # Round each platform's fee before summing so totals match the fee-breakdown table
        for platform, amount in gross_by_platform.items():
            platform_fees[platform] = round_money(amount * fee_config.rate_for(platform) / HUNDRED)
        fee_amount = round_money(sum(platform_fees.values(), Decimal("0")))
    else:
        rate = fee_config.nominal_rate
        fee_amount = round_money(total_gross * rate / HUNDRED)
        for platform, amount in gross_by_platform.items():
            platform_fees[platform] = round_money(amount * rate / HUNDRED)

    # ------------------------------------------------------------------------------------------------
    # STEP 3: Effective (blended) percentage, display only
    # ------------------------------------------------------------------------------------------------
    if total_gross > 0:
        effective = round_money(fee_amount / total_gross * HUNDRED)
    else:
        effective = round_money(fee_config.nominal_rate)

    logger.debug("Fee %s on £%s → £%s (%s%%)", fee_config.model.value, total_gross, fee_amount, effective)
    return FeeResult(total_gross, fee_amount, effective, platform_fees)


def compute_direct_platform_fee(fee_config: FeeConfiguration, gross) -> Decimal:
    """Informational Slerp fee: round2(gross × direct rate / 100). Never added to the invoice fee."""
    return round_money(to_decimal(gross, Decimal("0")) * fee_config.rate_for(Platform.SLERP) / HUNDRED)
