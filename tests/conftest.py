"""
Pytest configuration and fixtures.
Adds src/ to Python path so tests can import supply_recon without installing.
"""

import sys
from pathlib import Path

import pytest

# Add the repo root's src/ directory to sys.path
repo_root = Path(__file__).parent.parent
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from supply_recon.reconciliation.types import LayerOneSupply, LayerTwoSupply  # noqa: E402

WEI = 10 ** 18


def wei(tokens) -> str:
    """Whole tokens (int or numeric string) to a wei integer string."""
    from decimal import Decimal

    return str(int(Decimal(str(tokens)) * WEI))


@pytest.fixture
def l1_snapshot() -> LayerOneSupply:
    """10B total, 2B locked, 8B liquid, 8.1B circulating."""
    return LayerOneSupply(
        total_supply="10000000000000000000000000000",
        locked_supply="2000000000000000000000000000",
        locked_supply_genesis="1900000000000000000000000000",
        liquid_supply="8000000000000000000000000000",
        circulating_supply="8100000000000000000000000000",
    )


@pytest.fixture
def l2_snapshot() -> LayerTwoSupply:
    """~3.344B on layer two, ~3.230B bridged in, nothing withdrawn."""
    return LayerTwoSupply(
        total_supply="3344392801699562803941900360",
        total_deposited_confirmed="3230297690874856963763373638",
        total_withdrawn="0",
    )
