import os
import tempfile

import pytest

# The web module builds its history store at import time; keep it out of the
# working directory.
os.environ.setdefault(
    "EMI_CALC_DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.mkdtemp(prefix="emi-calc-"), "history.sqlite3"),
)

from emi_calc.data_models import LoanParameters  # noqa: E402
from emi_calc.history_store import HistoryStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    return HistoryStore(f"sqlite:///{tmp_path / 'history.sqlite3'}", max_per_user=3)


@pytest.fixture
def home_loan():
    """Rs 10 lakh at 8.5 % over 20 years, monthly."""
    return LoanParameters(principal=1_000_000, annual_rate="8.5", periods=240)
