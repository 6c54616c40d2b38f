import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def build_pos(tmp_path: Path, gst_rate: float = 0.0, name: str = "pos.db"):
    from posbill.application.container import build_container
    from posbill.config import BillingSettings

    return build_container(tmp_path / name, BillingSettings(gst_rate_override=gst_rate))


def cashier():
    from posbill.domain.models import Operator

    return Operator(id="emp-1", username="cashier")
