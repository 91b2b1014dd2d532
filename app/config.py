import os
from pathlib import Path

from whaledesk.config import BacktestConfig

BASE_DIR = Path(__file__).resolve().parents[1]
LOGS_DIR = Path(os.getenv("LOGS_DIR", str(BASE_DIR / "logs")))
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

STORAGE_NAMESPACE = "mmc_analysis_history"
HISTORY_PATH = Path(os.getenv("HISTORY_PATH", str(DATA_DIR / f"{STORAGE_NAMESPACE}.json")))
BACKTEST_LOG_PATH = LOGS_DIR / "backtests.jsonl"

NARRATIVE_ENABLED = os.getenv("NARRATIVE_ENABLED", "1").lower() not in {"0", "false", "no"}

BACKTEST_CONFIG = BacktestConfig.from_env()
