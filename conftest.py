import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Pin loader defaults so a developer's FETCH_* environment never leaks into tests.
os.environ["FETCH_DEDUPING_INTERVAL_MS"] = "2000"
os.environ["FETCH_FOCUS_THROTTLE_INTERVAL_MS"] = "300000"
