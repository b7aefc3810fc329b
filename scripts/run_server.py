from pathlib import Path
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

import uvicorn
from qtmon.config import load_settings

if __name__ == '__main__':
    settings = load_settings()
    uvicorn.run("qtmon.main:app", host=settings.http_host, port=settings.http_port, log_config=None)
