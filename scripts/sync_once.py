#!/usr/bin/env python3
"""
Run a single sync cycle (discover, fetch, persist) and exit.

Usage:
    python scripts/sync_once.py
"""
from pathlib import Path
import asyncio
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from qtmon.config import load_settings
from qtmon.context import build_context
from qtmon.logging import setup_logging
from qtmon.sync.engine import SyncEngine


async def _main():
    settings = load_settings()
    setup_logging(settings)
    engine = SyncEngine(build_context(settings))
    await engine.ensure_authenticated()
    return await engine.run_cycle()


if __name__ == '__main__':
    report = asyncio.run(_main())
    print('Synced', report.accounts_synced, 'accounts |',
          'balances:', report.balances_inserted,
          '| positions:', report.positions_inserted,
          '| duplicates:', report.duplicates,
          '| errors:', len(report.errors) + len(report.timeouts))
