#!/usr/bin/env python3
"""Extract a trading signal from a channel message via paid inference.

Provisions the ledger, lists the network's providers, runs one extraction
and reports the remaining ledger balance.

Usage:
    python -m scripts.extract_signal_demo
    python -m scripts.extract_signal_demo --sample auction
    python -m scripts.extract_signal_demo --message "BTC long, TP 70000, SL 65000"

Environment:
    PRIVATE_KEY, BROKER_FACTORY (see scripts/run_api.py)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.dependencies import build_services  # noqa: E402
from core.config import InferenceSettings  # noqa: E402
from core.inference.broker import create_broker, load_broker_factory  # noqa: E402
from core.inference.errors import ExhaustedRetries  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("signal-demo")

SAMPLE_MESSAGES = {
    "trump": """Coin : #TRUMP /USDT

🟢 LONG

👉 Entry:  10.8800  - 10.5000

🌐 Leverage: 20x

🎯 Target 1: 10.9800
🎯 Target 2: 11.0900
🎯 Target 3: 11.2000
🎯 Target 4: 11.3100
🎯 Target 5: 11.4300
🎯 Target 6: 11.5500

❌ StopLoss: 10.1800""",
    "auction": """🚀 Bullish Alert 🚀
🏛️ Token: AUCTION (auction)
📈 Signal: Buy
🎯 Targets:
TP1: $54
TP2: $56.5
🛑 Stop Loss: $48.4
⏳ Timeline: 1-2 days""",
}


async def main() -> int:
    parser = argparse.ArgumentParser(description="Extract a trading signal via paid inference")
    parser.add_argument(
        "--sample",
        choices=sorted(SAMPLE_MESSAGES),
        default="trump",
        help="Built-in sample message to analyse (default: trump)",
    )
    parser.add_argument(
        "--message",
        default=None,
        help="Analyse this message instead of a built-in sample",
    )
    args = parser.parse_args()

    load_dotenv()
    settings = InferenceSettings.from_env()
    if not settings.broker_factory:
        logger.error("BROKER_FACTORY environment variable is required")
        return 1

    broker = await create_broker(
        load_broker_factory(settings.broker_factory),
        private_key=settings.private_key,
        rpc_url=settings.rpc_url,
    )
    services = build_services(settings, broker)

    try:
        await services.provisioner.ensure_funded()

        providers = await broker.directory.list_providers()
        logger.info("Available inference providers: %s", providers)

        message = args.message or SAMPLE_MESSAGES[args.sample]
        try:
            signal = await services.extractor.extract_signal(message)
            if signal is None:
                logger.warning("No trading signal found in message")
            else:
                print(json.dumps(signal.to_dict(), indent=2))
        except ExhaustedRetries as e:
            logger.error("%s", e)
            return 1
        finally:
            logger.info("Remaining balance in ledger: %s", await services.provisioner.balance())
        return 0
    finally:
        await services.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
