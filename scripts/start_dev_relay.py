#!/usr/bin/env python3
"""Development SMTP relay for Inquiry Relay.

Starts an aiosmtpd server with DevRelayHandler so the API can deliver
inquiries locally. Point the API at it with:

    SMTP_HOST=127.0.0.1 SMTP_PORT=1025 SMTP_SECURE=false SMTP_USER= \
        OWNER_EMAIL=owner@example.com python -m inquiry_relay

Usage:
    python scripts/start_dev_relay.py

Environment Variables:
    DEV_RELAY_HOST: Bind address (default: 127.0.0.1)
    DEV_RELAY_PORT: Listen port (default: 1025)
    DEV_RELAY_REPLY: Fixed reply for every message, e.g. '451 Try again later'
        to exercise retries or '550 Mailbox unavailable' for a fatal failure
"""

import asyncio
import logging
import os
import sys

from aiosmtpd.controller import Controller

# Add backend/src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend', 'src'))

from inquiry_relay.infrastructure.dev_relay import DevRelayHandler

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


async def main():
    """Start the development relay."""
    host = os.getenv('DEV_RELAY_HOST', '127.0.0.1')
    port = int(os.getenv('DEV_RELAY_PORT', '1025'))
    simulated_reply = os.getenv('DEV_RELAY_REPLY') or None

    logger.info("=== Inquiry Relay Dev SMTP Server Starting ===")
    logger.info(f"SMTP Bind: {host}:{port}")
    if simulated_reply:
        logger.info(f"Simulated reply: {simulated_reply}")

    handler = DevRelayHandler(simulated_reply=simulated_reply)
    controller = Controller(handler, hostname=host, port=port)
    controller.start()

    logger.info(f"Dev relay started on {host}:{port}")
    logger.info("Press Ctrl+C to stop")

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        logger.info("Shutting down dev relay...")
        controller.stop()
        logger.info(f"Dev relay stopped after accepting {len(handler.received)} message(s)")


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, exiting")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Dev relay failed: {e}", exc_info=True)
        sys.exit(1)
