import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from authgate.db.repositories.token_repo import TokenLedger

logger = logging.getLogger(__name__)

async def run_sweeper(ledger: TokenLedger, interval: float) -> None:
    """Delete expired opaque tokens every ``interval`` seconds until cancelled."""
    logger.info(f"Token sweeper started (every {interval}s)")
    while True:
        await asyncio.sleep(interval)
        try:
            await ledger.sweep_expired()
        except SQLAlchemyError as e:
            logger.error(f"Token sweep failed: {e}")
