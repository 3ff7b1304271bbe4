from db.store import LedgerStore
from services.user_service import ensure_admin_user
import logging

logger = logging.getLogger(__name__)

async def initialize_database(store: LedgerStore):
    """Create tables and make sure the bootstrap admin exists."""
    try:
        await store.create_all()
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
    await ensure_admin_user(store)
