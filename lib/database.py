import logging
from supabase import create_client, Client

from lib.config import get_settings, Settings
from lib.error_handler import AppError

logger = logging.getLogger(__name__)

def get_supabase_client(settings: Settings = None) -> Client:
    """Create a Supabase client from the configured credentials"""
    settings = settings or get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        raise AppError("Supabase credentials are not configured", status_code=500)
    try:
        logger.info("Initializing Supabase client...")
        client: Client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialized successfully")
        return client
    except Exception as e:
        logger.error(f"Error initializing Supabase client: {str(e)}")
        raise AppError(f"Database connection error: {str(e)}", status_code=500)
