import logging

from lib.config import get_settings, Settings
from lib.database import get_supabase_client
from lib.scheduler import Scheduler, AsyncioScheduler
from lib.twilio_client import TwilioClient

from .audio import AudioService
from .auth import AuthService
from .directory import Directory
from .feed import PollingFeed
from .messaging import MessagingService
from .storage import LocalMessageStore, SupabaseMessageStore
from .webhook import WebhookNotifier

logger = logging.getLogger(__name__)

class Services:
    """Everything a chat session needs, wired from one Settings object"""

    def __init__(self, settings: Settings, store, directory, audio, notifier, feed, messaging, auth):
        self.settings = settings
        self.store = store
        self.directory = directory
        self.audio = audio
        self.notifier = notifier
        self.feed = feed
        self.messaging = messaging
        self.auth = auth

def build_services(settings: Settings = None, scheduler: Scheduler = None, supabase_client=None) -> Services:
    settings = settings or get_settings()
    scheduler = scheduler or AsyncioScheduler()

    if settings.remote or settings.audio_content_mode == 'storage':
        supabase_client = supabase_client or get_supabase_client(settings)

    if settings.remote:
        logger.info("Initializing Supabase message store")
        store = SupabaseMessageStore(supabase_client, table=settings.messages_table)
    else:
        logger.info("Initializing local message store")
        store = LocalMessageStore()

    directory = Directory()
    audio = AudioService(
        content_mode=settings.audio_content_mode,
        supabase_client=supabase_client,
        bucket=settings.audio_bucket
    )
    notifier = WebhookNotifier(
        webhook_url=settings.webhook_url,
        method=settings.webhook_method,
        reply_store=store
    )
    feed = PollingFeed(store, scheduler, interval_ms=settings.poll_interval_ms)
    messaging = MessagingService(
        store=store,
        directory=directory,
        scheduler=scheduler,
        audio_service=audio,
        notifier=notifier,
        feed=feed,
        delivered_delay_ms=settings.delivered_delay_ms,
        read_delay_ms=settings.read_delay_ms
    )
    sms_client = TwilioClient(settings) if settings.twilio_configured else None
    if sms_client is None:
        logger.warning("Twilio not configured, verification codes are logged and any six-digit code is accepted")
    auth = AuthService(directory=directory, sms_client=sms_client, demo_mode=sms_client is None)

    logger.info("All services initialized successfully")
    return Services(settings, store, directory, audio, notifier, feed, messaging, auth)
