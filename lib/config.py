from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()

class Settings(BaseModel):
    # Store settings
    store_mode: str = os.getenv('STORE_MODE', 'local')
    messages_table: str = os.getenv('MESSAGES_TABLE', 'messages')

    # Supabase settings
    supabase_url: str = os.getenv('SUPABASE_URL', '')
    supabase_key: str = os.getenv('SUPABASE_KEY', '')
    audio_bucket: str = os.getenv('AUDIO_BUCKET', 'audio-messages')

    # Webhook settings
    webhook_url: str = os.getenv('WEBHOOK_URL', '')
    webhook_method: str = os.getenv('WEBHOOK_METHOD', 'GET')

    # Audio content settings
    audio_content_mode: str = os.getenv('AUDIO_CONTENT_MODE', 'data_uri')

    # Lifecycle timings (milliseconds)
    delivered_delay_ms: int = int(os.getenv('DELIVERED_DELAY_MS', '1000'))
    read_delay_ms: int = int(os.getenv('READ_DELAY_MS', '3000'))
    poll_interval_ms: int = int(os.getenv('POLL_INTERVAL_MS', '2000'))

    # Twilio settings
    twilio_account_sid: str = os.getenv('TWILIO_ACCOUNT_SID', '')
    twilio_auth_token: str = os.getenv('TWILIO_AUTH_TOKEN', '')
    twilio_phone_number: str = os.getenv('TWILIO_PHONE_NUMBER', '')

    @property
    def remote(self) -> bool:
        return self.store_mode.lower() == 'remote'

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number)

def get_settings() -> Settings:
    return Settings()
