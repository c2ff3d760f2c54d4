from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException
import logging
from lib.config import get_settings, Settings
from lib.error_handler import AppError, ValidationError

logger = logging.getLogger(__name__)

class TwilioClient:
    def __init__(self, settings: Settings = None):
        settings = settings or get_settings()
        try:
            self.client = Client(
                settings.twilio_account_sid,
                settings.twilio_auth_token
            )
            self.phone_number = settings.twilio_phone_number
            # Verify credentials
            self.client.api.accounts(settings.twilio_account_sid).fetch()
        except Exception as e:
            logger.error(f"Failed to initialize Twilio client: {str(e)}")
            raise AppError("Failed to initialize messaging service")

    def send_verification_code(self, to_number: str, code: str) -> str:
        """Send a verification code by SMS and return the message SID."""
        try:
            message = self.client.messages.create(
                body=f"Your verification code is {code}",
                from_=self.phone_number,
                to=to_number
            )
            logger.info(f"Verification code sent to {to_number}")
            return message.sid
        except TwilioRestException as e:
            logger.error(f"Twilio error sending verification code: {str(e)}")
            if e.code == 21211:  # Invalid phone number
                raise ValidationError("Invalid phone number format.")
            raise AppError(f"Failed to send verification code: {str(e)}")
        except Exception as e:
            logger.error(f"Unexpected error sending verification code: {str(e)}")
            raise AppError("An unexpected error occurred while sending the verification code.")
