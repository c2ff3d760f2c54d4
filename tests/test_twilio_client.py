import pytest
from unittest.mock import patch, MagicMock
from twilio.base.exceptions import TwilioRestException

from lib.config import Settings
from lib.error_handler import AppError, ValidationError
from lib.twilio_client import TwilioClient

@pytest.fixture
def settings():
    return Settings(
        twilio_account_sid='AC123',
        twilio_auth_token='token',
        twilio_phone_number='+15550000000'
    )

def test_sends_verification_code(settings):
    with patch('lib.twilio_client.Client') as mock_client:
        mock_client.return_value.messages.create.return_value = MagicMock(sid='SM123')
        client = TwilioClient(settings)

        sid = client.send_verification_code('+15551234567', '123456')

    assert sid == 'SM123'
    mock_client.return_value.messages.create.assert_called_once_with(
        body='Your verification code is 123456',
        from_='+15550000000',
        to='+15551234567'
    )

def test_invalid_number_is_a_validation_error(settings):
    with patch('lib.twilio_client.Client') as mock_client:
        mock_client.return_value.messages.create.side_effect = TwilioRestException(
            400, 'https://api.twilio.com', msg='Invalid To number', code=21211
        )
        client = TwilioClient(settings)

        with pytest.raises(ValidationError):
            client.send_verification_code('+1', '123456')

def test_bad_credentials_fail_fast(settings):
    with patch('lib.twilio_client.Client') as mock_client:
        mock_client.return_value.api.accounts.return_value.fetch.side_effect = Exception("401")
        with pytest.raises(AppError):
            TwilioClient(settings)

def test_settings_know_when_twilio_is_configured(settings):
    assert settings.twilio_configured
    assert not Settings(twilio_account_sid='', twilio_auth_token='', twilio_phone_number='').twilio_configured
