import pytest
from unittest.mock import MagicMock

from api.services.auth import AuthService
from api.services.directory import Directory
from lib.error_handler import ValidationError

TEST_PHONE = "+15551234567"

@pytest.mark.asyncio
async def test_full_sign_in_flow():
    directory = Directory()
    auth = AuthService(directory=directory)

    auth.set_phone_number(TEST_PHONE)
    await auth.send_verification_code()
    assert auth.state.step == 'verification'

    await auth.verify_code('123456')
    assert auth.state.step == 'profile'

    user = await auth.complete_profile('Sam')
    assert auth.state.step == 'complete'
    assert user.is_verified
    assert user.phone == TEST_PHONE
    assert 'seed=Sam' in user.avatar
    assert directory.current_user.id == user.id
    assert directory.current_user.is_online

@pytest.mark.asyncio
async def test_code_sent_by_sms_when_client_configured():
    sms = MagicMock()
    auth = AuthService(sms_client=sms, demo_mode=False)
    auth.set_phone_number(TEST_PHONE)

    await auth.send_verification_code()

    to_number, code = sms.send_verification_code.call_args[0]
    assert to_number == TEST_PHONE
    assert len(code) == 6 and code.isdigit()

    with pytest.raises(ValidationError):
        await auth.verify_code('000000' if code != '000000' else '111111')
    assert auth.state.step == 'verification'

    await auth.verify_code(code)
    assert auth.state.step == 'profile'

@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["12345", "1234567", "abcdef", ""])
async def test_verify_rejects_malformed_codes(code):
    auth = AuthService()
    with pytest.raises(ValidationError):
        await auth.verify_code(code)
    assert not auth.state.is_loading
    assert auth.state.step == 'phone'

@pytest.mark.asyncio
async def test_verify_uses_stored_code():
    auth = AuthService()
    auth.set_verification_code('654321')
    await auth.verify_code()
    assert auth.state.step == 'profile'

@pytest.mark.asyncio
@pytest.mark.parametrize("phone", ["", "abc", "12"])
async def test_invalid_phone_rejected(phone):
    sms = MagicMock()
    auth = AuthService(sms_client=sms)
    auth.set_phone_number(phone)

    with pytest.raises(ValidationError):
        await auth.send_verification_code()
    sms.send_verification_code.assert_not_called()

@pytest.mark.asyncio
async def test_short_profile_name_rejected():
    auth = AuthService()
    with pytest.raises(ValidationError):
        await auth.complete_profile(' A ')
    assert auth.state.user is None

def test_logout_resets_state():
    auth = AuthService()
    auth.set_phone_number(TEST_PHONE)
    auth.set_step('profile')

    auth.logout()

    assert auth.state.step == 'phone'
    assert auth.state.phone_number == ''
    assert auth.state.user is None

def test_unknown_step_rejected():
    with pytest.raises(ValidationError):
        AuthService().set_step('done')
