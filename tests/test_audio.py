import base64
import pytest
from unittest.mock import MagicMock

from api.services.audio import AudioService
from lib.error_handler import ValidationError, PersistenceError

CLIP = b'OggS\x00fake-opus-audio'

@pytest.mark.asyncio
async def test_data_uri_content():
    audio = AudioService(content_mode='data_uri')

    content = await audio.encode(CLIP, 'audio/ogg')

    assert content == 'data:audio/ogg;base64,' + base64.b64encode(CLIP).decode()

@pytest.mark.asyncio
async def test_object_url_content_resolves_to_bytes():
    audio = AudioService(content_mode='object_url')

    content = await audio.encode(CLIP, 'audio/webm')

    assert content.startswith('blob:')
    assert audio.resolve(content) == CLIP
    assert audio.resolve('blob:unknown') is None

@pytest.mark.asyncio
async def test_storage_content_uploads_to_bucket():
    supabase = MagicMock()
    bucket = supabase.storage.from_.return_value
    bucket.get_public_url.return_value = 'https://project.supabase.co/storage/v1/object/public/audio-messages/msg-1.webm'
    audio = AudioService(content_mode='storage', supabase_client=supabase)

    content = await audio.encode(CLIP, 'audio/webm;codecs=opus', 'msg-1')

    supabase.storage.from_.assert_called_with('audio-messages')
    bucket.upload.assert_called_once_with('msg-1.webm', CLIP, {'content-type': 'audio/webm;codecs=opus'})
    assert content.endswith('msg-1.webm')

@pytest.mark.asyncio
async def test_storage_upload_failure():
    supabase = MagicMock()
    supabase.storage.from_.return_value.upload.side_effect = Exception("bucket missing")
    audio = AudioService(content_mode='storage', supabase_client=supabase)

    with pytest.raises(PersistenceError):
        await audio.encode(CLIP, 'audio/webm', 'msg-1')

@pytest.mark.asyncio
async def test_empty_recording_rejected():
    audio = AudioService()
    with pytest.raises(ValidationError):
        await audio.encode(b'', 'audio/webm')

def test_content_type_extensions():
    audio = AudioService()
    assert audio._get_extension_from_content_type('audio/mpeg') == 'mp3'
    assert audio._get_extension_from_content_type('audio/mp4') == 'm4a'
    assert audio._get_extension_from_content_type('AUDIO/OGG; codecs=opus') == 'ogg'
    assert audio._get_extension_from_content_type('video/quicktime') == 'webm'

def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        AudioService(content_mode='blob-url')
    with pytest.raises(ValueError):
        AudioService(content_mode='storage')
