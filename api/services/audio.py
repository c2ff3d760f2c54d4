import asyncio
import base64
import logging
from typing import Dict, Optional
from uuid import uuid4

from lib.error_handler import ValidationError, PersistenceError

logger = logging.getLogger(__name__)

CONTENT_MODES = ('object_url', 'data_uri', 'storage')

class AudioService:
    """Turns captured voice-note bytes into message content"""

    def __init__(self, content_mode: str = 'data_uri', supabase_client=None, bucket: str = 'audio-messages'):
        if content_mode not in CONTENT_MODES:
            raise ValueError(f"Unknown audio content mode: {content_mode}")
        if content_mode == 'storage' and supabase_client is None:
            raise ValueError("Storage content mode needs a Supabase client")
        self.content_mode = content_mode
        self.supabase = supabase_client
        self.bucket = bucket
        self._blobs: Dict[str, bytes] = {}
        logger.info(f"Audio service initialized with content mode: {content_mode}")

    async def encode(self, audio_data: bytes, content_type: str = 'audio/webm', message_id: Optional[str] = None) -> str:
        """Return the message content for an audio clip"""
        if not audio_data:
            raise ValidationError("Audio recording is empty", user_message="Recording failed. Please try again.")

        content_type = content_type or 'audio/webm'
        if self.content_mode == 'object_url':
            return self._register_blob(audio_data)
        if self.content_mode == 'data_uri':
            return self._to_data_uri(audio_data, content_type)
        return await self._upload(audio_data, content_type, message_id or uuid4().hex)

    def _register_blob(self, audio_data: bytes) -> str:
        url = f"blob:{uuid4()}"
        self._blobs[url] = audio_data
        logger.info(f"Registered audio blob {url}: {len(audio_data)} bytes")
        return url

    def resolve(self, url: str) -> Optional[bytes]:
        """Look up the bytes behind a blob: reference"""
        return self._blobs.get(url)

    def _to_data_uri(self, audio_data: bytes, content_type: str) -> str:
        payload = base64.b64encode(audio_data).decode()
        logger.info(f"Encoded audio as data URI: {len(audio_data)} bytes")
        return f"data:{content_type};base64,{payload}"

    async def _upload(self, audio_data: bytes, content_type: str, name: str) -> str:
        path = f"{name}.{self._get_extension_from_content_type(content_type)}"
        try:
            logger.info(f"Uploading audio to bucket {self.bucket}: {path}")
            storage = self.supabase.storage.from_(self.bucket)
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(
                None,
                lambda: storage.upload(path, audio_data, {'content-type': content_type})
            )
            return storage.get_public_url(path)
        except Exception as e:
            logger.error(f"Failed to upload audio: {str(e)}")
            raise PersistenceError(f"Failed to upload audio: {str(e)}")

    def _get_extension_from_content_type(self, content_type: str) -> str:
        """Convert content type to file extension"""
        content_type_map = {
            'audio/amr': 'amr',
            'audio/mp3': 'mp3',
            'audio/mpeg': 'mp3',
            'audio/ogg': 'ogg',
            'audio/wav': 'wav',
            'audio/x-wav': 'wav',
            'audio/webm': 'webm',
            'audio/aac': 'aac',
            'audio/m4a': 'm4a',
            'audio/mp4': 'm4a',
        }

        # Browsers report codecs too, e.g. audio/webm;codecs=opus
        base_type = content_type.split(';')[0].strip().lower()
        extension = content_type_map.get(base_type)
        if not extension:
            logger.warning(f"Unknown content type: {content_type}, defaulting to webm")
            return 'webm'

        return extension
