import pytest
from unittest.mock import MagicMock
import sys
from pathlib import Path

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

from api.models import User
from api.routes import create_app
from api.services import build_services
from lib.config import Settings
from lib.scheduler import VirtualScheduler

@pytest.fixture
def settings():
    return Settings(
        store_mode='local',
        webhook_url='',
        webhook_method='GET',
        audio_content_mode='data_uri',
        delivered_delay_ms=1000,
        read_delay_ms=3000,
        poll_interval_ms=2000,
        twilio_account_sid=''
    )

@pytest.fixture
def scheduler():
    return VirtualScheduler()

@pytest.fixture
def services(settings, scheduler):
    services = build_services(settings, scheduler=scheduler)
    services.directory.set_current_user(User(id='user-1', name='You', is_online=True))
    return services

@pytest.fixture
def conversation(services):
    return services.directory.add_contact('Alice', '15550001111')

@pytest.fixture
def test_client(services):
    app = create_app(services)
    app.config['TESTING'] = True
    return app.test_client()

def make_result(data=None):
    result = MagicMock()
    result.data = data if data is not None else []
    result.error = None
    return result

@pytest.fixture
def mock_supabase():
    """Supabase client whose query builders all chain back to the same mock"""
    client = MagicMock()
    query = MagicMock()
    for method in ('select', 'insert', 'update', 'eq', 'in_', 'order', 'limit'):
        getattr(query, method).return_value = query
    query.execute.return_value = make_result()
    client.table.return_value = query
    client.query = query
    return client
