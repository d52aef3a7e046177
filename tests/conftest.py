import pytest

from audiomind.server.notifications import CollectingNotifier
from audiomind.speech.credentials import ApiKeyCredential
from audiomind.speech.models import AudioPayload


@pytest.fixture
def payload():
    return AudioPayload(data=b"\x1a\x45\xdf\xa3" + b"\x00" * 1196, mime_type="audio/webm", name="meeting.webm")


@pytest.fixture
def api_key_credential():
    return ApiKeyCredential("test-key")


@pytest.fixture
def sleeps():
    """Sleep replacement that records requested delays."""
    calls = []

    def fake_sleep(seconds):
        calls.append(seconds)

    fake_sleep.calls = calls
    return fake_sleep


@pytest.fixture
def notifier():
    return CollectingNotifier(log=False)
