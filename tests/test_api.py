import numpy as np
import pytest
from fastapi.testclient import TestClient

from atc_api import main, uploads
from atc_api.analyzer import CattleAnalyzer
from atc_api.errors import ChatError
from atc_api.storage import LatestAnalysisStore

from conftest import FakeSession, UnavailableSession, make_output


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / 'uploads'
    monkeypatch.setattr(uploads, 'UPLOAD_DIR', path)
    return path


@pytest.fixture
def client(upload_dir, monkeypatch):
    monkeypatch.setattr(main, 'latest_store', LatestAnalysisStore())
    return TestClient(main.app)


def use_session(monkeypatch, session):
    analyzer = CattleAnalyzer(session, score_jitter=0, rng=np.random.default_rng(0))
    monkeypatch.setattr(main, 'analyzer', analyzer)
    return analyzer


def post_image(client, data, filename='cow.jpg', content_type='image/jpeg'):
    return client.post('/analyze-cow', files={'image': (filename, data, content_type)})


class StubChat:
    available = True

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.messages = []

    def reply(self, message):
        self.messages.append(message)
        if self.error:
            raise self.error
        return self.result


# ============== Analysis ==============

def test_root(client):
    body = client.get('/').json()
    assert body['message'] == 'ATC API Server is running'
    assert body['endpoints']['analyze'].startswith('/analyze-cow')


def test_health(client, monkeypatch):
    use_session(monkeypatch, FakeSession())
    monkeypatch.setattr(main, 'chat_service', StubChat())

    body = client.get('/health').json()

    assert body['status'] == 'healthy'
    assert body['model_loaded'] is True
    assert body['gemini_ai_ready'] is True
    assert body['latest_analysis_available'] is False


def test_model_initialized_on_startup(upload_dir, monkeypatch):
    class RecordingAnalyzer(CattleAnalyzer):
        initialize_calls = 0

        def initialize(self):
            RecordingAnalyzer.initialize_calls += 1
            return super().initialize()

    monkeypatch.setattr(main, 'analyzer', RecordingAnalyzer(FakeSession()))

    with TestClient(main.app) as client:
        assert RecordingAnalyzer.initialize_calls == 1
        assert client.get('/health').json()['model_loaded'] is True


def test_analyze_with_model(client, monkeypatch, standing_cow_output, jpeg_bytes, upload_dir):
    use_session(monkeypatch, FakeSession(standing_cow_output))

    response = post_image(client, jpeg_bytes)

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['total_cows_detected'] == 1
    assert body['analysis_metadata']['inference_source'] == 'model'

    cow = body['individual_cows'][0]
    assert cow['atc_results']['measurements']['height_px'] == pytest.approx(180)
    assert cow['atc_results']['classification'] == 'Fair'
    assert cow['keypoints_detected'] == 4

    assert list(upload_dir.iterdir()) == []


def test_analyze_without_model_is_fallback(client, monkeypatch, jpeg_bytes):
    use_session(monkeypatch, UnavailableSession())

    body = post_image(client, jpeg_bytes).json()

    assert body['success'] is True
    assert body['analysis_metadata']['inference_source'] == 'fallback'
    assert len(body['individual_cows']) == 1
    assert len(body['annotations'][0]['keypoints']) == 12


def test_no_detections(client, monkeypatch, jpeg_bytes, upload_dir):
    use_session(monkeypatch, FakeSession(make_output([{'conf': 0.05}])))

    response = post_image(client, jpeg_bytes)

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is False
    assert body['no_detections'] is True
    assert body['error'] == 'No cows detected in image'
    assert body['individual_cows'] == []
    assert list(upload_dir.iterdir()) == []

    # Not stored for the report
    assert client.get('/ats-report').status_code == 404


def test_missing_file(client):
    response = client.post('/analyze-cow')

    assert response.status_code == 400
    assert response.json() == {'success': False, 'error': 'No image file provided'}


def test_non_image_upload(client, monkeypatch):
    use_session(monkeypatch, FakeSession())

    response = post_image(client, b'plain text', filename='notes.txt', content_type='text/plain')

    assert response.status_code == 400
    assert 'text/plain' in response.json()['error']


def test_upload_too_large(client, monkeypatch, jpeg_bytes, upload_dir):
    session = FakeSession()
    use_session(monkeypatch, session)
    monkeypatch.setattr(uploads, 'MAX_FILE_SIZE_BYTES', 16)

    response = post_image(client, jpeg_bytes)

    assert response.status_code == 413
    assert session.inputs == []
    assert list(upload_dir.iterdir()) == []


def test_undecodable_image(client, monkeypatch, upload_dir):
    use_session(monkeypatch, FakeSession())

    response = post_image(client, b'not really a jpeg')

    assert response.status_code == 422
    body = response.json()
    assert body['success'] is False
    assert body['fix']
    assert list(upload_dir.iterdir()) == []


def test_output_layout_mismatch(client, monkeypatch, jpeg_bytes, upload_dir):
    use_session(monkeypatch, FakeSession(np.zeros((1, 56, 10), dtype=np.float32)))

    response = post_image(client, jpeg_bytes)

    assert response.status_code == 500
    assert 'Expected 41 values' in response.json()['error']
    assert list(upload_dir.iterdir()) == []


def test_unexpected_error(client, monkeypatch, jpeg_bytes, upload_dir):
    class Broken:
        def analyze(self, *args, **kwargs):
            raise RuntimeError('disk on fire')

    monkeypatch.setattr(main, 'analyzer', Broken())

    response = post_image(client, jpeg_bytes)

    assert response.status_code == 500
    assert response.json()['error'] == 'disk on fire'
    assert list(upload_dir.iterdir()) == []


# ============== Report ==============

def test_report_before_analysis(client):
    response = client.get('/ats-report')

    assert response.status_code == 404
    assert response.json()['success'] is False


def test_report_after_analysis(client, monkeypatch, standing_cow_output, jpeg_bytes):
    use_session(monkeypatch, FakeSession(standing_cow_output))
    analysis = post_image(client, jpeg_bytes, filename='daisy.jpg').json()

    response = client.get('/ats-report')

    assert response.status_code == 200
    report = response.json()
    assert report['processed_image'] == 'daisy.jpg'
    assert report['individual_cows'] == analysis['individual_cows']
    assert report['report_generated']
    assert report['analysis_timestamp']
    # dairy 4, mammary 5, feet 5 fall below 6; body capacity is 6
    assert [r['category'] for r in report['recommendations']] == [
        'Dairy Character', 'Mammary System', 'Feet & Legs'
    ]
    assert client.get('/health').json()['latest_analysis_available'] is True


def test_report_shows_latest_analysis(client, monkeypatch, standing_cow_output, jpeg_bytes):
    use_session(monkeypatch, FakeSession(standing_cow_output))
    post_image(client, jpeg_bytes, filename='first.jpg')
    post_image(client, jpeg_bytes, filename='second.jpg')

    assert client.get('/ats-report').json()['processed_image'] == 'second.jpg'


# ============== Chat ==============

def test_chat_reply(client, monkeypatch):
    stub = StubChat(result={'reply': 'Hello!', 'timestamp': '2024-01-01T00:00:00', 'attempt': 1})
    monkeypatch.setattr(main, 'chat_service', stub)

    response = client.post('/api/chat', json={'message': 'Hi there'})

    assert response.status_code == 200
    assert response.json()['reply'] == 'Hello!'
    assert stub.messages == ['Hi there']


def test_chat_missing_message(client, monkeypatch):
    monkeypatch.setattr(main, 'chat_service', StubChat(error=ChatError('Message is required', 400)))

    response = client.post('/api/chat', json={})

    assert response.status_code == 400
    body = response.json()
    assert body['error'] == 'Message is required'
    assert 'attempts_made' not in body


def test_chat_exhausted_retries(client, monkeypatch):
    error = ChatError('API quota exceeded. Please try again in a few minutes.',
                      status_code=429, attempts=3, detail='Gemini API error 429')
    monkeypatch.setattr(main, 'chat_service', StubChat(error=error))
    monkeypatch.setattr(main, 'DEBUG_ERRORS', False)

    response = client.post('/api/chat', json={'message': 'hello'})

    assert response.status_code == 429
    body = response.json()
    assert body['attempts_made'] == 3
    assert body['timestamp']
    assert 'debug_info' not in body


def test_chat_debug_info_in_development(client, monkeypatch):
    error = ChatError('boom', status_code=500, attempts=3, detail='Gemini API error 500: internal')
    monkeypatch.setattr(main, 'chat_service', StubChat(error=error))
    monkeypatch.setattr(main, 'DEBUG_ERRORS', True)

    body = client.post('/api/chat', json={'message': 'hello'}).json()

    assert body['debug_info'] == 'Gemini API error 500: internal'
