import unittest as ut

import requests
import requests.adapters

from rbstore.storage.debug import DebugTransportAdapter, install_debug_transport


class _StaticAdapter(requests.adapters.BaseAdapter):

    def __init__(self, fail: Exception = None):
        super().__init__()
        self.fail = fail
        self.sent = []
        self.closed = False

    def send(self, request, **kwargs):
        self.sent.append((request, kwargs))
        if self.fail is not None:
            raise self.fail
        response = requests.Response()
        response.status_code = 200
        response.headers["X-GUploader-UploadID"] = "abc123"
        response.request = request
        response._content = b"{}"
        return response

    def close(self):
        self.closed = True


class TestDebugTransport(ut.TestCase):

    def _request(self) -> requests.PreparedRequest:
        return requests.Request(
            "GET",
            "https://storage.googleapis.com/storage/v1/b/backups/o",
            headers={"Authorization": "Bearer token", "X-Goog-Api-Client": "rbstore"}
        ).prepare()

    def test_logs_request_and_response(self):
        base = _StaticAdapter()
        adapter = DebugTransportAdapter(base)
        request = self._request()
        with self.assertLogs("rbstore.storage.gcs.debug", level="INFO") as logs:
            response = adapter.send(request, timeout=5)
        self.assertEqual(2, len(logs.records))
        self.assertIn(">>> [GCS_REQUEST] >>> GET https://storage.googleapis.com/storage/v1/b/backups/o", logs.output[0])
        self.assertIn("Authorization: Bearer token", logs.output[0])
        self.assertIn("<<< [GCS_RESPONSE] <<< GET", logs.output[1])
        self.assertIn("X-GUploader-UploadID: abc123", logs.output[1])
        self.assertEqual(200, response.status_code)
        self.assertEqual(b"{}", response.content)
        self.assertIs(request, base.sent[0][0])
        self.assertEqual({"timeout": 5}, base.sent[0][1])

    def test_errors_are_logged_and_raised(self):
        error = requests.ConnectionError("connection reset")
        adapter = DebugTransportAdapter(_StaticAdapter(fail=error))
        with self.assertLogs("rbstore.storage.gcs.debug", level="INFO") as logs:
            with self.assertRaises(requests.ConnectionError) as h:
                adapter.send(self._request())
        self.assertIs(error, h.exception)
        self.assertIn("GCS_ERROR", logs.output[-1])
        self.assertEqual("ERROR", logs.records[-1].levelname)

    def test_close_is_delegated(self):
        base = _StaticAdapter()
        DebugTransportAdapter(base).close()
        self.assertTrue(base.closed)

    def test_install_wraps_every_adapter_once(self):
        session = requests.Session()
        install_debug_transport(session)
        install_debug_transport(session)
        self.assertEqual({"https://", "http://"}, set(session.adapters.keys()))
        for adapter in session.adapters.values():
            self.assertIsInstance(adapter, DebugTransportAdapter)
            self.assertIsInstance(adapter.base, requests.adapters.HTTPAdapter)

    def test_session_requests_pass_through(self):
        session = requests.Session()
        base = _StaticAdapter()
        session.mount("https://", base)
        install_debug_transport(session)
        with self.assertLogs("rbstore.storage.gcs.debug", level="INFO"):
            response = session.get("https://storage.googleapis.com/storage/v1/b/backups")
        self.assertEqual(200, response.status_code)
        self.assertEqual(1, len(base.sent))
