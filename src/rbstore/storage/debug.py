"""Request/response tracing for the HTTP transport used by storage clients."""
import requests
import requests.adapters
import zrlog


class DebugTransportAdapter(requests.adapters.BaseAdapter):
    """Wraps another transport adapter and logs every request and response it handles.

        The wrapped adapter does the actual work, nothing about the request or the
        response is changed.
    """

    def __init__(self, base: requests.adapters.BaseAdapter, logger_name: str = "rbstore.storage.gcs.debug"):
        super().__init__()
        self._base = base
        self._log = zrlog.get_logger(logger_name)

    @property
    def base(self) -> requests.adapters.BaseAdapter:
        return self._base

    def send(self, request: requests.PreparedRequest, **kwargs) -> requests.Response:
        self._log.info(self._format_message(">>> [GCS_REQUEST] >>>", request, request.headers))
        try:
            response = self._base.send(request, **kwargs)
        except Exception as ex:
            self._log.error(f"GCS_ERROR: {ex.__class__.__name__}: {str(ex)}")
            raise ex
        self._log.info(self._format_message("<<< [GCS_RESPONSE] <<<", request, response.headers))
        return response

    def close(self):
        self._base.close()

    @staticmethod
    def _format_message(direction: str, request: requests.PreparedRequest, headers) -> str:
        lines = [f"{direction} {request.method} {request.url}"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        return "\n".join(lines)


def install_debug_transport(session: requests.Session) -> requests.Session:
    """Wrap every adapter mounted on the session with a DebugTransportAdapter."""
    for prefix, adapter in list(session.adapters.items()):
        if not isinstance(adapter, DebugTransportAdapter):
            session.mount(prefix, DebugTransportAdapter(adapter))
    return session
