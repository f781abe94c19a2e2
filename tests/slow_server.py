"""
Local HTTP server whose response body arrives one byte at a time.

Used to check that provider deadlines hold against a real socket read,
not just between chunks handed out by a mock.
"""

import threading
import time
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer


class _TrickleHandler(BaseHTTPRequestHandler):
    """Announce a large body, then send it one byte per interval."""

    def _trickle(self):
        length = int(self.headers.get("Content-Length") or 0)
        if length:
            self.rfile.read(length)

        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(self.server.announced_length))
        self.end_headers()

        stop_at = time.monotonic() + self.server.duration
        try:
            while time.monotonic() < stop_at and not self.server.stopping.is_set():
                self.wfile.write(b" ")
                self.wfile.flush()
                time.sleep(self.server.interval)
        except (BrokenPipeError, ConnectionResetError):
            # Client hung up
            return

    do_GET = _trickle
    do_POST = _trickle

    def log_message(self, format, *args):
        pass


@contextmanager
def trickling_server(interval=0.1, duration=4.0, announced_length=100000):
    """
    Run a trickling server on localhost for the duration of the block.

    Yields:
        Base URL of the server, e.g. "http://127.0.0.1:54321"
    """
    server = ThreadingHTTPServer(("127.0.0.1", 0), _TrickleHandler)
    server.daemon_threads = True
    server.interval = interval
    server.duration = duration
    server.announced_length = announced_length
    server.stopping = threading.Event()

    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.stopping.set()
        server.shutdown()
        server.server_close()
