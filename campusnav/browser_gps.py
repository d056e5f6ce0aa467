"""Positioning from a phone browser's geolocation API over WebSocket."""

import asyncio
import http.server
import itertools
import json
import queue
import socketserver
import threading
import time
import webbrowser
from functools import partial
from typing import Callable, Optional

import websockets

from .config import CONFIG
from .errors import PositionErrorKind, PositionUnavailable
from .models import PositionOptions, PositionSample


# Page that streams navigator.geolocation readings to the WebSocket server
BRIDGE_HTML = '''<!DOCTYPE html>
<html>
<head>
    <title>Campus Navigation</title>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; margin: 0; padding: 20px; background: #f8fafc; }
        .status { display: inline-block; background: #ef4444; color: white; padding: 4px 12px; border-radius: 12px; font-size: 12px; }
        .status.connected { background: #22c55e; }
        .card { background: white; border: 1px solid #e2e8f0; border-radius: 6px; padding: 12px; margin-top: 12px; }
        .label { font-size: 11px; color: #64748b; text-transform: uppercase; }
        .value { font-size: 16px; font-weight: 600; color: #1e293b; }
    </style>
</head>
<body>
    <span id="status" class="status">Disconnected</span>
    <div class="card"><div class="label">Position</div><div class="value" id="position">-</div></div>
    <div class="card"><div class="label">Instruction</div><div class="value" id="instruction">-</div></div>
    <script>
        var ws = null;
        var watchId = null;

        function coordsOf(position) {
            var c = position.coords;
            return {latitude: c.latitude, longitude: c.longitude, accuracy: c.accuracy,
                    heading: c.heading, speed: c.speed};
        }

        function send(msg) {
            if (ws && ws.readyState === WebSocket.OPEN) ws.send(JSON.stringify(msg));
        }

        function onPosition(position) {
            var coords = coordsOf(position);
            document.getElementById('position').textContent =
                coords.latitude.toFixed(6) + ', ' + coords.longitude.toFixed(6) + ' (' + Math.round(coords.accuracy) + 'm)';
            send({type: 'position', coords: coords});
        }

        function onError(error) {
            send({type: 'error', code: error.code, message: error.message});
        }

        function geoOptions(o) {
            o = o || {};
            return {enableHighAccuracy: !!o.enable_high_accuracy, timeout: o.timeout_ms || 60000,
                    maximumAge: o.maximum_age_ms || 0};
        }

        function connect() {
            ws = new WebSocket('ws://' + location.hostname + ':{{WS_PORT}}');
            ws.onopen = function() {
                var s = document.getElementById('status');
                s.textContent = 'Connected';
                s.className = 'status connected';
            };
            ws.onclose = function() {
                var s = document.getElementById('status');
                s.textContent = 'Disconnected';
                s.className = 'status';
                setTimeout(connect, 2000);
            };
            ws.onmessage = function(event) {
                var msg = JSON.parse(event.data);
                if (!navigator.geolocation) {
                    send({type: 'error', code: 0, message: 'Geolocation not supported'});
                    return;
                }
                if (msg.type === 'request_position') {
                    navigator.geolocation.getCurrentPosition(onPosition, onError, geoOptions(msg.options));
                } else if (msg.type === 'watch') {
                    if (watchId !== null) navigator.geolocation.clearWatch(watchId);
                    watchId = navigator.geolocation.watchPosition(onPosition, onError, geoOptions(msg.options));
                } else if (msg.type === 'clear_watch') {
                    if (watchId !== null) navigator.geolocation.clearWatch(watchId);
                    watchId = null;
                } else if (msg.type === 'announcement') {
                    document.getElementById('instruction').textContent = msg.text;
                }
            };
        }

        connect();
    </script>
</body>
</html>'''


class BrowserGPS:
    """Positioning capability fed by a browser page over WebSocket"""

    def __init__(self, http_port: int = 8080, ws_port: int = CONFIG["browser_ws_port"],
                 host: str = "localhost", open_browser: bool = True):
        self.http_port = http_port
        self.ws_port = ws_port
        self.host = host
        self.open_browser = open_browser
        self.http_thread = None
        self.ws_thread = None
        self.ws_loop = None
        self.connected_clients: set = set()
        self.last_location: Optional[PositionSample] = None
        self.last_fix_time: Optional[float] = None
        self._running = False
        self._watches: dict[int, tuple[Callable, Callable, PositionOptions]] = {}
        self._handles = itertools.count(1)
        self._pending: list[queue.Queue] = []
        self._lock = threading.Lock()

    def start(self):
        """Start HTTP and WebSocket servers in background threads"""
        self._running = True

        self.http_thread = threading.Thread(target=self._run_http_server, daemon=True)
        self.http_thread.start()

        self.ws_thread = threading.Thread(target=self._run_ws_server, daemon=True)
        self.ws_thread.start()

        # Give servers time to start
        time.sleep(0.5)

        url = f"http://{self.host}:{self.http_port}"
        print(f"Open {url} on the device to share its location")
        if self.open_browser:
            webbrowser.open(url)

    def _run_http_server(self):
        """Serve the bridge page"""
        handler = partial(_BridgeHTTPHandler, self.ws_port)
        with socketserver.TCPServer((self.host, self.http_port), handler) as httpd:
            httpd.allow_reuse_address = True
            while self._running:
                httpd.handle_request()

    def _run_ws_server(self):
        """Run the WebSocket server"""
        self.ws_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.ws_loop)

        async def handler(websocket):
            self.connected_clients.add(websocket)
            # A page that connects late still needs to start watching
            watches = list(self._watches.values())
            if watches:
                options = watches[-1][2]
                await websocket.send(json.dumps({"type": "watch", "options": _options_dict(options)}))
            try:
                async for message in websocket:
                    self.handle_message(message)
            finally:
                self.connected_clients.discard(websocket)

        async def main():
            try:
                async with websockets.serve(handler, self.host, self.ws_port):
                    while self._running:
                        await asyncio.sleep(0.1)
            except OSError as e:
                print(f"WebSocket server error: {e}")

        self.ws_loop.run_until_complete(main())

    def handle_message(self, message: str):
        """Dispatch one message from the browser page"""
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            return

        msg_type = data.get("type")
        if msg_type == "position":
            try:
                location = PositionSample.from_dict(data.get("coords") or {})
            except (KeyError, TypeError, ValueError):
                self._dispatch_error(PositionUnavailable(PositionErrorKind.POSITION_UNAVAILABLE,
                                                         "Malformed position from browser"))
                return
            self.last_location = location
            self.last_fix_time = time.time()
            self._resolve_pending(location)
            for on_update, _, _ in list(self._watches.values()):
                on_update(location)
        elif msg_type == "error":
            self._dispatch_error(PositionUnavailable.from_code(data.get("code", 2), data.get("message")))

    def _dispatch_error(self, error: PositionUnavailable):
        self._resolve_pending(error)
        for _, on_error, _ in list(self._watches.values()):
            on_error(error)

    def _resolve_pending(self, outcome):
        with self._lock:
            pending, self._pending = self._pending, []
        for q in pending:
            q.put(outcome)

    def _send_message(self, msg: dict):
        """Send a message to all connected WebSocket clients"""
        if not self.connected_clients or not self.ws_loop:
            return

        message = json.dumps(msg)

        async def send_to_all():
            for client in list(self.connected_clients):
                try:
                    await client.send(message)
                except websockets.ConnectionClosed:
                    self.connected_clients.discard(client)

        asyncio.run_coroutine_threadsafe(send_to_all(), self.ws_loop)

    def is_supported(self) -> bool:
        return self._running

    def get_current_position(self, options: Optional[PositionOptions] = None) -> PositionSample:
        """Ask the page for a fix and block until it answers or times out"""
        options = options or PositionOptions()
        if not self._running:
            raise PositionUnavailable(PositionErrorKind.UNSUPPORTED)

        if (options.maximum_age_ms > 0 and self.last_location and self.last_fix_time and
                (time.time() - self.last_fix_time) * 1000 <= options.maximum_age_ms):
            return self.last_location

        answer: queue.Queue = queue.Queue(maxsize=1)
        with self._lock:
            self._pending.append(answer)
        self._send_message({"type": "request_position", "options": _options_dict(options)})

        try:
            outcome = answer.get(timeout=options.timeout_ms / 1000)
        except queue.Empty:
            with self._lock:
                if answer in self._pending:
                    self._pending.remove(answer)
            raise PositionUnavailable(PositionErrorKind.TIMEOUT)

        if isinstance(outcome, PositionUnavailable):
            raise outcome
        return outcome

    def watch_position(self, on_update: Callable, on_error: Callable,
                       options: Optional[PositionOptions] = None) -> int:
        options = options or PositionOptions()
        handle = next(self._handles)
        self._watches[handle] = (on_update, on_error, options)
        self._send_message({"type": "watch", "options": _options_dict(options)})
        return handle

    def clear_watch(self, handle: int):
        self._watches.pop(handle, None)
        if not self._watches:
            self._send_message({"type": "clear_watch"})

    def send_announcement(self, text: str):
        """Show spoken text on the page"""
        self._send_message({"type": "announcement", "text": text})

    def get_status(self) -> str:
        return f"Browser GPS ({len(self.connected_clients)} connected)"

    def stop(self):
        """Stop the servers"""
        self._running = False


def _options_dict(options: PositionOptions) -> dict:
    return {
        "enable_high_accuracy": options.enable_high_accuracy,
        "timeout_ms": options.timeout_ms,
        "maximum_age_ms": options.maximum_age_ms,
    }


class _BridgeHTTPHandler(http.server.SimpleHTTPRequestHandler):
    """HTTP handler that serves the geolocation bridge page"""

    def __init__(self, ws_port: int, *args, **kwargs):
        self.ws_port = ws_port
        super().__init__(*args, **kwargs)

    def do_GET(self):
        if self.path == '/' or self.path == '/index.html':
            self.send_response(200)
            self.send_header('Content-type', 'text/html')
            self.end_headers()
            html = BRIDGE_HTML.replace('{{WS_PORT}}', str(self.ws_port))
            self.wfile.write(html.encode())
        else:
            self.send_error(404)

    def log_message(self, format, *args):
        pass  # Suppress HTTP log messages
