import json
import socket
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest
from solders.hash import Hash
from solders.keypair import Keypair

scripts_path = Path(__file__).parent.parent / "scripts"
sys.path.insert(0, str(scripts_path))

from errors import TransportError  # noqa: E402


class StubThinClient:
    """Stands in for ThinClient and records every call in `calls`."""

    def __init__(self, balance=0, balance_error=None, last_id=None, signature=None, confirmed=False):
        self.balance = balance
        self.balance_error = balance_error
        self.last_id = last_id or Hash.new_unique()
        self.signature = signature
        self.confirmed = confirmed
        self.calls = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def get_balance(self, pubkey):
        self.calls.append(("get_balance", pubkey))
        if self.balance_error is not None:
            raise self.balance_error
        return self.balance

    def get_last_id(self):
        self.calls.append(("get_last_id",))
        return self.last_id

    def transfer(self, tokens, keypair, to, last_id):
        self.calls.append(("transfer", tokens, keypair.pubkey(), to, last_id))
        if self.signature is None:
            raise TransportError("Transaction submission failed: connection reset")
        return self.signature

    def check_signature(self, signature):
        self.calls.append(("check_signature", signature))
        return self.confirmed


class DroneServer:
    """Accepts one connection on localhost and keeps whatever was written."""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.sock.settimeout(5)
        self.addr = self.sock.getsockname()
        self.received = []
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            conn, _ = self.sock.accept()
        except OSError:
            return
        with conn:
            chunks = []
            while True:
                data = conn.recv(4096)
                if not data:
                    break
                chunks.append(data)
            self.received.append(b"".join(chunks))

    def wait(self):
        self.thread.join(timeout=5)
        return self.received

    def close(self):
        self.sock.close()


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def other_keypair():
    return Keypair()


@pytest.fixture
def keypair_file(tmp_path, keypair):
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(keypair))))
    return path


@pytest.fixture
def leader_file(tmp_path):
    path = tmp_path / "leader.json"
    path.write_text(json.dumps({
        "node_info": {
            "contact_info": {
                "rpu": "10.0.0.1:8899",
                "tpu": "10.0.0.1:8003",
            }
        }
    }))
    return path


@pytest.fixture
def drone_server():
    server = DroneServer()
    yield server
    server.close()


@pytest.fixture
def closed_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


@pytest.fixture
def make_stub():
    return StubThinClient


class RpcServer:
    """JSON-RPC endpoint on localhost that answers every request with `body`.

    A dict is sent as the `result` of a well-formed reply echoing the
    request id; a str is sent verbatim.
    """

    def __init__(self):
        self.body = None
        self.methods = []
        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self):
                request = json.loads(self.rfile.read(int(self.headers["Content-Length"])))
                server.methods.append(request.get("method"))
                if isinstance(server.body, str):
                    payload = server.body.encode()
                else:
                    payload = json.dumps(
                        {"jsonrpc": "2.0", "result": server.body, "id": request.get("id")}
                    ).encode()
                self.send_response(200)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, *args):
                pass

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.url = "http://127.0.0.1:%d" % self.httpd.server_address[1]
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
        self.thread.start()

    def close(self):
        self.httpd.shutdown()
        self.httpd.server_close()


@pytest.fixture
def rpc_server():
    server = RpcServer()
    yield server
    server.close()


@pytest.fixture
def silent_listener():
    """A leader address that accepts connections and never replies."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    s.listen(8)
    yield "http://127.0.0.1:%d" % s.getsockname()[1]
    s.close()


@pytest.fixture
def refused_url(closed_port):
    return "http://127.0.0.1:%d" % closed_port
