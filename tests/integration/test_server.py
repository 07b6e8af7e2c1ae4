"""
End-to-end tests over real sockets.
"""

import gzip
import logging
import socket
import threading
import time
from dataclasses import replace
from pathlib import Path

import pytest

from minihttp import HTTPServer, ServerConfig
from conftest import ServerThread, recv_all, split_response


class TestRoutes:
    """One request per route, checked byte for byte."""

    def test_root(self, test_server: ServerThread):
        raw = test_server.request(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")

        assert raw == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_unknown_path(self, test_server: ServerThread):
        raw = test_server.request(b"GET /abcdefg HTTP/1.1\r\n\r\n")

        assert raw == b"HTTP/1.1 404 Not Found\r\n\r\n"

    def test_echo(self, test_server: ServerThread):
        raw = test_server.request(b"GET /echo/abc HTTP/1.1\r\n\r\n")

        assert raw == (
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/plain\r\n"
            b"Content-Length: 3\r\n"
            b"\r\n"
            b"abc"
        )

    def test_echo_with_slashes(self, test_server: ServerThread):
        raw = test_server.request(b"GET /echo/a/b/c HTTP/1.1\r\n\r\n")

        status, headers, body = split_response(raw)
        assert status == "HTTP/1.1 200 OK"
        assert body == b"a/b/c"

    def test_echo_non_ascii(self, test_server: ServerThread):
        raw = test_server.request("GET /echo/héllo HTTP/1.1\r\n\r\n".encode("utf-8"))

        status, headers, body = split_response(raw)
        assert body == "héllo".encode("utf-8")
        assert ("Content-Length", str(len(body))) in headers

    def test_user_agent(self, test_server: ServerThread):
        raw = test_server.request(
            b"GET /user-agent HTTP/1.1\r\nHost: localhost\r\nUser-Agent: foobar/1.2.3\r\n\r\n"
        )

        assert raw.endswith(b"\r\n\r\nfoobar/1.2.3")
        status, headers, body = split_response(raw)
        assert headers == [("Content-Type", "text/plain"), ("Content-Length", "12")]

    def test_user_agent_header_name_case(self, test_server: ServerThread):
        raw = test_server.request(b"GET /user-agent HTTP/1.1\r\nuser-agent: lower\r\n\r\n")

        assert split_response(raw)[2] == b"lower"

    def test_user_agent_missing(self, test_server: ServerThread):
        raw = test_server.request(b"GET /user-agent HTTP/1.1\r\n\r\n")

        status, headers, body = split_response(raw)
        assert status == "HTTP/1.1 200 OK"
        assert body == b""


class TestCompression:
    """gzip content negotiation on the wire."""

    def test_gzip_echo(self, test_server: ServerThread):
        raw = test_server.request(
            b"GET /echo/abc HTTP/1.1\r\nAccept-Encoding: gzip\r\n\r\n"
        )

        status, headers, body = split_response(raw)
        assert headers == [
            ("Content-Type", "text/plain"),
            ("Content-Encoding", "gzip"),
            ("Content-Length", str(len(body))),
        ]
        assert gzip.decompress(body) == b"abc"

    def test_gzip_in_token_list(self, test_server: ServerThread):
        raw = test_server.request(
            b"GET /echo/abc HTTP/1.1\r\n"
            b"Accept-Encoding: invalid-encoding-1, gzip, invalid-encoding-2\r\n\r\n"
        )

        status, headers, body = split_response(raw)
        assert ("Content-Encoding", "gzip") in headers
        assert gzip.decompress(body) == b"abc"

    def test_unsupported_encoding(self, test_server: ServerThread):
        raw = test_server.request(
            b"GET /echo/abc HTTP/1.1\r\nAccept-Encoding: invalid-encoding\r\n\r\n"
        )

        status, headers, body = split_response(raw)
        assert [name for name, _ in headers] == ["Content-Type", "Content-Length"]
        assert body == b"abc"

    def test_files_not_compressed(self, test_server: ServerThread, tmp_path: Path):
        (tmp_path / "plain").write_bytes(b"raw bytes")

        raw = test_server.request(
            b"GET /files/plain HTTP/1.1\r\nAccept-Encoding: gzip\r\n\r\n"
        )

        status, headers, body = split_response(raw)
        assert ("Content-Encoding", "gzip") not in headers
        assert body == b"raw bytes"


class TestFiles:
    """File GET/POST under the configured directory."""

    def test_get_file(self, test_server: ServerThread, tmp_path: Path):
        (tmp_path / "foo").write_bytes(b"Hello, World!")

        raw = test_server.request(b"GET /files/foo HTTP/1.1\r\n\r\n")

        assert raw == (
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: application/octet-stream\r\n"
            b"Content-Length: 13\r\n"
            b"\r\n"
            b"Hello, World!"
        )

    def test_get_missing_file(self, test_server: ServerThread):
        raw = test_server.request(b"GET /files/non_existant_file HTTP/1.1\r\n\r\n")

        assert raw == b"HTTP/1.1 404 Not Found\r\n\r\n"

    def test_post_file(self, test_server: ServerThread, tmp_path: Path):
        raw = test_server.request(
            b"POST /files/file_123 HTTP/1.1\r\n"
            b"Content-Type: application/octet-stream\r\n"
            b"Content-Length: 5\r\n"
            b"\r\n"
            b"12345"
        )

        assert raw == b"HTTP/1.1 201 Created\r\n\r\n"
        assert (tmp_path / "file_123").read_bytes() == b"12345"

    def test_post_then_get(self, test_server: ServerThread):
        body = b"line one\r\nline two\r\n\x00\xff"
        test_server.request(
            b"POST /files/nested/dir/data.bin HTTP/1.1\r\n"
            + f"Content-Length: {len(body)}\r\n\r\n".encode()
            + body
        )

        raw = test_server.request(b"GET /files/nested/dir/data.bin HTTP/1.1\r\n\r\n")

        assert split_response(raw)[2] == body

    def test_post_twice_is_idempotent(self, test_server: ServerThread, tmp_path: Path):
        request = b"POST /files/again HTTP/1.1\r\nContent-Length: 4\r\n\r\nsame"

        assert test_server.request(request) == b"HTTP/1.1 201 Created\r\n\r\n"
        assert test_server.request(request) == b"HTTP/1.1 201 Created\r\n\r\n"
        assert (tmp_path / "again").read_bytes() == b"same"

    def test_post_onto_directory_closes_without_response(self, test_server: ServerThread, tmp_path: Path):
        (tmp_path / "taken").mkdir()

        raw = test_server.request(b"POST /files/taken HTTP/1.1\r\nContent-Length: 1\r\n\r\nx")

        assert raw == b""


class TestConnectionHandling:
    """Failure paths and concurrency."""

    def test_malformed_request_line_gets_no_bytes(self, test_server: ServerThread):
        assert test_server.request(b"GARBAGE\r\n\r\n") == b""

    def test_bad_content_length_gets_no_bytes(self, test_server: ServerThread):
        raw = test_server.request(b"POST /files/x HTTP/1.1\r\nContent-Length: abc\r\n\r\n")

        assert raw == b""

    def test_idle_connect_and_close(self, test_server: ServerThread):
        """A client that connects and leaves must not break the server."""
        sock = test_server.connect()
        sock.close()

        assert test_server.request(b"GET / HTTP/1.1\r\n\r\n") == b"HTTP/1.1 200 OK\r\n\r\n"

    def test_half_closed_client(self, test_server: ServerThread):
        """Client sends its request then shuts down writing; still answered."""
        with test_server.connect() as sock:
            sock.sendall(b"GET /echo/bye HTTP/1.1\r\n\r\n")
            sock.shutdown(socket.SHUT_WR)
            raw = recv_all(sock)

        assert split_response(raw)[2] == b"bye"

    def test_one_request_per_connection(self, test_server: ServerThread):
        """The server closes after the first response; pipelined data is ignored."""
        raw = test_server.request(
            b"GET /echo/one HTTP/1.1\r\n\r\nGET /echo/two HTTP/1.1\r\n\r\n"
        )

        assert raw.endswith(b"\r\n\r\none")
        assert b"two" not in raw

    def test_concurrent_clients(self, test_server: ServerThread):
        """Many clients at once, each gets its own answer."""
        count = 20
        results = {}
        errors = []

        def client(i: int):
            try:
                raw = test_server.request(f"GET /echo/client-{i} HTTP/1.1\r\n\r\n".encode())
                results[i] = split_response(raw)[2]
            except OSError as e:
                errors.append(e)

        threads = [threading.Thread(target=client, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert errors == []
        assert results == {i: f"client-{i}".encode() for i in range(count)}

    def test_concurrent_file_round_trips(self, test_server: ServerThread, tmp_path: Path):
        """Simultaneous POST/GET pairs on distinct names see only their own bytes."""
        count = 12
        results = {}
        errors = []

        def client(i: int):
            body = f"payload-{i}-".encode() * (i + 1) + bytes([i])
            try:
                created = test_server.request(
                    f"POST /files/conc/{i}.bin HTTP/1.1\r\n"
                    f"Content-Length: {len(body)}\r\n\r\n".encode() + body
                )
                fetched = test_server.request(f"GET /files/conc/{i}.bin HTTP/1.1\r\n\r\n".encode())
                results[i] = (created, split_response(fetched)[2], body)
            except OSError as e:
                errors.append(e)

        threads = [threading.Thread(target=client, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert errors == []
        assert len(results) == count
        for i, (created, fetched, body) in results.items():
            assert created == b"HTTP/1.1 201 Created\r\n\r\n"
            assert fetched == body
            assert (tmp_path / "conc" / f"{i}.bin").read_bytes() == body

    def test_oversized_content_length_rejected(self, test_server: ServerThread, caplog):
        """A declared body above max_body_size is a parse error, logged as a warning."""
        with caplog.at_level(logging.WARNING, logger="minihttp.server"):
            raw = test_server.request(
                b"POST /files/huge HTTP/1.1\r\nContent-Length: 99999999999999999\r\n\r\nabc"
            )

        assert raw == b""
        assert any(
            r.levelno == logging.WARNING and "exceeds limit" in r.getMessage()
            for r in caplog.records
        )

    def test_slow_client_does_not_block_others(self, test_server: ServerThread):
        """A connected-but-silent client holds one worker, not the server."""
        with test_server.connect() as idle:
            raw = test_server.request(b"GET /echo/fast HTTP/1.1\r\n\r\n")
            assert split_response(raw)[2] == b"fast"
            idle.sendall(b"GET / HTTP/1.1\r\n\r\n")
            assert recv_all(idle) == b"HTTP/1.1 200 OK\r\n\r\n"


class TestLifecycle:
    """Startup and shutdown."""

    def test_shutdown_with_saturated_pool(self, config: ServerConfig):
        """
        Idle clients fill the only worker and the queue, and the accept
        thread waits for queue space. shutdown() must still make run() return.
        """
        server = HTTPServer(replace(
            config,
            min_workers=1,
            max_workers=1,
            queue_size=1,
            timeout=None,
            shutdown_timeout=0.5,
        ))
        server_thread = ServerThread(server)
        server_thread.start()
        clients = []
        try:
            for _ in range(3):
                clients.append(server_thread.connect())

            # Client 1 holds the worker, client 2 sits in the queue
            deadline = time.time() + 5.0
            while server._thread_pool.pending < 1 and time.time() < deadline:
                time.sleep(0.05)
            assert server._thread_pool.pending == 1

            # Give the accept thread time to block on client 3
            time.sleep(0.5)

            assert server_thread.stop(timeout=10.0), "run() did not return after shutdown()"
        finally:
            for sock in clients:
                sock.close()

    def test_port_zero_resolves(self, tmp_path: Path):
        server = HTTPServer(ServerConfig(port=0, directory=str(tmp_path), log_level="WARNING"))
        server_thread = ServerThread(server)
        server_thread.start()
        try:
            assert server.address[1] != 0
            assert server_thread.request(b"GET / HTTP/1.1\r\n\r\n") == b"HTTP/1.1 200 OK\r\n\r\n"
        finally:
            server_thread.stop()

    def test_shutdown_stops_listening(self, config: ServerConfig):
        server_thread = ServerThread(HTTPServer(config))
        server_thread.start()
        port = server_thread.port

        server_thread.stop()

        with pytest.raises(OSError):
            socket.create_connection(("127.0.0.1", port), timeout=1.0)

    def test_bind_conflict_raises(self, config: ServerConfig):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", config.port))
            blocker.listen(1)

            with pytest.raises(OSError):
                HTTPServer(config).run()

    def test_no_access_log(self, config: ServerConfig, caplog):
        from dataclasses import replace

        server_thread = ServerThread(HTTPServer(replace(config, access_log=False)))
        server_thread.start()
        try:
            with caplog.at_level("INFO", logger="minihttp.access"):
                server_thread.request(b"GET / HTTP/1.1\r\n\r\n")
        finally:
            server_thread.stop()

        assert not [r for r in caplog.records if r.name == "minihttp.access"]
