"""
Unit tests for the per-connection state machine.
"""

import json
import logging
import socket
from unittest.mock import Mock

import pytest

from pccserver.config import ServerConfig
from pccserver.core.connection import Connection, ConnectionState
from pccserver.core.shutdown import ShutdownToken
from pccserver.handler import ConnectionHandler
from pccserver.protocol.framing import decode_u32, encode_u32
from pccserver.stats import Aggregator, DropReason


@pytest.fixture
def handler_config() -> ServerConfig:
    return ServerConfig(chunk_size=4, poll_interval=0.02)


@pytest.fixture
def exchange(handler_config):
    """
    Run one handler exchange over a socketpair.
    
    The client side writes ``wire`` (and optionally closes its write half)
    before the handler runs, so the whole exchange happens synchronously.
    """
    pairs = []
    
    def _run(wire: bytes, half_close: bool = False, cancel: bool = False,
             config: ServerConfig = None):
        server_side, client_side = socket.socketpair()
        pairs.append((server_side, client_side))
        
        client_side.sendall(wire)
        if half_close:
            client_side.shutdown(socket.SHUT_WR)
        
        token = ShutdownToken()
        if cancel:
            token.cancel()
        
        cfg = config or handler_config
        conn = Connection(socket=server_side, address=("local", 0),
                          token=token, poll_interval=cfg.poll_interval)
        aggregator = Aggregator()
        outcome = ConnectionHandler(cfg).handle(conn, aggregator)
        
        client_side.settimeout(1.0)
        reply = b""
        while True:
            try:
                chunk = client_side.recv(16)
            except ConnectionResetError:
                break
            if not chunk:
                break
            reply += chunk
        return conn, outcome, aggregator, reply
    
    yield _run
    
    for server_side, client_side in pairs:
        server_side.close()
        client_side.close()


class TestServedRequests:
    """Requests that complete and reach the aggregator."""
    
    def test_single_printable_byte(self, exchange):
        conn, outcome, agg, reply = exchange(encode_u32(1) + b"A")
        
        assert decode_u32(reply) == 1
        assert outcome.served
        assert conn.state is ConnectionState.CLOSED
        assert conn.is_closed
        assert agg.served_clients == 1
        assert agg.histogram["A"] == 1
    
    def test_zero_length(self, exchange):
        _, outcome, agg, reply = exchange(encode_u32(0))
        
        assert decode_u32(reply) == 0
        assert outcome.served
        assert agg.served_clients == 1
        assert agg.histogram.is_empty()
    
    def test_control_bytes_excluded(self, exchange):
        _, outcome, agg, reply = exchange(encode_u32(5) + b"Hi!\x01\x02")
        
        assert decode_u32(reply) == 3
        assert outcome.payload_received == 5
        assert agg.histogram["!"] == 1
    
    def test_payload_spanning_many_chunks(self, exchange):
        payload = bytes(range(256)) * 4
        _, outcome, agg, reply = exchange(encode_u32(len(payload)) + payload)
        
        assert decode_u32(reply) == 95 * 4
        assert agg.histogram[" "] == 4
        assert agg.histogram["~"] == 4


class TestDroppedRequests:
    """Failed exchanges leave no trace in the statistics."""
    
    def test_disconnect_before_length(self, exchange):
        conn, outcome, agg, reply = exchange(b"\x00\x00", half_close=True)
        
        assert reply == b""
        assert not outcome.served
        assert outcome.reason is DropReason.PEER_CLOSED
        assert outcome.expected_length is None
        assert conn.state is ConnectionState.ABORTED
        assert agg.served_clients == 0
    
    def test_disconnect_after_length(self, exchange):
        _, outcome, agg, reply = exchange(encode_u32(10), half_close=True)
        
        assert reply == b""
        assert outcome.reason is DropReason.PEER_CLOSED
        assert outcome.expected_length == 10
        assert agg.served_clients == 0
        assert agg.histogram.is_empty()
        assert agg.dropped_clients[DropReason.PEER_CLOSED] == 1
    
    def test_disconnect_mid_payload(self, exchange):
        _, outcome, agg, _ = exchange(encode_u32(10) + b"ABCDEF", half_close=True)
        
        assert outcome.reason is DropReason.PEER_CLOSED
        assert outcome.payload_received == 4  # one full chunk was counted
        assert agg.histogram.is_empty()
    
    def test_shutdown_while_waiting_for_length(self, exchange):
        _, outcome, agg, reply = exchange(b"", cancel=True)
        
        assert reply == b""
        assert outcome.reason is DropReason.SHUTDOWN
        assert agg.served_clients == 0
    
    def test_send_failure_is_not_counted(self, handler_config):
        sock = Mock(spec=socket.socket)
        sock.recv.side_effect = [encode_u32(1), b"A"]
        sock.send.side_effect = ConnectionResetError("reset by peer")
        conn = Connection(socket=sock, address=("10.0.0.1", 5000), poll_interval=0.01)
        agg = Aggregator()
        
        outcome = ConnectionHandler(handler_config).handle(conn, agg)
        
        assert not outcome.served
        assert outcome.reason is DropReason.TRANSPORT
        assert agg.served_clients == 0
        assert agg.histogram.is_empty()
        sock.close.assert_called_once()


class TestDrainOnInterrupt:
    """Shutdown arriving while the payload is still coming in."""
    
    def test_drain_answers_with_partial_count(self, exchange):
        _, outcome, agg, reply = exchange(encode_u32(10) + b"ABCDEF", cancel=True)
        
        assert decode_u32(reply) == 6
        assert outcome.served
        assert outcome.drained
        assert outcome.payload_received == 6
        assert agg.served_clients == 1
        assert agg.histogram["F"] == 1
    
    def test_no_drain_abandons_request(self, exchange):
        config = ServerConfig(chunk_size=4, poll_interval=0.02, drain_on_interrupt=False)
        _, outcome, agg, reply = exchange(encode_u32(10) + b"ABCDEF", cancel=True, config=config)
        
        assert reply == b""
        assert outcome.reason is DropReason.SHUTDOWN
        assert agg.served_clients == 0
        assert agg.histogram.is_empty()


class TestConnectionLog:
    """One informational log entry per connection."""
    
    def test_text_log(self, exchange, caplog):
        with caplog.at_level(logging.INFO, logger="pccserver.handler"):
            _, outcome, _, _ = exchange(encode_u32(2) + b"ok")
        
        assert f"[{outcome.connection_id}]" in caplog.text
        assert "served 2/2 bytes, 2 printable" in caplog.text
    
    def test_drop_logged_below_warning(self, exchange, caplog):
        with caplog.at_level(logging.DEBUG, logger="pccserver"):
            exchange(encode_u32(3), half_close=True)
        
        handler_records = [r for r in caplog.records if r.name == "pccserver.handler"]
        assert handler_records
        assert all(r.levelno <= logging.INFO for r in handler_records)
        assert "dropped (peer_closed)" in caplog.text
    
    def test_json_log(self, exchange, caplog):
        config = ServerConfig(chunk_size=4, poll_interval=0.02, log_format="json")
        with caplog.at_level(logging.INFO, logger="pccserver.handler"):
            exchange(encode_u32(1) + b"\x7f", config=config)
        
        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["served"] is True
        assert entry["printable"] == 0
        assert entry["reason"] is None
    
    def test_duration_measured_from_accept(self, handler_config):
        sock = Mock(spec=socket.socket)
        sock.recv.side_effect = [encode_u32(0)]
        sock.send.side_effect = lambda data: len(data)
        conn = Connection(socket=sock, address=("10.0.0.1", 5000), poll_interval=0.01)
        conn.created_at -= 2.0
        
        outcome = ConnectionHandler(handler_config).handle(conn, Aggregator())
        
        assert outcome.served
        assert outcome.duration_ms >= 2000
