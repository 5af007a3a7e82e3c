from flownote.server.config import Settings
from flownote.server.state import FlowState, set_flow_state
from flownote.server.trace.socket_server import status_snapshot
from flownote.server.trace.trace_emitter import TraceEmitter
from flownote.server.trace.trace_types import NodeDoneEvent, NodeStatusEvent


class TestTraceEmitter:

    def setup_method(self):
        self.emitter = TraceEmitter()
        self.received = []

    def test_fire_stamps_and_fans_out(self):
        self.emitter.on_trace(self.received.append)
        self.emitter.fire(NodeDoneEvent(type="NODE_DONE", nodeId="a"))
        assert self.received[0]["type"] == "NODE_DONE"
        assert isinstance(self.received[0]["ts"], int)

    def test_existing_timestamp_kept(self):
        self.emitter.on_trace(self.received.append)
        self.emitter.fire(NodeStatusEvent(type="NODE_STATUS", nodeId="a", status="configured", ts=5))
        assert self.received == [{"type": "NODE_STATUS", "nodeId": "a", "status": "configured", "ts": 5}]

    def test_off_trace(self):
        self.emitter.on_trace(self.received.append)
        self.emitter.off_trace(self.received.append)
        self.emitter.fire(NodeDoneEvent(type="NODE_DONE", nodeId="a"))
        assert self.received == []

    def test_broken_listener_does_not_stop_others(self):
        def broken(event):
            raise RuntimeError("listener down")

        self.emitter.on_trace(broken)
        self.emitter.on_trace(self.received.append)
        self.emitter.fire(NodeDoneEvent(type="NODE_DONE", nodeId="a"))
        assert len(self.received) == 1


class TestStatusSnapshot:

    def test_snapshot_of_demo_flow(self, tmp_path):
        state = set_flow_state(FlowState(Settings(server_root=str(tmp_path)), seed_demo=True))

        snapshot = status_snapshot()

        assert snapshot["propagating"] is False
        assert set(snapshot["statuses"]) == set(state.session.document.nodes)
        assert set(snapshot["statuses"].values()) == {"configured"}


class TestSettings:

    def test_cors_origins_from_comma_list(self):
        settings = Settings(cors_origins="http://localhost:5173, http://example.test,")
        assert settings.cors_origins == ["http://localhost:5173", "http://example.test"]

    def test_cors_origins_default(self):
        assert Settings().cors_origins == ["*"]
