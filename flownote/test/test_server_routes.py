import ast

from fastapi.testclient import TestClient

from flownote.server.config import Settings
from flownote.server.main import app
from flownote.server.state import FlowState, set_flow_state


class TestGraphRoutes:

    def setup_method(self):
        self.client = TestClient(app)

    def _state(self, tmp_path, seed_demo=False):
        return set_flow_state(FlowState(Settings(server_root=str(tmp_path)), seed_demo=seed_demo))

    def _create(self, algorithm_id, **extra):
        response = self.client.post("/api/nodes", json={"algorithmId": algorithm_id, **extra})
        assert response.status_code == 201, response.text
        return response.json()

    def _edge(self, source, target):
        return {"sourceId": source, "sourcePort": "df_out", "targetId": target, "targetPort": "df_in"}

    def test_health(self, tmp_path):
        self._state(tmp_path)
        assert self.client.get("/health").json() == {"status": "ok"}

    def test_library(self, tmp_path):
        self._state(tmp_path)
        groups = self.client.get("/api/library").json()
        assert [r["id"] for r in groups["source"]] == ["load_csv", "import_variable"]
        assert self.client.get("/api/library/describe").json()["template"].startswith("{OUTPUT_VAR}")
        assert self.client.get("/api/library/nope").status_code == 404

    def test_demo_document(self, tmp_path):
        self._state(tmp_path, seed_demo=True)
        document = self.client.get("/api/document").json()
        assert [n["schema"]["id"] for n in document["nodes"]] == ["load_csv", "select_columns", "describe", "plot_line"]
        assert len(document["edges"]) == 3
        assert all(n["status"] == "configured" for n in document["nodes"])

        code = self.client.get("/api/code").json()["code"]
        ast.parse(code)
        assert "timeIndex=''" in code
        assert "x='', y=['revenue'], title='Revenue by row'" in code

    def test_create_connect_and_generate(self, tmp_path):
        self._state(tmp_path)
        load = self._create("load_csv", id="load", values={"filepath": "sales.csv"})
        select = self._create("select_columns", id="select")

        assert load["number"] == 1
        assert load["label"] == "Load CSV"
        assert select["status"] == "unconfigured"

        response = self.client.post("/api/edges", json=self._edge("load", "select"))
        assert response.status_code == 201
        assert response.json()["id"] == "e-load-select-df_out-df_in"

        assert self.client.get("/api/statuses").json() == {"load": "configured", "select": "configured"}
        code = self.client.get("/api/code").json()["code"]
        assert f"n01_df_out = load_csv(filepath='{tmp_path}/dataset/sales.csv'" in code
        assert "select_columns(df_in=n01_df_out, columns=[])" in code

    def test_edge_conflicts(self, tmp_path):
        self._state(tmp_path)
        self._create("load_csv", id="a")
        self._create("load_csv", id="b")
        self._create("select_columns", id="s")
        assert self.client.post("/api/edges", json=self._edge("a", "s")).status_code == 201

        assert self.client.post("/api/edges", json=self._edge("b", "s")).status_code == 409
        assert self.client.post("/api/edges", json=self._edge("ghost", "s")).status_code == 404
        bad_port = {**self._edge("a", "s"), "targetPort": "nope"}
        assert self.client.post("/api/edges", json=bad_port).status_code == 400

    def test_delete_edge(self, tmp_path):
        self._state(tmp_path)
        self._create("load_csv", id="a")
        self._create("select_columns", id="s")
        self.client.post("/api/edges", json=self._edge("a", "s"))

        assert self.client.request("DELETE", "/api/edges", json=self._edge("a", "s")).status_code == 204
        assert self.client.request("DELETE", "/api/edges", json=self._edge("a", "s")).status_code == 404

    def test_delete_node_reports_affected(self, tmp_path):
        self._state(tmp_path)
        self._create("load_csv", id="a")
        self._create("select_columns", id="s")
        self.client.post("/api/edges", json=self._edge("a", "s"))

        response = self.client.delete("/api/nodes/a")

        assert response.json() == {"deleted": "a", "affected": {"s": "unconfigured"}}
        assert self.client.delete("/api/nodes/a").status_code == 404

    def test_values_algorithm_and_code(self, tmp_path):
        self._state(tmp_path)
        cell = self._create(None, id="cell", source="# Scratch\nx = 1")
        assert cell["schema"]["id"] == "free_cell"
        assert cell["label"] == "Scratch"
        assert self.client.get("/api/nodes/cell/code").json()["code"] == "# Scratch\nx = 1"

        node = self.client.put("/api/nodes/cell/algorithm", json={"algorithmId": "filter_rows"}).json()
        assert node["schema"]["id"] == "filter_rows"

        node = self.client.put("/api/nodes/cell/values", json={"values": {"query": "amount > 5"}}).json()
        assert "query='amount > 5'" in node["source"]

        custom = {"id": "tidy", "name": "Tidy", "category": "transform", "outputs": [{"name": "out"}]}
        node = self.client.put("/api/nodes/cell/algorithm", json={"schema": custom}).json()
        assert node["schema"]["id"] == "tidy"

        assert self.client.put("/api/nodes/cell/algorithm", json={}).status_code == 400
        assert self.client.put("/api/nodes/cell/algorithm", json={"algorithmId": "nope"}).status_code == 400
        assert self.client.put("/api/nodes/ghost/values", json={"values": {}}).status_code == 404

    def test_position_and_source(self, tmp_path):
        state = self._state(tmp_path)
        self._create(None, id="cell")

        assert self.client.put("/api/nodes/cell/position", json={"x": 5, "y": 7}).status_code == 204
        assert self.client.put("/api/nodes/cell/source", json={"source": "y = 2"}).status_code == 204

        node = state.session.document.get_node("cell")
        assert node.position == {"x": 5, "y": 7}
        assert state.session.store.get_source("cell") == "y = 2"

    def test_document_round_trip(self, tmp_path):
        self._state(tmp_path, seed_demo=True)
        exported = self.client.get("/api/document").json()

        self.client.post("/api/document/reset")
        assert self.client.get("/api/document").json()["nodes"] == []

        restored = self.client.put("/api/document", json=exported).json()
        assert [n["id"] for n in restored["nodes"]] == [n["id"] for n in exported["nodes"]]
        assert restored["edges"] == exported["edges"]

    def test_invalid_document(self, tmp_path):
        self._state(tmp_path)
        response = self.client.put("/api/document", json={"nodes": [{"id": "a"}], "edges": []})
        assert response.status_code == 400

    def test_propagate(self, tmp_path):
        (tmp_path / "dataset").mkdir()
        (tmp_path / "dataset" / "sales.csv").write_text("date,region,revenue\n")
        self._state(tmp_path, seed_demo=True)

        body = self.client.post("/api/propagate").json()

        assert body["ran"] is True
        load_id = self.client.get("/api/document").json()["nodes"][0]["id"]
        assert body["metadata"][load_id]["outputColumns"]["df_out"] == [
            {"name": "date", "type": "unknown"},
            {"name": "region", "type": "unknown"},
            {"name": "revenue", "type": "unknown"},
        ]
        assert self.client.post("/api/propagate").json()["ran"] is False

    def test_run_and_clear(self, tmp_path):
        self._state(tmp_path)
        self._create(None, id="cell", source="print('hi')")

        body = self.client.post("/api/nodes/cell/run").json()
        assert body["status"] == "success"
        assert body["outputs"][0]["text"] == "hi\n"

        assert self.client.post("/api/execution/clear", params={"nodeId": "cell"}).status_code == 204
        assert self.client.get("/api/statuses").json() == {"cell": "unconfigured"}

    def test_csv_columns(self, tmp_path):
        (tmp_path / "dataset").mkdir()
        (tmp_path / "dataset" / "a.csv").write_text("x,y\n1,2\n")
        self._state(tmp_path)

        body = self.client.post("/api/csv-columns", json={"filepath": "a.csv"}).json()
        assert body["columns"] == ["x", "y"]
        assert self.client.post("/api/csv-columns", json={"filepath": "missing.csv"}).status_code == 404
