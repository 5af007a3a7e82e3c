import json

import pytest

from flownote.compiler.schema import SchemaError, validate, validate_file


def _valid():
    return {
        "nextOrdinal": 3,
        "nodes": [
            {"id": "a", "number": 1, "schema": {"id": "load_csv"}, "values": {}, "position": {"x": 0, "y": 0}},
            {"id": "b", "number": 2, "source": "x = 1"},
        ],
        "edges": [
            {"sourceId": "a", "sourcePort": "df_out", "targetId": "b", "targetPort": "in"},
        ],
    }


class TestValidate:

    def test_valid_document(self):
        validate(_valid())

    @pytest.mark.parametrize("mutate, message", [
        (lambda d: d.pop("edges"), "missing required field 'edges'"),
        (lambda d: d.update(nodes={}), "nodes must be a list"),
        (lambda d: d.update(nextOrdinal="3"), "nextOrdinal must be an integer"),
        (lambda d: d["nodes"][1].update(id="a"), "duplicate node id 'a'"),
        (lambda d: d["nodes"][1].update(number=1), "duplicate node number 1"),
        (lambda d: d["nodes"][0].update(number=True), "number must be an integer"),
        (lambda d: d["nodes"][0].update(values=[]), "values must be an object"),
        (lambda d: d["nodes"][0].update(schema={"name": "x"}), "schema.id must be a string"),
        (lambda d: d["nodes"][1].update(source=5), "source must be a string"),
        (lambda d: d["edges"][0].pop("targetPort"), "missing required field 'targetPort'"),
        (lambda d: d["edges"][0].update(sourceId="ghost"), "sourceId 'ghost' not found"),
    ])
    def test_violations(self, mutate, message):
        data = _valid()
        mutate(data)
        with pytest.raises(SchemaError) as info:
            validate(data)
        assert message in str(info.value)

    def test_top_level_must_be_object(self):
        with pytest.raises(SchemaError):
            validate([])


class TestValidateFile:

    def test_returns_parsed_document(self, tmp_path):
        path = tmp_path / "flow.json"
        path.write_text(json.dumps(_valid()))
        assert validate_file(path)["nextOrdinal"] == 3

    def test_bad_json(self, tmp_path):
        path = tmp_path / "flow.json"
        path.write_text("{")
        with pytest.raises(json.JSONDecodeError):
            validate_file(path)
