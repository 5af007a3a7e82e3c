import ast
import asyncio
import json
import sys
import time

import pytest

from flownote.compiler import compile_document
from flownote.core.Document import FlowDocument
from flownote.core.Errors import SchemaError
from flownote.core.Executor import CellStream, NamespaceExecutor
from flownote.core.Types import Column
from flownote.server.library import SchemaLibrary


class FakeFrame:
    def __init__(self, columns, dtypes):
        self.columns = columns
        self.dtypes = dtypes


class TestSchemaLibrary:

    def setup_method(self):
        self.library = SchemaLibrary()

    def test_builtin_schemas(self):
        load = self.library.get_schema("load_csv")
        assert load.name == "Load CSV"
        assert load.output_names() == ["df_out"]
        assert self.library.get_schema("nope") is None
        assert "source" in self.library.groups()

    def test_group_category_fills_missing_field(self):
        library = SchemaLibrary({"extras": [{"id": "tidy", "name": "Tidy"}]})
        assert library.get_schema("tidy").category == "extras"
        assert [s.id for s in library.list_schemas()] == ["tidy"]

    def test_later_definition_wins(self):
        library = SchemaLibrary({
            "a": [{"id": "tidy", "name": "First", "category": "transform"}],
            "b": [{"id": "tidy", "name": "Second", "category": "transform"}],
        })
        assert library.get_schema("tidy").name == "Second"
        assert library.groups() == {"b": [{"id": "tidy", "name": "Second", "category": "transform"}]}

    def test_from_file_list_form(self, tmp_path):
        path = tmp_path / "library.json"
        path.write_text(json.dumps([{"id": "tidy", "category": "cleaning"}]))
        library = SchemaLibrary.from_file(path)
        assert list(library.groups()) == ["cleaning"]

    def test_from_file_rejects_other_shapes(self, tmp_path):
        path = tmp_path / "library.json"
        path.write_text(json.dumps("nope"))
        with pytest.raises(SchemaError):
            SchemaLibrary.from_file(path)

    def test_invalid_schema_rejected(self):
        with pytest.raises(SchemaError):
            SchemaLibrary({"x": [{"name": "no id"}]})


    def test_builtin_option_values_quoted(self):
        doc = FlowDocument()
        load_schema = self.library.get_schema("load_csv")
        load = doc.insert_node(load_schema, values={**load_schema.default_values(), "filepath": "a.csv", "timeIndex": "date"})
        dedupe = doc.insert_node(self.library.get_schema("drop_duplicates"))
        plot = doc.insert_node(self.library.get_schema("plot_line"), values={"x": "region", "y": ["revenue"]})
        doc.connect(load.id, "df_out", dedupe.id, "df_in")
        doc.connect(dedupe.id, "df_out", plot.id, "df_in")

        code = compile_document(doc, root="/srv")

        ast.parse(code)
        assert "timeIndex='date'" in code
        assert "drop_duplicates(n01_df_out, subset=[], keep='first')" in code
        assert "plot_line(n02_df_out, x='region', y=['revenue']" in code


class TestColumnLookups:

    def test_csv_header(self, tmp_path):
        (tmp_path / "dataset").mkdir()
        (tmp_path / "dataset" / "sales.csv").write_text("date, region ,revenue\n2024-01-01,EU,10\n")
        library = SchemaLibrary(root=tmp_path)

        columns = asyncio.run(library.fetch_file_columns("sales.csv"))

        assert columns == [Column("date"), Column("region"), Column("revenue")]

    def test_dataset_prefix_and_backslashes(self, tmp_path):
        library = SchemaLibrary(root=tmp_path)
        assert library.data_path("dataset/a.csv") == tmp_path / "dataset" / "a.csv"
        assert library.data_path("sub\\a.csv") == tmp_path / "dataset" / "sub" / "a.csv"

    def test_missing_file(self, tmp_path):
        library = SchemaLibrary(root=tmp_path)
        with pytest.raises(FileNotFoundError):
            asyncio.run(library.fetch_file_columns("missing.csv"))

    def test_empty_path(self, tmp_path):
        assert asyncio.run(SchemaLibrary(root=tmp_path).fetch_file_columns("")) == []

    def test_variable_columns(self):
        namespace = {"df": FakeFrame(["a", "b"], ["int64", "object"]), "n": 3}
        library = SchemaLibrary(namespace=lambda: namespace)

        assert asyncio.run(library.fetch_variable_columns("df")) == [Column("a", "int64"), Column("b", "object")]
        assert asyncio.run(library.fetch_variable_columns("n")) == []
        assert asyncio.run(library.fetch_variable_columns("missing")) == []

    def test_variable_without_matching_dtypes(self):
        namespace = {"df": FakeFrame(["a", "b"], ["int64"])}
        library = SchemaLibrary(namespace=lambda: namespace)
        assert asyncio.run(library.fetch_variable_columns("df")) == [Column("a"), Column("b")]


class TestNamespaceExecutor:

    def setup_method(self):
        self.executor = NamespaceExecutor()

    def test_namespace_persists_between_cells(self):
        asyncio.run(self.executor.run("a", "x = 2"))
        outputs = asyncio.run(self.executor.run("b", "display(x * 3)"))
        assert outputs == [{"output_type": "stream", "name": "stdout", "text": "6\n"}]

    def test_stdout_kept_before_error(self):
        outputs = asyncio.run(self.executor.run("a", "print('start')\nraise ValueError('bad')"))
        assert [o["output_type"] for o in outputs] == ["stream", "error"]
        assert outputs[1]["ename"] == "ValueError"
        assert outputs[1]["evalue"] == "bad"

    def test_syntax_error_reported(self):
        outputs = asyncio.run(self.executor.run("a", "def ("))
        assert outputs[-1]["ename"] == "SyntaxError"

    def test_reset(self):
        asyncio.run(self.executor.run("a", "x = 1"))
        self.executor.reset()
        assert "x" not in self.executor.namespace
        outputs = asyncio.run(self.executor.run("b", "x"))
        assert outputs[-1]["ename"] == "NameError"

    def test_event_loop_keeps_running_during_a_cell(self):
        async def scenario():
            ticks = []

            async def ticker():
                while True:
                    ticks.append(time.monotonic())
                    await asyncio.sleep(0.01)

            task = asyncio.create_task(ticker())
            outputs = await self.executor.run("slow", "import time\ntime.sleep(0.3)\nprint('done')")
            task.cancel()
            return ticks, outputs

        ticks, outputs = asyncio.run(scenario())

        assert len(ticks) >= 5
        assert max(b - a for a, b in zip(ticks, ticks[1:])) < 0.2
        assert outputs == [{"output_type": "stream", "name": "stdout", "text": "done\n"}]

    def test_loop_output_not_captured_by_running_cell(self, capsys):
        async def scenario():
            async def chatter():
                await asyncio.sleep(0.05)
                print("from the loop")

            task = asyncio.create_task(chatter())
            outputs = await self.executor.run("slow", "import time\ntime.sleep(0.2)\nprint('cell')")
            await task
            return outputs

        outputs = asyncio.run(scenario())

        assert outputs == [{"output_type": "stream", "name": "stdout", "text": "cell\n"}]
        assert "from the loop" in capsys.readouterr().out
        assert sys.stdout is not None and not isinstance(sys.stdout, CellStream)
