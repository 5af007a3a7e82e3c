from flownote.compiler import CYCLE_DIAGNOSTIC, compile_document
from flownote.compiler.emitter import emit
from flownote.core.Document import FlowDocument
from flownote.core.Schema import NodeSchema


LOAD = NodeSchema.from_dict({
    "id": "load_csv", "name": "Load CSV", "category": "source",
    "outputs": [{"name": "df_out"}],
    "args": [{"name": "filepath", "default": ""}],
})
SELECT = NodeSchema.from_dict({
    "id": "select_columns", "name": "Select Columns", "category": "cleaning",
    "inputs": [{"name": "df_in"}], "outputs": [{"name": "df_out"}],
    "args": [{"name": "columns", "default": []}],
})
STEP = NodeSchema.from_dict({
    "id": "step", "name": "Step", "category": "transform",
    "inputs": [{"name": "in"}], "outputs": [{"name": "out"}],
})


class TestEmit:

    def setup_method(self):
        self.doc = FlowDocument()

    def test_full_listing(self):
        select = self.doc.insert_node(SELECT, values={"columns": ["a", "b"]})
        load = self.doc.insert_node(LOAD, values={"filepath": "sales.csv"})
        self.doc.connect(load.id, "df_out", select.id, "df_in")

        assert compile_document(self.doc, root="/srv") == "\n".join([
            "import pandas as pd",
            "import numpy as np",
            "import matplotlib.pyplot as plt",
            "from workflow_lib import *",
            "",
            "# Load CSV",
            "n02_df_out = load_csv(filepath='/srv/dataset/sales.csv')",
            "try:",
            "    display(n02_df_out.head())",
            "except Exception:",
            "    print(n02_df_out)",
            "",
            "# Select Columns",
            "n01_df_out = select_columns(df_in=n02_df_out, columns=['a', 'b'])",
            "try:",
            "    display(n01_df_out.head())",
            "except Exception:",
            "    print(n01_df_out)",
            "",
        ])

    def test_cycle_yields_only_the_diagnostic(self):
        a = self.doc.insert_node(STEP)
        b = self.doc.insert_node(STEP)
        self.doc.connect(a.id, "out", b.id, "in")
        self.doc.connect(b.id, "out", a.id, "in")
        assert emit(self.doc) == CYCLE_DIAGNOSTIC

    def test_self_loop_yields_only_the_diagnostic(self):
        a = self.doc.insert_node(STEP)
        self.doc.connect(a.id, "out", a.id, "in")
        assert compile_document(self.doc) == CYCLE_DIAGNOSTIC

    def test_schema_imports_deduplicated(self):
        extra = NodeSchema.from_dict({
            "id": "split", "name": "Split", "category": "modeling",
            "imports": ["from sklearn.model_selection import train_test_split", "import numpy as np"],
            "outputs": [{"name": "out"}],
        })
        self.doc.insert_node(extra)
        self.doc.insert_node(extra)

        header = emit(self.doc).split("\n\n")[0].split("\n")
        assert header.count("from sklearn.model_selection import train_test_split") == 1
        assert header.count("import numpy as np") == 1

    def test_free_cells_emit_their_text(self):
        self.doc.insert_node(source="x = 41\ny = x + 1\n")
        listing = emit(self.doc)
        assert "x = 41\ny = x + 1\n" in listing

    def test_custom_workflow_import(self):
        self.doc.insert_node(LOAD)
        listing = emit(self.doc, workflow_import="from aiserver.workflow_lib import *")
        lines = listing.split("\n")
        assert lines[3] == "from aiserver.workflow_lib import *"
        assert "from workflow_lib import *" not in lines

    def test_output_is_deterministic(self):
        load = self.doc.insert_node(LOAD, values={"filepath": "a.csv"})
        select = self.doc.insert_node(SELECT)
        self.doc.connect(load.id, "df_out", select.id, "df_in")
        assert emit(self.doc, root="/srv") == emit(self.doc, root="/srv")
