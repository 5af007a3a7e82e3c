from flownote.compiler.binder import VariableBinder, sanitize_port, var_name
from flownote.core.Node import FlowNode
from flownote.core.Schema import NodeSchema, Port


def _node(outputs, ordinal=1):
    schema = NodeSchema(id="step", name="Step", category="transform", outputs=[Port(p) for p in outputs])
    return FlowNode(node_id="n", schema=schema, ordinal=ordinal)


class TestVarName:

    def test_zero_padded_ordinal(self):
        assert var_name(3, "df_out") == "n03_df_out"
        assert var_name(12, "out") == "n12_out"
        assert var_name(104, "out") == "n104_out"

    def test_unsafe_characters_replaced_one_by_one(self):
        assert sanitize_port("a-b c.d") == "a_b_c_d"
        assert sanitize_port("x--y") == "x__y"
        assert var_name(1, "prix(€)") == "n01_prix___"

    def test_same_pair_same_name(self):
        assert var_name(5, "out-1") == var_name(5, "out-1")


class TestVariableBinder:

    def setup_method(self):
        self.binder = VariableBinder()

    def test_bind_each_output(self):
        node = _node(["train", "test"], ordinal=4)
        assert self.binder.bind(node) == {"train": "n04_train", "test": "n04_test"}

    def test_bind_is_idempotent(self):
        node = _node(["out"])
        first = dict(self.binder.bind(node))
        assert self.binder.needs_binding(node) is False
        assert self.binder.bind(node) == first
        assert self.binder.assignment_target(node, "out") == "n01_out"

    def test_colliding_ports_get_suffixes(self):
        node = _node(["a-b", "a_b"])
        assert self.binder.bind(node) == {"a-b": "n01_a_b", "a_b": "n01_a_b_2"}

    def test_rebind_keeps_names_of_surviving_ports(self):
        node = _node(["x"])
        self.binder.bind(node)
        node.output_vars["x"] = "n01_x_custom"

        node.schema = NodeSchema(id="other", category="transform", outputs=[Port("x"), Port("y")])
        bound = self.binder.bind(node)

        assert bound == {"x": "n01_x_custom", "y": "n01_y"}

    def test_rebind_drops_removed_ports(self):
        node = _node(["x", "y"])
        self.binder.bind(node)
        node.schema = NodeSchema(id="other", category="transform", outputs=[Port("y")])
        assert self.binder.bind(node) == {"y": "n01_y"}

    def test_reference_of_unknown_port_is_none(self):
        node = _node(["out"])
        assert self.binder.reference(node, "out") == "n01_out"
        assert self.binder.reference(node, "missing") is None
