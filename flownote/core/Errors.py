class FlowError(Exception):
    """Base class for graph mutation and schema errors."""


class NodeNotFoundError(FlowError, KeyError):
    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self):
        return f"Node '{self.node_id}' not found in document"


class UnknownPortError(FlowError, ValueError):
    pass


class PortAlreadyConnectedError(FlowError, ValueError):
    # A target port accepts exactly one producer.
    def __init__(self, node_id: str, port_name: str):
        super().__init__(f"Input port '{port_name}' on node '{node_id}' is already connected")
        self.node_id = node_id
        self.port_name = port_name


class SchemaError(FlowError, ValueError):
    """Raised when a schema or a serialised document fails structural validation."""


class TransformRegistrationError(FlowError, ValueError):
    pass
