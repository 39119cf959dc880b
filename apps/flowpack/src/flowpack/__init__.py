"""FlowPack: Power Automate solution packaging."""

__version__ = "0.1.0"
