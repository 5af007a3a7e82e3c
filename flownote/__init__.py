"""
FlowNote: compiles a visual node graph of data-processing steps into
sequential Python notebook code.
"""

__version__ = "0.3.0"
