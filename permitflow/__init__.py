"""PermitFlow: multi-member approval engine for permit applications."""

__version__ = "0.1.0"
