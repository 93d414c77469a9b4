"""divcore — expression, binding, template and action engine for server-driven UI cards."""

__version__ = "0.4.0"
