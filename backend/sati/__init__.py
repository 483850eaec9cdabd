"""SATI Centro de Consulta backend."""

__version__ = "1.0.0"
