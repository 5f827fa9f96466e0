"""Neural network layers, sequential models with JSON serialisation, and logging setup on NumPy."""

__version__ = "0.1.0"

__all__ = ["layers", "network", "logconfig"]