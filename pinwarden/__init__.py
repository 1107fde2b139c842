"""pinwarden: pin GitHub Actions workflow references to immutable commits."""

__version__ = "0.1.0"
