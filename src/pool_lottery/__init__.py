"""Round-based pooled lottery with stake-weighted draws."""

__version__ = "1.0.0"
