"""VozSegura identity and case-routing control plane."""

__version__ = "0.1.0"
