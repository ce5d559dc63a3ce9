"""PlantOps: troubleshooting assistant backend for power-plant operators."""

__version__ = "0.1.0"
