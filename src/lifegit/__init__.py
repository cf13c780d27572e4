"""LifeGit: personal goals tracked as branches of a life timeline."""

__version__ = "0.1.0"

__all__ = ["__version__"]
