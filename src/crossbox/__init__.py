"""crossbox: GNU cross-compiler builds in a disposable container.

Layer: Package root
May only import from: nothing (keep import of the package side-effect free)
"""

__version__ = "0.1.0"
