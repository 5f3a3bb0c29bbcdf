"""histfix - replay historical fixes against freshly flagged code.

Mines small old->new edits from a repository's first-parent history and
applies the best-matching one to each span an analysis pass highlights,
re-running the analysis until nothing is left to fix.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
