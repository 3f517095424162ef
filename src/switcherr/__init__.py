"""SwitchErr: switch error rates between estimated and true haplotype phase.

Public API is intentionally small; most users should use the CLI:

    switcherr compare <n_samples> est.phgeno true.phgeno

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.2.0"
