"""
The envelope every glmstats entry point returns inside its solution object.

A solution class (GLMSolution, EMMeansSolution, ...) holds exactly one
Result. The payload type varies per analysis; the envelope fields do not:

    params        frozen dataclass from glm._common
    info          rank, aliased columns, design string, alpha, n_dropped
    timing        Timer.result(), or None when a caller builds one by hand
    backend_name  'cpu_sweep' for everything that goes through the SWEEP
    warnings      every message also emitted through warnings.warn
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Frozen pairing of an analysis payload with its run metadata.

    Examples:
        >>> Result(
        ...     params=GLMParams(table=rows, ...),
        ...     info={'rank': 5, 'aliased': ('[A=a2]*[B=b3]',)},
        ...     timing={'total_seconds': 0.01, 'sweep': 0.001},
        ...     backend_name='cpu_sweep',
        ...     warnings=('The design matrix is rank-deficient ...',),
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """True if any recorded warning mentions substring."""
        return any(substring in w for w in self.warnings)
