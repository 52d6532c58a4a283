# skyheat/kernel/skyline.py
"""
SKYLINE SOLVER: Profile Storage and In-Place LDLᵗ
=================================================

PURPOSE:
--------
Stores a symmetric matrix by columns, keeping for each column only the
entries from its first nonzero row down to the diagonal (its "skyline"),
and factorizes it as A = L·D·Lᵗ without any fill-in outside that profile.

STORAGE LAYOUT:
---------------
Column j has height h_j (number of stored entries above the diagonal) and
occupies values[col_ptr[j] : col_ptr[j+1]], top to bottom:

    rows  j-h_j, j-h_j+1, ..., j-1, j
                                    ^ diagonal, at col_ptr[j+1] - 1

    col_ptr[0] = 0
    col_ptr[j+1] = col_ptr[j] + h_j + 1

Entries above the skyline are structural zeros and stay zero through the
factorization: in a column-oriented LDLᵗ the first nonzero of each column
never moves up.

FACTORIZATION (column by column):
---------------------------------
    g_i = a_ij - Σ_k l_ki · g_k          for rows i of column j, k < i
    l_ij = g_i / d_i
    d_j = a_jj - Σ_i l_ij · g_i

After factorize(), column j holds l_ij above the diagonal and d_j on it.

SOLVE:
------
    forward    L·y = b
    diagonal   z = y / d
    backward   Lᵗ·x = z

USAGE:
------
    A = SkylineMatrix(heights)          # or SkylineMatrix.from_dense(a)
    A.add(i, j, value)
    solver = create_solver(SolverConfig(pivot_tolerance=1e-12))
    solver.rebuild(A)
    solver.factorize()
    x1 = solver.solve(b1)
    x2 = solver.solve(b2)               # reuses the factorization
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from ..config import DEFAULT_SOLVER_CONFIG, SolverConfig
from .errors import DimensionMismatchError, SingularMatrixError

logger = logging.getLogger(__name__)


class SkylineMatrix:
    """
    Symmetric matrix in skyline (variable-band profile) storage.

    Only the upper triangle within the profile is stored. Every mutation
    through add()/mark_modified() bumps `revision`, which lets a solver
    tell whether its factorization still matches the matrix.
    """

    def __init__(self, heights: Sequence[int]):
        heights = np.asarray(heights, dtype=int)
        if heights.ndim != 1:
            raise DimensionMismatchError("Skyline heights must be a 1-D sequence")
        columns = np.arange(len(heights))
        if np.any(heights < 0) or np.any(heights > columns):
            raise ValueError("Skyline height of column j must lie in [0, j]")

        self.heights = heights
        self.col_ptr = np.zeros(len(heights) + 1, dtype=int)
        np.cumsum(heights + 1, out=self.col_ptr[1:])
        self.values = np.zeros(self.col_ptr[-1], dtype=float)
        self.revision = 0

    def __repr__(self):
        return f"SkylineMatrix(size={self.size}, stored={self.nnz})"

    @property
    def size(self) -> int:
        return len(self.heights)

    @property
    def nnz(self) -> int:
        """Number of stored entries (upper triangle within the profile)."""
        return len(self.values)

    @classmethod
    def zeros_like(cls, other: "SkylineMatrix") -> "SkylineMatrix":
        return cls(other.heights.copy())

    @classmethod
    def from_dense(cls, a: np.ndarray, symmetry_tol: float = 1e-12) -> "SkylineMatrix":
        """
        Build a skyline matrix from a dense symmetric array.

        Each column's profile starts at its first nonzero row in the
        upper triangle.
        """
        a = np.asarray(a, dtype=float)
        if a.ndim != 2 or a.shape[0] != a.shape[1]:
            raise DimensionMismatchError(f"Expected a square matrix, got shape {a.shape}")
        scale = max(1.0, float(np.max(np.abs(a)))) if a.size else 1.0
        if not np.allclose(a, a.T, rtol=0.0, atol=symmetry_tol * scale):
            raise ValueError("Skyline storage requires a symmetric matrix")

        n = a.shape[0]
        heights = np.zeros(n, dtype=int)
        for j in range(n):
            nonzero = np.flatnonzero(a[:j, j])
            if nonzero.size:
                heights[j] = j - nonzero[0]

        matrix = cls(heights)
        for j in range(n):
            first = j - heights[j]
            matrix.values[matrix.col_ptr[j]:matrix.col_ptr[j + 1]] = a[first:j + 1, j]
        return matrix

    def copy(self) -> "SkylineMatrix":
        other = SkylineMatrix.zeros_like(self)
        other.values[:] = self.values
        return other

    def same_profile(self, other: "SkylineMatrix") -> bool:
        return self.size == other.size and np.array_equal(self.heights, other.heights)

    def first_row(self, j: int) -> int:
        return int(j - self.heights[j])

    def column(self, j: int) -> np.ndarray:
        """View of the stored entries of column j, top to bottom."""
        return self.values[self.col_ptr[j]:self.col_ptr[j + 1]]

    def diagonal(self) -> np.ndarray:
        return self.values[self.col_ptr[1:] - 1].copy()

    def _offset(self, i: int, j: int) -> Optional[int]:
        if i > j:
            i, j = j, i
        if i < 0 or j >= self.size:
            raise IndexError(f"Entry ({i}, {j}) outside a {self.size}x{self.size} matrix")
        first = j - self.heights[j]
        if i < first:
            return None
        return int(self.col_ptr[j] + (i - first))

    def get(self, i: int, j: int) -> float:
        offset = self._offset(i, j)
        return 0.0 if offset is None else float(self.values[offset])

    def add(self, i: int, j: int, value: float) -> None:
        """Add value to entry (i, j) (and implicitly to (j, i))."""
        offset = self._offset(i, j)
        if offset is None:
            raise IndexError(f"Entry ({i}, {j}) lies outside the skyline profile")
        self.values[offset] += value
        self.revision += 1

    def mark_modified(self) -> None:
        """Call after writing to `values` directly."""
        self.revision += 1

    def matvec(self, x: np.ndarray) -> np.ndarray:
        """Return A·x using the symmetric profile storage."""
        x = np.asarray(x, dtype=float)
        if x.shape != (self.size,):
            raise DimensionMismatchError(f"Vector of shape {x.shape} does not match size {self.size}")
        y = np.zeros(self.size, dtype=float)
        for j in range(self.size):
            first = j - self.heights[j]
            col = self.values[self.col_ptr[j]:self.col_ptr[j + 1]]
            y[first:j + 1] += col * x[j]
            if self.heights[j]:
                y[j] += col[:-1] @ x[first:j]
        return y

    def to_dense(self) -> np.ndarray:
        a = np.zeros((self.size, self.size), dtype=float)
        for j in range(self.size):
            first = j - self.heights[j]
            col = self.values[self.col_ptr[j]:self.col_ptr[j + 1]]
            a[first:j + 1, j] = col
            a[j, first:j] = col[:-1]
        return a

    @staticmethod
    def linear_combination(
        a: float, A: "SkylineMatrix", b: float, B: "SkylineMatrix"
    ) -> "SkylineMatrix":
        """Return a·A + b·B for two matrices sharing one profile."""
        if not A.same_profile(B):
            raise DimensionMismatchError("Linear combination requires identical skyline profiles")
        result = SkylineMatrix.zeros_like(A)
        result.values[:] = a * A.values + b * B.values
        return result


# =============================================================================
# LDLᵗ kernels (operate on raw profile arrays)
# =============================================================================

def ldlt_factorize(values: np.ndarray, heights: np.ndarray, col_ptr: np.ndarray, threshold: float) -> None:
    """
    Factorize a skyline matrix in place: values <- (L below diag, D on diag).

    Raises:
        SingularMatrixError: if |d_j| <= threshold or d_j is not finite
    """
    n = len(heights)
    for j in range(n):
        h_j = heights[j]
        first_j = j - h_j
        col = values[col_ptr[j]:col_ptr[j + 1]]

        # Reduce off-diagonal entries: g_i = a_ij - Σ l_ki g_k.
        # Row first_j needs nothing (no overlap above it).
        for i in range(first_j + 1, j):
            first_i = i - heights[i]
            m = max(first_i, first_j)
            if m < i:
                col_i = values[col_ptr[i]:col_ptr[i + 1]]
                col[i - first_j] -= col_i[m - first_i:i - first_i] @ col[m - first_j:i - first_j]

        if h_j:
            g = col[:-1].copy()
            pivots = values[col_ptr[first_j + 1:j + 1] - 1]
            l = g / pivots
            col[:-1] = l
            col[-1] -= l @ g

        d = col[-1]
        if not np.isfinite(d) or abs(d) <= threshold:
            raise SingularMatrixError(
                f"Pivot {d:.3e} at column {j} is below tolerance {threshold:.3e}",
                column=j,
            )


def ldlt_solve(values: np.ndarray, heights: np.ndarray, col_ptr: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Forward substitution, diagonal scaling, backward substitution."""
    n = len(heights)
    x = np.array(b, dtype=float, copy=True)
    one_dim = x.ndim == 1
    if one_dim:
        x = x[:, None]

    for j in range(n):
        h_j = heights[j]
        if h_j:
            l = values[col_ptr[j]:col_ptr[j + 1] - 1]
            x[j] -= l @ x[j - h_j:j]

    x /= values[col_ptr[1:] - 1][:, None]

    for j in range(n - 1, 0, -1):
        h_j = heights[j]
        if h_j:
            l = values[col_ptr[j]:col_ptr[j + 1] - 1]
            x[j - h_j:j] -= l[:, None] * x[j]

    return x[:, 0] if one_dim else x


class SkylineSolver:
    """
    Direct solver owning one LDLᵗ factorization of a skyline matrix.

    rebuild() takes a private copy of the matrix values, so the caller's
    matrix is never overwritten; factorize() then works in place on that
    copy. Rebuilding always discards the previous factorization.
    """

    def __init__(self, config: SolverConfig):
        self.config = config
        self._heights: Optional[np.ndarray] = None
        self._col_ptr: Optional[np.ndarray] = None
        self._work: Optional[np.ndarray] = None
        self._scale = 0.0
        self._factorized = False

    @property
    def size(self) -> int:
        return 0 if self._heights is None else len(self._heights)

    @property
    def is_factorized(self) -> bool:
        return self._factorized

    def rebuild(self, matrix: SkylineMatrix) -> None:
        """Load new matrix values; any existing factorization is invalidated."""
        self._heights = matrix.heights.copy()
        self._col_ptr = matrix.col_ptr.copy()
        self._work = matrix.values.copy()
        diag = self._work[self._col_ptr[1:] - 1]
        self._scale = float(np.max(np.abs(diag))) if diag.size else 0.0
        self._factorized = False

    def factorize(self) -> None:
        if self._work is None:
            raise SingularMatrixError("No matrix loaded; call rebuild() first")
        if self.size and self._scale == 0.0:
            raise SingularMatrixError("Matrix diagonal is entirely zero", column=0)

        threshold = self.config.pivot_tolerance * self._scale
        self._factorized = False
        try:
            ldlt_factorize(self._work, self._heights, self._col_ptr, threshold)
        except SingularMatrixError:
            # the working copy is half-factorized now; it is useless until rebuilt
            self._work = None
            raise
        self._factorized = True
        logger.debug("Skyline LDLt factorized: n=%d, stored=%d", self.size, len(self._work))

    def solve(self, rhs: np.ndarray) -> np.ndarray:
        """
        Solve A·x = rhs with the cached factorization.

        rhs may be a vector (n,) or a block of right-hand sides (n, k).
        """
        if not self._factorized:
            raise SingularMatrixError("Matrix is not factorized")
        rhs = np.asarray(rhs, dtype=float)
        if rhs.ndim not in (1, 2) or rhs.shape[0] != self.size:
            raise DimensionMismatchError(
                f"Right-hand side of shape {rhs.shape} does not match system size {self.size}"
            )
        return ldlt_solve(self._work, self._heights, self._col_ptr, rhs)

    def log_determinant(self) -> Tuple[float, float]:
        """(sign, log|det A|) from the pivots, like numpy.linalg.slogdet."""
        if not self._factorized:
            raise SingularMatrixError("Matrix is not factorized")
        d = self._work[self._col_ptr[1:] - 1]
        sign = float(np.prod(np.sign(d)))
        return sign, float(np.sum(np.log(np.abs(d))))


def create_solver(config: Optional[SolverConfig] = None) -> SkylineSolver:
    """Construct a skyline solver from a configuration value."""
    config = DEFAULT_SOLVER_CONFIG if config is None else config
    if not config.pivot_tolerance >= 0.0:
        raise ValueError(f"pivot_tolerance must be non-negative, got {config.pivot_tolerance}")
    return SkylineSolver(config)
