"""
acsfm/geometry_utils/solvers.py

Minimal-sample essential matrix solvers.

Inputs are normalized homogeneous rays (N,3) = K^-1 [u, v, 1]^T, and every
candidate satisfies x_R^T E x_L = 0. Candidates are projected onto the
essential manifold and have unit Frobenius norm.

A degenerate sample yields an empty list; solvers never raise on bad data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import numpy as np

from .epipolar import project_to_essential

# ----------------------------
# Polynomial algebra in (x, y, z), degree <= 3
# ----------------------------

# The ten cubics come first so that eliminating them leaves the ten
# monomials of degree <= 2 as the basis of the quotient ring.
_MONOMIALS = [
    (3, 0, 0), (2, 1, 0), (1, 2, 0), (0, 3, 0), (2, 0, 1),
    (1, 1, 1), (0, 2, 1), (1, 0, 2), (0, 1, 2), (0, 0, 3),
    (2, 0, 0), (1, 1, 0), (0, 2, 0), (1, 0, 1), (0, 1, 1),
    (0, 0, 2), (1, 0, 0), (0, 1, 0), (0, 0, 1), (0, 0, 0),
]
_MONO_INDEX = {m: k for k, m in enumerate(_MONOMIALS)}
_N_MONO = len(_MONOMIALS)

_X = _MONO_INDEX[(1, 0, 0)]
_Y = _MONO_INDEX[(0, 1, 0)]
_Z = _MONO_INDEX[(0, 0, 1)]
_ONE = _MONO_INDEX[(0, 0, 0)]


def _product_tensor() -> np.ndarray:
    T = np.zeros((_N_MONO, _N_MONO, _N_MONO), dtype=np.float64)
    for i, a in enumerate(_MONOMIALS):
        for j, b in enumerate(_MONOMIALS):
            k = _MONO_INDEX.get((a[0] + b[0], a[1] + b[1], a[2] + b[2]))
            if k is not None:
                T[i, j, k] = 1.0
    return T


# T[i, j, k] = 1 iff monomial_i * monomial_j == monomial_k
_PRODUCT = _product_tensor()


def _mul(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    return np.einsum("...i,...j,ijk->...k", p, q, _PRODUCT)


def _epipolar_rows(xL_n: np.ndarray, xR_n: np.ndarray) -> np.ndarray:
    """Row n is kron(x_R, x_L), so that row . E.ravel() = x_R^T E x_L."""
    return np.einsum("na,nb->nab", xR_n, xL_n).reshape(-1, 9)


def _valid_sample(xL_n: np.ndarray, xR_n: np.ndarray, n_min: int) -> bool:
    xL_n = np.asarray(xL_n)
    xR_n = np.asarray(xR_n)
    if xL_n.shape != xR_n.shape or xL_n.ndim != 2 or xL_n.shape[1] != 3:
        return False
    if xL_n.shape[0] < n_min:
        return False
    return bool(np.isfinite(xL_n).all() and np.isfinite(xR_n).all())


# ----------------------------
# 5-point solver
# ----------------------------

def essential_five_point(xL_n: np.ndarray, xR_n: np.ndarray) -> List[np.ndarray]:
    """
    Calibrated 5-point relative orientation (Stewenius-style Groebner basis).

    E = x E1 + y E2 + z E3 + E4 spans the null space of the 5x9 epipolar
    system. det(E) = 0 and 2 E E^T E - tr(E E^T) E = 0 give ten cubics in
    (x, y, z); eliminating the cubic monomials yields the action matrix of
    multiplication by x whose eigenvectors carry the (up to ten) solutions.

    Returns:
      list of (3,3) essential matrices (possibly empty).
    """
    if not _valid_sample(xL_n, xR_n, 5):
        return []

    A = _epipolar_rows(np.asarray(xL_n, np.float64)[:5], np.asarray(xR_n, np.float64)[:5])
    try:
        _, s, Vt = np.linalg.svd(A, full_matrices=True)
    except np.linalg.LinAlgError:
        return []
    if s[0] <= 0 or s[4] < 1e-10 * s[0]:
        return []  # rank-deficient sample

    basis = Vt[5:9].reshape(4, 3, 3)

    E = np.zeros((3, 3, _N_MONO), dtype=np.float64)
    E[:, :, _X] = basis[0]
    E[:, :, _Y] = basis[1]
    E[:, :, _Z] = basis[2]
    E[:, :, _ONE] = basis[3]

    EEt = np.einsum("rki,ckj,ijm->rcm", E, E, _PRODUCT)
    EEtE = np.einsum("rki,kcj,ijm->rcm", EEt, E, _PRODUCT)
    trace = EEt[0, 0] + EEt[1, 1] + EEt[2, 2]
    trE = np.einsum("i,rcj,ijm->rcm", trace, E, _PRODUCT)
    trace_constraint = (2.0 * EEtE - trE).reshape(9, _N_MONO)

    det = (
        _mul(E[0, 0], _mul(E[1, 1], E[2, 2]) - _mul(E[1, 2], E[2, 1]))
        - _mul(E[0, 1], _mul(E[1, 0], E[2, 2]) - _mul(E[1, 2], E[2, 0]))
        + _mul(E[0, 2], _mul(E[1, 0], E[2, 1]) - _mul(E[1, 1], E[2, 0]))
    )

    M = np.vstack([det[None, :], trace_constraint])  # (10,20)
    if not np.isfinite(M).all():
        return []

    M1 = M[:, :10]
    M2 = M[:, 10:]
    if np.linalg.cond(M1) > 1e14:
        return []
    try:
        B = np.linalg.solve(M1, M2)  # cubic monomials = -B @ basis monomials
    except np.linalg.LinAlgError:
        return []

    # basis order: x^2, xy, y^2, xz, yz, z^2, x, y, z, 1
    action = np.zeros((10, 10), dtype=np.float64)
    action[0:6] = -B[[0, 1, 2, 4, 5, 7]]  # x^3, x^2y, xy^2, x^2z, xyz, xz^2
    action[6, 0] = 1.0  # x * x  = x^2
    action[7, 1] = 1.0  # x * y  = xy
    action[8, 3] = 1.0  # x * z  = xz
    action[9, 6] = 1.0  # x * 1  = x

    try:
        w, V = np.linalg.eig(action)
    except np.linalg.LinAlgError:
        return []

    out: List[np.ndarray] = []
    for k in range(10):
        if abs(w[k].imag) > 1e-10 * max(1.0, abs(w[k].real)):
            continue
        v = V[:, k]
        if abs(v[9]) < 1e-12:
            continue
        v = v / v[9]
        x, y, z = v[6].real, v[7].real, v[8].real

        Ek = x * basis[0] + y * basis[1] + z * basis[2] + basis[3]
        if not np.isfinite(Ek).all() or np.linalg.norm(Ek) < 1e-12:
            continue
        out.append(project_to_essential(Ek))

    return out


# ----------------------------
# 8-point solver
# ----------------------------

def _isotropic_transform(x: np.ndarray) -> Optional[np.ndarray]:
    """Hartley normalization: centroid to origin, mean distance sqrt(2)."""
    xy = x[:, :2] / x[:, 2:3]
    c = xy.mean(axis=0)
    d = np.linalg.norm(xy - c, axis=1).mean()
    if not np.isfinite(d) or d < 1e-12:
        return None
    s = np.sqrt(2.0) / d
    return np.array([[s, 0.0, -s * c[0]],
                     [0.0, s, -s * c[1]],
                     [0.0, 0.0, 1.0]], dtype=np.float64)


def essential_eight_point(xL_n: np.ndarray, xR_n: np.ndarray) -> List[np.ndarray]:
    """
    Normalized linear 8-point algorithm on calibrated rays (N >= 8),
    followed by projection onto the essential manifold.
    """
    if not _valid_sample(xL_n, xR_n, 8):
        return []

    xL_n = np.asarray(xL_n, np.float64)
    xR_n = np.asarray(xR_n, np.float64)

    TL = _isotropic_transform(xL_n)
    TR = _isotropic_transform(xR_n)
    if TL is None or TR is None:
        return []  # coincident points

    A = _epipolar_rows(xL_n @ TL.T, xR_n @ TR.T)
    try:
        _, s, Vt = np.linalg.svd(A, full_matrices=True)
    except np.linalg.LinAlgError:
        return []
    if s[0] <= 0 or s[7] < 1e-10 * s[0]:
        return []

    En = Vt[-1].reshape(3, 3)
    E = TR.T @ En @ TL
    if not np.isfinite(E).all() or np.linalg.norm(E) < 1e-12:
        return []
    return [project_to_essential(E)]


# ----------------------------
# Registry
# ----------------------------

@dataclass(frozen=True)
class MinimalSolver:
    name: str
    solve: Callable[[np.ndarray, np.ndarray], List[np.ndarray]]
    sample_size: int
    max_models: int  # upper bound on candidates per sample (enters the NFA)


SOLVERS: Dict[str, MinimalSolver] = {
    "five_point": MinimalSolver("five_point", essential_five_point, 5, 10),
    "eight_point": MinimalSolver("eight_point", essential_eight_point, 8, 1),
}


def get_solver(name: str) -> MinimalSolver:
    try:
        return SOLVERS[name]
    except KeyError:
        raise ValueError(f"Unknown solver: {name}. Use one of {sorted(SOLVERS)}") from None
