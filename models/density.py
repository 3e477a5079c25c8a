"""
Kernel Density Estimation

Gaussian kernel density estimates with full bandwidth matrices, and the three
bandwidth selection rules used by kernel discriminant analysis:

- plugin: one-stage plug-in estimate of the AMISE-optimal bandwidth
- lscv:   least-squares cross-validation
- scv:    smoothed cross-validation

All rules work in the sphered space of a class (Z = S^-1/2 (X - mean)), pick a
scalar h there and return H = h^2 * S in the original coordinates.
"""

from typing import Callable, Tuple
import numpy as np
from scipy.linalg import solve_triangular
from scipy.optimize import minimize_scalar
from scipy.spatial.distance import pdist
from sklearn.neighbors import KernelDensity

from .errors import DegenerateInputError, InvalidConfigurationError


BANDWIDTH_RULES = ('plugin', 'lscv', 'scv')

# Search range for cross-validation criteria, relative to normal reference
_SEARCH_LOW = 0.1
_SEARCH_HIGH = 3.0
_SEARCH_POINTS = 60


def normal_reference_scale(n: int, d: int) -> float:
    """Normal-reference bandwidth scale for n sphered points in d dimensions."""
    return (4.0 / (n * (d + 2.0))) ** (1.0 / (d + 4.0))


def _pilot_scale(n: int, d: int) -> float:
    """Normal-reference pilot for estimating the curvature functional."""
    return (16.0 * 2.0 ** (d / 2.0) / (n * (d + 4.0))) ** (1.0 / (d + 6.0))


def _gaussian(sq_dist: np.ndarray, variance: float, d: int) -> np.ndarray:
    """Isotropic Gaussian kernel with given variance, evaluated at squared distances."""
    return (2.0 * np.pi * variance) ** (-d / 2.0) * np.exp(-sq_dist / (2.0 * variance))


def _sphere(X: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sphere a class sample.

    Returns:
        Tuple of (sphered points, sample covariance)
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise ValueError(f"Expected a 2-D sample, got shape {X.shape}")

    n, d = X.shape
    if n < d + 1:
        raise DegenerateInputError(
            f"Need at least {d + 1} records to estimate a {d}-D bandwidth matrix, got {n}"
        )

    S = np.atleast_2d(np.cov(X, rowvar=False))
    try:
        L = np.linalg.cholesky(S)
    except np.linalg.LinAlgError as e:
        raise DegenerateInputError(f"Sample covariance is singular: {e}") from e

    Z = solve_triangular(L, (X - X.mean(axis=0)).T, lower=True).T
    return Z, S


def plugin_scale(Z: np.ndarray) -> float:
    """
    Plug-in bandwidth scale for a sphered sample.

    Estimates psi = integral of (Laplacian f)^2 with a pilot Gaussian kernel,
    then plugs it into the AMISE-optimal scale
    h = [d (4 pi)^(-d/2) / (n psi)]^(1/(d+4)).
    """
    n, d = Z.shape
    g2 = _pilot_scale(n, d) ** 2
    sq = pdist(Z, 'sqeuclidean')

    def bilaplacian(r2):
        return _gaussian(r2, g2, d) * (
            r2 ** 2 / g2 ** 4 - 2.0 * (d + 2) * r2 / g2 ** 3 + d * (d + 2.0) / g2 ** 2
        )

    psi = (n * bilaplacian(0.0) + 2.0 * bilaplacian(sq).sum()) / n ** 2
    if not np.isfinite(psi) or psi <= 0:
        return normal_reference_scale(n, d)

    return float((d * (4.0 * np.pi) ** (-d / 2.0) / (n * psi)) ** (1.0 / (d + 4.0)))


def lscv_criterion(Z: np.ndarray) -> Callable[[float], float]:
    """Least-squares cross-validation criterion as a function of h."""
    n, d = Z.shape
    sq = pdist(Z, 'sqeuclidean')

    def criterion(h: float) -> float:
        h2 = h * h
        integral = (n * _gaussian(0.0, 2 * h2, d) + 2.0 * _gaussian(sq, 2 * h2, d).sum()) / n ** 2
        loo = 2.0 * _gaussian(sq, h2, d).sum() / (n * (n - 1))
        return float(integral - 2.0 * loo)

    return criterion


def scv_criterion(Z: np.ndarray) -> Callable[[float], float]:
    """Smoothed cross-validation criterion as a function of h."""
    n, d = Z.shape
    g2 = _pilot_scale(n, d) ** 2
    sq = pdist(Z, 'sqeuclidean')
    pilot_term = _gaussian(sq, 2 * g2, d)

    def criterion(h: float) -> float:
        h2 = h * h
        variance_term = (4.0 * np.pi) ** (-d / 2.0) * h ** (-d) / n
        bias = _gaussian(sq, 2 * h2 + 2 * g2, d) - 2.0 * _gaussian(sq, h2 + 2 * g2, d) + pilot_term
        return float(variance_term + 2.0 * bias.sum() / (n * (n - 1)))

    return criterion


def minimize_scale(criterion: Callable[[float], float], reference: float) -> float:
    """
    Minimise a bandwidth criterion over a log-spaced range around `reference`.

    A coarse grid locates the basin, a bounded scalar search refines it.
    """
    grid = np.geomspace(_SEARCH_LOW * reference, _SEARCH_HIGH * reference, _SEARCH_POINTS)
    values = np.array([criterion(h) for h in grid])
    best = int(np.argmin(values))

    lo = grid[max(best - 1, 0)]
    hi = grid[min(best + 1, len(grid) - 1)]
    result = minimize_scalar(
        lambda t: criterion(np.exp(t)),
        bounds=(np.log(lo), np.log(hi)),
        method='bounded'
    )

    if result.success and result.fun <= values[best]:
        return float(np.exp(result.x))
    return float(grid[best])


def select_bandwidth(X: np.ndarray, rule: str) -> np.ndarray:
    """
    Select a full bandwidth matrix for one class sample.

    Args:
        X: Class sample, shape (n_records, n_features)
        rule: One of BANDWIDTH_RULES

    Returns:
        Bandwidth matrix H, shape (n_features, n_features)
    """
    if rule not in BANDWIDTH_RULES:
        raise InvalidConfigurationError(
            f"Unknown bandwidth rule '{rule}'. Choose from {BANDWIDTH_RULES}"
        )

    Z, S = _sphere(X)
    n, d = Z.shape
    reference = normal_reference_scale(n, d)

    if rule == 'plugin':
        h = plugin_scale(Z)
    elif rule == 'lscv':
        h = minimize_scale(lscv_criterion(Z), reference)
    else:
        h = minimize_scale(scv_criterion(Z), reference)

    return h ** 2 * S


def log_density(points: np.ndarray, data: np.ndarray, H: np.ndarray) -> np.ndarray:
    """
    Log of the Gaussian kernel density estimate at each point.

    Args:
        points: Evaluation points, shape (m, d)
        data: Sample the estimate is built from, shape (n, d)
        H: Bandwidth matrix, shape (d, d)

    Returns:
        Log density per point, shape (m,)
    """
    points = np.atleast_2d(np.asarray(points, dtype=float))
    data = np.atleast_2d(np.asarray(data, dtype=float))

    try:
        L = np.linalg.cholesky(H)
    except np.linalg.LinAlgError as e:
        raise DegenerateInputError(f"Bandwidth matrix is not positive definite: {e}") from e

    # Whitened by L^-1 the kernel is a unit Gaussian; |H|^-1/2 = 1 / prod(diag L)
    zp = solve_triangular(L, points.T, lower=True).T
    zd = solve_triangular(L, data.T, lower=True).T
    kde = KernelDensity(kernel='gaussian', bandwidth=1.0).fit(zd)
    return kde.score_samples(zp) - np.log(np.diag(L)).sum()
