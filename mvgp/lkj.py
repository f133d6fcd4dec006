'''
This module maps a vector of partial correlations to a correlation matrix
using the recursive (canonical partial correlation) construction of Lewandowski,
Kurowicka, and Joe [1].

The `B = d(d-1)/2` partial correlations :math:`\\xi` fill the strict upper
triangle of a `d` by `d` matrix row by row. The upper triangular factor `R` is
then built so that each of its columns has unit norm,

.. math::
    R_{0j} = \\xi_{0j}, \\quad
    R_{ij} = \\xi_{ij} \\sqrt{\\prod_{l<i} (1 - \\xi_{lj}^2)}, \\quad
    R_{jj} = \\sqrt{\\prod_{l<j} (1 - \\xi_{lj}^2)},

which makes :math:`\\Omega = R^T R` a positive definite correlation matrix for
any :math:`\\xi \\in (-1, 1)^B`.

The sampler runs its random walk on :math:`\\mathrm{logit}((\\xi + 1)/2)`, so
the Metropolis-Hastings ratio for :math:`\\xi` carries the Jacobian returned by
`logit_log_jacobian`.

References
----------
[1] Lewandowski D., Kurowicka D., and Joe H. (2009). Generating random
correlation matrices based on vines and extended onion method. Journal of
Multivariate Analysis.

'''
import numpy as np
from scipy.special import logit, expit

from mvgp.utils import assert_shape


def n_partials(d):
    '''Number of partial correlations for a `d` dimensional matrix.'''
    return d*(d - 1)//2


def _upper_indices(d):
    # row-major order of the strict upper triangle
    return np.triu_indices(d, k=1)


def lkj_shape(d, eta=1.0):
    '''
    Returns the (B,) beta shape parameters of the partial correlations under
    an LKJ prior with concentration `eta`. Partial correlations on row `i` of
    the upper triangle have shape `eta + (d - 2 - i)/2`.
    '''
    rows, _ = _upper_indices(d)
    return eta + (d - 2.0 - rows)/2.0


def build_correlation_from_partials(xi, d):
    '''
    Builds the upper triangular square root of a correlation matrix from
    partial correlations.

    Parameters
    ----------
    xi : (B,) float array
        Partial correlations, each in (-1, 1).

    d : int
        Dimension of the correlation matrix.

    Returns
    -------
    (d, d) float array
        Upper triangular `R` such that `R^T R` is a correlation matrix.

    float
        Log Jacobian of the map from `xi` to the off-diagonal elements of
        `R^T R`.

    '''
    xi = np.asarray(xi, dtype=float)
    assert_shape(xi, (n_partials(d),), 'xi')
    if np.any(xi <= -1.0) or np.any(xi >= 1.0):
        raise ValueError('partial correlations must be in (-1, 1)')

    rows, cols = _upper_indices(d)
    z = np.zeros((d, d), dtype=float)
    z[rows, cols] = xi
    R = np.zeros((d, d), dtype=float)
    R[0, 0] = 1.0
    for j in range(1, d):
        # `remaining` is the squared norm of column `j` not yet assigned
        remaining = 1.0
        for i in range(j):
            R[i, j] = z[i, j]*np.sqrt(remaining)
            remaining *= 1.0 - z[i, j]**2

        R[j, j] = np.sqrt(remaining)

    log_jacobian = np.sum(0.5*(d - 2.0 - rows)*np.log1p(-xi**2))
    return R, log_jacobian


def correlation_matrix(R):
    '''Returns `R^T R`.'''
    R = np.asarray(R, dtype=float)
    return R.T.dot(R)


def to_unconstrained(xi):
    '''Maps partial correlations to `logit((xi + 1)/2)`.'''
    return logit(0.5*(np.asarray(xi, dtype=float) + 1.0))


def from_unconstrained(u):
    '''Inverse of `to_unconstrained`.'''
    return 2.0*expit(np.asarray(u, dtype=float)) - 1.0


def logit_log_jacobian(xi):
    '''
    Log Jacobian of the map from `logit((xi + 1)/2)` back to `xi`, up to a
    constant.
    '''
    xi_tilde = 0.5*(np.asarray(xi, dtype=float) + 1.0)
    return np.sum(np.log(xi_tilde) + np.log1p(-xi_tilde))
