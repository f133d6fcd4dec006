'''
Log densities that appear in the Metropolis-Hastings ratios, and the Gaussian
draws used by the proposals and the Gibbs steps. All functions are pure.
'''
import numpy as np
from scipy.special import gammaln, betaln, xlogy

from mvgp.linalg import PosDefSolver, _solve_triangular

LOG2PI = np.log(2*np.pi)


def log_dmvn_chol(y, mean, chol):
    '''
    Log density of a multivariate normal distribution evaluated with the
    Cholesky factor of its covariance rather than the covariance itself.

    Parameters
    ----------
    y : (n,) float array

    mean : (n,) float array or float

    chol : (n, n) float array
        Lower triangular `L` such that `L L^T` is the covariance.

    Returns
    -------
    float

    '''
    y = np.asarray(y, dtype=float)
    chol = np.asarray(chol, dtype=float)
    n = y.shape[0]
    # whitened residual
    z = _solve_triangular(chol, y - mean)
    out = (-0.5*n*LOG2PI -
           np.sum(np.log(np.diag(chol))) -
           0.5*z.dot(z))
    return out


def log_dnorm(x, mean, sd):
    '''Log density of a normal distribution, summed over `x`.'''
    x = np.asarray(x, dtype=float)
    res = (x - mean)/sd
    out = -0.5*LOG2PI - np.log(sd) - 0.5*res**2
    return np.sum(out)


def log_dgamma(x, shape, rate):
    '''
    Log density of a gamma distribution parameterized by its shape and rate.
    Returns -inf for non-positive `x`.
    '''
    x = np.asarray(x, dtype=float)
    if np.any(x <= 0.0):
        return -np.inf

    out = (shape*np.log(rate) - gammaln(shape) +
           xlogy(shape - 1.0, x) - rate*x)
    return np.sum(out)


def log_dbeta(x, a, b):
    '''
    Log density of a beta distribution. Returns -inf outside of (0, 1).
    '''
    x = np.asarray(x, dtype=float)
    if np.any(x <= 0.0) or np.any(x >= 1.0):
        return -np.inf

    out = xlogy(a - 1.0, x) + xlogy(b - 1.0, 1.0 - x) - betaln(a, b)
    return np.sum(out)


def log_dhalf_cauchy(x, scale):
    '''
    Log density of a half-Cauchy distribution with the given scale. Returns
    -inf for negative `x`.
    '''
    x = np.asarray(x, dtype=float)
    if np.any(x < 0.0):
        return -np.inf

    out = np.log(2.0*scale) - np.log(np.pi*(x**2 + scale**2))
    return np.sum(out)


def rmvn_chol(mean, chol, rng):
    '''
    Draws `mean + L w` where `w` is standard normal and `L` is a lower
    Cholesky factor.
    '''
    chol = np.asarray(chol, dtype=float)
    w = rng.standard_normal(chol.shape[1])
    return mean + chol.dot(w)


def rmvn_canonical(A, b, rng):
    '''
    Draws from a multivariate normal distribution with precision `A` and
    mean `A^-1 b`, without forming `A^-1`.

    Parameters
    ----------
    A : (n, n) float array
        Precision matrix.

    b : (n,) float array

    rng : numpy Generator

    Returns
    -------
    (n,) float array

    '''
    solver = PosDefSolver(A)
    mean = solver.solve(np.asarray(b, dtype=float))
    # if `w` is standard normal then `L^-T w` has covariance `A^-1`
    w = rng.standard_normal(solver.n)
    out = mean + solver.solve_LT(w)
    return out
