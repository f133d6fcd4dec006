'''
Dense positive definite solvers built on the LAPACK routines exposed by
`scipy.linalg.lapack`. Every factorization in the sampler (knot correlation,
tuning covariances, Gibbs precision) goes through this module so that a failed
factorization always surfaces as a `np.linalg.LinAlgError`.
'''
import logging

import numpy as np
from scipy.linalg.lapack import dpotrf, dpotrs, dtrtrs, dpotri

LOGGER = logging.getLogger(__name__)


def _cholesky(A):
    '''
    Computes the lower Cholesky decomposition of `A` using `dpotrf`.
    '''
    if A.shape == (0, 0):
        return np.zeros((0, 0), dtype=float)

    L, info = dpotrf(A, lower=True, clean=True)
    if info < 0:
        raise ValueError('The %s-th argument has an illegal value.' % -info)
    elif info > 0:
        raise np.linalg.LinAlgError(
            'The leading minor of order %s is not positive definite.' % info
            )

    return L


def _solve_cholesky(L, b):
    '''
    Solves `Ax = b` given the lower Cholesky decomposition of `A` using
    `dpotrs`.
    '''
    if any(i == 0 for i in b.shape):
        return np.zeros(b.shape, dtype=float)

    x, info = dpotrs(L, b, lower=True)
    if info < 0:
        raise ValueError('The %s-th argument has an illegal value.' % -info)

    return x


def _solve_triangular(L, b, trans=False):
    '''
    Solves `Lx = b` (or `L^T x = b` if `trans` is True) for a lower
    triangular `L` using `dtrtrs`.
    '''
    if any(i == 0 for i in b.shape):
        return np.zeros(b.shape, dtype=float)

    x, info = dtrtrs(L, b, lower=True, trans=int(trans))
    if info < 0:
        raise ValueError('The %s-th argument had an illegal value.' % -info)
    elif info > 0:
        raise np.linalg.LinAlgError('Singular matrix.')

    return x


def _inverse_cholesky(L):
    '''
    Returns the inverse of `A` given its lower Cholesky decomposition using
    `dpotri`. LAPACK only fills the lower triangle so it is mirrored here.
    '''
    if L.shape == (0, 0):
        return np.zeros((0, 0), dtype=float)

    inv, info = dpotri(L, lower=True)
    if info < 0:
        raise ValueError('The %s-th argument had an illegal value.' % -info)
    elif info > 0:
        raise np.linalg.LinAlgError('Singular matrix.')

    inv = np.tril(inv) + np.tril(inv, -1).T
    return inv


class PosDefSolver:
    '''
    Dense positive definite matrix solver.

    Factors the positive definite matrix `A` as `LL^T = A` and provides
    methods to solve `Ax = b`, solve `Lx = b`, get the log determinant of `A`,
    get `L`, and get the inverse of `A`.

    Parameters
    ----------
    A : (n, n) array
        Positive definite matrix. Only the lower triangle is referenced.

    Raises
    ------
    np.linalg.LinAlgError
        If `A` is not numerically positive definite.

    '''
    def __init__(self, A):
        A = np.asarray(A, dtype=float)
        if (A.ndim != 2) or (A.shape[0] != A.shape[1]):
            raise ValueError('`A` must be a square matrix.')

        self.chol = _cholesky(A)
        self.n = A.shape[0]

    def solve(self, b):
        '''solves `Ax = b` for `x`.'''
        b = np.asarray(b, dtype=float)
        return _solve_cholesky(self.chol, b)

    def solve_L(self, b):
        '''solves `Lx = b` for `x`.'''
        b = np.asarray(b, dtype=float)
        return _solve_triangular(self.chol, b)

    def solve_LT(self, b):
        '''solves `L^T x = b` for `x`.'''
        b = np.asarray(b, dtype=float)
        return _solve_triangular(self.chol, b, trans=True)

    def L(self):
        '''Returns the lower Cholesky factor of `A`.'''
        return self.chol

    def log_det(self):
        '''Returns the log determinant of `A`.'''
        return 2*np.sum(np.log(np.diag(self.chol)))

    def inverse(self):
        '''Returns the inverse of `A`.'''
        return _inverse_cholesky(self.chol)


def cholesky(A):
    '''
    Returns the lower Cholesky factor of `A`. Raises `np.linalg.LinAlgError`
    if `A` is not positive definite.
    '''
    return PosDefSolver(A).L()


def is_positive_definite(A):
    '''
    Tests if `A` is positive definite by testing whether the Cholesky
    decomposition finishes successfully.
    '''
    try:
        PosDefSolver(A)
    except np.linalg.LinAlgError:
        return False

    return True
