'''
This module builds the distance and correlation matrices used by the
predictive process. Correlation functions are stored symbolically as `Kernel`
instances and converted to numerical functions when first evaluated. Two
kernels are predefined:

==============  ========================  ==============================
Name            Correlation               Reported distance :math:`D`
==============  ========================  ==============================
exponential     :math:`\\exp(-r/\\phi)`     :math:`r`
gaussian        :math:`\\exp(-r^2/\\phi)`   :math:`r^2`
==============  ========================  ==============================

Here :math:`r` is the Euclidean distance between two covariate values and
:math:`\\phi` is the range parameter. A `Kernel` evaluates its expression from
the cached distances `D` through `r = D^{1/p}`, where `p` is its power, so the
sampler rebuilds correlations for a new range without recomputing distances.
The knot and cross correlations, including the single-row rebuild, all come
from this expression.

The predictive process represents the latent surface by its values at `K`
knots. Given covariate values `x` (N,) and knots (K,), the knot correlation
`C` (K, K), the cross correlation `c` (N, K), and the interpolator
`Z = c C^-1` are collected in an `Interpolation`.

'''
import logging
from collections import namedtuple

import numpy as np
import sympy
from sympy import lambdify

from mvgp.linalg import PosDefSolver
from mvgp.utils import assert_shape

LOGGER = logging.getLogger(__name__)


R, PHI = sympy.symbols('r, phi')


class Kernel(object):
    '''
    Stores a symbolic expression of a correlation function and evaluates it
    numerically when called.

    Parameters
    ----------
    expr : sympy expression
        Correlation as a function of the symbolic distance `r` and range
        `phi`. These symbols are available as the module level attributes `R`
        and `PHI`.

    power : int
        Power applied to `r` to get the reported distance `D`.

    name : str, optional

    '''
    def __init__(self, expr, power, name=None):
        if not issubclass(type(expr), sympy.Expr):
            raise ValueError('`expr` must be a sympy expression.')

        other_symbols = expr.free_symbols.difference({R, PHI})
        if len(other_symbols) != 0:
            raise ValueError(
                '`expr` cannot contain any symbols other than `r` and `phi`.'
                )

        if not expr.has(R):
            raise ValueError('`expr` must contain the symbol `r`.')

        self._expr = expr
        self._power = int(power)
        self._name = name
        self._func = None

    @property
    def expr(self):
        return self._expr

    @property
    def power(self):
        return self._power

    @property
    def name(self):
        return self._name

    def _numeric(self):
        if self._func is None:
            LOGGER.debug('Creating a numerical function for %s ...' % self)
            self._func = lambdify((R, PHI), self._expr, modules=['numpy'])

        return self._func

    def distance(self, xa, xb):
        '''
        Returns the (N, M) matrix of reported distances between the values in
        `xa` (N,) and `xb` (M,).
        '''
        xa = np.asarray(xa, dtype=float)
        xb = np.asarray(xb, dtype=float)
        r = np.abs(xa[:, None] - xb[None, :])
        if self._power == 1:
            return r

        return r**self._power

    def from_distance(self, D, phi):
        '''
        Evaluates the correlation for the reported distances `D`, which are
        mapped back to `r = D**(1/power)`. Returns an array with the shape of
        `D`.
        '''
        D = np.asarray(D, dtype=float)
        if self._power == 1:
            r = D
        else:
            r = D**(1.0/self._power)

        out = self._numeric()(r, phi)
        return np.broadcast_to(out, D.shape).astype(float)

    def __call__(self, xa, xb, phi):
        '''
        Evaluates the correlation between the values in `xa` (N,) and `xb`
        (M,) for the range `phi`. Returns an (N, M) array.
        '''
        return self.from_distance(self.distance(xa, xb), phi)

    def __repr__(self):
        return '<%s: %s>' % (type(self).__name__, str(self._expr))

    def __getstate__(self):
        # lambdified functions are not picklable
        state = dict(self.__dict__)
        state['_func'] = None
        return state


exponential = Kernel(sympy.exp(-R/PHI), power=1, name='exponential')

gaussian = Kernel(sympy.exp(-R**2/PHI), power=2, name='gaussian')

_PREDEFINED = {'exponential': exponential, 'gaussian': gaussian}


def get_kernel(value):
    '''
    Returns the `Kernel` corresponding to `value`. If `value` is a string,
    then this returns the correspondingly named predefined kernel. If `value`
    is a `Kernel` instance then this returns `value`.
    '''
    if isinstance(value, Kernel):
        return value

    elif value in _PREDEFINED:
        return _PREDEFINED[value]

    else:
        raise ValueError(
            "the only valid correlation functions are %s, got '%s'"
            % (sorted(_PREDEFINED.keys()), value)
            )


def distance(xa, xb, kernel):
    '''
    Pairwise distance matrix between `xa` and `xb`, squared for the gaussian
    kernel.
    '''
    return get_kernel(kernel).distance(xa, xb)


def correlation_from_distance(D, phi, kernel='exponential'):
    '''
    Correlation for the cached distances `D` of `kernel`. Every correlation
    the sampler uses is built here.
    '''
    return get_kernel(kernel).from_distance(D, phi)


def build_correlation(xa, xb, phi, kernel):
    '''
    Builds the distance and correlation matrices between two sets of
    covariate values.

    Parameters
    ----------
    xa : (N,) float array

    xb : (M,) float array

    phi : float
        Range parameter.

    kernel : str or Kernel
        Either 'exponential' or 'gaussian'.

    Returns
    -------
    (N, M) float array
        Distances.

    (N, M) float array
        Correlations.

    '''
    kernel = get_kernel(kernel)
    xa = np.asarray(xa, dtype=float)
    assert_shape(xa, (None,), 'xa')
    xb = np.asarray(xb, dtype=float)
    assert_shape(xb, (None,), 'xb')
    D = kernel.distance(xa, xb)
    corr = correlation_from_distance(D, phi, kernel)
    return D, corr


Interpolation = namedtuple(
    'Interpolation', ['D', 'D_knots', 'C', 'C_chol', 'C_inv', 'c', 'Z']
    )


def build_interpolation(x, knots, phi, kernel, D=None, D_knots=None):
    '''
    Builds the predictive process interpolation for covariate values `x` and
    `knots`.

    Parameters
    ----------
    x : (N,) float array

    knots : (K,) float array

    phi : float
        Range parameter.

    kernel : str or Kernel

    D : (N, K) float array, optional
        Cached distances between `x` and `knots`.

    D_knots : (K, K) float array, optional
        Cached distances between the knots.

    Returns
    -------
    Interpolation

    Raises
    ------
    np.linalg.LinAlgError
        If the knot correlation matrix is not numerically positive definite.

    '''
    kernel = get_kernel(kernel)
    if D is None:
        D = kernel.distance(x, knots)

    if D_knots is None:
        D_knots = kernel.distance(knots, knots)

    C = correlation_from_distance(D_knots, phi, kernel)
    solver = PosDefSolver(C)
    C_chol = solver.L()
    C_inv = solver.inverse()
    c = correlation_from_distance(D, phi, kernel)
    Z = c.dot(C_inv)
    return Interpolation(D, D_knots, C, C_chol, C_inv, c, Z)


def interpolation_row(x, knots, phi, kernel, C_inv):
    '''
    Rebuilds the distance, correlation, and interpolation rows for a single
    covariate value `x` against all knots.

    Returns
    -------
    (K,) float array
        Distances.

    (K,) float array
        Correlations.

    (K,) float array
        Interpolation weights.

    '''
    kernel = get_kernel(kernel)
    D_row = kernel.distance(np.atleast_1d(x), knots)[0]
    c_row = correlation_from_distance(D_row, phi, kernel)
    Z_row = c_row.dot(C_inv)
    return D_row, c_row, Z_row
