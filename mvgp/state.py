'''
The fixed quantities of the model (`Model`) and the mutable state of one
chain (`ChainState`).

`ChainState` holds the current parameter values together with every quantity
derived from them. Updates never modify its arrays in place; they build the
replacement arrays in scratch space and hand them to `ChainState.replace`, so
a rejected proposal leaves the state untouched.
'''
import logging

import numpy as np

from mvgp.density import rmvn_chol
from mvgp.kernel import get_kernel, build_interpolation
from mvgp.lkj import (n_partials, lkj_shape, build_correlation_from_partials,
                      correlation_matrix)
from mvgp.utils import assert_shape, as_vector, as_matrix

LOGGER = logging.getLogger(__name__)


class Model(object):
    '''
    Data and fixed quantities of the model.

    Parameters
    ----------
    Y : (N, d) float array
        Observations.

    X : (N,) float array
        Covariate values. Only the first `N_obs` are used, the rest are
        placeholders for the unobserved values.

    N_obs : int

    X_knots : (K,) float array

    kernel : str or Kernel

    priors : Priors

    Notes
    -----
    The prior of an unobserved covariate value is centered at the mean
    `mu_X`, with standard deviation `s_X`, of the observed values. Both are
    computed once here and never revisited.

    '''
    def __init__(self, Y, X, N_obs, X_knots, kernel, priors):
        Y = np.array(Y, dtype=float)
        assert_shape(Y, (None, None), 'Y')
        N, d = Y.shape
        X = np.array(X, dtype=float)
        assert_shape(X, (N,), 'X')
        X_knots = np.array(X_knots, dtype=float)
        assert_shape(X_knots, (None,), 'X_knots')
        if not (1 < N_obs <= N):
            raise ValueError('`N_obs` must be in [2, %d]' % N)

        if not np.all(np.isfinite(X[:N_obs])):
            raise ValueError('the observed covariate values must be finite')

        self.Y = Y
        self.X_input = X
        self.N = N
        self.d = d
        self.N_obs = int(N_obs)
        self.X_knots = X_knots
        self.K = X_knots.shape[0]
        self.B = n_partials(d)
        self.kernel = get_kernel(kernel)
        self.priors = priors
        self.mu_X = np.mean(X[:N_obs])
        self.s_X = np.std(X[:N_obs], ddof=1)
        self.lkj_shape = lkj_shape(d, priors.eta)
        self.D_knots = self.kernel.distance(X_knots, X_knots)
        # Y is never modified
        self.Y.setflags(write=False)

    @property
    def n_missing(self):
        return self.N - self.N_obs

    @property
    def missing(self):
        '''Row indices of the unobserved covariate values.'''
        return np.arange(self.N_obs, self.N)

    def fit_effect(self, Z, eta_star, R_tau):
        '''The latent effect `Z eta_star R_tau`.'''
        return Z.dot(eta_star).dot(R_tau)

    def log_likelihood(self, mu, zeta, sigma2):
        '''
        Data fit term `-0.5 sum((Y - mu - zeta)^2)/sigma2`, which is the
        Gaussian log likelihood up to terms that only depend on `sigma2`.
        '''
        res = self.Y - mu - zeta
        return -0.5*np.sum(res**2)/sigma2

    def row_log_likelihood(self, i, mu, zeta_row, sigma2):
        '''Gaussian log likelihood of row `i` of `Y`.'''
        res = self.Y[i] - mu - zeta_row
        return (-0.5*self.d*np.log(2*np.pi*sigma2) -
                0.5*np.sum(res**2)/sigma2)


class ChainState(object):
    '''
    Current values of every parameter, latent variable, and derived quantity
    of one chain.

    Attributes
    ----------
    mu : (d,) overall mean
    phi : range
    eta_star : (K, d) latent knot coefficients
    sigma2 : residual variance
    lambda_sigma2 : hyper-scale of `sigma2`
    tau2 : (d,) per-dimension sill
    lambda_tau2 : (d,) hyper-scales of `tau2`
    s2_tau2 : pooled sill scale
    xi : (B,) partial correlations
    X : (N,) covariate values in original units
    R : (d, d) upper triangular square root of the correlation matrix
    R_tau : (d, d) `R diag(sqrt(tau2))`
    log_jacobian : log Jacobian of the correlation construction
    D : (N, K) covariate to knot distances
    C, C_chol, C_inv : (K, K) knot correlation, its factor and inverse
    c : (N, K) covariate to knot correlation
    Z : (N, K) interpolator `c C^-1`
    zeta : (N, d) fitted latent effect `Z eta_star R_tau`

    '''
    FIELDS = ('mu', 'phi', 'eta_star', 'sigma2', 'lambda_sigma2', 'tau2',
              'lambda_tau2', 's2_tau2', 'xi', 'X', 'R', 'R_tau',
              'log_jacobian', 'D', 'C', 'C_chol', 'C_inv', 'c', 'Z', 'zeta')

    def __init__(self, **kwargs):
        missing = set(self.FIELDS).difference(kwargs)
        if missing:
            raise ValueError('missing state fields %s' % sorted(missing))

        self.replace(**kwargs)

    def replace(self, **changes):
        '''
        Replaces the given fields. Callers must pass every field whose value
        depends on a changed field, e.g. a new `eta_star` with its `zeta`.
        '''
        for key, value in changes.items():
            if key not in self.FIELDS:
                raise ValueError("'%s' is not a state field" % key)

            setattr(self, key, value)

    def evolve(self, **changes):
        '''
        Returns a new state with the given fields replaced. Unchanged fields
        share their arrays with this state.
        '''
        out = ChainState(**{k: getattr(self, k) for k in self.FIELDS})
        out.replace(**changes)
        return out

    def copy(self):
        '''Returns a deep copy.'''
        return ChainState(**{k: np.copy(getattr(self, k)) for k in self.FIELDS})

    @property
    def tau(self):
        return np.sqrt(self.tau2)

    @property
    def Omega(self):
        return correlation_matrix(self.R)

    def record(self, model):
        '''
        Returns the named bundle of values that is stored for one retained
        iteration.
        '''
        out = {
            'mu': np.copy(self.mu),
            'eta_star': np.copy(self.eta_star),
            'zeta': np.copy(self.zeta),
            'Omega': self.Omega,
            'phi': float(self.phi),
            'sigma2': float(self.sigma2),
            'tau2': np.copy(self.tau2),
            'X': np.copy(self.X[model.N_obs:]),
            'R': np.copy(self.R),
            'R_tau': np.copy(self.R_tau),
            'xi': np.copy(self.xi)
            }
        return out

    def is_consistent(self, model, rtol=1e-8, atol=1e-10):
        '''
        Tests whether the derived quantities agree with the parameters they
        are computed from.
        '''
        interp = build_interpolation(
            self.X, model.X_knots, self.phi, model.kernel,
            D_knots=model.D_knots
            )
        R, _ = build_correlation_from_partials(self.xi, model.d)
        checks = [
            np.allclose(self.D, interp.D, rtol=rtol, atol=atol),
            np.allclose(self.Z, interp.Z, rtol=rtol, atol=atol),
            np.allclose(self.R, R, rtol=rtol, atol=atol),
            np.allclose(self.R_tau, R*self.tau, rtol=rtol, atol=atol),
            np.allclose(
                self.zeta, model.fit_effect(self.Z, self.eta_star, self.R_tau),
                rtol=rtol, atol=atol
                )
            ]
        return all(checks)


def initial_state(model, config, rng):
    '''
    Builds the starting state of a chain. Values in `config.init` are used
    where given, the rest are drawn from the prior. The unobserved covariate
    values are drawn from their prior when `sample_X` is on and taken from the
    input otherwise.

    Parameters
    ----------
    model : Model

    config : Config

    rng : numpy Generator

    Returns
    -------
    ChainState

    '''
    pri = config.priors
    init = config.init
    d, K, B = model.d, model.K, model.B

    X = np.array(model.X_input)
    if config.switches.sample_X:
        X[model.N_obs:] = model.mu_X + rng.normal(0.0, model.s_X,
                                                  model.n_missing)
    elif not np.all(np.isfinite(X)):
        raise ValueError(
            'the unobserved covariate values must be given when `sample_X` is '
            'off'
            )

    if 'mu' in init:
        mu = as_vector(init['mu'], d, 'mu')
    else:
        mu = rng.standard_normal(d)

    if 'phi' in init:
        phi = float(init['phi'])
    else:
        phi = min(rng.uniform(pri.phi_L, pri.phi_U), 5.0)

    lambda_sigma2 = rng.gamma(0.5, 1.0/pri.s2_sigma2)
    if 'sigma2' in init:
        sigma2 = float(init['sigma2'])
    else:
        sigma2 = min(rng.gamma(0.5, 1.0/lambda_sigma2), 5.0)

    lambda_tau2 = np.clip(rng.gamma(0.5, 1.0/pri.s2_tau2, d), 1.0, 5.0)
    if 'tau2' in init:
        tau2 = as_vector(init['tau2'], d, 'tau2')
    else:
        tau2 = np.clip(rng.gamma(0.5, 1.0/lambda_tau2), 1.0, 5.0)

    interp = build_interpolation(X, model.X_knots, phi, model.kernel,
                                 D_knots=model.D_knots)

    if 'eta_star' in init:
        eta_star = as_matrix(init['eta_star'], (K, d), 'eta_star')
    else:
        eta_star = np.column_stack(
            [rmvn_chol(np.zeros(K), interp.C_chol, rng) for _ in range(d)]
            )

    if 'xi' in init:
        xi = as_vector(init['xi'], B, 'xi')
    else:
        shape = model.lkj_shape
        xi = 2.0*rng.beta(shape, shape) - 1.0

    R, log_jacobian = build_correlation_from_partials(xi, d)
    R_tau = R*np.sqrt(tau2)
    zeta = model.fit_effect(interp.Z, eta_star, R_tau)
    LOGGER.debug('Initialized chain state with phi=%.4g, sigma2=%.4g'
                 % (phi, sigma2))
    out = ChainState(
        mu=mu, phi=phi, eta_star=eta_star, sigma2=sigma2,
        lambda_sigma2=lambda_sigma2, tau2=tau2, lambda_tau2=lambda_tau2,
        s2_tau2=pri.s2_tau2, xi=xi, X=X, R=R, R_tau=R_tau,
        log_jacobian=log_jacobian, D=interp.D, C=interp.C,
        C_chol=interp.C_chol, C_inv=interp.C_inv, c=interp.c, Z=interp.Z,
        zeta=zeta
        )
    return out
