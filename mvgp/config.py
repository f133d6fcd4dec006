'''
Configuration of a sampler run. The configuration is read once when a
`Sampler` is built and is never modified by the sampler.

A configuration can be created from the dataclasses directly or from the flat
dictionary of named parameters with `Config.from_params`, where every key that
is not given falls back to the defaults below.
'''
from dataclasses import dataclass, field, fields
from typing import Any

import numpy as np

from mvgp.kernel import get_kernel


@dataclass
class Schedule:
    '''Iteration counts of the three phases and the recording cadence.'''
    n_adapt: int
    n_mcmc: int
    n_warmup: int = 500
    n_thin: int = 1
    # progress message every `message` iterations
    message: int = 5000


@dataclass
class Priors:
    '''Prior hyperparameters.'''
    # normal prior on the overall mean
    mu_mu: float = 0.0
    s2_mu: float = 100.0
    # uniform prior on the range
    phi_L: float = 0.0001
    phi_U: float = 1000.0
    # half-Cauchy scale of the residual variance
    s2_sigma2: float = 5.0
    # upper bound of the uniform prior on the pooled sill scale
    A_s2: float = 25.0
    # half-Cauchy scale of the per-dimension sill, starting value when pooled
    s2_tau2: float = 1.0
    # LKJ concentration
    eta: float = 1.0


@dataclass
class Tuning:
    '''Initial proposal scales and adaptation settings.'''
    phi_tune: float = 0.25
    sigma2_tune: float = 0.25
    lambda_mu_tune: float = 1.0/3.0**0.8
    lambda_eta_star_tune: float = 0.25
    lambda_tau2_tune: float = 0.25
    lambda_xi_tune: float = 1.0/3.0**0.8
    X_tune: float = 2.5
    s2_tau2_tune: float = 1.0
    batch_size: int = 50
    ess_max_shrink: int = 1000
    ess_min_width: float = 1e-12


@dataclass
class Switches:
    '''
    Turns the samplers of each block on or off and selects their variants.
    A block that is turned off keeps its initial value.
    '''
    sample_mu: bool = True
    sample_mu_mh: bool = False
    sample_phi: bool = True
    sample_eta_star: bool = True
    sample_eta_star_mh: bool = False
    sample_sigma2: bool = True
    sample_tau2: bool = True
    pool_s2_tau2: bool = True
    sample_xi: bool = True
    sample_X: bool = True
    sample_X_mh: bool = False


# optional starting values that may be given through `init`
INIT_KEYS = ('mu', 'phi', 'sigma2', 'tau2', 'eta_star', 'xi')


@dataclass
class Config:
    '''
    Complete configuration of a sampler run.

    Parameters
    ----------
    N_obs : int
        Number of leading covariate values that are observed.

    X_knots : (K,) float array
        Knot locations of the predictive process.

    schedule : Schedule

    kernel : str
        Either 'exponential' or 'gaussian'.

    priors : Priors, optional

    tuning : Tuning, optional

    switches : Switches, optional

    init : dict, optional
        Starting values for any of 'mu', 'phi', 'sigma2', 'tau2', 'eta_star',
        and 'xi'. Values that are not given are drawn from the prior.

    n_chain : int, optional
        Chain identifier used in progress messages.

    log_name : str, optional
        Name of the logger that receives progress messages.

    '''
    N_obs: int
    X_knots: Any
    schedule: Schedule
    kernel: str = 'exponential'
    priors: Priors = field(default_factory=Priors)
    tuning: Tuning = field(default_factory=Tuning)
    switches: Switches = field(default_factory=Switches)
    init: dict = field(default_factory=dict)
    n_chain: int = 1
    log_name: str = 'mvgp.mcmc'

    def validate(self, N=None):
        '''
        Raises a ValueError if the configuration is inconsistent. If `N`, the
        number of observations, is given then `N_obs` is checked against it.
        '''
        get_kernel(self.kernel)
        knots = np.asarray(self.X_knots, dtype=float)
        if (knots.ndim != 1) or (knots.shape[0] == 0):
            raise ValueError('`X_knots` must be a non-empty 1-D array')

        if len(np.unique(knots)) != knots.shape[0]:
            raise ValueError('`X_knots` must be distinct')

        if self.N_obs < 2:
            raise ValueError('at least two covariate values must be observed')

        if (N is not None) and (self.N_obs > N):
            raise ValueError(
                '`N_obs` (%d) exceeds the number of observations (%d)'
                % (self.N_obs, N)
                )

        sched = self.schedule
        for name in ('n_warmup', 'n_adapt', 'n_mcmc'):
            if getattr(sched, name) < 0:
                raise ValueError('`%s` must be non-negative' % name)

        if sched.n_thin < 1:
            raise ValueError('`n_thin` must be positive')

        if sched.message < 1:
            raise ValueError('`message` must be positive')

        pri = self.priors
        if not (0.0 <= pri.phi_L < pri.phi_U):
            raise ValueError('the range bounds must satisfy 0 <= phi_L < phi_U')

        for name in ('s2_mu', 's2_sigma2', 'A_s2', 's2_tau2', 'eta'):
            if getattr(pri, name) <= 0.0:
                raise ValueError('`%s` must be positive' % name)

        if self.tuning.batch_size < 2:
            raise ValueError('`batch_size` must be at least 2')

        if self.tuning.ess_max_shrink < 1:
            raise ValueError('`ess_max_shrink` must be positive')

        unknown = set(self.init).difference(INIT_KEYS)
        if unknown:
            raise ValueError(
                'unknown starting values %s, expected a subset of %s'
                % (sorted(unknown), INIT_KEYS)
                )

        if 'phi' in self.init:
            if not (pri.phi_L < self.init['phi'] < pri.phi_U):
                raise ValueError('the starting `phi` is outside its bounds')

        for name in ('sigma2', 'tau2'):
            if name in self.init:
                value = np.asarray(self.init[name], dtype=float)
                if not np.all(value > 0.0) or not np.all(np.isfinite(value)):
                    raise ValueError(
                        'the starting `%s` must be positive and finite' % name
                        )

        if 'xi' in self.init:
            xi = np.asarray(self.init['xi'], dtype=float)
            if not (np.all(xi > -1.0) and np.all(xi < 1.0)):
                raise ValueError('the starting `xi` must be in (-1, 1)')

        for name in ('mu', 'eta_star'):
            if name in self.init:
                if not np.all(np.isfinite(np.asarray(self.init[name],
                                                     dtype=float))):
                    raise ValueError('the starting `%s` must be finite' % name)

    @classmethod
    def from_params(cls, params, kernel='exponential', pool_s2_tau2=None,
                    n_chain=1, log_name='mvgp.mcmc'):
        '''
        Creates a `Config` from a flat dictionary of named parameters.
        `params` must contain 'n_adapt', 'n_mcmc', 'N_obs', 'n_thin', and
        'X_knots'. Any field of `Schedule`, `Priors`, `Tuning`, or `Switches`
        and any starting value in `INIT_KEYS` may also be given. Unknown keys
        raise a ValueError.
        '''
        params = dict(params)
        for key in ('n_adapt', 'n_mcmc', 'N_obs', 'n_thin', 'X_knots'):
            if key not in params:
                raise ValueError("`params` is missing '%s'" % key)

        groups = {}
        for name, group in (('schedule', Schedule), ('priors', Priors),
                            ('tuning', Tuning), ('switches', Switches)):
            names = {f.name for f in fields(group)}
            groups[name] = group(
                **{k: params.pop(k) for k in list(params) if k in names}
                )

        init = {k: params.pop(k) for k in list(params) if k in INIT_KEYS}
        N_obs = params.pop('N_obs')
        X_knots = params.pop('X_knots')
        if params:
            raise ValueError('unknown parameters %s' % sorted(params))

        if pool_s2_tau2 is not None:
            groups['switches'].pool_s2_tau2 = pool_s2_tau2

        out = cls(N_obs=int(N_obs), X_knots=np.asarray(X_knots, dtype=float),
                  kernel=kernel, init=init, n_chain=n_chain,
                  log_name=log_name, **groups)
        return out
