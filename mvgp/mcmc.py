'''
The sampler driver. `Sampler.run` moves one chain through three phases, each
run exactly once and in this order:

* warmup: every Metropolis-Hastings proposal is adapted, and the latent knot
  coefficients and the unobserved covariate values are always updated with
  Metropolis-Hastings.
* adapt: proposals are still adapted, and every block uses its configured
  variant.
* sample: proposals are frozen and every `n_thin`-th state is appended to the
  result sink.

Progress is reported through the logger named by `Config.log_name`.

Examples
--------
>>> import numpy as np
>>> from mvgp import fit
>>> rng = np.random.default_rng(1)
>>> X = rng.uniform(0.0, 10.0, 50)
>>> Y = np.column_stack([np.sin(X), np.cos(X)]) + rng.normal(0.0, 0.1, (50, 2))
>>> params = {'n_adapt': 200, 'n_mcmc': 1000, 'N_obs': 40, 'n_thin': 2,
...           'X_knots': np.linspace(0.0, 10.0, 5)}
>>> out = fit(Y, X, params, rng=rng)
>>> out['phi'].shape
(500,)

'''
import logging

import numpy as np

from mvgp.blocks import build_blocks
from mvgp.config import Config
from mvgp.sinks import ArraySink
from mvgp.state import Model, initial_state

LOGGER = logging.getLogger(__name__)


PHASES = ('warmup', 'adapt', 'sample')


def _never():
    return False


class Sampler(object):
    '''
    One chain of the multivariate predictive-process model.

    Parameters
    ----------
    Y : (N, d) float array
        Observations.

    X : (N,) float array
        Covariate values, the first `config.N_obs` of which are observed. The
        remaining values are only used as starting values when the
        unobserved values are not sampled.

    config : Config

    rng : numpy Generator, optional

    interrupt : callable, optional
        Polled at the start of every iteration. If it returns True the run
        stops and only the records completed so far are kept.

    sink : ResultSink, optional
        Receives the retained records. Defaults to an `ArraySink`.

    Raises
    ------
    ValueError
        If the configuration or the data are invalid. Nothing is sampled in
        that case.

    '''
    def __init__(self, Y, X, config, rng=None, interrupt=None, sink=None):
        Y = np.asarray(Y, dtype=float)
        if Y.ndim != 2:
            raise ValueError('`Y` must be a 2-D array')

        config.validate(N=Y.shape[0])
        if rng is None:
            rng = np.random.default_rng()

        sched = config.schedule
        if sink is None:
            sink = ArraySink(expected=sched.n_mcmc // sched.n_thin)

        if interrupt is None:
            interrupt = _never

        self.config = config
        self.rng = rng
        self.interrupt = interrupt
        self.sink = sink
        self.logger = logging.getLogger(config.log_name)
        self.model = Model(Y, X, config.N_obs, config.X_knots, config.kernel,
                           config.priors)
        self.state = initial_state(self.model, config, rng)
        self.schedule = build_blocks(self.model, config, logger=self.logger)
        self.interrupted = False
        self.finished = False
        # number of completed warmup and adaptation iterations
        self.n_adapted = 0
        # number of completed production iterations
        self.n_sampled = 0

    @property
    def blocks(self):
        '''Every distinct block, in order of first appearance.'''
        out = []
        for phase in PHASES:
            for block in self.schedule[phase]:
                if not any(block is b for b in out):
                    out.append(block)

        return out

    @property
    def n_degenerate(self):
        '''Number of degenerate elliptical slice transitions.'''
        return sum(getattr(b, 'n_degenerate', 0) for b in self.blocks)

    def _iterate(self, phase):
        '''Updates every block once and applies the accepted changes.'''
        adapting = phase != 'sample'
        t = self.n_adapted
        for block in self.schedule[phase]:
            changes = block.update(self.state, self.rng)
            if changes:
                self.state.replace(**changes)

            if adapting:
                block.observe(t, self.state)

        if adapting:
            if (t + 1) % self.config.tuning.batch_size == 0:
                for block in self.schedule[phase]:
                    block.tune(t)

            self.n_adapted += 1

    def _run_phase(self, phase, n):
        chain = self.config.n_chain
        sched = self.config.schedule
        self.logger.info(
            'Starting MCMC %s for chain %d, running for %d iterations'
            % (phase, chain, n)
            )
        if phase == 'sample':
            for block in self.blocks:
                block.reset_acceptance()

        for k in range(n):
            if self.interrupt():
                self.logger.info(
                    'MCMC %s interrupted at iteration %d for chain %d'
                    % (phase, k, chain)
                    )
                self.interrupted = True
                return

            self._iterate(phase)
            if phase == 'sample':
                self.n_sampled += 1
                if (k + 1) % sched.n_thin == 0:
                    self.sink.append(self.state.record(self.model))

            if (k + 1) % sched.message == 0:
                self.logger.info(
                    'MCMC %s iteration %d for chain %d' % (phase, k + 1, chain)
                    )

    def acceptance_rates(self):
        '''
        Returns a dict mapping the name of each Metropolis-Hastings block to
        its acceptance rate over the production iterations completed so far.
        Vector valued blocks report one rate per element.
        '''
        out = {}
        for block in self.schedule['sample']:
            rate = block.acceptance_rate(self.n_sampled)
            if rate is not None:
                out[block.name] = rate

        return out

    def _log_summary(self):
        chain = self.config.n_chain
        for name, rate in self.acceptance_rates().items():
            self.logger.info(
                'Average acceptance rate for %s = %.4f for chain %d'
                % (name, np.mean(rate), chain)
                )

        if self.n_degenerate > 0:
            self.logger.info(
                'Elliptical slice sampling degenerated %d times for chain %d'
                % (self.n_degenerate, chain)
                )

    def run(self):
        '''
        Runs the warmup, adaptation, and production phases.

        Returns
        -------
        ResultSink

        '''
        if self.finished:
            raise RuntimeError('the sampler has already been run')

        self.finished = True
        sched = self.config.schedule
        lengths = {'warmup': sched.n_warmup, 'adapt': sched.n_adapt,
                   'sample': sched.n_mcmc}
        for phase in PHASES:
            self._run_phase(phase, lengths[phase])
            if self.interrupted:
                break

        self._log_summary()
        LOGGER.debug('Finished chain %d after %d production iterations'
                     % (self.config.n_chain, self.n_sampled))
        return self.sink


def fit(Y, X, params, kernel='exponential', pool_s2_tau2=None, n_chain=1,
        log_name='mvgp.mcmc', rng=None, interrupt=None):
    '''
    Fits the model to `Y` and `X` and returns the retained samples.

    Parameters
    ----------
    Y : (N, d) float array

    X : (N,) float array
        Covariate values, the first `params['N_obs']` of which are observed.

    params : dict
        Flat dictionary of named parameters, see `Config.from_params`.

    kernel : str, optional
        'exponential' or 'gaussian'.

    pool_s2_tau2 : bool, optional
        Whether to sample the pooled sill scale. Overrides `params`.

    n_chain : int, optional

    log_name : str, optional

    rng : numpy Generator, optional

    interrupt : callable, optional

    Returns
    -------
    dict
        Maps 'mu', 'eta_star', 'zeta', 'Omega', 'phi', 'sigma2', 'tau2', 'X',
        'R', 'R_tau', and 'xi' to arrays whose first axis indexes the
        retained iterations.

    '''
    config = Config.from_params(params, kernel=kernel,
                                pool_s2_tau2=pool_s2_tau2, n_chain=n_chain,
                                log_name=log_name)
    sampler = Sampler(Y, X, config, rng=rng, interrupt=interrupt)
    return sampler.run().as_arrays()
