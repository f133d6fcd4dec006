'''
Update rules for each block of the chain state. Every block is one class from
a closed set of variants, and the variant is chosen once when the sampler is
built (see `build_blocks`).

Each block exposes

* `update(state, rng)`: returns a dict of the state fields to replace. An
  empty dict means the state is unchanged. Proposals are computed into new
  arrays, so nothing in `state` is modified by a block.
* `observe(t, state)`: stores the state of adaptation iteration `t` in the
  tuning batch. Only called during warmup and adaptation.
* `tune(t)`: adapts the proposal at the end of a batch. Only called during
  warmup and adaptation.
* `acceptance_rate(n)`: cumulative acceptance rate of a Metropolis-Hastings
  block, or None for Gibbs and slice blocks.

A Metropolis-Hastings proposal outside the support of its parameter, or one
whose knot correlation matrix cannot be factored, is rejected.
'''
import logging

import numpy as np

from mvgp.density import (log_dmvn_chol, log_dnorm, log_dgamma, log_dbeta,
                          log_dhalf_cauchy, rmvn_canonical)
from mvgp.ess import ess_eta_star, ess_covariate
from mvgp.kernel import build_interpolation, interpolation_row
from mvgp.lkj import (build_correlation_from_partials, to_unconstrained,
                      from_unconstrained, logit_log_jacobian)
from mvgp.tuning import (ScalarTuner, VectorTuner, CovarianceTuner,
                         CovarianceTunerSet)

LOGGER = logging.getLogger(__name__)


def metropolis_accept(log_ratio, rng):
    '''
    Accepts a proposal with probability `min(1, exp(log_ratio))`. A nan ratio
    is a rejection.
    '''
    return bool(np.log(rng.uniform()) < log_ratio)


class Block(object):
    '''
    Base class for the update rule of one block.

    Parameters
    ----------
    model : Model

    config : Config

    logger : logging.Logger, optional
        Receives diagnostics that belong in the progress log.

    '''
    name = None

    def __init__(self, model, config, logger=None):
        self.model = model
        self.config = config
        self.logger = LOGGER if logger is None else logger
        self.tuner = None

    def update(self, state, rng):
        raise NotImplementedError

    def observe(self, t, state):
        pass

    def tune(self, t):
        if self.tuner is not None:
            self.tuner.update(t)

    def reset_acceptance(self):
        if self.tuner is not None:
            self.tuner.reset_acceptance()

    def acceptance_rate(self, n):
        if self.tuner is None:
            return None

        return self.tuner.acceptance_rate(n)

    def __repr__(self):
        return '<%s>' % type(self).__name__


## overall mean
###############################################################################
class MuGibbs(Block):
    '''
    Draws the overall mean from its normal full conditional.
    '''
    name = 'mu'

    def update(self, state, rng):
        model = self.model
        pri = self.config.priors
        d = model.d
        A = (model.N/state.sigma2 + 1.0/pri.s2_mu)*np.eye(d)
        b = (np.sum(model.Y - state.zeta, axis=0)/state.sigma2 +
             pri.mu_mu/pri.s2_mu)
        return {'mu': rmvn_canonical(A, b, rng)}


class MuMetropolis(Block):
    '''
    Random-walk Metropolis-Hastings update of the overall mean with an
    adapted proposal covariance.
    '''
    name = 'mu'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.tuner = CovarianceTuner(
            config.tuning.lambda_mu_tune, model.d,
            batch_size=config.tuning.batch_size
            )

    def _log_post(self, mu, state):
        pri = self.config.priors
        out = (self.model.log_likelihood(mu, state.zeta, state.sigma2) +
               log_dnorm(mu, pri.mu_mu, np.sqrt(pri.s2_mu)))
        return out

    def update(self, state, rng):
        mu_star = self.tuner.propose(state.mu, rng)
        log_ratio = self._log_post(mu_star, state) - self._log_post(state.mu,
                                                                   state)
        accepted = metropolis_accept(log_ratio, rng)
        self.tuner.record(accepted)
        if accepted:
            return {'mu': mu_star}

        return {}

    def observe(self, t, state):
        self.tuner.store(t, state.mu)


## range
###############################################################################
class PhiMetropolis(Block):
    '''
    Random-walk Metropolis-Hastings update of the range under a uniform
    prior on `(phi_L, phi_U)`. An accepted range replaces every correlation
    and interpolation matrix along with the latent effect.
    '''
    name = 'phi'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.tuner = ScalarTuner(config.tuning.phi_tune,
                                 batch_size=config.tuning.batch_size)

    def update(self, state, rng):
        model = self.model
        pri = self.config.priors
        phi_star = state.phi + rng.normal(0.0, self.tuner.tune)
        if not (pri.phi_L < phi_star < pri.phi_U):
            self.tuner.record(False)
            return {}

        try:
            interp = build_interpolation(
                state.X, model.X_knots, phi_star, model.kernel, D=state.D,
                D_knots=model.D_knots
                )
        except np.linalg.LinAlgError:
            LOGGER.debug('Rejected phi=%s, the knot correlation is singular',
                         phi_star)
            self.tuner.record(False)
            return {}

        zeta_star = model.fit_effect(interp.Z, state.eta_star, state.R_tau)
        zero = np.zeros(model.K)
        mh1 = model.log_likelihood(state.mu, zeta_star, state.sigma2)
        mh2 = model.log_likelihood(state.mu, state.zeta, state.sigma2)
        for j in range(model.d):
            mh1 += log_dmvn_chol(state.eta_star[:, j], zero, interp.C_chol)
            mh2 += log_dmvn_chol(state.eta_star[:, j], zero, state.C_chol)

        accepted = metropolis_accept(mh1 - mh2, rng)
        self.tuner.record(accepted)
        if accepted:
            return {'phi': phi_star, 'C': interp.C, 'C_chol': interp.C_chol,
                    'C_inv': interp.C_inv, 'c': interp.c, 'Z': interp.Z,
                    'zeta': zeta_star}

        return {}


## latent knot coefficients
###############################################################################
class EtaStarMetropolis(Block):
    '''
    Column by column random-walk Metropolis-Hastings update of the latent
    knot coefficients, with one adapted proposal covariance per column.
    '''
    name = 'eta_star'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.tuner = CovarianceTunerSet(
            config.tuning.lambda_eta_star_tune, model.K, model.d,
            batch_size=config.tuning.batch_size
            )

    def update(self, state, rng):
        model = self.model
        zero = np.zeros(model.K)
        eta_star = state.eta_star
        zeta = state.zeta
        changed = False
        for j in range(model.d):
            column = self.tuner[j].propose(eta_star[:, j], rng)
            eta_star_star = np.array(eta_star)
            eta_star_star[:, j] = column
            zeta_star = model.fit_effect(state.Z, eta_star_star, state.R_tau)
            mh1 = (log_dmvn_chol(column, zero, state.C_chol) +
                   model.log_likelihood(state.mu, zeta_star, state.sigma2))
            mh2 = (log_dmvn_chol(eta_star[:, j], zero, state.C_chol) +
                   model.log_likelihood(state.mu, zeta, state.sigma2))
            accepted = metropolis_accept(mh1 - mh2, rng)
            self.tuner[j].record(accepted)
            if accepted:
                eta_star = eta_star_star
                zeta = zeta_star
                changed = True

        if changed:
            return {'eta_star': eta_star, 'zeta': zeta}

        return {}

    def observe(self, t, state):
        self.tuner.store(t, state.eta_star)


class EtaStarSlice(Block):
    '''
    Column by column elliptical slice update of the latent knot coefficients.
    '''
    name = 'eta_star'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.n_degenerate = 0

    def update(self, state, rng):
        tuning = self.config.tuning
        current = state
        for j in range(self.model.d):
            result = ess_eta_star(
                current, self.model, j, rng, max_shrink=tuning.ess_max_shrink,
                min_width=tuning.ess_min_width
                )
            if result.accepted:
                current = current.evolve(eta_star=result.value,
                                         zeta=result.aux)
            else:
                self.n_degenerate += 1
                self.logger.warning(
                    'ESS for eta_star shrunk to the current position and is '
                    'still not acceptable on chain %d' % self.config.n_chain
                    )

        if current is state:
            return {}

        return {'eta_star': current.eta_star, 'zeta': current.zeta}


## residual variance and its hyper-scale
###############################################################################
class Sigma2Metropolis(Block):
    '''
    Random-walk Metropolis-Hastings update of the residual variance, whose
    prior is `Gamma(0.5, rate=lambda_sigma2)`.
    '''
    name = 'sigma2'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.tuner = ScalarTuner(config.tuning.sigma2_tune,
                                 batch_size=config.tuning.batch_size)

    def update(self, state, rng):
        model = self.model
        sigma2_star = state.sigma2 + rng.normal(0.0, self.tuner.tune)
        if not sigma2_star > 0.0:
            self.tuner.record(False)
            return {}

        n = model.N*model.d
        mh1 = (log_dgamma(sigma2_star, 0.5, state.lambda_sigma2) -
               0.5*n*np.log(sigma2_star) +
               model.log_likelihood(state.mu, state.zeta, sigma2_star))
        mh2 = (log_dgamma(state.sigma2, 0.5, state.lambda_sigma2) -
               0.5*n*np.log(state.sigma2) +
               model.log_likelihood(state.mu, state.zeta, state.sigma2))
        accepted = metropolis_accept(mh1 - mh2, rng)
        self.tuner.record(accepted)
        if accepted:
            return {'sigma2': sigma2_star}

        return {}


class LambdaSigma2Gibbs(Block):
    '''Draws the hyper-scale of the residual variance.'''
    name = 'lambda_sigma2'

    def update(self, state, rng):
        rate = self.config.priors.s2_sigma2 + state.sigma2
        return {'lambda_sigma2': rng.gamma(1.0, 1.0/rate)}


## per-dimension sill and its hyper-scales
###############################################################################
class Tau2Metropolis(Block):
    '''
    Random-walk Metropolis-Hastings update of the per-dimension sill on the
    log scale, under independent half-Cauchy priors with scale `s2_tau2`.
    '''
    name = 'tau2'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.tuner = CovarianceTuner(
            config.tuning.lambda_tau2_tune, model.d,
            batch_size=config.tuning.batch_size
            )

    def update(self, state, rng):
        model = self.model
        log_tau2_star = self.tuner.propose(np.log(state.tau2), rng)
        tau2_star = np.exp(log_tau2_star)
        if not (np.all(tau2_star > 0.0) and np.all(np.isfinite(tau2_star))):
            self.tuner.record(False)
            return {}

        R_tau_star = state.R*np.sqrt(tau2_star)
        zeta_star = model.fit_effect(state.Z, state.eta_star, R_tau_star)
        mh1 = (model.log_likelihood(state.mu, zeta_star, state.sigma2) +
               np.sum(log_tau2_star) +
               log_dhalf_cauchy(tau2_star, state.s2_tau2))
        mh2 = (model.log_likelihood(state.mu, state.zeta, state.sigma2) +
               np.sum(np.log(state.tau2)) +
               log_dhalf_cauchy(state.tau2, state.s2_tau2))
        accepted = metropolis_accept(mh1 - mh2, rng)
        self.tuner.record(accepted)
        if accepted:
            return {'tau2': tau2_star, 'R_tau': R_tau_star, 'zeta': zeta_star}

        return {}

    def observe(self, t, state):
        self.tuner.store(t, np.log(state.tau2))


class LambdaTau2Gibbs(Block):
    '''Draws the hyper-scale of each per-dimension sill.'''
    name = 'lambda_tau2'

    def update(self, state, rng):
        rate = state.s2_tau2 + state.tau2
        return {'lambda_tau2': rng.gamma(1.0, 1.0/rate)}


class S2Tau2Metropolis(Block):
    '''
    Random-walk Metropolis-Hastings update of the pooled sill scale under a
    uniform prior on `(0, A_s2)`.
    '''
    name = 's2_tau2'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.tuner = ScalarTuner(config.tuning.s2_tau2_tune,
                                 batch_size=config.tuning.batch_size)

    def update(self, state, rng):
        s2_tau2_star = state.s2_tau2 + rng.normal(0.0, self.tuner.tune)
        if not (0.0 < s2_tau2_star < self.config.priors.A_s2):
            self.tuner.record(False)
            return {}

        mh1 = log_dgamma(state.lambda_tau2, 0.5, s2_tau2_star)
        mh2 = log_dgamma(state.lambda_tau2, 0.5, state.s2_tau2)
        accepted = metropolis_accept(mh1 - mh2, rng)
        self.tuner.record(accepted)
        if accepted:
            return {'s2_tau2': s2_tau2_star}

        return {}


## partial correlations
###############################################################################
class XiMetropolis(Block):
    '''
    Random-walk Metropolis-Hastings update of the partial correlations on the
    scale `logit((xi + 1)/2)`, under the beta priors implied by an LKJ prior
    on the correlation matrix.
    '''
    name = 'xi'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.tuner = CovarianceTuner(
            config.tuning.lambda_xi_tune, model.B,
            batch_size=config.tuning.batch_size
            )

    def _log_prior(self, xi):
        shape = self.model.lkj_shape
        return (log_dbeta(0.5*(xi + 1.0), shape, shape) +
                logit_log_jacobian(xi))

    def update(self, state, rng):
        model = self.model
        u_star = self.tuner.propose(to_unconstrained(state.xi), rng)
        xi_star = from_unconstrained(u_star)
        if not (np.all(xi_star > -1.0) and np.all(xi_star < 1.0)):
            self.tuner.record(False)
            return {}

        R_star, log_jacobian_star = build_correlation_from_partials(xi_star,
                                                                    model.d)
        R_tau_star = R_star*np.sqrt(state.tau2)
        zeta_star = model.fit_effect(state.Z, state.eta_star, R_tau_star)
        mh1 = (model.log_likelihood(state.mu, zeta_star, state.sigma2) +
               self._log_prior(xi_star))
        mh2 = (model.log_likelihood(state.mu, state.zeta, state.sigma2) +
               self._log_prior(state.xi))
        accepted = metropolis_accept(mh1 - mh2, rng)
        self.tuner.record(accepted)
        if accepted:
            return {'xi': xi_star, 'R': R_star, 'R_tau': R_tau_star,
                    'log_jacobian': log_jacobian_star, 'zeta': zeta_star}

        return {}

    def observe(self, t, state):
        self.tuner.store(t, to_unconstrained(state.xi))


## unobserved covariate values
###############################################################################
_ROW_FIELDS = ('X', 'D', 'c', 'Z', 'zeta')


def _replace_rows(state, scratch, i, x, D_row, c_row, Z_row, zeta_row):
    # copy the row-indexed fields the first time a row changes
    if scratch is None:
        scratch = {k: np.array(getattr(state, k)) for k in _ROW_FIELDS}

    scratch['X'][i] = x
    scratch['D'][i] = D_row
    scratch['c'][i] = c_row
    scratch['Z'][i] = Z_row
    scratch['zeta'][i] = zeta_row
    return scratch


class CovariateMetropolis(Block):
    '''
    Random-walk Metropolis-Hastings update of each unobserved covariate
    value, with one adapted step size per value. The centered value
    `X[i] - mu_X` has the prior `N(0, s_X^2)`.
    '''
    name = 'X'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.tuner = VectorTuner(config.tuning.X_tune, model.n_missing,
                                 batch_size=config.tuning.batch_size)

    def update(self, state, rng):
        model = self.model
        scratch = None
        for idx, i in enumerate(model.missing):
            x_star = state.X[i] + rng.normal(0.0, self.tuner.tune[idx])
            D_row, c_row, Z_row = interpolation_row(
                x_star, model.X_knots, state.phi, model.kernel, state.C_inv
                )
            zeta_row = Z_row.dot(state.eta_star).dot(state.R_tau)
            mh1 = (log_dnorm(x_star - model.mu_X, 0.0, model.s_X) +
                   model.row_log_likelihood(i, state.mu, zeta_row,
                                            state.sigma2))
            mh2 = (log_dnorm(state.X[i] - model.mu_X, 0.0, model.s_X) +
                   model.row_log_likelihood(i, state.mu, state.zeta[i],
                                            state.sigma2))
            accepted = metropolis_accept(mh1 - mh2, rng)
            self.tuner.record(idx, accepted)
            if accepted:
                scratch = _replace_rows(state, scratch, i, x_star, D_row,
                                        c_row, Z_row, zeta_row)

        return {} if scratch is None else scratch


class CovariateSlice(Block):
    '''
    Elliptical slice update of each unobserved covariate value.
    '''
    name = 'X'

    def __init__(self, model, config, logger=None):
        Block.__init__(self, model, config, logger=logger)
        self.n_degenerate = 0

    def update(self, state, rng):
        model = self.model
        tuning = self.config.tuning
        scratch = None
        for i in model.missing:
            # rows do not depend on each other, so every row reads `state`
            result = ess_covariate(
                state, model, i, rng, max_shrink=tuning.ess_max_shrink,
                min_width=tuning.ess_min_width
                )
            if result.accepted:
                scratch = _replace_rows(state, scratch, i, result.value,
                                        *result.aux)
            else:
                self.n_degenerate += 1
                self.logger.warning(
                    'ESS for X shrunk to the current position and is still '
                    'not acceptable on chain %d' % self.config.n_chain
                    )

        return {} if scratch is None else scratch


def build_blocks(model, config, logger=None):
    '''
    Chooses the variant of every block from the configuration.

    Returns
    -------
    dict
        Maps each phase ('warmup', 'adapt', 'sample') to the ordered list of
        blocks updated in every iteration of that phase. Blocks shared by
        several phases are the same instances, so their tuning carries over.

    '''
    sw = config.switches
    kwargs = dict(model=model, config=config, logger=logger)

    def make(cls):
        return cls(**kwargs)

    mu = eta_star_mh = eta_star = covariate_mh = covariate = None
    if sw.sample_mu:
        mu = make(MuMetropolis if sw.sample_mu_mh else MuGibbs)

    if sw.sample_eta_star:
        eta_star_mh = make(EtaStarMetropolis)
        eta_star = eta_star_mh if sw.sample_eta_star_mh else make(EtaStarSlice)

    if sw.sample_X and (model.n_missing > 0):
        covariate_mh = make(CovariateMetropolis)
        covariate = covariate_mh if sw.sample_X_mh else make(CovariateSlice)

    phi = make(PhiMetropolis) if sw.sample_phi else None
    sigma2 = make(Sigma2Metropolis) if sw.sample_sigma2 else None
    lambda_sigma2 = make(LambdaSigma2Gibbs)
    tau2 = make(Tau2Metropolis) if sw.sample_tau2 else None
    lambda_tau2 = make(LambdaTau2Gibbs)
    s2_tau2 = make(S2Tau2Metropolis) if sw.pool_s2_tau2 else None
    xi = make(XiMetropolis) if (sw.sample_xi and model.B > 0) else None

    def order(eta_star_block, covariate_block):
        blocks = [mu, phi, eta_star_block, sigma2, lambda_sigma2, tau2,
                  lambda_tau2, s2_tau2, xi, covariate_block]
        return [b for b in blocks if b is not None]

    out = {
        'warmup': order(eta_star_mh, covariate_mh),
        'adapt': order(eta_star, covariate),
        'sample': order(eta_star, covariate)
        }
    return out
