'''
Elliptical slice sampling (ESS) for variables with a zero-mean Gaussian prior
[1].

`elliptical_slice` implements one ESS transition as an explicit bounded loop
over the states

* Init: draw the slice height `log(U) + loglike(current)` and an angle
  `theta` uniformly on `[0, 2 pi)`, bracketing `[theta - 2 pi, theta]`.
* Propose: evaluate `cos(theta) current + sin(theta) prior_draw`.
* Accept: the proposal is above the slice height.
* Shrink: move the bracket edge on the side of `theta` to `theta` and draw a
  new angle inside the bracket.

The bracket always contains zero, which reproduces the current value, so a
proposal is eventually accepted for any well defined likelihood. If the
bracket shrinks below `min_width`, or `max_shrink` proposals are rejected,
the transition is degenerate and the current value is returned with
`accepted=False` so the caller can report it.

References
----------
[1] Murray I., Adams R., and MacKay D. (2010). Elliptical slice sampling.
Journal of Machine Learning Research W&CP.

'''
import logging
from collections import namedtuple

import numpy as np

from mvgp.density import rmvn_chol
from mvgp.kernel import interpolation_row

LOGGER = logging.getLogger(__name__)


ESSResult = namedtuple('ESSResult', ['value', 'aux', 'accepted', 'n_shrink'])


def elliptical_slice(current, prior_draw, log_likelihood, rng,
                     current_log_like=None, max_shrink=1000, min_width=1e-12):
    '''
    Performs one elliptical slice sampling transition.

    Parameters
    ----------
    current : float or float array
        Current value, with a zero-mean Gaussian prior.

    prior_draw : float or float array
        Independent draw from the same prior.

    log_likelihood : callable
        Takes a candidate value and returns its log likelihood and any
        auxiliary quantities computed along the way.

    rng : numpy Generator

    current_log_like : float, optional
        Log likelihood of `current`, if already known.

    max_shrink : int, optional
        Maximum number of rejected proposals.

    min_width : float, optional
        Smallest bracket width before the transition is declared degenerate.

    Returns
    -------
    ESSResult
        `value` and `aux` of the accepted proposal, or `current` and None if
        the transition was degenerate.

    '''
    if current_log_like is None:
        current_log_like, _ = log_likelihood(current)

    hh = np.log(rng.uniform()) + current_log_like
    theta = rng.uniform()*2.0*np.pi
    theta_min = theta - 2.0*np.pi
    theta_max = theta
    for n_shrink in range(max_shrink + 1):
        proposal = current*np.cos(theta) + prior_draw*np.sin(theta)
        proposal_log_like, aux = log_likelihood(proposal)
        if proposal_log_like > hh:
            return ESSResult(proposal, aux, True, n_shrink)

        if theta > 0.0:
            theta_max = theta
        elif theta < 0.0:
            theta_min = theta
        else:
            # the current value itself was rejected
            break

        if (theta_max - theta_min) < min_width:
            break

        theta = rng.uniform()*(theta_max - theta_min) + theta_min

    LOGGER.debug(
        'Elliptical slice bracket collapsed after %d rejected proposals',
        n_shrink + 1
        )
    return ESSResult(current, None, False, n_shrink + 1)


def ess_eta_star(state, model, j, rng, max_shrink=1000, min_width=1e-12):
    '''
    Elliptical slice update of column `j` of the latent knot coefficients,
    which has the prior `N(0, C)`.

    Returns
    -------
    ESSResult
        `value` is the full (K, d) coefficient matrix and `aux` is the
        corresponding latent effect `zeta`.

    '''
    prior_draw = rmvn_chol(np.zeros(model.K), state.C_chol, rng)
    # the effect of every other column does not change
    partial = state.zeta - np.outer(state.Z.dot(state.eta_star[:, j]),
                                    state.R_tau[j])

    def log_likelihood(column):
        zeta = partial + np.outer(state.Z.dot(column), state.R_tau[j])
        out = model.log_likelihood(state.mu, zeta, state.sigma2)
        return out, zeta

    current_log_like = model.log_likelihood(state.mu, state.zeta, state.sigma2)
    result = elliptical_slice(
        state.eta_star[:, j], prior_draw, log_likelihood, rng,
        current_log_like=current_log_like, max_shrink=max_shrink,
        min_width=min_width
        )
    if not result.accepted:
        return result

    eta_star = np.array(state.eta_star)
    eta_star[:, j] = result.value
    return result._replace(value=eta_star)


def ess_covariate(state, model, i, rng, max_shrink=1000, min_width=1e-12):
    '''
    Elliptical slice update of the unobserved covariate value of row `i`. The
    centered value `X[i] - mu_X` has the prior `N(0, s_X^2)`. Every proposal
    rebuilds the distances, correlations, and interpolation weights of row `i`
    against all knots.

    Returns
    -------
    ESSResult
        `value` is the new covariate value in original units and `aux` is the
        tuple `(D_row, c_row, Z_row, zeta_row)`.

    '''
    prior_draw = rng.normal(0.0, model.s_X)

    def log_likelihood(centered):
        D_row, c_row, Z_row = interpolation_row(
            centered + model.mu_X, model.X_knots, state.phi, model.kernel,
            state.C_inv
            )
        zeta_row = Z_row.dot(state.eta_star).dot(state.R_tau)
        out = model.row_log_likelihood(i, state.mu, zeta_row, state.sigma2)
        return out, (D_row, c_row, Z_row, zeta_row)

    current_log_like = model.row_log_likelihood(
        i, state.mu, state.zeta[i], state.sigma2
        )
    result = elliptical_slice(
        state.X[i] - model.mu_X, prior_draw, log_likelihood, rng,
        current_log_like=current_log_like, max_shrink=max_shrink,
        min_width=min_width
        )
    if not result.accepted:
        return result._replace(value=state.X[i])

    return result._replace(value=result.value + model.mu_X)
