'''
Adaptive tuning of random-walk Metropolis-Hastings proposals.

Tuners accumulate acceptances over a batch of `batch_size` iterations. The
driver calls `update` once at the end of every batch during warmup and
adaptation, and never during production, so the production chain runs with a
fixed proposal.

`ScalarTuner` and `VectorTuner` adjust a proposal standard deviation on the log
scale by `min(0.01, k^-0.5)` towards an acceptance rate of 0.44.
`CovarianceTuner` additionally learns the proposal covariance from the batch
of recent states, following the adaptive Metropolis scheme of Roberts and
Rosenthal (2009).
'''
import logging
import warnings

import numpy as np

from mvgp.linalg import PosDefSolver

LOGGER = logging.getLogger(__name__)


BATCH_SIZE = 50


def _delta(k):
    return min(0.01, 1.0/np.sqrt(max(k, 1)))


class ScalarTuner(object):
    '''
    Tunes the standard deviation of a univariate random-walk proposal.

    Parameters
    ----------
    tune : float
        Initial proposal standard deviation.

    target : float, optional
        Target acceptance rate.

    batch_size : int, optional

    '''
    def __init__(self, tune, target=0.44, batch_size=BATCH_SIZE):
        if tune < 0.0:
            raise ValueError('`tune` must be non-negative.')

        self.tune = float(tune)
        self.target = target
        self.batch_size = batch_size
        self.accept_batch = 0.0
        self.accept_total = 0

    def record(self, accepted):
        '''Records the outcome of one proposal.'''
        if accepted:
            self.accept_batch += 1.0/self.batch_size
            self.accept_total += 1

    def update(self, k):
        '''
        Moves `log(tune)` up if the batch acceptance rate is above the target
        and down otherwise. Resets the batch.
        '''
        if self.tune > 0.0:
            delta = _delta(k)
            if self.accept_batch > self.target:
                self.tune = np.exp(np.log(self.tune) + delta)
            else:
                self.tune = np.exp(np.log(self.tune) - delta)

        self.accept_batch = 0.0

    def acceptance_rate(self, n):
        '''Cumulative acceptance rate over `n` proposals.'''
        return self.accept_total/max(n, 1)

    def reset_acceptance(self):
        self.accept_total = 0


class VectorTuner(object):
    '''
    Independent `ScalarTuner` logic for each element of a vector of
    univariate random-walk proposals.
    '''
    def __init__(self, tune, size, target=0.44, batch_size=BATCH_SIZE):
        tune = np.asarray(tune, dtype=float)
        if tune.ndim == 0:
            tune = np.full(size, float(tune))

        if tune.shape != (size,):
            raise ValueError('`tune` must be a scalar or have length %d' % size)

        if np.any(tune < 0.0):
            raise ValueError('`tune` must be non-negative.')

        self.tune = np.array(tune)
        self.target = target
        self.batch_size = batch_size
        self.accept_batch = np.zeros(size, dtype=float)
        self.accept_total = np.zeros(size, dtype=int)

    def record(self, index, accepted):
        '''Records the outcome of a proposal for element `index`.'''
        if accepted:
            self.accept_batch[index] += 1.0/self.batch_size
            self.accept_total[index] += 1

    def update(self, k):
        delta = _delta(k)
        positive = self.tune > 0.0
        up = positive & (self.accept_batch > self.target)
        down = positive & ~(self.accept_batch > self.target)
        self.tune[up] = np.exp(np.log(self.tune[up]) + delta)
        self.tune[down] = np.exp(np.log(self.tune[down]) - delta)
        self.accept_batch[:] = 0.0

    def acceptance_rate(self, n):
        '''Cumulative acceptance rate of each element over `n` proposals.'''
        return self.accept_total/max(n, 1)

    def reset_acceptance(self):
        self.accept_total[:] = 0


class CovarianceTuner(object):
    '''
    Tunes a multivariate random-walk proposal `current + lambda_ L w`, where
    `L` is the Cholesky factor of a proposal covariance learned from recent
    states and `w` is standard normal.

    Parameters
    ----------
    lambda_ : float
        Initial proposal scale.

    dim : int
        Dimension of the proposal.

    target : float, optional
        Target acceptance rate. Defaults to 0.44 for univariate proposals and
        0.234 otherwise.

    batch_size : int, optional

    '''
    def __init__(self, lambda_, dim, target=None, batch_size=BATCH_SIZE):
        if lambda_ < 0.0:
            raise ValueError('`lambda_` must be non-negative.')

        if target is None:
            target = 0.44 if dim == 1 else 0.234

        self.lambda_ = float(lambda_)
        self.dim = dim
        self.target = target
        self.batch_size = batch_size
        self.Sigma = np.eye(dim)
        self.Sigma_chol = np.eye(dim)
        self.batch = np.zeros((batch_size, dim), dtype=float)
        self.accept_batch = 0.0
        self.accept_total = 0

    def propose(self, current, rng):
        '''Draws a proposal centered on `current`.'''
        w = rng.standard_normal(self.dim)
        return current + self.lambda_*self.Sigma_chol.dot(w)

    def record(self, accepted):
        if accepted:
            self.accept_batch += 1.0/self.batch_size
            self.accept_total += 1

    def store(self, k, sample):
        '''Stores the state of iteration `k` in the batch buffer.'''
        self.batch[k % self.batch_size] = sample

    def update(self, k):
        '''
        Rescales `lambda_` towards the target acceptance rate and moves the
        proposal covariance towards the empirical covariance of the batch. If
        the new covariance is not positive definite, the previous covariance
        and its factor are kept.
        '''
        times_adapted = np.floor(k/self.batch_size)
        gamma1 = 1.0/(times_adapted + 3.0)**0.8
        gamma2 = 10.0*gamma1
        self.lambda_ *= np.exp(gamma2*(self.accept_batch - self.target))

        centered = self.batch - np.mean(self.batch, axis=0)
        empirical = centered.T.dot(centered)/(self.batch_size - 1.0)
        Sigma = self.Sigma + gamma1*(empirical - self.Sigma)
        try:
            Sigma_chol = PosDefSolver(Sigma).L()
        except np.linalg.LinAlgError:
            warnings.warn(
                'The proposal covariance is not positive definite. Keeping '
                'the previous proposal covariance.'
                )
        else:
            self.Sigma = Sigma
            self.Sigma_chol = Sigma_chol

        LOGGER.debug(
            'Updated proposal with batch acceptance %.3f, scale %.4g',
            self.accept_batch, self.lambda_
            )
        self.accept_batch = 0.0
        self.batch[:] = 0.0

    def acceptance_rate(self, n):
        return self.accept_total/max(n, 1)

    def reset_acceptance(self):
        self.accept_total = 0


class CovarianceTunerSet(object):
    '''
    One `CovarianceTuner` per column of a (dim, count) matrix block, such as
    the columns of the latent knot coefficients.
    '''
    def __init__(self, lambda_, dim, count, target=None,
                 batch_size=BATCH_SIZE):
        lambda_ = np.asarray(lambda_, dtype=float)
        if lambda_.ndim == 0:
            lambda_ = np.full(count, float(lambda_))

        self.tuners = [
            CovarianceTuner(lam, dim, target=target, batch_size=batch_size)
            for lam in lambda_
            ]

    def __getitem__(self, j):
        return self.tuners[j]

    def __len__(self):
        return len(self.tuners)

    def store(self, k, sample):
        '''Stores each column of the (dim, count) `sample`.'''
        for j, tuner in enumerate(self.tuners):
            tuner.store(k, sample[:, j])

    def update(self, k):
        for tuner in self.tuners:
            tuner.update(k)

    def acceptance_rate(self, n):
        return np.array([t.acceptance_rate(n) for t in self.tuners])

    def reset_acceptance(self):
        for tuner in self.tuners:
            tuner.reset_acceptance()
