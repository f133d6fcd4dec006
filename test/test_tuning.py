import warnings
import numpy as np
import mvgp.tuning
import unittest
from unittest import mock
np.random.seed(1)


def run_batch(tuner, rate, k, *args):
  # records `rate` of a batch as accepted and then updates the tuner
  n = tuner.batch_size
  n_accept = int(round(rate*n))
  for i in range(n):
    tuner.record(*(args + (i < n_accept,)))

  tuner.update(k)


class Test(unittest.TestCase):
  def test_scalar_high_acceptance(self):
    tuner = mvgp.tuning.ScalarTuner(0.25)
    last = tuner.tune
    for b in range(10):
      run_batch(tuner, 0.9, 50*b + 49)
      self.assertTrue(tuner.tune > last)
      last = tuner.tune

  def test_scalar_low_acceptance(self):
    tuner = mvgp.tuning.ScalarTuner(0.25)
    last = tuner.tune
    for b in range(10):
      run_batch(tuner, 0.05, 50*b + 49)
      self.assertTrue(tuner.tune < last)
      last = tuner.tune

  def test_scalar_step(self):
    tuner = mvgp.tuning.ScalarTuner(1.0)
    run_batch(tuner, 0.9, 49)
    self.assertTrue(np.isclose(tuner.tune, np.exp(0.01)))
    self.assertEqual(tuner.accept_batch, 0.0)

  def test_scalar_zero_tune(self):
    tuner = mvgp.tuning.ScalarTuner(0.0)
    run_batch(tuner, 0.9, 49)
    self.assertEqual(tuner.tune, 0.0)

  def test_scalar_acceptance_rate(self):
    tuner = mvgp.tuning.ScalarTuner(1.0)
    run_batch(tuner, 0.4, 49)
    self.assertTrue(np.isclose(tuner.acceptance_rate(50), 0.4))
    tuner.reset_acceptance()
    self.assertEqual(tuner.acceptance_rate(50), 0.0)

  def test_vector(self):
    tuner = mvgp.tuning.VectorTuner(2.5, 2)
    for i in range(tuner.batch_size):
      tuner.record(0, True)
      tuner.record(1, False)

    tuner.update(49)
    self.assertTrue(tuner.tune[0] > 2.5)
    self.assertTrue(tuner.tune[1] < 2.5)
    self.assertTrue(np.allclose(tuner.acceptance_rate(50), [1.0, 0.0]))

  def test_vector_bad_size(self):
    with self.assertRaises(ValueError):
      mvgp.tuning.VectorTuner([1.0, 2.0], 3)

  def test_covariance_target(self):
    self.assertEqual(mvgp.tuning.CovarianceTuner(1.0, 1).target, 0.44)
    self.assertEqual(mvgp.tuning.CovarianceTuner(1.0, 3).target, 0.234)

  def test_covariance_high_acceptance(self):
    tuner = mvgp.tuning.CovarianceTuner(1.0, 2)
    last = tuner.lambda_
    for b in range(10):
      for t in range(50):
        tuner.store(50*b + t, np.random.normal(0.0, 1.0, 2))

      run_batch(tuner, 0.9, 50*b + 49)
      self.assertTrue(tuner.lambda_ > last)
      last = tuner.lambda_

  def test_covariance_low_acceptance(self):
    tuner = mvgp.tuning.CovarianceTuner(1.0, 2)
    last = tuner.lambda_
    for b in range(10):
      for t in range(50):
        tuner.store(50*b + t, np.random.normal(0.0, 1.0, 2))

      run_batch(tuner, 0.05, 50*b + 49)
      self.assertTrue(tuner.lambda_ < last)
      last = tuner.lambda_

  def test_covariance_learns_scale(self):
    # the proposal covariance should approach the covariance of the states
    tuner = mvgp.tuning.CovarianceTuner(1.0, 2)
    sd = np.array([2.0, 0.5])
    for b in range(100):
      for t in range(50):
        tuner.store(50*b + t, sd*np.random.normal(0.0, 1.0, 2))

      run_batch(tuner, 0.234, 50*b + 49)

    self.assertTrue(abs(tuner.Sigma[0, 0] - 4.0) < 1.0)
    self.assertTrue(abs(tuner.Sigma[1, 1] - 0.25) < 0.1)
    self.assertTrue(np.allclose(tuner.Sigma_chol.dot(tuner.Sigma_chol.T),
                                tuner.Sigma))

  def test_covariance_not_pos_def(self):
    # a failed factorization keeps the previous proposal and warns
    tuner = mvgp.tuning.CovarianceTuner(1.0, 2)
    for t in range(50):
      tuner.store(t, np.random.normal(0.0, 1.0, 2))

    Sigma = np.copy(tuner.Sigma)
    Sigma_chol = np.copy(tuner.Sigma_chol)
    with mock.patch('mvgp.tuning.PosDefSolver',
                    side_effect=np.linalg.LinAlgError):
      with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter('always')
        run_batch(tuner, 0.5, 49)

    self.assertEqual(len(caught), 1)
    self.assertTrue(np.array_equal(tuner.Sigma, Sigma))
    self.assertTrue(np.array_equal(tuner.Sigma_chol, Sigma_chol))

  def test_covariance_propose(self):
    rng = np.random.default_rng(1)
    tuner = mvgp.tuning.CovarianceTuner(0.0, 3)
    self.assertTrue(np.allclose(tuner.propose(np.ones(3), rng), 1.0))

  def test_covariance_set(self):
    tuners = mvgp.tuning.CovarianceTunerSet(0.25, 4, 3)
    self.assertEqual(len(tuners), 3)
    sample = np.random.normal(0.0, 1.0, (4, 3))
    tuners.store(0, sample)
    self.assertTrue(np.allclose(tuners[2].batch[0], sample[:, 2]))
    tuners[0].record(True)
    self.assertTrue(np.allclose(tuners.acceptance_rate(1), [1.0, 0.0, 0.0]))
    tuners.reset_acceptance()
    self.assertTrue(np.allclose(tuners.acceptance_rate(1), 0.0))


if __name__ == '__main__':
  unittest.main()
