import numpy as np
from mvgp.config import Config, Schedule, Priors, Switches
import unittest


def make_params(**kwargs):
  params = {'n_adapt': 100, 'n_mcmc': 200, 'N_obs': 40, 'n_thin': 2,
            'X_knots': np.linspace(0.0, 10.0, 5)}
  params.update(kwargs)
  return params


class Test(unittest.TestCase):
  def test_from_params(self):
    config = Config.from_params(
      make_params(n_warmup=50, phi_U=10.0, X_tune=1.0, sample_phi=False,
                  phi=2.0),
      kernel='gaussian', n_chain=3)
    self.assertEqual(config.schedule.n_adapt, 100)
    self.assertEqual(config.schedule.n_warmup, 50)
    self.assertEqual(config.schedule.n_thin, 2)
    self.assertEqual(config.priors.phi_U, 10.0)
    self.assertEqual(config.tuning.X_tune, 1.0)
    self.assertFalse(config.switches.sample_phi)
    self.assertEqual(config.init, {'phi': 2.0})
    self.assertEqual(config.kernel, 'gaussian')
    self.assertEqual(config.n_chain, 3)
    config.validate(N=50)

  def test_defaults(self):
    config = Config.from_params(make_params())
    self.assertEqual(config.schedule.n_warmup, 500)
    self.assertEqual(config.priors.s2_mu, 100.0)
    self.assertTrue(np.isclose(config.tuning.lambda_mu_tune, 3.0**-0.8))
    self.assertTrue(config.switches.pool_s2_tau2)
    self.assertFalse(config.switches.sample_eta_star_mh)

  def test_pool_override(self):
    config = Config.from_params(make_params(pool_s2_tau2=True),
                                pool_s2_tau2=False)
    self.assertFalse(config.switches.pool_s2_tau2)

  def test_missing_param(self):
    params = make_params()
    params.pop('X_knots')
    with self.assertRaises(ValueError):
      Config.from_params(params)

  def test_unknown_param(self):
    with self.assertRaises(ValueError):
      Config.from_params(make_params(n_burnin=10))

  def test_bad_kernel(self):
    config = Config.from_params(make_params(), kernel='matern')
    with self.assertRaises(ValueError):
      config.validate()

  def test_bad_counts(self):
    config = Config.from_params(make_params())
    with self.assertRaises(ValueError):
      config.validate(N=30)

    config = Config.from_params(make_params(n_thin=0))
    with self.assertRaises(ValueError):
      config.validate()

    config = Config.from_params(make_params(N_obs=1))
    with self.assertRaises(ValueError):
      config.validate()

  def test_bad_knots(self):
    config = Config(N_obs=10, X_knots=[0.0, 1.0, 1.0],
                    schedule=Schedule(n_adapt=1, n_mcmc=1))
    with self.assertRaises(ValueError):
      config.validate()

  def test_bad_priors(self):
    config = Config(N_obs=10, X_knots=[0.0, 1.0],
                    schedule=Schedule(n_adapt=1, n_mcmc=1),
                    priors=Priors(phi_L=2.0, phi_U=1.0))
    with self.assertRaises(ValueError):
      config.validate()

    config = Config(N_obs=10, X_knots=[0.0, 1.0],
                    schedule=Schedule(n_adapt=1, n_mcmc=1),
                    priors=Priors(A_s2=0.0))
    with self.assertRaises(ValueError):
      config.validate()

  def test_bad_init(self):
    config = Config(N_obs=10, X_knots=[0.0, 1.0],
                    schedule=Schedule(n_adapt=1, n_mcmc=1),
                    init={'phi': 5000.0})
    with self.assertRaises(ValueError):
      config.validate()

    config = Config(N_obs=10, X_knots=[0.0, 1.0],
                    schedule=Schedule(n_adapt=1, n_mcmc=1),
                    init={'lambda': 1.0})
    with self.assertRaises(ValueError):
      config.validate()

    bad = [{'sigma2': -1.0}, {'sigma2': 0.0}, {'tau2': [1.0, 0.0]},
           {'tau2': -2.0}, {'tau2': [1.0, np.inf]}, {'xi': [1.0]},
           {'mu': [0.0, np.nan]}]
    for init in bad:
      config = Config(N_obs=10, X_knots=[0.0, 1.0],
                      schedule=Schedule(n_adapt=1, n_mcmc=1), init=init)
      with self.assertRaises(ValueError):
        config.validate()

  def test_good_init(self):
    init = {'sigma2': 0.5, 'tau2': [1.0, 2.0], 'xi': [-0.5], 'mu': 0.0,
            'phi': 2.0}
    config = Config(N_obs=10, X_knots=[0.0, 1.0],
                    schedule=Schedule(n_adapt=1, n_mcmc=1), init=init)
    config.validate()

  def test_switches(self):
    switches = Switches(sample_X=False)
    self.assertFalse(switches.sample_X)
    self.assertTrue(switches.sample_phi)


if __name__ == '__main__':
  unittest.main()
