import pickle
import numpy as np
import sympy
import mvgp.kernel
import unittest
np.random.seed(1)


class Test(unittest.TestCase):
  def test_exponential(self):
    xa = np.array([0.0, 1.0, 3.0])
    xb = np.array([0.5, 2.0])
    D, corr = mvgp.kernel.build_correlation(xa, xb, 2.0, 'exponential')
    r = np.abs(xa[:, None] - xb[None, :])
    self.assertTrue(np.allclose(D, r))
    self.assertTrue(np.allclose(corr, np.exp(-r/2.0)))

  def test_gaussian(self):
    xa = np.array([0.0, 1.0, 3.0])
    xb = np.array([0.5, 2.0])
    D, corr = mvgp.kernel.build_correlation(xa, xb, 2.0, 'gaussian')
    r = np.abs(xa[:, None] - xb[None, :])
    self.assertTrue(np.allclose(D, r**2))
    self.assertTrue(np.allclose(corr, np.exp(-r**2/2.0)))

  def test_correlation_from_distance(self):
    # the symbolic kernel and the cached distance should agree
    x = np.random.uniform(0.0, 10.0, 8)
    for name in ['exponential', 'gaussian']:
      D, corr = mvgp.kernel.build_correlation(x, x, 1.5, name)
      self.assertTrue(
        np.allclose(corr, mvgp.kernel.correlation_from_distance(D, 1.5, name)))
      self.assertTrue(np.allclose(corr, np.exp(-D/1.5)))

  def test_bad_kernel(self):
    with self.assertRaises(ValueError):
      mvgp.kernel.get_kernel('matern')

    with self.assertRaises(ValueError):
      mvgp.kernel.build_correlation([0.0], [1.0], 1.0, 'spherical')

  def test_get_kernel(self):
    self.assertIs(mvgp.kernel.get_kernel('gaussian'), mvgp.kernel.gaussian)
    self.assertIs(mvgp.kernel.get_kernel(mvgp.kernel.exponential),
                  mvgp.kernel.exponential)

  def test_custom_kernel(self):
    with self.assertRaises(ValueError):
      mvgp.kernel.Kernel(mvgp.kernel.PHI, 1)

  def test_interpolation(self):
    x = np.random.uniform(0.0, 10.0, 20)
    knots = np.linspace(0.0, 10.0, 5)
    out = mvgp.kernel.build_interpolation(x, knots, 3.0, 'exponential')
    self.assertEqual(out.Z.shape, (20, 5))
    self.assertTrue(np.allclose(out.C, np.exp(-out.D_knots/3.0)))
    self.assertTrue(np.allclose(out.C_chol.dot(out.C_chol.T), out.C))
    self.assertTrue(np.allclose(out.C_inv, np.linalg.inv(out.C)))
    self.assertTrue(np.allclose(out.Z, out.c.dot(np.linalg.inv(out.C))))
    # the predictive process interpolates the knots exactly
    at_knots = mvgp.kernel.build_interpolation(knots, knots, 3.0,
                                               'exponential')
    self.assertTrue(np.allclose(at_knots.Z, np.eye(5)))

  def test_interpolation_cached_distance(self):
    x = np.random.uniform(0.0, 10.0, 20)
    knots = np.linspace(0.0, 10.0, 5)
    out1 = mvgp.kernel.build_interpolation(x, knots, 3.0, 'gaussian')
    out2 = mvgp.kernel.build_interpolation(x, knots, 3.0, 'gaussian',
                                           D=out1.D, D_knots=out1.D_knots)
    self.assertTrue(np.allclose(out1.Z, out2.Z))

  def test_interpolation_row(self):
    x = np.random.uniform(0.0, 10.0, 20)
    knots = np.linspace(0.0, 10.0, 5)
    for name in ['exponential', 'gaussian']:
      out = mvgp.kernel.build_interpolation(x, knots, 3.0, name)
      D_row, c_row, Z_row = mvgp.kernel.interpolation_row(
        x[7], knots, 3.0, name, out.C_inv)
      self.assertTrue(np.allclose(D_row, out.D[7]))
      self.assertTrue(np.allclose(c_row, out.c[7]))
      self.assertTrue(np.allclose(Z_row, out.Z[7]))

  def test_custom_kernel_interpolation(self):
    # a custom expression drives every correlation the sampler builds
    expr = sympy.exp(-2*mvgp.kernel.R/mvgp.kernel.PHI)
    kernel = mvgp.kernel.Kernel(expr, 1)
    x = np.array([0.0, 1.0, 4.0])
    knots = np.array([1.0, 2.0, 5.0])
    _, corr = mvgp.kernel.build_correlation(x, knots, 1.0, kernel)
    self.assertTrue(np.isclose(corr[0, 0], np.exp(-2.0)))
    out = mvgp.kernel.build_interpolation(x, knots, 1.0, kernel)
    self.assertTrue(np.allclose(out.c, corr))
    _, C = mvgp.kernel.build_correlation(knots, knots, 1.0, kernel)
    self.assertTrue(np.allclose(out.C, C))
    _, c_row, _ = mvgp.kernel.interpolation_row(x[2], knots, 1.0, kernel,
                                                out.C_inv)
    self.assertTrue(np.allclose(c_row, corr[2]))

  def test_interpolation_matches_builder(self):
    x = np.random.uniform(0.0, 10.0, 12)
    knots = np.linspace(0.0, 10.0, 4)
    for name in ['exponential', 'gaussian']:
      out = mvgp.kernel.build_interpolation(x, knots, 2.5, name)
      _, c = mvgp.kernel.build_correlation(x, knots, 2.5, name)
      _, C = mvgp.kernel.build_correlation(knots, knots, 2.5, name)
      self.assertTrue(np.allclose(out.c, c))
      self.assertTrue(np.allclose(out.C, C))

  def test_pickle(self):
    kernel = mvgp.kernel.exponential
    kernel([0.0], [1.0], 1.0)
    out = pickle.loads(pickle.dumps(kernel))
    self.assertTrue(np.allclose(out([0.0], [1.0], 1.0), np.exp(-1.0)))


if __name__ == '__main__':
  unittest.main()
