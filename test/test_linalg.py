import numpy as np
import mvgp.linalg
import unittest
np.random.seed(1)


def random_pos_def(n):
  A = np.random.random((n, n))
  return A.T.dot(A) + n*np.eye(n)


class Test(unittest.TestCase):
  def test_pos_def_solve(self):
    n = 50
    A = random_pos_def(n)
    b = np.random.random((n,))
    x1 = np.linalg.solve(A, b)
    x2 = mvgp.linalg.PosDefSolver(A).solve(b)
    self.assertTrue(np.allclose(x1, x2))

  def test_pos_def_solve_matrix(self):
    n = 20
    A = random_pos_def(n)
    b = np.random.random((n, 3))
    x1 = np.linalg.solve(A, b)
    x2 = mvgp.linalg.PosDefSolver(A).solve(b)
    self.assertTrue(np.allclose(x1, x2))

  def test_pos_def_L(self):
    n = 20
    A = random_pos_def(n)
    L = mvgp.linalg.PosDefSolver(A).L()
    self.assertTrue(np.allclose(L, np.tril(L)))
    self.assertTrue(np.allclose(L.dot(L.T), A))

  def test_pos_def_solve_L(self):
    n = 20
    A = random_pos_def(n)
    b = np.random.random((n,))
    factor = mvgp.linalg.PosDefSolver(A)
    x1 = factor.solve_L(b)
    x2 = np.linalg.solve(factor.L(), b)
    self.assertTrue(np.allclose(x1, x2))

  def test_pos_def_solve_LT(self):
    n = 20
    A = random_pos_def(n)
    b = np.random.random((n,))
    factor = mvgp.linalg.PosDefSolver(A)
    x1 = factor.solve_LT(b)
    x2 = np.linalg.solve(factor.L().T, b)
    self.assertTrue(np.allclose(x1, x2))

  def test_pos_def_log_det(self):
    n = 20
    A = random_pos_def(n)
    _, logdet = np.linalg.slogdet(A)
    self.assertTrue(np.isclose(mvgp.linalg.PosDefSolver(A).log_det(), logdet))

  def test_pos_def_inverse(self):
    n = 20
    A = random_pos_def(n)
    inv = mvgp.linalg.PosDefSolver(A).inverse()
    self.assertTrue(np.allclose(inv, np.linalg.inv(A)))
    # the inverse should be symmetric
    self.assertTrue(np.allclose(inv, inv.T))

  def test_not_pos_def(self):
    A = np.array([[1.0, 2.0], [2.0, 1.0]])
    with self.assertRaises(np.linalg.LinAlgError):
      mvgp.linalg.PosDefSolver(A)

    self.assertFalse(mvgp.linalg.is_positive_definite(A))
    self.assertTrue(mvgp.linalg.is_positive_definite(np.eye(3)))

  def test_not_square(self):
    with self.assertRaises(ValueError):
      mvgp.linalg.PosDefSolver(np.ones((2, 3)))

  def test_cholesky(self):
    A = random_pos_def(5)
    L = mvgp.linalg.cholesky(A)
    self.assertTrue(np.allclose(L, np.linalg.cholesky(A)))


if __name__ == '__main__':
  unittest.main()
