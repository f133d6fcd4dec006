import numpy as np
import mvgp.utils
import unittest


class Test(unittest.TestCase):
  def test_assert_shape(self):
    A = np.random.random((10, 5))
    # each of the following should be valid assertions
    mvgp.utils.assert_shape(A, (10, 5), 'A')
    mvgp.utils.assert_shape(A, (10, None), 'A')
    mvgp.utils.assert_shape(A, (None, None), 'A')
    # and each of these should raise a ValueError
    for shape in [(11, 5), (10, 6), (None, None, None), (50,)]:
      with self.assertRaises(ValueError):
        mvgp.utils.assert_shape(A, shape, 'A')

  def test_assert_shape_list(self):
    mvgp.utils.assert_shape([1.0, 2.0], (2,), 'x')
    with self.assertRaises(ValueError):
      mvgp.utils.assert_shape([[1.0, 2.0]], (2,), 'x')

  def test_as_vector(self):
    self.assertTrue(np.allclose(mvgp.utils.as_vector(2.0, 3), [2.0]*3))
    self.assertTrue(np.allclose(mvgp.utils.as_vector([1, 2], 2), [1.0, 2.0]))
    with self.assertRaises(ValueError):
      mvgp.utils.as_vector([1.0, 2.0], 3)

  def test_as_vector_copies(self):
    x = np.zeros(3)
    out = mvgp.utils.as_vector(x, 3)
    out[0] = 1.0
    self.assertEqual(x[0], 0.0)

  def test_as_matrix(self):
    out = mvgp.utils.as_matrix([[1, 2], [3, 4]], (2, 2))
    self.assertEqual(out.dtype, float)
    with self.assertRaises(ValueError):
      mvgp.utils.as_matrix(np.zeros((2, 3)), (3, 2))


if __name__ == '__main__':
  unittest.main()
