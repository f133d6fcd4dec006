'''
Small helpers shared across the package for validating array inputs.
'''
import numpy as np


def assert_shape(arr, shape, label='array'):
    '''
    Raises a ValueError if `arr` does not have the specified shape.

    Parameters
    ----------
    arr : array-like

    shape : tuple
        The shape requirement for `arr`. An axis given as `None` can have any
        length.

    label : str
        What to call `arr` in the error.

    '''
    arr_shape = arr.shape if hasattr(arr, 'shape') else np.shape(arr)
    if len(arr_shape) != len(shape):
        raise ValueError(
            '%s is %d dimensional but it should have %d dimensions'
            % (label, len(arr_shape), len(shape))
            )

    for axis, (i, j) in enumerate(zip(arr_shape, shape)):
        if (j is not None) and (i != j):
            raise ValueError(
                'axis %d of %s has length %d but it should have length %d'
                % (axis, label, i, j)
                )


def as_vector(value, size, label='array'):
    '''
    Returns `value` as a float array with shape (`size`,). Scalars are
    broadcast.
    '''
    out = np.asarray(value, dtype=float)
    if out.ndim == 0:
        out = np.full(size, float(out))

    assert_shape(out, (size,), label)
    return np.array(out)


def as_matrix(value, shape, label='array'):
    '''
    Returns a copy of `value` as a float array with the given 2-D shape.
    '''
    out = np.array(value, dtype=float)
    assert_shape(out, shape, label)
    return out
