'''
Destinations for the records retained during the production phase. The
driver only calls `append`, so any object with that method can receive the
samples, e.g. one that writes them to disk as they arrive.
'''
import numpy as np

# names of the values in every record, in the order they are packaged
RECORD_KEYS = ('mu', 'eta_star', 'zeta', 'Omega', 'phi', 'sigma2', 'tau2',
               'X', 'R', 'R_tau', 'xi')


class ResultSink(object):
    '''Interface of a result sink.'''
    def append(self, record):
        '''
        Receives one retained iteration, a dict mapping each name in
        `RECORD_KEYS` to an array or float. The sink must not assume that
        the arrays stay unchanged after the call returns.
        '''
        raise NotImplementedError


class ArraySink(ResultSink):
    '''
    Keeps every record in memory and stacks them into arrays on request.

    Parameters
    ----------
    expected : int, optional
        Number of records expected. Only used in the representation.

    '''
    def __init__(self, expected=None):
        self.expected = expected
        self.records = []

    def append(self, record):
        missing = set(RECORD_KEYS).difference(record)
        if missing:
            raise ValueError('the record is missing %s' % sorted(missing))

        self.records.append({k: np.copy(record[k]) for k in RECORD_KEYS})

    def __len__(self):
        return len(self.records)

    def __repr__(self):
        return '<ArraySink: %d of %s records>' % (len(self), self.expected)

    def as_arrays(self):
        '''
        Returns a dict mapping each name in `RECORD_KEYS` to an array whose
        first axis indexes the records. Scalars become 1-D arrays.
        '''
        out = {}
        for key in RECORD_KEYS:
            if self.records:
                out[key] = np.array([r[key] for r in self.records])
            else:
                out[key] = np.zeros((0,))

        return out
