'''
Bayesian multivariate Gaussian process regression of a d-dimensional response
on a scalar covariate, using a predictive-process approximation on a fixed
set of knots. The covariate may be partially unobserved, in which case the
unobserved values are sampled along with the model parameters.
'''
from mvgp._version import __version__, __git_hash__
from mvgp.config import Config, Schedule, Priors, Tuning, Switches
from mvgp.mcmc import Sampler, fit
from mvgp.sinks import ResultSink, ArraySink
