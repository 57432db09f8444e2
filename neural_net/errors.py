"""
errors.py
~~~~~~~~~

Exceptions raised by the network engine and its persistence codec.
"""


class NeuralNetError(Exception):
    """Base class for every error raised by ``neural_net``."""


class InvalidArgumentError(NeuralNetError, ValueError):
    """An argument is malformed: bad topology, unknown activation, bad rate."""


class DimensionMismatchError(NeuralNetError, ValueError):
    """An input or target vector disagrees with the network topology."""


class ModelIOError(NeuralNetError, OSError):
    """A parameter file could not be opened for reading or writing."""


class CorruptionError(NeuralNetError, ValueError):
    """A parameter stream is truncated or internally inconsistent."""
