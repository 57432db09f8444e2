"""
neural_net package
~~~~~~~~~~~~~~~~~~

Feed-forward neural network with backpropagation training.
Contains the network engine, the activation functions, binary parameter
persistence, and an XOR demo program.
"""

from .activation import Activation, ActivationType, get_activation
from .errors import (
    CorruptionError,
    DimensionMismatchError,
    InvalidArgumentError,
    ModelIOError,
    NeuralNetError,
)
from .network import Network
from .persistence import load_parameters, read_topology, save_parameters

__version__ = "1.0.0"

__all__ = [
    'Activation',
    'ActivationType',
    'CorruptionError',
    'DimensionMismatchError',
    'InvalidArgumentError',
    'ModelIOError',
    'Network',
    'NeuralNetError',
    'get_activation',
    'load_parameters',
    'read_topology',
    'save_parameters',
]
