"""
network.py
~~~~~~~~~~

A fully-connected feed-forward network trained one sample at a time with
stochastic gradient descent. Gradients are computed by backpropagation of
the quadratic cost 0.5 * ||a - y||^2.

Weights for the transition from layer l to layer l+1 are stored as a
(sizes[l], sizes[l+1]) matrix, so entry (i, j) connects input neuron i to
output neuron j. Initial weights and biases are drawn from the standard
normal distribution.
"""

import math
import numbers
import logging
from typing import List, Sequence, Tuple, Union

import numpy as np

from . import persistence
from .activation import ActivationSelector, ActivationType, get_activation
from .errors import DimensionMismatchError, InvalidArgumentError

# Configure module logger
logger = logging.getLogger(__name__)

RandomSource = Union[np.random.Generator, int, None]


class Network:
    """
    Multilayer perceptron with a single activation shared by every layer.

    Attributes:
        sizes: Layer widths, input layer first
        num_layers: Number of layers, len(sizes)
        activation: The bound Activation (function and derivative)
        biases: One vector of length sizes[l+1] per transition
        weights: One (sizes[l], sizes[l+1]) matrix per transition
    """

    def __init__(
        self,
        sizes: Sequence[int],
        activation: ActivationSelector = ActivationType.SIGMOID,
        rng: RandomSource = None
    ):
        """
        Build a network with randomly initialized parameters.

        An empty ``sizes`` creates a placeholder meant to be filled by
        :meth:`load`.

        Args:
            sizes: Layer widths, e.g. [2, 4, 1]
            activation: ActivationType, Activation, or activation name
            rng: numpy Generator or integer seed for reproducible
                initialization; None draws fresh entropy

        Raises:
            InvalidArgumentError: If the topology or activation is invalid
        """
        sizes = _validate_sizes(sizes)
        activation = get_activation(activation)
        generator = np.random.default_rng(rng)

        transitions = list(zip(sizes[:-1], sizes[1:]))
        biases = [generator.standard_normal(n_out) for _, n_out in transitions]
        weights = [
            generator.standard_normal((n_in, n_out))
            for n_in, n_out in transitions
        ]

        self.sizes = sizes
        self.activation = activation
        self.biases = biases
        self.weights = weights

        logger.debug(
            f"Created network with topology {sizes} and "
            f"{activation.name} activation"
        )

    @property
    def num_layers(self) -> int:
        return len(self.sizes)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(sizes={self.sizes!r}, "
            f"activation={self.activation.name!r})"
        )

    def forward(self, x) -> np.ndarray:
        """
        Return the network output for input ``x``.

        The result depends only on the current parameters and ``x``.

        Raises:
            DimensionMismatchError: If len(x) != sizes[0]
        """
        a = self._as_vector(x, 0, 'Input')
        f = self.activation.function
        for b, w in zip(self.biases, self.weights):
            a = f(a @ w + b)
        return a

    def train(self, x, y, learning_rate: float) -> None:
        """
        Take one gradient-descent step on a single (x, y) sample.

        Args:
            x: Input vector of length sizes[0]
            y: Target vector of length sizes[-1]
            learning_rate: Step size, a positive finite number

        Raises:
            DimensionMismatchError: If x or y has the wrong length
            InvalidArgumentError: If the learning rate is not positive
        """
        if (
            isinstance(learning_rate, (bool, np.bool_))
            or not isinstance(learning_rate, numbers.Real)
            or not math.isfinite(learning_rate)
            or learning_rate <= 0
        ):
            raise InvalidArgumentError(
                f"learning_rate must be a positive number, got {learning_rate!r}"
            )
        learning_rate = float(learning_rate)

        nabla_b, nabla_w = self.backprop(x, y)

        for layer, (nb, nw) in enumerate(zip(nabla_b, nabla_w)):
            self.weights[layer] -= learning_rate * nw
            self.biases[layer] -= learning_rate * nb

    def backprop(self, x, y) -> Tuple[List[np.ndarray], List[np.ndarray]]:
        """
        Return the gradient of the cost for a single sample.

        The network is not modified.

        Returns:
            (nabla_b, nabla_w): Layer-by-layer lists shaped like
            ``self.biases`` and ``self.weights``

        Raises:
            DimensionMismatchError: If x or y has the wrong length
        """
        activation = self._as_vector(x, 0, 'Input')
        y = self._as_vector(y, -1, 'Target')
        f = self.activation.function
        f_prime = self.activation.derivative

        # feedforward, keeping every pre-activation and activation
        activations = [activation]
        zs = []
        for b, w in zip(self.biases, self.weights):
            z = activation @ w + b
            zs.append(z)
            activation = f(z)
            activations.append(activation)

        nabla_b = [None] * len(self.biases)
        nabla_w = [None] * len(self.weights)

        # backward pass
        delta = self.cost_derivative(activations[-1], y) * f_prime(zs[-1])
        nabla_b[-1] = delta
        nabla_w[-1] = np.outer(activations[-2], delta)
        for layer in range(2, self.num_layers):
            delta = (self.weights[-layer + 1] @ delta) * f_prime(zs[-layer])
            nabla_b[-layer] = delta
            nabla_w[-layer] = np.outer(activations[-layer - 1], delta)

        return nabla_b, nabla_w

    @staticmethod
    def cost_derivative(output_activations: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Partial derivatives of the quadratic cost w.r.t. the outputs."""
        return output_activations - y

    def save(self, path: str) -> None:
        """
        Write the topology and parameters to ``path``.

        The bound activation is not stored; whoever loads the file must
        build the network with the same activation.

        Raises:
            ModelIOError: If the file cannot be written
        """
        persistence.save_parameters(path, self.sizes, self.biases, self.weights)

    def load(self, path: str) -> None:
        """
        Replace topology and parameters with those stored at ``path``.

        The file is fully decoded and validated before anything is replaced,
        so on failure the network is left exactly as it was. The activation
        binding is kept.

        Raises:
            ModelIOError: If the file cannot be opened
            CorruptionError: If the file is truncated or malformed
        """
        params = persistence.load_parameters(path)
        self.sizes, self.biases, self.weights = (
            params.sizes, params.biases, params.weights
        )

    def _as_vector(self, values, layer: int, label: str) -> np.ndarray:
        if self.num_layers < 2:
            raise InvalidArgumentError(
                f"Network with topology {self.sizes} has no transitions; "
                f"construct it with at least two layers or load parameters"
            )
        vector = np.asarray(values, dtype=np.float64).reshape(-1)
        expected = self.sizes[layer]
        if vector.shape[0] != expected:
            raise DimensionMismatchError(
                f"{label} has length {vector.shape[0]}, network expects {expected}"
            )
        return vector


def _validate_sizes(sizes: Sequence[int]) -> List[int]:
    """Check a topology and return it as a list of ints."""
    if isinstance(sizes, (str, bytes)):
        raise InvalidArgumentError(f"Invalid topology: {sizes!r}")
    try:
        sizes = list(sizes)
    except TypeError:
        raise InvalidArgumentError(
            f"Topology must be a sequence of layer widths, got {sizes!r}"
        ) from None

    for width in sizes:
        if isinstance(width, (bool, np.bool_)) or not isinstance(
            width, (int, np.integer)
        ):
            raise InvalidArgumentError(
                f"Layer widths must be integers, got {width!r} in {sizes}"
            )
        if width <= 0:
            raise InvalidArgumentError(
                f"Layer widths must be positive, got {width} in {sizes}"
            )
    return [int(width) for width in sizes]
