"""
activation.py
~~~~~~~~~~~~~

Scalar transfer functions and their derivatives.

Every function works on Python floats as well as numpy arrays (elementwise)
and has no side effects. A network binds exactly one :class:`Activation`,
resolved from an :class:`ActivationType` by :func:`get_activation`.
"""

import enum
from typing import Callable, NamedTuple, Union

import numpy as np

from .errors import InvalidArgumentError

LEAKY_RELU_ALPHA = 0.01


def sigmoid(x):
    """The logistic function 1 / (1 + e^-x)."""
    # exp(-x) overflows to inf for very negative x, which still yields 0.0
    with np.errstate(over='ignore'):
        return 1.0 / (1.0 + np.exp(-x))


def sigmoid_prime(x):
    """Derivative of the sigmoid function."""
    s = sigmoid(x)
    return s * (1.0 - s)


def tanh(x):
    return np.tanh(x)


def tanh_prime(x):
    t = np.tanh(x)
    return 1.0 - t * t


def relu(x):
    return np.where(x > 0, x, 0.0)


def relu_prime(x):
    """Derivative of ReLU, taken as 0 at x == 0."""
    return np.where(x > 0, 1.0, 0.0)


def leaky_relu(x):
    return np.where(x > 0, x, LEAKY_RELU_ALPHA * x)


def leaky_relu_prime(x):
    return np.where(x > 0, 1.0, LEAKY_RELU_ALPHA)


class ActivationType(enum.Enum):
    """The activation functions a network can be built with."""

    SIGMOID = 'sigmoid'
    TANH = 'tanh'
    RELU = 'relu'
    LEAKY_RELU = 'leaky_relu'


class Activation(NamedTuple):
    """A transfer function paired with its derivative."""

    kind: ActivationType
    function: Callable
    derivative: Callable

    @property
    def name(self) -> str:
        return self.kind.value


_ACTIVATIONS = {
    ActivationType.SIGMOID: Activation(
        ActivationType.SIGMOID, sigmoid, sigmoid_prime
    ),
    ActivationType.TANH: Activation(ActivationType.TANH, tanh, tanh_prime),
    ActivationType.RELU: Activation(ActivationType.RELU, relu, relu_prime),
    ActivationType.LEAKY_RELU: Activation(
        ActivationType.LEAKY_RELU, leaky_relu, leaky_relu_prime
    ),
}

ActivationSelector = Union[ActivationType, Activation, str]


def get_activation(selector: ActivationSelector) -> Activation:
    """
    Resolve an activation selector to its function/derivative pair.

    Args:
        selector: An ActivationType, an Activation, or the name of one
            (case-insensitive; '-' and '_' are interchangeable)

    Returns:
        Activation: The matching activation

    Raises:
        InvalidArgumentError: If the selector names no known activation
    """
    if isinstance(selector, Activation):
        selector = selector.kind

    if isinstance(selector, str):
        key = selector.strip().lower().replace('-', '_')
        try:
            selector = ActivationType(key)
        except ValueError:
            raise InvalidArgumentError(
                f"Unknown activation '{selector}'. Expected one of: "
                f"{', '.join(kind.value for kind in ActivationType)}"
            ) from None

    if not isinstance(selector, ActivationType):
        raise InvalidArgumentError(
            f"Activation selector must be an ActivationType or a name, "
            f"got {type(selector).__name__}"
        )

    return _ACTIVATIONS[selector]
