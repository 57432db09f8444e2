"""
xor_learner.py
~~~~~~~~~~~~~~

Demo program that teaches networks the XOR function.

For each of the Sigmoid, Tanh and LeakyReLU activations it loads saved
weights (or starts from scratch), optionally trains, saves the result and
prints the network output for the four XOR inputs.

Behaviour is configured through environment variables:

    XOR_LOAD_FROM_FILE  load saved weights before training (default: true)
    XOR_TRAIN           train even when weights were loaded (default: false)
    XOR_SHOW_LOSS       log the total squared error while training
    XOR_LOSS_INTERVAL   epochs between loss reports (default: 1000)
    XOR_PLOT_LOSS       write a PNG loss curve next to the model file
    XOR_LAYERS          comma separated layer widths (default: 2,4,4,1)
    XOR_LEARNING_RATE   gradient descent step size (default: 0.01)
    XOR_EPOCHS          passes over the dataset (default: 20000)
    XOR_MODEL_DIR       directory for weight files (default: models)
    XOR_SEED            integer seed for weight initialization
    LOG_LEVEL           logging level (default: INFO)

Usage:
    python -m neural_net.xor_learner
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

# Use non-GUI backend for matplotlib (plots are only written to files)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from .activation import ActivationType
from .errors import CorruptionError, InvalidArgumentError, ModelIOError
from .network import Network

logger = logging.getLogger(__name__)

XOR_INPUTS = [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]]
XOR_TARGETS = [[0.0], [1.0], [1.0], [0.0]]

DEMO_ACTIVATIONS = (
    ActivationType.SIGMOID,
    ActivationType.TANH,
    ActivationType.LEAKY_RELU,
)

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


# ============================================================================
# CONFIGURATION
# ============================================================================

def configure_logging() -> None:
    """Set up logging from the LOG_LEVEL environment variable."""
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # matplotlib is chatty at DEBUG level
    logging.getLogger('matplotlib').setLevel(logging.WARNING)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise InvalidArgumentError(f"{name} must be a boolean, got {raw!r}")


def _env_number(name: str, default, convert):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return convert(raw.strip())
    except ValueError:
        raise InvalidArgumentError(
            f"{name} could not be parsed as {convert.__name__}: {raw!r}"
        ) from None


def _env_layers(name: str, default: Sequence[int]) -> List[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)
    try:
        return [int(part) for part in raw.split(',')]
    except ValueError:
        raise InvalidArgumentError(
            f"{name} must be comma separated integers, got {raw!r}"
        ) from None


@dataclass
class XorConfig:
    """Settings for an XOR demo run."""

    load_from_file: bool = True
    train_network: bool = False
    show_training_loss: bool = False
    plot_loss: bool = False
    layers: List[int] = field(default_factory=lambda: [2, 4, 4, 1])
    learning_rate: float = 0.01
    epochs: int = 20_000
    loss_interval: int = 1_000
    model_dir: str = 'models'
    seed: Optional[int] = None

    def __post_init__(self):
        if self.epochs < 0:
            raise InvalidArgumentError(
                f"epochs must be non-negative, got {self.epochs}"
            )
        if self.loss_interval < 1:
            raise InvalidArgumentError(
                f"loss_interval must be a positive integer, "
                f"got {self.loss_interval}"
            )
        if self.seed is not None and self.seed < 0:
            raise InvalidArgumentError(
                f"seed must be a non-negative integer, got {self.seed}"
            )

    @classmethod
    def from_env(cls) -> 'XorConfig':
        """
        Build a config from XOR_* environment variables.

        Raises:
            InvalidArgumentError: If a variable cannot be parsed
        """
        defaults = cls()
        return cls(
            load_from_file=_env_bool('XOR_LOAD_FROM_FILE', defaults.load_from_file),
            train_network=_env_bool('XOR_TRAIN', defaults.train_network),
            show_training_loss=_env_bool(
                'XOR_SHOW_LOSS', defaults.show_training_loss
            ),
            plot_loss=_env_bool('XOR_PLOT_LOSS', defaults.plot_loss),
            layers=_env_layers('XOR_LAYERS', defaults.layers),
            learning_rate=_env_number(
                'XOR_LEARNING_RATE', defaults.learning_rate, float
            ),
            epochs=_env_number('XOR_EPOCHS', defaults.epochs, int),
            loss_interval=_env_number(
                'XOR_LOSS_INTERVAL', defaults.loss_interval, int
            ),
            model_dir=os.getenv('XOR_MODEL_DIR', defaults.model_dir),
            seed=_env_number('XOR_SEED', defaults.seed, int),
        )


# ============================================================================
# TRAINING
# ============================================================================

@dataclass
class XorResult:
    """Outcome of one XOR run."""

    activation: ActivationType
    model_path: str
    trained: bool
    outputs: List[float]
    losses: List[float] = field(default_factory=list)
    plot_path: Optional[str] = None


def model_path_for(activation: ActivationType, model_dir: str) -> str:
    """Weight file path for an activation, e.g. models/xor_weights_tanh.bin."""
    return os.path.join(model_dir, f'xor_weights_{activation.value}.bin')


def total_squared_error(
    net: Network,
    inputs: Sequence[Sequence[float]],
    targets: Sequence[Sequence[float]]
) -> float:
    """Sum of squared output errors over a dataset."""
    return float(sum(
        np.sum((net.forward(x) - np.asarray(y)) ** 2)
        for x, y in zip(inputs, targets)
    ))


def plot_loss_curve(losses: Sequence[float], interval: int, path: str) -> str:
    """
    Write a PNG of the training loss curve.

    Args:
        losses: Total squared error recorded every ``interval`` epochs
        interval: Epochs between recorded losses
        path: Output PNG path

    Returns:
        str: The path written
    """
    epochs = [i * interval for i in range(len(losses))]

    plt.figure(figsize=(6, 4))
    plt.plot(epochs, losses)
    plt.xlabel('Epoch')
    plt.ylabel('Total squared error')
    plt.yscale('log')
    plt.title('XOR training loss')
    plt.savefig(path, format='png', bbox_inches='tight')
    plt.close()

    logger.info(f"Loss curve written to {path}")
    return path


def _fits_xor(net: Network) -> bool:
    return (
        len(net.sizes) >= 2
        and net.sizes[0] == len(XOR_INPUTS[0])
        and net.sizes[-1] == len(XOR_TARGETS[0])
    )


def _load_or_start(
    activation: ActivationType,
    model_path: str,
    config: XorConfig
) -> Tuple[Network, bool]:
    """
    Build the network, loading saved weights when possible.

    Returns:
        (net, starting_from_scratch)
    """
    net = Network(config.layers, activation, rng=config.seed)

    if not config.load_from_file:
        logger.info("Skipping model load. Starting from scratch.")
        return net, True

    try:
        net.load(model_path)
    except (ModelIOError, CorruptionError) as e:
        logger.warning(
            f"No usable model file ({model_path}): {e}. Starting from scratch."
        )
        return net, True

    if not _fits_xor(net):
        logger.warning(
            f"Model file {model_path} has topology {net.sizes}, which does "
            f"not map 2 inputs to 1 output. Starting from scratch."
        )
        return Network(config.layers, activation, rng=config.seed), True

    logger.info(f"Model loaded from {model_path}")
    return net, False


def train_xor(activation: ActivationType, config: XorConfig) -> XorResult:
    """
    Load, train and evaluate an XOR network for one activation.

    Args:
        activation: Activation shared by every layer
        config: Run settings

    Returns:
        XorResult: Outputs for the four XOR inputs, and the loss history if
        training reported it
    """
    logger.info(f"Training XOR using {activation.value} activation")

    model_path = model_path_for(activation, config.model_dir)
    net, starting_from_scratch = _load_or_start(activation, model_path, config)

    losses: List[float] = []
    trained = config.train_network or starting_from_scratch
    if trained:
        for epoch in range(config.epochs):
            for x, y in zip(XOR_INPUTS, XOR_TARGETS):
                net.train(x, y, config.learning_rate)

            if config.show_training_loss and epoch % config.loss_interval == 0:
                loss = total_squared_error(net, XOR_INPUTS, XOR_TARGETS)
                losses.append(loss)
                logger.info(f"Epoch {epoch}, loss = {loss:.6f}")

        if config.model_dir and not os.path.exists(config.model_dir):
            os.makedirs(config.model_dir)
        net.save(model_path)
        logger.info(f"Model saved to {model_path}")
    else:
        logger.info("Skipping training. Using existing weights.")

    plot_path = None
    if config.plot_loss and losses:
        plot_path = plot_loss_curve(
            losses,
            config.loss_interval,
            os.path.splitext(model_path)[0] + '_loss.png'
        )

    outputs = [float(net.forward(x)[0]) for x in XOR_INPUTS]

    return XorResult(
        activation=activation,
        model_path=model_path,
        trained=trained,
        outputs=outputs,
        losses=losses,
        plot_path=plot_path
    )


def print_line(length: int = 60, char: str = '-') -> None:
    print(char * length)


def main(config: Optional[XorConfig] = None) -> List[XorResult]:
    """Run the XOR demo for every demo activation and print the results."""
    if config is None:
        config = XorConfig.from_env()

    results = []
    for activation in DEMO_ACTIVATIONS:
        print_line()
        result = train_xor(activation, config)
        print(f"XOR results ({activation.value}):")
        for x, output in zip(XOR_INPUTS, result.outputs):
            print(f"{x[0]:g} XOR {x[1]:g} = {output:.6f}")
        print_line()
        results.append(result)
    return results


if __name__ == '__main__':
    configure_logging()
    main()
