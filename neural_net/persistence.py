"""
persistence.py
~~~~~~~~~~~~~~

Flat binary persistence for network parameters.

File layout, all fields in native machine byte order:

    int32    layer count L
    int32    layer widths (L values)
    float64  biases, layer by layer
    float64  weights, layer by layer, row-major over (input, output)

There is no magic number, version field, checksum or activation tag, and
files are not portable between machines of differing endianness.
"""

import os
import logging
import tempfile
from contextlib import contextmanager
from typing import BinaryIO, Generator, List, NamedTuple, Sequence

import numpy as np

from .errors import CorruptionError, ModelIOError

# Configure module logger
logger = logging.getLogger(__name__)

INT_DTYPE = np.dtype('=i4')
FLOAT_DTYPE = np.dtype('=f8')


class NetworkParameters(NamedTuple):
    """Topology and parameter arrays decoded from a parameter stream."""

    sizes: List[int]
    biases: List[np.ndarray]
    weights: List[np.ndarray]


def parameter_count(sizes: Sequence[int]) -> int:
    """Number of float64 values (biases plus weights) for a topology."""
    biases = sum(sizes[1:])
    weights = sum(n_in * n_out for n_in, n_out in zip(sizes[:-1], sizes[1:]))
    return biases + weights


def encoded_size(sizes: Sequence[int]) -> int:
    """Size in bytes of the encoded stream for a topology."""
    return (
        INT_DTYPE.itemsize * (1 + len(sizes))
        + FLOAT_DTYPE.itemsize * parameter_count(sizes)
    )


def encode_parameters(
    sizes: Sequence[int],
    biases: Sequence[np.ndarray],
    weights: Sequence[np.ndarray]
) -> bytes:
    """
    Encode a topology and its parameters into the binary layout.

    Args:
        sizes: Layer widths
        biases: One vector of length sizes[l+1] per transition
        weights: One (sizes[l], sizes[l+1]) matrix per transition

    Returns:
        bytes: The encoded stream

    Raises:
        CorruptionError: If the parameter shapes disagree with the topology
    """
    _check_shapes(sizes, biases, weights)

    chunks = [
        np.array([len(sizes)], dtype=INT_DTYPE).tobytes(),
        np.array(sizes, dtype=INT_DTYPE).tobytes(),
    ]
    chunks.extend(np.asarray(b, dtype=FLOAT_DTYPE).tobytes() for b in biases)
    chunks.extend(
        np.ascontiguousarray(w, dtype=FLOAT_DTYPE).tobytes() for w in weights
    )
    return b''.join(chunks)


def decode_parameters(data: bytes) -> NetworkParameters:
    """
    Decode a binary parameter stream.

    Byte counts are checked against the declared topology before any
    parameter array is built, so a truncated stream is never read past
    its end.

    Args:
        data: The encoded stream

    Returns:
        NetworkParameters: The decoded topology, biases and weights

    Raises:
        CorruptionError: If the stream is truncated, has trailing bytes, or
            declares an impossible topology
    """
    sizes = _decode_topology(data)

    expected = encoded_size(sizes)
    if len(data) != expected:
        qualifier = 'truncated' if len(data) < expected else 'has trailing data'
        raise CorruptionError(
            f"Parameter stream {qualifier}: topology {sizes} needs "
            f"{expected} bytes, got {len(data)}"
        )

    offset = INT_DTYPE.itemsize * (1 + len(sizes))
    transitions = list(zip(sizes[:-1], sizes[1:]))

    biases = []
    for _, n_out in transitions:
        biases.append(_read_floats(data, offset, n_out))
        offset += n_out * FLOAT_DTYPE.itemsize

    weights = []
    for n_in, n_out in transitions:
        flat = _read_floats(data, offset, n_in * n_out)
        weights.append(flat.reshape(n_in, n_out))
        offset += n_in * n_out * FLOAT_DTYPE.itemsize

    return NetworkParameters(sizes, biases, weights)


def _decode_topology(data: bytes) -> List[int]:
    """Read the layer count and widths from the head of a stream."""
    if len(data) < INT_DTYPE.itemsize:
        raise CorruptionError(
            f"Parameter stream too short for a layer count: {len(data)} bytes"
        )

    count = int(np.frombuffer(data, dtype=INT_DTYPE, count=1)[0])
    if count < 0:
        raise CorruptionError(f"Negative layer count: {count}")

    header_size = INT_DTYPE.itemsize * (1 + count)
    if len(data) < header_size:
        raise CorruptionError(
            f"Parameter stream truncated in layer widths: {count} layers "
            f"need {header_size} header bytes, got {len(data)}"
        )

    widths = np.frombuffer(
        data, dtype=INT_DTYPE, count=count, offset=INT_DTYPE.itemsize
    )
    sizes = [int(width) for width in widths]
    if any(width <= 0 for width in sizes):
        raise CorruptionError(f"Non-positive layer width in topology {sizes}")
    return sizes


def _read_floats(data: bytes, offset: int, count: int) -> np.ndarray:
    # frombuffer returns a read-only view; training needs writable arrays
    return np.frombuffer(
        data, dtype=FLOAT_DTYPE, count=count, offset=offset
    ).astype(np.float64)


def _check_shapes(
    sizes: Sequence[int],
    biases: Sequence[np.ndarray],
    weights: Sequence[np.ndarray]
) -> None:
    transitions = max(len(sizes) - 1, 0)
    if len(biases) != transitions or len(weights) != transitions:
        raise CorruptionError(
            f"Topology {list(sizes)} needs {transitions} transitions, got "
            f"{len(biases)} bias vectors and {len(weights)} weight matrices"
        )
    for layer, (b, w) in enumerate(zip(biases, weights)):
        n_in, n_out = sizes[layer], sizes[layer + 1]
        if np.shape(b) != (n_out,) or np.shape(w) != (n_in, n_out):
            raise CorruptionError(
                f"Transition {layer} has bias shape {np.shape(b)} and weight "
                f"shape {np.shape(w)}, expected ({n_out},) and "
                f"({n_in}, {n_out})"
            )


def _default_file_mode() -> int:
    # mkstemp creates files as 0600; match open() under the current umask
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


@contextmanager
def _atomic_writer(path: str) -> Generator[BinaryIO, None, None]:
    """
    Context manager yielding a temporary file that replaces ``path`` on exit.

    The temporary file lives in the destination directory and is removed if
    the body raises, leaving any existing file at ``path`` untouched.
    The replacement gets the permissions a plain open() would create.
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(
        prefix='.' + os.path.basename(path) + '.', suffix='.tmp', dir=directory
    )
    try:
        with os.fdopen(fd, 'wb') as handle:
            yield handle
        os.chmod(tmp_path, _default_file_mode())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def save_parameters(
    path: str,
    sizes: Sequence[int],
    biases: Sequence[np.ndarray],
    weights: Sequence[np.ndarray]
) -> None:
    """
    Write a topology and its parameters to a file.

    Args:
        path: Destination file path
        sizes: Layer widths
        biases: Bias vectors, one per transition
        weights: Weight matrices, one per transition

    Raises:
        ModelIOError: If the destination cannot be written
        CorruptionError: If the parameter shapes disagree with the topology
    """
    data = encode_parameters(sizes, biases, weights)

    try:
        with _atomic_writer(path) as handle:
            handle.write(data)
    except OSError as e:
        logger.error(f"Could not write parameters to '{path}': {e}")
        raise ModelIOError(
            f"Cannot open '{path}' for writing: {e.strerror or e}"
        ) from e

    logger.info(
        f"Saved parameters for topology {list(sizes)} to '{path}' "
        f"({len(data)} bytes)"
    )


def _read_file(path: str) -> bytes:
    try:
        with open(path, 'rb') as handle:
            return handle.read()
    except OSError as e:
        logger.error(f"Could not read parameters from '{path}': {e}")
        raise ModelIOError(
            f"Cannot open '{path}' for reading: {e.strerror or e}"
        ) from e


def load_parameters(path: str) -> NetworkParameters:
    """
    Read a topology and its parameters from a file.

    Args:
        path: Source file path

    Returns:
        NetworkParameters: The decoded topology, biases and weights

    Raises:
        ModelIOError: If the source cannot be opened
        CorruptionError: If the file contents are malformed

    Example:
        >>> params = load_parameters("xor_weights_sigmoid.bin")
        >>> params.sizes
        [2, 4, 4, 1]
    """
    data = _read_file(path)

    try:
        params = decode_parameters(data)
    except CorruptionError as e:
        logger.error(f"Corrupt parameter file '{path}': {e}")
        raise

    logger.info(f"Loaded parameters for topology {params.sizes} from '{path}'")
    return params


def read_topology(path: str) -> List[int]:
    """
    Read only the layer widths stored in a parameter file.

    The parameter payload is not decoded, but the file length must still
    match what the topology declares.

    Raises:
        ModelIOError: If the source cannot be opened
        CorruptionError: If the header is malformed or the length is wrong
    """
    data = _read_file(path)
    sizes = _decode_topology(data)
    if len(data) != encoded_size(sizes):
        raise CorruptionError(
            f"Parameter file '{path}' is {len(data)} bytes, topology {sizes} "
            f"needs {encoded_size(sizes)}"
        )
    logger.debug(f"Read topology {sizes} from '{path}'")
    return sizes
