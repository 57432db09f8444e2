"""
test_persistence.py
~~~~~~~~~~~~~~~~~~~

Unit tests for binary parameter persistence.
"""

import os
import stat

import numpy as np
import pytest

from neural_net import (
    ActivationType,
    CorruptionError,
    ModelIOError,
    Network,
    load_parameters,
    read_topology,
    save_parameters,
)
from neural_net.persistence import (
    decode_parameters,
    encode_parameters,
    encoded_size,
    parameter_count,
)


def write_bytes(path, data):
    with open(path, 'wb') as handle:
        handle.write(data)
    return path


def read_bytes(path):
    with open(path, 'rb') as handle:
        return handle.read()


@pytest.mark.unit
class TestBinaryLayout:
    """Test the byte layout of encoded parameters."""

    def test_parameter_count(self):
        assert parameter_count([2, 2, 1]) == (2 + 1) + (4 + 2)
        assert parameter_count([3]) == 0
        assert parameter_count([]) == 0

    def test_encoded_size(self):
        assert encoded_size([2, 2, 1]) == 4 + 3 * 4 + 9 * 8

    def test_field_order(self):
        sizes = [2, 3, 1]
        biases = [np.array([1.0, 2.0, 3.0]), np.array([4.0])]
        weights = [
            np.array([[5.0, 6.0, 7.0], [8.0, 9.0, 10.0]]),
            np.array([[11.0], [12.0], [13.0]]),
        ]

        data = encode_parameters(sizes, biases, weights)

        assert len(data) == encoded_size(sizes)
        header = np.frombuffer(data, dtype='=i4', count=4)
        assert header.tolist() == [3, 2, 3, 1]
        values = np.frombuffer(data, dtype='=f8', offset=16)
        assert values.tolist() == [float(v) for v in range(1, 14)]

    def test_empty_topology(self):
        data = encode_parameters([], [], [])
        assert data == np.array([0], dtype='=i4').tobytes()
        assert decode_parameters(data).sizes == []

    def test_decoded_arrays_are_writable(self, simple_network):
        data = encode_parameters(
            simple_network.sizes, simple_network.biases, simple_network.weights
        )
        params = decode_parameters(data)
        params.weights[0][0, 0] += 1.0
        params.biases[0][0] += 1.0

    def test_shape_mismatch_rejected_on_encode(self):
        with pytest.raises(CorruptionError):
            encode_parameters([2, 1], [np.zeros(1)], [np.zeros((1, 2))])
        with pytest.raises(CorruptionError):
            encode_parameters([2, 1], [], [])


@pytest.mark.unit
class TestSaveLoad:
    """Test saving and loading parameter files."""

    def test_save_creates_file(self, simple_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")

        simple_network.save(path)

        assert os.path.exists(path)
        assert os.path.getsize(path) == encoded_size([3, 4, 2])

    def test_save_leaves_no_temporary_files(self, simple_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")
        simple_network.save(path)
        simple_network.save(path)
        assert os.listdir(temp_model_dir) == ["net.bin"]

    @pytest.mark.skipif(os.name == 'nt', reason="POSIX permission bits")
    def test_saved_file_mode_matches_plain_open(self, simple_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")
        reference = write_bytes(os.path.join(temp_model_dir, "plain.bin"), b'')

        simple_network.save(path)

        assert stat.S_IMODE(os.stat(path).st_mode) == stat.S_IMODE(
            os.stat(reference).st_mode
        )

    def test_load_preserves_parameters(self, trained_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "trained.bin")
        trained_network.save(path)

        loaded = Network([], ActivationType.SIGMOID)
        loaded.load(path)

        assert loaded.sizes == trained_network.sizes
        for original_w, loaded_w in zip(trained_network.weights, loaded.weights):
            assert np.array_equal(original_w, loaded_w)
        for original_b, loaded_b in zip(trained_network.biases, loaded.biases):
            assert np.array_equal(original_b, loaded_b)

    @pytest.mark.parametrize('kind', list(ActivationType))
    def test_round_trip_forward_is_bit_identical(self, kind, temp_model_dir):
        net = Network([2, 2, 1], kind, rng=3)
        path = os.path.join(temp_model_dir, f"{kind.value}.bin")
        before = net.forward([1.0, 1.0])

        net.save(path)
        restored = Network([], kind)
        restored.load(path)

        assert np.array_equal(restored.forward([1.0, 1.0]), before)

    def test_load_replaces_topology(self, temp_model_dir):
        path = os.path.join(temp_model_dir, "big.bin")
        Network([4, 8, 3], rng=0).save(path)

        net = Network([2, 2, 1], rng=1)
        net.load(path)

        assert net.sizes == [4, 8, 3]
        assert net.weights[0].shape == (4, 8)
        assert net.forward([0.0, 1.0, 2.0, 3.0]).shape == (3,)

    def test_load_keeps_activation(self, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")
        Network([2, 2, 1], ActivationType.SIGMOID, rng=0).save(path)

        net = Network([2, 2, 1], ActivationType.TANH, rng=0)
        net.load(path)

        assert net.activation.kind is ActivationType.TANH

    def test_training_after_load(self, trained_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")
        trained_network.save(path)

        loaded = Network([], ActivationType.SIGMOID)
        loaded.load(path)
        loaded.train([1.0, 2.0, 3.0], [1.0, 0.0], 0.1)

        assert not np.array_equal(loaded.weights[0], trained_network.weights[0])

    def test_save_parameters_function(self, temp_model_dir):
        path = os.path.join(temp_model_dir, "raw.bin")
        biases = [np.array([0.5])]
        weights = [np.array([[1.0], [-1.0]])]

        save_parameters(path, [2, 1], biases, weights)
        params = load_parameters(path)

        assert params.sizes == [2, 1]
        assert params.biases[0].tolist() == [0.5]
        assert params.weights[0].tolist() == [[1.0], [-1.0]]

    def test_read_topology(self, simple_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")
        simple_network.save(path)
        assert read_topology(path) == [3, 4, 2]


@pytest.mark.unit
class TestPersistenceErrors:
    """Test failure handling of save and load."""

    def test_load_nonexistent_raises_io_error(self, simple_network, temp_model_dir):
        before_sizes = list(simple_network.sizes)
        before_weights = [w.copy() for w in simple_network.weights]

        with pytest.raises(ModelIOError):
            simple_network.load(os.path.join(temp_model_dir, "missing.bin"))

        assert simple_network.sizes == before_sizes
        for original, current in zip(before_weights, simple_network.weights):
            assert np.array_equal(original, current)

    def test_io_error_is_os_error(self, temp_model_dir):
        with pytest.raises(OSError):
            load_parameters(os.path.join(temp_model_dir, "missing.bin"))

    def test_save_to_missing_directory_raises(self, simple_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "no", "such", "dir", "net.bin")
        with pytest.raises(ModelIOError):
            simple_network.save(path)

    def test_save_to_directory_path_raises(self, simple_network, temp_model_dir):
        with pytest.raises(ModelIOError):
            simple_network.save(temp_model_dir)

    def test_failed_save_keeps_existing_file(self, simple_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")
        simple_network.save(path)
        original = read_bytes(path)

        with pytest.raises(CorruptionError):
            save_parameters(path, [3, 4, 2], simple_network.biases, [])

        assert read_bytes(path) == original

    @pytest.mark.parametrize('cut', [0, 2, 6, 10, 20, -8, -1])
    def test_truncated_file_raises(self, simple_network, temp_model_dir, cut):
        path = os.path.join(temp_model_dir, "net.bin")
        simple_network.save(path)
        data = read_bytes(path)
        write_bytes(path, data[:cut] if cut >= 0 else data[:len(data) + cut])

        net = Network([2, 2, 1], rng=0)
        before = [w.copy() for w in net.weights]

        with pytest.raises(CorruptionError):
            net.load(path)

        assert net.sizes == [2, 2, 1]
        for original, current in zip(before, net.weights):
            assert np.array_equal(original, current)

    def test_trailing_bytes_raise(self, simple_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")
        simple_network.save(path)
        with open(path, 'ab') as handle:
            handle.write(b'\x00' * 8)

        with pytest.raises(CorruptionError) as exc_info:
            load_parameters(path)
        assert 'trailing' in str(exc_info.value)

    def test_negative_layer_count_raises(self, temp_model_dir):
        path = write_bytes(
            os.path.join(temp_model_dir, "neg.bin"),
            np.array([-1], dtype='=i4').tobytes()
        )
        with pytest.raises(CorruptionError):
            load_parameters(path)

    def test_huge_layer_count_raises(self, temp_model_dir):
        path = write_bytes(
            os.path.join(temp_model_dir, "huge.bin"),
            np.array([2 ** 31 - 1, 2, 1], dtype='=i4').tobytes()
        )
        with pytest.raises(CorruptionError):
            load_parameters(path)

    def test_huge_width_raises(self, temp_model_dir):
        path = write_bytes(
            os.path.join(temp_model_dir, "wide.bin"),
            np.array([2, 2 ** 30, 2 ** 30], dtype='=i4').tobytes()
        )
        with pytest.raises(CorruptionError):
            load_parameters(path)

    @pytest.mark.parametrize('width', [0, -4])
    def test_non_positive_width_raises(self, temp_model_dir, width):
        path = write_bytes(
            os.path.join(temp_model_dir, "zero.bin"),
            np.array([2, 2, width], dtype='=i4').tobytes()
        )
        with pytest.raises(CorruptionError):
            read_topology(path)

    def test_read_topology_checks_length(self, simple_network, temp_model_dir):
        path = os.path.join(temp_model_dir, "net.bin")
        simple_network.save(path)
        data = read_bytes(path)
        write_bytes(path, data[:-1])

        with pytest.raises(CorruptionError):
            read_topology(path)


@pytest.mark.integration
class TestPersistenceIntegration:
    """Integration tests for persistence with training."""

    def test_save_load_train_cycle(self, temp_model_dir):
        """Test complete cycle: save, load, train, save again."""
        path = os.path.join(temp_model_dir, "cycle.bin")
        net = Network([3, 4, 2], ActivationType.TANH, rng=0)
        net.save(path)

        loaded = Network([], ActivationType.TANH)
        loaded.load(path)

        rng = np.random.default_rng(0)
        for i in range(10):
            y = np.zeros(2)
            y[i % 2] = 1.0
            loaded.train(rng.standard_normal(3), y, 0.1)
        loaded.save(path)

        final = Network([], ActivationType.TANH)
        final.load(path)
        x = [0.1, 0.2, 0.3]
        assert np.array_equal(final.forward(x), loaded.forward(x))
        assert not np.array_equal(final.forward(x), net.forward(x))

    def test_multiple_networks_coexist(self, temp_model_dir):
        """Test that several parameter files can be saved and reloaded."""
        networks_to_create = [
            ([784, 30, 10], "mnist_network"),
            ([3, 4, 2], "simple_network"),
            ([10, 20, 20, 10], "deep_network"),
        ]

        for architecture, name in networks_to_create:
            Network(architecture, rng=0).save(
                os.path.join(temp_model_dir, f"{name}.bin")
            )

        for architecture, name in networks_to_create:
            path = os.path.join(temp_model_dir, f"{name}.bin")
            assert read_topology(path) == architecture
            loaded = Network([])
            loaded.load(path)
            assert loaded.sizes == architecture
