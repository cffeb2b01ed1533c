"""Tests unitarios para el batching de ubicaciones."""

import pytest

from order_sync.services.orders.batching import MAX_LOCATION_BATCH_SIZE, LocationBatcher, split_to_chunks
from order_sync.utils.error_handler import InvalidArgumentException
from tests.fakes import make_locations


class TestSplitToChunks:
    """Tests para split_to_chunks."""

    def test_last_chunk_holds_remainder(self):
        """25 elementos en chunks de 10 deben dar tamaños [10, 10, 5]."""
        chunks = list(split_to_chunks(list(range(25)), 10))

        assert [len(chunk) for chunk in chunks] == [10, 10, 5]

    def test_preserves_order(self):
        """La concatenación de los chunks debe ser la entrada original."""
        items = list(range(23))

        chunks = list(split_to_chunks(items, 4))

        assert [item for chunk in chunks for item in chunk] == items

    def test_exact_multiple(self):
        """Sin resto no debe haber chunk vacío al final."""
        assert [len(chunk) for chunk in split_to_chunks(list(range(20)), 10)] == [10, 10]

    def test_empty_input_yields_nothing(self):
        assert list(split_to_chunks([], 10)) == []

    @pytest.mark.parametrize("size", [0, -1])
    def test_non_positive_size_raises(self, size):
        """Un tamaño no positivo es un argumento inválido."""
        with pytest.raises(InvalidArgumentException):
            list(split_to_chunks([1, 2, 3], size))


class TestLocationBatcher:
    """Tests para LocationBatcher."""

    def test_default_cap_is_ten(self):
        assert LocationBatcher().cap == MAX_LOCATION_BATCH_SIZE == 10

    def test_batches_25_locations(self):
        """25 ubicaciones deben agruparse como [10, 10, 5] en orden."""
        locations = make_locations(25)

        batches = list(LocationBatcher().batches(locations))

        assert [len(batch) for batch in batches] == [10, 10, 5]
        assert batches[0][0].id == "L00"
        assert batches[2][-1].id == "L24"

    def test_single_location(self):
        assert [len(batch) for batch in LocationBatcher().batches(make_locations(1))] == [1]

    @pytest.mark.parametrize("cap", [0, 11])
    def test_cap_out_of_range_raises(self, cap):
        """El cap no puede superar el límite de Square."""
        with pytest.raises(InvalidArgumentException):
            LocationBatcher(cap=cap)
