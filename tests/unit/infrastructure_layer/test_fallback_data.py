"""
Unit Tests for StaticFallbackDataset

Tests substitute lookup order and isolation of stored payloads.
"""

import pytest

from adaptive_cache.fallback_data import StaticFallbackDataset


@pytest.mark.unit
class TestStaticFallbackDataset:
    """Test substitute lookup."""

    def test_exact_key_wins(self, fallback_dataset):
        assert fallback_dataset.lookup("search_drupal_functions:node_load") == [
            {"name": "node_load", "static": True}
        ]

    def test_operation_prefix_used_next(self, fallback_dataset):
        assert fallback_dataset.lookup("search_drupal_functions:other") == []

    def test_default_used_last(self, fallback_dataset):
        assert fallback_dataset.lookup("get_site_info") == {"results": [], "static": True}

    def test_empty_dataset_returns_none(self):
        assert StaticFallbackDataset().lookup("anything") is None

    def test_values_are_copies(self):
        dataset = StaticFallbackDataset(operations={"op": {"items": []}})

        dataset.lookup("op:1")["items"].append("mutated")
        assert dataset.lookup("op:1") == {"items": []}

    def test_register(self):
        dataset = StaticFallbackDataset()
        dataset.register("op:key", 1)
        dataset.register_operation("other", 2)

        assert "op:key" in dataset
        assert "other:anything" in dataset
        assert "missing" not in dataset
        assert len(dataset) == 2
