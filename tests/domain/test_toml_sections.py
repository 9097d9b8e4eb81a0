"""Tests for TOML sectioned settings mapping layer."""

import tomlkit

from domain.models import RendererSettings
from domain.toml_sections import (
    SECTION_MAP,
    flat_to_sectioned,
    sectioned_to_flat,
)


class TestFlatToSectioned:
    """Tests for flat_to_sectioned()."""

    def test_creates_expected_sections(self):
        result = flat_to_sectioned(RendererSettings().model_dump())
        assert set(result) == {'cache', 'fetch', 'render', 'logging'}
        assert result['cache']['budget_mb'] == 200
        assert result['logging']['level'] == 'INFO'

    def test_none_values_dropped(self):
        """TOML has no null: unset optional fields are left out."""
        result = flat_to_sectioned(RendererSettings().model_dump())
        assert 'base_url' not in result['fetch']

    def test_unknown_keys_go_to_common(self):
        assert flat_to_sectioned({'extra_key': 1}) == {'common': {'extra_key': 1}}

    def test_every_field_is_mapped(self):
        mapped = {flat for fields in SECTION_MAP.values() for flat in fields}
        assert mapped == set(RendererSettings.model_fields)


class TestSectionedToFlat:
    """Tests for sectioned_to_flat()."""

    def test_expands_short_names(self):
        flat = sectioned_to_flat({'cache': {'budget_mb': 64}, 'fetch': {'timeout_s': 5}})
        assert flat == {'cache_budget_mb': 64, 'fetch_timeout_s': 5}

    def test_flat_top_level_passes_through(self):
        assert sectioned_to_flat({'tile_size': 512}) == {'tile_size': 512}

    def test_toml_round_trip(self):
        settings = RendererSettings(
            cache_budget_mb=64, base_url='https://cdn.example', concurrency=2
        )
        text = tomlkit.dumps(flat_to_sectioned(settings.model_dump()))
        restored = RendererSettings.model_validate(
            sectioned_to_flat(tomlkit.parse(text).unwrap())
        )
        assert restored == settings
