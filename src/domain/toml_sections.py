"""Flat RendererSettings fields <-> sectioned TOML profile layout.

The model stays flat; only the file on disk is grouped into sections.
Keys outside SECTION_MAP are written to a ``[common]`` table.
"""

from __future__ import annotations

# {section_name: {flat_field_name: short_name_in_toml}}
SECTION_MAP: dict[str, dict[str, str]] = {
    'cache': {
        'cache_budget_mb': 'budget_mb',
        'entry_size_estimate_mb': 'entry_estimate_mb',
        'exact_entry_sizes': 'exact_sizes',
    },
    'fetch': {
        'fetch_timeout_s': 'timeout_s',
        'base_url': 'base_url',
        'http_cache_enabled': 'http_cache',
        'http_cache_dir': 'http_cache_dir',
    },
    'render': {
        'tile_size': 'tile_size',
        'max_zoom': 'max_zoom',
        'concurrency': 'concurrency',
    },
    'logging': {
        'log_level': 'level',
    },
}

COMMON_SECTION = 'common'

# flat field -> (section, key inside the section)
_LOCATION: dict[str, tuple[str, str]] = {
    flat: (section, short)
    for section, fields in SECTION_MAP.items()
    for flat, short in fields.items()
}

# section -> {key inside the section: flat field}
_FIELDS_BY_SECTION: dict[str, dict[str, str]] = {
    section: {short: flat for flat, short in fields.items()}
    for section, fields in SECTION_MAP.items()
}


def flat_to_sectioned(flat: dict) -> dict:
    """Group a model_dump() into TOML tables. None values are omitted."""
    result: dict = {}
    for name, value in flat.items():
        if value is None:
            continue
        section, key = _LOCATION.get(name, (COMMON_SECTION, name))
        result.setdefault(section, {})[key] = value
    return result


def sectioned_to_flat(data: dict) -> dict:
    """Inverse of flat_to_sectioned; top-level scalars are taken as flat fields."""
    flat: dict = {}
    for name, value in data.items():
        if not isinstance(value, dict):
            flat[name] = value
            continue
        fields = _FIELDS_BY_SECTION.get(name, {})
        for key, item in value.items():
            flat[fields.get(key, key)] = item
    return flat
