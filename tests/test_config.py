import pytest

from quadric_simplify.config import DEFAULT_MIN_FACES, SimplificationConfig


def test_defaults():
    config = SimplificationConfig()
    assert config.min_faces == DEFAULT_MIN_FACES == 4
    assert config.target_faces is None
    assert config.target_ratio is None
    assert config.max_contractions is None
    assert config.weld_vertices
    assert config.resolve_target(1000) == 4


@pytest.mark.parametrize("kwargs", [
    {"min_faces": 0},
    {"min_faces": 2.5},
    {"min_faces": True},
    {"target_faces": 10, "target_ratio": 0.5},
    {"target_faces": -1},
    {"target_ratio": 0.0},
    {"target_ratio": 1.5},
    {"max_contractions": -1},
])
def test_invalid_options_raise(kwargs):
    with pytest.raises(ValueError):
        SimplificationConfig(**kwargs)


@pytest.mark.parametrize("kwargs, initial, expected", [
    ({"target_faces": 100}, 1000, 100),
    ({"target_faces": 2}, 1000, 4),
    ({"target_ratio": 0.25}, 1280, 320),
    ({"target_ratio": 0.001}, 1280, 4),
    ({"min_faces": 50}, 1000, 50),
])
def test_resolve_target(kwargs, initial, expected):
    assert SimplificationConfig(**kwargs).resolve_target(initial) == expected


def test_overrides_replace_the_other_target():
    base = SimplificationConfig(target_faces=100, min_faces=8)

    ratio = base.with_overrides(target_ratio=0.5)
    assert ratio.target_ratio == 0.5
    assert ratio.target_faces is None
    assert ratio.min_faces == 8

    faces = ratio.with_overrides(target_faces=20)
    assert faces.target_faces == 20
    assert faces.target_ratio is None


def test_none_overrides_are_ignored():
    base = SimplificationConfig(target_faces=100)
    assert base.with_overrides(target_faces=None, target_ratio=None) == base


def test_config_is_frozen():
    with pytest.raises(AttributeError):
        SimplificationConfig().min_faces = 10
