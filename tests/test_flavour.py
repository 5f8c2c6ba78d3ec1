import numpy as np
import pytest

from conftest import SequenceRandom
from rhadron_decay.flavour import (flat_source, is_gluino_rhadron, is_stop_hadron, is_sbottom_hadron,
                                   from_id_with_squark, from_id_with_gluino, split_rhadron)


@pytest.mark.parametrize('code', [1000993, -1000993, 1009213, -1009213, 1009113, 1093214, 1092214])
def test_gluino_rhadrons(code):
    assert is_gluino_rhadron(code)


@pytest.mark.parametrize('code', [1000612, -1000612, 1000512, 1006211, -1006213, 1005211])
def test_squark_rhadrons(code):
    assert not is_gluino_rhadron(code)


def test_gluinoball_is_special_cased():
    # no 9 at the positions of the generic rule
    assert 1000993 // 1000 % 10 != 9
    assert 1000993 // 10000 % 10 != 9
    assert is_gluino_rhadron(1000993)


def test_stop_and_sbottom_hadrons():
    assert is_stop_hadron(1000612)
    assert is_stop_hadron(1006211)
    assert not is_stop_hadron(1000512)
    assert is_sbottom_hadron(1000512)
    assert is_sbottom_hadron(-1005211)


@pytest.mark.parametrize('code, expected', [
    (1000612, (1000006, -1)),
    (-1000612, (-1000006, 1)),
    (1000622, (1000006, -2)),
    (1000512, (1000005, -1)),
    (1006211, (1000006, 2101)),
    (1006213, (1000006, 2103)),
    (-1006211, (-1000006, -2101)),
])
def test_squark_splitting(code, expected):
    assert from_id_with_squark(code) == expected


def test_squark_splitting_with_configured_ids():
    assert from_id_with_squark(1000612, id_stop=2000006) == (2000006, -1)
    assert from_id_with_squark(-1000512, id_sbottom=2000005) == (-2000005, 1)


@pytest.mark.parametrize('draw, expected', [(0.3, (1, -1)), (0.7, (2, -2))])
def test_gluinoball_splitting(draw, expected):
    rng = SequenceRandom([draw])
    assert from_id_with_gluino(1000993, rng) == expected
    assert rng.calls == 1


@pytest.mark.parametrize('code, expected', [
    (1009213, (2, -1)),
    (1009313, (1, -3)),
    (1009113, (1, -1)),
    (-1009213, (1, -2)),
])
def test_gluino_meson_splitting(code, expected):
    rng = SequenceRandom([])
    assert from_id_with_gluino(code, rng) == expected
    assert rng.calls == 0


@pytest.mark.parametrize('draws, expected', [
    ([0.1, 0.5], (3, 2101)),
    ([0.5, 0.5], (2, 3101)),
    ([0.9, 0.5], (1, 3201)),
])
def test_gluino_baryon_splitting(draws, expected):
    assert from_id_with_gluino(1093214, SequenceRandom(draws)) == expected


def test_gluino_baryon_diquark_spin():
    assert from_id_with_gluino(1093214, SequenceRandom([0.1, 0.5]), diquark_spin1=1.) == (3, 2103)
    # equal flavours are always spin 1, no second draw
    rng = SequenceRandom([0.9])
    assert from_id_with_gluino(1092214, rng) == (1, 2203)
    assert rng.calls == 1


def test_gluino_baryon_with_charm_has_fixed_split():
    for first in (0.01, 0.5, 0.99):
        assert from_id_with_gluino(1094214, SequenceRandom([first, 0.5])) == (4, 2101)


def test_anti_gluino_baryon():
    assert from_id_with_gluino(-1093214, SequenceRandom([0.1, 0.5])) == (-2101, -3)


@pytest.mark.parametrize('code', [1000993, 1009213, 1009313, 1093214, 1092214, 1000612, 1006211, 1000512])
def test_antiparticle_signs_mirror(code):
    draws = [0.2, 0.8, 0.4]
    is_gluino, particle = split_rhadron(code, SequenceRandom(draws))
    _, antiparticle = split_rhadron(-code, SequenceRandom(draws))
    if is_gluino:
        assert antiparticle == (-particle[1], -particle[0])
    else:
        assert antiparticle == (-particle[0], -particle[1])
        assert np.sign(antiparticle[0]) == -1


def test_splitting_is_deterministic_for_fixed_draws():
    results = {from_id_with_gluino(1093214, SequenceRandom([0.45, 0.6])) for _ in range(5)}
    assert len(results) == 1


def test_flat_source_accepts_common_generators():
    generator = np.random.default_rng(3)
    draw = flat_source(generator)
    assert 0. <= draw() < 1.
    assert flat_source(SequenceRandom([0.25]))() == 0.25
    with pytest.raises(TypeError):
        flat_source(object())
