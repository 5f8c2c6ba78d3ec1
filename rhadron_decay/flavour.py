"""Flavour content of R-hadrons

Splits an R-hadron PDG code into its heavy coloured constituent (gluino or
squark) and the light quark, antiquark or diquark cloud around it. The
splitting follows the R-hadron decay treatment in Pythia 8.

All functions are pure; the gluino splitting draws random numbers only from
the source handed in by the caller.
"""

from rhadron_decay.config_file import id_gluinoball, id_stop, id_sbottom, diquark_spin1


def flat_source(rng):
    """Returns a function drawing uniform numbers in [0, 1) from rng.

    Accepts a Pythia Rndm (flat), a CRPropa Random (rand) or anything
    with a random method (numpy Generator, random.Random).
    """
    for method in ('flat', 'rand', 'random'):
        draw = getattr(rng, method, None)
        if callable(draw):
            return draw
    if callable(rng):
        return rng
    raise TypeError(f'{type(rng).__name__} cannot be used as random source')


def _digit(code, position):
    """Digit of |code| at 10**position."""
    return abs(code) // 10**position % 10


def _light_content(code):
    return (abs(code) - 1000000) // 10


def is_gluino_rhadron(code):
    """Gluino R-hadrons have a 9 in place of the first light quark,
    i.e. 109xxxx (baryons) or 1009xxx (mesons). The gluinoball 1000993
    is the exception.
    """
    if _digit(code, 4) == 9 or _digit(code, 3) == 9:
        return True
    return abs(code) == id_gluinoball


def is_stop_hadron(code):
    return _digit(code, 3) == 6 or _digit(code, 2) == 6


def is_sbottom_hadron(code):
    return _digit(code, 3) == 5 or _digit(code, 2) == 5


def is_mesonino(code):
    return abs(code) % 10000 // 100 in (5, 6)


def is_sbaryon(code):
    return abs(code) % 10000 // 1000 in (5, 6)


def is_slepton(code):
    return abs(code) // 100 % 10000 == 0 and _digit(code, 1) == 1


def from_id_with_squark(code, id_stop=id_stop, id_sbottom=id_sbottom):
    """Splits a squark R-hadron into (squark, light quark or diquark).

    Mesons hold a single light antiquark, baryons a diquark whose spin
    is taken from the spin digit of the R-hadron.
    """
    id_light = _light_content(code)
    id_squark = id_light // 10 if id_light < 100 else id_light // 100
    id1 = id_stop if id_squark == 6 else id_sbottom
    if code < 0:
        id1 = -id1

    id2 = id_light % 10 if id_light < 100 else id_light % 100
    if id2 > 10:
        id2 = 100 * id2 + abs(code) % 10
    if (id2 < 10 and code > 0) or (id2 > 10 and code < 0):
        id2 = -id2

    return id1, id2


def from_id_with_gluino(code, rng, diquark_spin1=diquark_spin1):
    """Splits a gluino R-hadron into the two light partons that carry
    the colour of the gluino.

    Returns (id1, id2):
    - gluinoballs: d dbar or u ubar, equally likely
    - mesons: quark and antiquark
    - baryons: quark and diquark, chosen among the three combinations
    """
    flat = flat_source(rng)
    id_light = _light_content(code)

    if id_light < 100:
        id1 = 1 if flat() < 0.5 else 2
        id2 = -id1

    elif id_light < 1000:
        id1 = id_light // 10 % 10
        id2 = -(id_light % 10)
        # Flip signs when first quark of down-type
        if id1 % 2 == 1:
            id1, id2 = -id2, -id1

    else:
        id_a = id_light // 100 % 10
        id_b = id_light // 10 % 10
        id_c = id_light % 10
        rndm_q = 3. * flat()
        # c and b quarks are kept out of the diquark
        if id_a > 3:
            rndm_q = 0.5
        if rndm_q < 1.:
            id1, pair = id_a, (id_b, id_c)
        elif rndm_q < 2.:
            id1, pair = id_b, (id_a, id_c)
        else:
            id1, pair = id_c, (id_a, id_b)
        id2 = _diquark(pair, flat, diquark_spin1)

    if code < 0:
        id1, id2 = -id2, -id1

    return id1, id2


def _diquark(pair, flat, spin1_probability):
    """Diquark code qq(2s+1); equal flavours are always spin 1."""
    heavier, lighter = pair
    id_diquark = 1000 * heavier + 100 * lighter + 3
    if heavier != lighter and flat() > spin1_probability:
        id_diquark -= 2
    return id_diquark


def split_rhadron(code, rng, id_stop=id_stop, id_sbottom=id_sbottom, diquark_spin1=diquark_spin1):
    """Classifies and splits in one go.

    Returns (is_gluino, (id1, id2)).
    """
    if is_gluino_rhadron(code):
        return True, from_id_with_gluino(code, rng, diquark_spin1)
    return False, from_id_with_squark(code, id_stop, id_sbottom)
