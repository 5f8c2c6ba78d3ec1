import numpy as np
import pytest

from rhadron_decay import config_file
from rhadron_decay.catalog import ParticleCatalog, CatalogEntry
from rhadron_decay.record_store import DecayRecordStore

GLUINOBALL = 1000993
NEUTRALINO = 1000022
PION = 211

# Masses in GeV, as Pythia sees them
GLUINO_MASS = 1800.
GLUINOBALL_MASS = 1800.7
STOP_MASS = 1000.
STOP_MESON_MASS = 1000.3
NEUTRALINO_MASS = 100.
PION_MASS = 0.13957039


class SequenceRandom:
    '''Random source replaying fixed numbers.'''
    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def flat(self):
        self.calls += 1
        return self.values.pop(0)


class FakeParticle:
    def __init__(self, pdg_id, status, mother1, mother2, daughter1, daughter2, col, acol, px, py, pz, e, m=0.):
        self._id, self._status = pdg_id, status
        self._mothers = (mother1, mother2)
        self._daughters = (daughter1, daughter2)
        self._col, self._acol = col, acol
        self._p = (px, py, pz, e)
        self._m = m
        self.vertex = None

    def id(self):
        return self._id

    def status(self):
        return self._status

    def isFinal(self):
        return self._status > 0

    def statusNeg(self):
        self._status = -abs(self._status)

    def daughters(self, first, last):
        self._daughters = (first, last)

    def daughterList(self):
        return self._daughters

    def mother1(self):
        return self._mothers[0]

    def col(self):
        return self._col

    def acol(self):
        return self._acol

    def px(self):
        return self._p[0]

    def py(self):
        return self._p[1]

    def pz(self):
        return self._p[2]

    def e(self):
        return self._p[3]

    def m(self):
        return self._m

    def hasVertex(self):
        return self.vertex is not None

    def xProd(self):
        return self.vertex[0]

    def yProd(self):
        return self.vertex[1]

    def zProd(self):
        return self.vertex[2]


class FakeEvent:
    '''Event record with the indexing and colour-tag rules of Pythia.'''
    start_col_tag = 100

    def __init__(self):
        self.entries = []
        self.max_col_tag = self.start_col_tag

    def reset(self):
        self.entries = []
        self.max_col_tag = self.start_col_tag
        self.append(90, -11, 0, 0, 0, 0, 0, 0, 0., 0., 0., 0., 0.)

    def append(self, *args):
        self.entries.append(FakeParticle(*args))
        return len(self.entries) - 1

    def nextColTag(self):
        self.max_col_tag += 1
        return self.max_col_tag

    def size(self):
        return len(self.entries)

    def __getitem__(self, i):
        return self.entries[i]


class FakeSettings:
    def __init__(self, **values):
        self.values = {
            'RHadrons:idGluino': config_file.id_gluino,
            'RHadrons:idStop': config_file.id_stop,
            'RHadrons:idSbottom': config_file.id_sbottom,
            'RHadrons:diquarkSpin1': config_file.diquark_spin1,
            'RHadrons:mOffsetCloud': config_file.mass_offset_cloud,
        }
        self.values.update(values)

    def mode(self, name):
        return self.values.get(name, 0)

    def parm(self, name):
        return self.values.get(name, 0.)


class FakeParticleData:
    def __init__(self):
        self.masses = {1000021: GLUINO_MASS, 1000006: STOP_MASS, 1000005: STOP_MASS}
        self.constituent_masses = {1: 0.325, 2: 0.325, 3: 0.5}
        self.sampled = {}

    def mSel(self, pdg_id):
        queued = self.sampled.get(pdg_id)
        if queued:
            return queued.pop(0)
        return self.masses[pdg_id]

    def constituentMass(self, pdg_id):
        return self.constituent_masses.get(abs(pdg_id), 0.)


def two_body_decay(daughters=(NEUTRALINO, PION), masses=(NEUTRALINO_MASS, PION_MASS), vertex=(0., 0., 0.5)):
    """Decays the R-hadron at index 1, assumed at rest, into two
    back-to-back particles along z.
    """
    def decay(event):
        parent_mass = event[1].m()
        m1, m2 = masses
        pstar = np.sqrt((parent_mass**2 - (m1 + m2)**2) * (parent_mass**2 - (m1 - m2)**2)) / (2 * parent_mass)
        for i in range(event.size()):
            if event[i].status() > 0:
                event[i].statusNeg()
        for pdg_id, mass, sign in zip(daughters, masses, (1, -1)):
            i = event.append(pdg_id, 1, 1, 0, 0, 0, 0, 0, 0., 0., sign * pstar, np.sqrt(pstar**2 + mass**2), mass)
            event[i].vertex = vertex
        return True
    return decay


class FakePythia:
    '''Stands in for pythia8.Pythia with a scripted decay.'''
    def __init__(self, decay=None, next_results=None, force_results=None, rndm=None, settings=None):
        self.event = FakeEvent()
        self.settings = settings if settings is not None else FakeSettings()
        self.particleData = FakeParticleData()
        self.rndm = rndm if rndm is not None else SequenceRandom([0.3] * 100)
        self.decay = decay if decay is not None else two_body_decay()
        self.next_results = list(next_results or [])
        self.force_results = list(force_results or [])
        self.commands = []
        self.calls = []

    def readString(self, command):
        self.commands.append(command)
        return True

    def init(self):
        return True

    def _step(self, results):
        ok = results.pop(0) if results else True
        if ok:
            self.decay(self.event)
        return ok

    def next(self):
        self.calls.append('next')
        return self._step(self.next_results)

    def forceRHadronDecays(self):
        self.calls.append('forceRHadronDecays')
        return self._step(self.force_results)


@pytest.fixture
def catalog():
    return ParticleCatalog([
        CatalogEntry(GLUINOBALL, '~g_glueball', GLUINOBALL_MASS * 1e3, 1e-3, 'rhadron'),
        CatalogEntry(NEUTRALINO, '~chi_10', NEUTRALINO_MASS * 1e3, None, 'custom'),
        CatalogEntry(1000612, '~T+', STOP_MESON_MASS * 1e3, 1e-3, 'mesonino'),
        CatalogEntry(-1000612, 'anti_~T+', STOP_MESON_MASS * 1e3, 1e-3, 'mesonino'),
    ])


@pytest.fixture
def store():
    return DecayRecordStore()


@pytest.fixture
def pythia():
    return FakePythia()
