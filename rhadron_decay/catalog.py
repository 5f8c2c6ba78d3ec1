"""Particle catalog for the decay products

Standard model particles come from the `particle` package, the custom
(SUSY and R-hadron) particles from an SLHA-like definition file with a
mass table and decay blocks, e.g.

    BLOCK MASS
       1000021     1.80000000E+03   # ~g
       1000993     1.80070000E+03   # ~g_glueball
    DECAY   1000021     1.97326979E-16   # gluino decays
         1.00000000E+00    2     1000022    21

Masses in the catalog are in MeV, lifetimes in ns.
"""

import logging
import threading
from collections import namedtuple
from functools import lru_cache

from hepunits import GeV
from hepunits.constants import hbar
from particle import Particle, ParticleNotFound, InvalidParticle

from rhadron_decay.config_file import id_gluino, id_stop, id_sbottom
from rhadron_decay.flavour import (is_gluino_rhadron, is_stop_hadron, is_sbottom_hadron,
                                   is_mesonino, is_sbaryon, is_slepton)

logger = logging.getLogger(__name__)

CatalogEntry = namedtuple('CatalogEntry', ['pdg_id', 'name', 'mass', 'lifetime', 'kind'])

DecayChannel = namedtuple('DecayChannel', ['branching_ratio', 'daughters'])

# Codes never given an automatic antiparticle (Higgs bosons, gravitino)
self_conjugate = {25, 35, 36, 37, 1000039}


@lru_cache(maxsize=None)
def standard_particle(pdg_id):
    """Looks up a particle in the PDG tables, None when unknown."""
    try:
        part = Particle.from_pdgid(pdg_id)
    except (ParticleNotFound, InvalidParticle):
        return None
    lifetime = part.lifetime  # in ns, None for stable particles
    return CatalogEntry(pdg_id, part.name, part.mass or 0., lifetime, 'standard')


def lifetime_from_width(width):
    """Lifetime in ns for a total width in GeV."""
    return hbar / (width * GeV)


def particle_kind(pdg_id):
    if is_gluino_rhadron(pdg_id) and abs(pdg_id) != id_gluino:
        return 'rhadron'
    if is_mesonino(pdg_id):
        return 'mesonino'
    if is_sbaryon(pdg_id):
        return 'sbaryon'
    if is_slepton(pdg_id):
        return 'sLepton'
    return 'custom'


class ParticleCatalog:
    '''Particle definitions known to the simulation.
    '''
    def __init__(self, custom_particles=None):
        self._custom = {}
        self.decay_tables = {}
        for entry in custom_particles or []:
            self.add(entry)

    def add(self, entry):
        self._custom[entry.pdg_id] = entry

    def find(self, pdg_id):
        """Custom definitions shadow the standard ones. None when unknown."""
        entry = self._custom.get(pdg_id)
        if entry is not None:
            return entry
        return standard_particle(pdg_id)

    def __contains__(self, pdg_id):
        return self.find(pdg_id) is not None

    @property
    def custom_particles(self):
        return list(self._custom.values())

    def add_custom_particle(self, pdg_id, mass, name):
        """Adds a particle from the mass table, mass in MeV."""
        kind = particle_kind(pdg_id)
        self.add(CatalogEntry(pdg_id, name, max(mass, 0.), None, kind))
        logger.debug('Added custom particle %d (%s) of kind %s, mass %g GeV', pdg_id, name, kind, mass / GeV)

    def spectator(self, pdg_id):
        """Heavy constituent of an R-hadron, None for other particles."""
        sign = -1 if pdg_id < 0 else 1
        if is_gluino_rhadron(pdg_id) and abs(pdg_id) != id_gluino:
            return self.find(id_gluino)
        if is_mesonino(pdg_id) or is_sbaryon(pdg_id):
            if is_stop_hadron(pdg_id):
                return self.find(sign * id_stop)
            if is_sbottom_hadron(pdg_id):
                return self.find(sign * id_sbottom)
            logger.error('Cannot find spectator parton for %d', pdg_id)
        return None

    def cloud_mass(self, pdg_id):
        """Mass of the light cloud around the heavy constituent, in MeV."""
        entry, spectator = self.find(pdg_id), self.spectator(pdg_id)
        if entry is None or spectator is None:
            return None
        return entry.mass - spectator.mass

    def set_lifetime(self, pdg_id, lifetime):
        entry = self._custom.get(pdg_id)
        if entry is None:
            entry = self.find(pdg_id)
        self._custom[pdg_id] = entry._replace(lifetime=lifetime)

    @classmethod
    def from_slha(cls, path=None):
        """Builds the catalog from the particle definition file.

        A missing or unreadable file is logged and leaves only the
        standard particles in the catalog.
        """
        catalog = cls()
        if not path:
            logger.info('No particle definition file given, using standard particles only')
            return catalog
        try:
            with open(path) as config_file:
                lines = config_file.readlines()
        except OSError as err:
            logger.error('Could not read particle definition file %s: %s', path, err)
            return catalog

        logger.info('Reading custom particles and decay tables from %s', path)
        catalog.read_slha(lines)
        return catalog

    def read_slha(self, lines):
        """Reads the mass table and the decay blocks."""
        lines = iter(lines)
        gluino_lifetime = None
        stop_lifetime = None
        pending = None
        while True:
            line = pending if pending is not None else next(lines, None)
            pending = None
            if line is None:
                break
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            lower = line.lower()
            if 'block' in lower and 'mass' in lower:
                logger.info('Retrieving mass table')
                pending = self._read_mass_table(lines)
                continue
            if not line.upper().startswith('DECAY'):
                continue

            fields = line.split()
            pdg_id, width = int(fields[1]), float(fields[2])
            logger.debug('Decay table entry: pdgID %d, width %g', pdg_id, width)
            if width == 0. or self.find(pdg_id) is None:
                continue
            lifetime = lifetime_from_width(width)
            # Gluino and stop decays are left to the generator, only their lifetime is kept
            if pdg_id == id_gluino:
                gluino_lifetime = lifetime
                continue
            if pdg_id == id_stop:
                stop_lifetime = lifetime
                continue

            channels, pending = self._read_decay_table(lines, pdg_id)
            self.decay_tables[pdg_id] = channels
            self.set_lifetime(pdg_id, lifetime)
            anti_id = self._antiparticle(pdg_id)
            if anti_id is not None and not 999999 < abs(pdg_id) <= 2000015:
                self.decay_tables[anti_id] = [self._conjugate(channel) for channel in channels]
                self.set_lifetime(anti_id, lifetime)

        for lifetime, selects, label in [(gluino_lifetime, is_gluino_rhadron, 'gluino'),
                                         (stop_lifetime, is_stop_hadron, 'stop')]:
            if lifetime is None:
                continue
            for entry in self.custom_particles:
                if selects(entry.pdg_id) and entry.kind != 'custom':
                    self.set_lifetime(entry.pdg_id, lifetime)
                    logger.info('Setting lifetime for %s equal to lifetime of the %s: %g ns',
                                entry.name, label, lifetime)

    def _read_mass_table(self, lines):
        """Returns the line that ended the table, if any."""
        for line in lines:
            stripped = line.strip()
            if 'block' in stripped.lower() or stripped == '#' or stripped.upper().startswith('DECAY'):
                logger.info('Finished the mass table')
                return line
            if not stripped or stripped.startswith('#'):
                continue
            fields = stripped.split()
            pdg_id, mass = int(fields[0]), float(fields[1]) * GeV
            name = fields[3] if len(fields) > 3 and fields[2] == '#' else str(pdg_id)
            if pdg_id in self._custom or standard_particle(pdg_id) is not None:
                continue
            self.add_custom_particle(pdg_id, mass, name)

            anti_id = self._antiparticle(pdg_id)
            if anti_id is not None and anti_id not in self._custom:
                self.add_custom_particle(anti_id, mass, 'anti_' + name)
        return None

    def _read_decay_table(self, lines, pdg_id):
        """Returns the channels and the line that ended the block, if any."""
        channels = []
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            lower = stripped.lower()
            if stripped.startswith('#') and 'br' in lower and 'nda' in lower:
                continue
            if stripped.startswith('#') or 'block' in lower or stripped.upper().startswith('DECAY'):
                return channels, (None if stripped.startswith('#') else line)

            fields = stripped.split('#')[0].split()
            branching_ratio, n_daughters = float(fields[0]), int(fields[1])
            if n_daughters > 4:
                logger.error('Number of daughters is too large (max = 4): %d for pdgId %d', n_daughters, pdg_id)
                return channels, None
            if branching_ratio <= 0.:
                logger.error('Branching ratio is %g for pdgId %d', branching_ratio, pdg_id)
                return channels, None
            daughters = tuple(int(d) for d in fields[2:2 + n_daughters])
            for daughter in daughters:
                if self.find(daughter) is None:
                    logger.warning('Particle with PDG code %d not found', daughter)
            channels.append(DecayChannel(branching_ratio, daughters))
        return channels, None

    def _antiparticle(self, pdg_id):
        """Antiparticle code of a SUSY particle, from its standard model partner.

        R-hadrons are listed explicitly in the file and never get one here.
        """
        if pdg_id in self_conjugate or is_gluino_rhadron(pdg_id) or is_stop_hadron(pdg_id) or pdg_id == id_stop:
            return None
        if pdg_id in (1000024, 1000037):
            return -pdg_id
        partner = standard_particle(abs(pdg_id) % 100)
        if partner is None:
            return None
        try:
            anti_partner = Particle.from_pdgid(partner.pdg_id).invert()
        except (ParticleNotFound, InvalidParticle):
            return None
        if int(anti_partner.pdgid) == partner.pdg_id:
            return None
        return -pdg_id

    def _conjugate(self, channel):
        daughters = []
        for daughter in channel.daughters:
            anti_id = -daughter
            if self.find(anti_id) is None:
                anti_id = daughter
            daughters.append(anti_id)
        return DecayChannel(channel.branching_ratio, tuple(daughters))


class CatalogLoader:
    '''Builds the catalog once; later calls return the same object.

    Safe to call from several threads: the first caller builds, the
    others wait on the lock and then reuse its result.
    '''
    def __init__(self):
        self._lock = threading.Lock()
        self._catalog = None
        self.path = None

    @property
    def loaded(self):
        return self._catalog is not None

    def load(self, path=None):
        catalog = self._catalog
        if catalog is None:
            with self._lock:
                if self._catalog is None:
                    self.path = path
                    self._catalog = ParticleCatalog.from_slha(path)
                    return self._catalog
                catalog = self._catalog
        if path != self.path:
            logger.warning('Particle catalog already built from %s, ignoring %s', self.path, path)
        return catalog


_loader = CatalogLoader()


def load_custom_particles(path=None):
    """Process-wide catalog, built from path on the first call only."""
    return _loader.load(path)
