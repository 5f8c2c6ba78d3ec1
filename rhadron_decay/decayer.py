"""Decays of long-lived R-hadrons with Pythia 8

The R-hadron is stripped down to its heavy constituent (gluino or squark)
and the light partons around it, and Pythia decays and hadronizes these.
The final-state particles are handed back to the host simulation as decay
products, and a record of the decay vertex is kept for the output stage.

A decayer owns its Pythia instance, whose event record is not reentrant:
every worker thread needs its own decayer.
"""

__version__ = "0.1.0"

import logging
import os

import numpy as np
from hepunits import GeV

from rhadron_decay.config_file import *
from rhadron_decay.catalog import load_custom_particles
from rhadron_decay.flavour import split_rhadron
from rhadron_decay.record_store import DecayVertexRecord, CycleMismatchError, shared_store
from rhadron_decay.track_bridge import fill_particle, harvest_products, total_energy, total_momentum, displacements

logger = logging.getLogger(__name__)


class RHadronDecayError(RuntimeError):
    pass


class DecayAbandoned(RHadronDecayError):
    """The decay cannot be completed, no products are returned."""


def read_command_file(path):
    """Pythia commands from a line-oriented file, comments and blank
    lines dropped. Returns None if the file cannot be read.
    """
    try:
        with open(path) as command_file:
            lines = [line.strip() for line in command_file]
    except OSError as err:
        logger.error('Could not open command file %s: %s', path, err)
        return None
    return [line for line in lines if line and not line.startswith(('#', '!'))]


def configure_generator(pythia, catalog_file=None, command_file=None, directives=default_directives, seed=None):
    """Passes the particle definitions and the commands to Pythia.

    The command file replaces the directives; if it is missing or cannot
    be read the directives are used.
    """
    if not catalog_file:
        logger.warning('No SLHA particle definitions file provided, using default Pythia8 settings')
    elif not os.path.isfile(catalog_file):
        logger.error('SLHA particle definitions file %s not found, using default Pythia8 settings', catalog_file)
    else:
        logger.info('Using SLHA particle definitions file %s', catalog_file)
        pythia.readString(f'SLHA:file = {catalog_file}')

    commands = None
    if command_file:
        logger.info('Using command file %s', command_file)
        commands = read_command_file(command_file)
    if commands is None:
        logger.info('Using default R-hadron decayer settings')
        commands = list(directives)

    if seed is not None:
        commands += ['Random:setSeed = on', f'Random:seed = {seed}']

    for command in commands:
        logger.debug('Pythia8 command: %s', command)
        pythia.readString(command)

    return commands


def get_pythia_generator(catalog_file=None, command_file=None, directives=default_directives, seed=None):
    """Builds and initializes a Pythia instance for R-hadron decays."""
    import pythia8mc as pythia8

    logger.info('Initializing Pythia8 instance for R-hadron decays')
    pythia = pythia8.Pythia()
    configure_generator(pythia, catalog_file, command_file, directives, seed)
    if not pythia.init():
        logger.error('Pythia8 initialization failed, decays will not succeed')
    else:
        logger.info('Pythia8 instance initialized')
    return pythia


class RHadronPythiaDecayer:
    '''Decays R-hadron tracks through Pythia 8.

    The host calls import_products for each decaying track and turns the
    returned products into secondaries; right after, displace_secondaries
    moves them to the vertices Pythia produced them at.
    '''
    def __init__(self, catalog_file=None, command_file=None, directives=default_directives, seed=None,
                 generator=None, catalog=None, record_store=None, energy_tolerance=energy_tolerance):
        """The initialization takes as arguments
            - catalog_file     : SLHA file with masses and decay tables
            - command_file     : file with Pythia commands, replaces directives
            - directives       : Pythia commands used without a command file
            - seed             : seed of the Pythia random number generator
            - generator        : an initialized Pythia instance, built from the above if None
            - catalog          : particle catalog, the process-wide one if None
            - record_store     : store for the decay vertex records, the process-wide one if None
            - energy_tolerance : relative band for the energy conservation check
        """
        self.catalog_file = catalog_file
        self.command_file = command_file
        self.directives = directives
        self.seed = seed
        self.energy_tolerance = energy_tolerance

        self._generator = None
        self.generator = generator

        self.catalog = catalog if catalog is not None else load_custom_particles(catalog_file)
        self.record_store = record_store if record_store is not None else shared_store()

        # Id of the event being processed, stamped on the decay vertex records
        self.cycle_id = 0

        self.momentum_fractions = ()
        self._secondary_displacements = []

    @property
    def generator(self):
        return self._generator

    @generator.setter
    def generator(self, new_generator):
        """Setting or changing the Pythia instance. With None, a new one
        is built from the catalog file, command file and directives.
        """
        if new_generator is None:
            new_generator = get_pythia_generator(self.catalog_file, self.command_file, self.directives, self.seed)
        self._generator = new_generator

        # Pythia has a default for each of these, a configured 0 is a valid value
        settings = new_generator.settings
        self.id_gluino = settings.mode('RHadrons:idGluino')
        self.id_stop = settings.mode('RHadrons:idStop')
        self.id_sbottom = settings.mode('RHadrons:idSbottom')
        self.diquark_spin1 = settings.parm('RHadrons:diquarkSpin1')
        self.mass_offset_cloud = settings.parm('RHadrons:mOffsetCloud')

    @property
    def secondary_displacements(self):
        """Displacements (mm) of the products of the last decay, in product order."""
        return list(self._secondary_displacements)

    def import_products(self, track, rng=None, cycle_id=None):
        """Decays the track and returns its products as a list of DecayProduct.

        rng is the random source of the host, borrowed for this call;
        Pythia's own generator is used if None. cycle_id is stamped on the
        decay vertex record, self.cycle_id if None. Failures are logged and
        give an empty list.
        """
        logger.debug('Importing decay products for track %d, pdgid %d, at %s, global time %g ns',
                     track.track_id, track.pdg_id, track.position, track.global_time)
        self._secondary_displacements = []
        self.momentum_fractions = ()

        try:
            products = self.pythia_decay(track, rng)
        except DecayAbandoned as err:
            logger.error('Decay of track %d (pdgid %d) abandoned: %s', track.track_id, track.pdg_id, err)
            return []
        except (RuntimeError, ValueError, IndexError, TypeError) as err:
            logger.error('Decay of track %d (pdgid %d) failed in the event record: %r',
                         track.track_id, track.pdg_id, err)
            return []

        self.check_conservation(track, products)

        self._secondary_displacements = displacements(products)
        self.store_decay_info(track, products, self.cycle_id if cycle_id is None else cycle_id)

        return products

    def check_conservation(self, track, products):
        """Warns when the products do not carry the energy or the momentum
        of the track within the tolerance band.
        """
        e_initial = track.total_energy
        e_final = total_energy(products)
        if abs(e_final - e_initial) > self.energy_tolerance * e_initial:
            logger.warning('Energy not conserved in decay. Initial energy = %g GeV, final energy = %g GeV',
                           e_initial / GeV, e_final / GeV)
        logger.debug('Total energy in was %g GeV, total energy out is %g GeV', e_initial / GeV, e_final / GeV)

        p_missing = np.linalg.norm(total_momentum(products) - track.momentum)
        if p_missing > self.energy_tolerance * e_initial:
            logger.warning('Momentum not conserved in decay. Missing momentum = %g GeV', p_missing / GeV)

    def pythia_decay(self, track, rng=None):
        """Fills the track into the Pythia event, replaces it by its
        constituents, lets Pythia decay them and harvests the final state.
        """
        event = self.generator.event
        i_rhadron = fill_particle(track, event)
        self.rhadron_to_constituents(event, i_rhadron, rng)
        self.generate()
        return harvest_products(self.generator.event, self.catalog)

    def rhadron_to_constituents(self, event, i_rhadron=1, rng=None):
        """Replaces the R-hadron at i_rhadron by its heavy constituent and
        light partons, sharing its momentum among them.

        Returns the momentum fractions of the constituents.
        """
        if rng is None:
            rng = self.generator.rndm
        id_rhadron = event[i_rhadron].id()
        m_rhadron = event[i_rhadron].m()
        p_rhadron = np.array([event[i_rhadron].px(), event[i_rhadron].py(),
                              event[i_rhadron].pz(), event[i_rhadron].e()])

        is_gluino, (id1, id2) = split_rhadron(id_rhadron, rng, self.id_stop, self.id_sbottom, self.diquark_spin1)
        id_heavy = self.id_gluino if is_gluino else abs(id1)

        # The heavy constituent is restored to its own mass
        frac_r = self.heavy_mass_fraction(id_heavy, id_rhadron, m_rhadron)

        if not is_gluino:
            col_tag = event.nextColTag()
            col, acol = (col_tag, 0) if id1 > 0 else (0, col_tag)
            fractions = (frac_r, 1. - frac_r)
            i_first = self._append_constituent(event, id1, i_rhadron, col, acol, p_rhadron, m_rhadron, fractions[0])
            i_last = self._append_constituent(event, id2, i_rhadron, acol, col, p_rhadron, m_rhadron, fractions[1])
        else:
            particle_data = self.generator.particleData
            m1_eff = particle_data.constituentMass(id1) + self.mass_offset_cloud
            m2_eff = particle_data.constituentMass(id2) + self.mass_offset_cloud
            frac1 = (1. - frac_r) * m1_eff / (m1_eff + m2_eff)
            frac2 = (1. - frac_r) * m2_eff / (m1_eff + m2_eff)
            fractions = (frac_r, frac1, frac2)

            col1 = event.nextColTag()
            col2 = event.nextColTag()
            i_first = self._append_constituent(event, self.id_gluino, i_rhadron, col2, col1,
                                               p_rhadron, m_rhadron, frac_r)
            self._append_constituent(event, id1, i_rhadron, col1, 0, p_rhadron, m_rhadron, frac1)
            i_last = self._append_constituent(event, id2, i_rhadron, 0, col2, p_rhadron, m_rhadron, frac2)

        # Mark the R-hadron as decayed into the constituents
        event[i_rhadron].statusNeg()
        event[i_rhadron].daughters(i_first, i_last)

        self.momentum_fractions = fractions
        return fractions

    def heavy_mass_fraction(self, id_heavy, id_rhadron, m_rhadron):
        """Share of the R-hadron mass taken by the heavy constituent. The
        constituent mass is resampled while it exceeds the R-hadron mass.
        """
        particle_data = self.generator.particleData
        m_heavy = particle_data.mSel(id_heavy)
        attempts = 0
        while m_heavy >= m_rhadron:
            attempts += 1
            if attempts == resample_warn_attempts:
                logger.warning('Needed %d attempts with constituent %d mass (%g GeV) above R-hadron %d mass %g GeV',
                               attempts, id_heavy, m_heavy, id_rhadron, m_rhadron)
            elif attempts > resample_max_attempts:
                raise DecayAbandoned(f'constituent {id_heavy} mass above R-hadron {id_rhadron} mass '
                                     f'{m_rhadron} GeV in more than {resample_max_attempts} attempts')
            m_heavy = particle_data.mSel(id_heavy)
        return m_heavy / m_rhadron

    def _append_constituent(self, event, pdg_id, mother, col, acol, p_rhadron, m_rhadron, fraction):
        px, py, pz, e = fraction * p_rhadron
        return event.append(pdg_id, status_constituent, mother, 0, 0, 0, col, acol,
                            px, py, pz, e, fraction * m_rhadron)

    def generate(self):
        """Runs Pythia on the filled event, with one forced R-hadron decay
        as fallback.
        """
        if self._run(self.generator.next):
            return
        logger.warning('Pythia failed to generate the event, forcing R-hadron decay')
        if not self._run(self.generator.forceRHadronDecays):
            raise DecayAbandoned('Pythia failed to generate the event and the forced R-hadron decay failed')

    def _run(self, step):
        try:
            return bool(step())
        except RuntimeError as err:
            logger.warning('Pythia raised during %s: %s', getattr(step, '__name__', 'generation'), err)
            return False

    def store_decay_info(self, track, products, cycle_id=None):
        """Appends the decay vertex record for the output stage."""
        if cycle_id is None:
            cycle_id = self.cycle_id
        x, y, z = track.position
        record = DecayVertexRecord(cycle_id, track.track_id, track.pdg_id, x, y, z, track.global_time,
                                   tuple(products))
        try:
            self.record_store.append(record)
        except CycleMismatchError as err:
            logger.error('Decay vertex record of track %d not stored: %s', track.track_id, err)

    def displace_secondaries(self, positions):
        """Moves the secondaries of the last decay to their production
        vertices. positions are the secondary positions (mm) in product
        order; the shifted positions are returned in the same order.
        """
        if len(positions) != len(self._secondary_displacements):
            raise ValueError(f'{len(positions)} secondaries for {len(self._secondary_displacements)} decay products')
        shifted = [np.array(position, dtype=float) for position in positions]
        for i in range(len(shifted) - 1, -1, -1):
            logger.debug('Updating secondary %d at %s by %s', i, shifted[i], self._secondary_displacements[i])
            shifted[i] = shifted[i] + self._secondary_displacements[i]
        return shifted
