"""Conversion between simulation tracks and the Pythia event record

The simulation side uses MeV, mm and ns, Pythia uses GeV, mm and mm/c.
"""

import logging
from collections import namedtuple

import numpy as np
from hepunits import GeV, mm, c_light

from rhadron_decay.config_file import energy_scale, status_undecayed

logger = logging.getLogger(__name__)


class TrackedParticle:
    '''Kinematic state of a tracked particle at the point of decay,
    as handed over by the host simulation. Read-only for the decayer.
    '''
    def __init__(self, pdg_id, mass, momentum, position=(0., 0., 0.), global_time=0.,
                 proper_time=0., track_id=0, energy=None):
        """The initialization takes as arguments
            - pdg_id      : PDG code of the particle
            - mass        : rest mass in MeV
            - momentum    : 3-momentum in MeV
            - position    : lab position in mm
            - global_time : time since the start of the event in ns
            - proper_time : proper time of the particle in ns
            - track_id    : identifier of the track in the host
            - energy      : total energy in MeV, computed from mass and momentum if None
        """
        self.pdg_id = int(pdg_id)
        self.mass = float(mass)
        self.momentum = np.array(momentum, dtype=float)
        self.position = np.array(position, dtype=float)
        self.global_time = float(global_time)
        self.proper_time = float(proper_time)
        self.track_id = int(track_id)
        if energy is None:
            energy = np.sqrt(self.momentum.dot(self.momentum) + self.mass**2)
        self.energy = float(energy)

    @classmethod
    def from_four_momentum(cls, pdg_id, four_momentum, **kwargs):
        """Builds the particle from (px, py, pz, E) in MeV, mass from the invariant."""
        px, py, pz, energy = four_momentum
        mass2 = energy**2 - (px**2 + py**2 + pz**2)
        mass = np.sqrt(max(mass2, 0.))
        return cls(pdg_id, mass, (px, py, pz), energy=energy, **kwargs)

    @property
    def total_energy(self):
        return self.energy

    @property
    def four_momentum(self):
        return np.append(self.momentum, self.energy)

    @property
    def velocity(self):
        """Velocity in mm/ns."""
        return self.momentum / self.energy * c_light

    def __repr__(self):
        return (f'TrackedParticle(pdg_id={self.pdg_id}, mass={self.mass:.3f} MeV, '
                f'momentum={self.momentum.tolist()}, position={self.position.tolist()})')


DecayProduct = namedtuple('DecayProduct', ['pdg_id', 'momentum', 'energy', 'displacement'])
DecayProduct.__doc__ = """A final-state particle of a decay.

    - pdg_id       : PDG code
    - momentum     : 3-momentum in MeV (numpy array)
    - energy       : total energy in MeV
    - displacement : production vertex relative to the parent in mm, or None
"""


def fill_particle(track, event):
    """Resets the event and stores the track in it as an undecayed
    particle without mothers, daughters or colour.

    Returns the index of the new entry.
    """
    event.reset()

    mass = track.mass * energy_scale
    px, py, pz = track.momentum * energy_scale
    energy = track.energy * energy_scale

    return event.append(track.pdg_id, status_undecayed, 0, 0, 0, 0, 0, 0, px, py, pz, energy, mass)


def harvest_products(event, catalog):
    """Reads the final-state particles of the generated event.

    Returns the list of DecayProduct. Particles not in the catalog are
    skipped with a warning.
    """
    products = []
    for i in range(event.size()):
        entry = event[i]
        logger.debug('Decay product %d with ID %d and status %d', i, entry.id(), entry.status())
        if not entry.isFinal():
            continue

        definition = catalog.find(entry.id())
        if definition is None:
            logger.warning('No definition known for pdgid %d, skipping it', entry.id())
            continue

        momentum = np.array([entry.px(), entry.py(), entry.pz()]) * GeV
        energy = np.sqrt(momentum.dot(momentum) + definition.mass**2)

        displacement = None
        if entry.hasVertex():
            displacement = np.array([entry.xProd(), entry.yProd(), entry.zProd()]) * mm

        logger.debug('Adding %s with ID %d and momentum %s MeV', definition.name, entry.id(), momentum)
        products.append(DecayProduct(entry.id(), momentum, energy, displacement))

    return products


def total_energy(products):
    """Sum of the product energies in MeV."""
    return float(sum(product.energy for product in products))


def total_momentum(products):
    """Vector sum of the product momenta in MeV."""
    if not products:
        return np.zeros(3)
    return np.sum([product.momentum for product in products], axis=0)


def displacements(products):
    """Displacement of every product, zero when the generator gave none."""
    return [np.zeros(3) if p.displacement is None else p.displacement for p in products]
