"""R-hadron decays as a CRPropa module

Samples the decay of R-hadron candidates from their lifetime, lets the
Pythia decayer produce the decay products and injects them as secondaries
at the displaced production vertices.

The decay vertex records are stamped with the serial number of the source
candidate; collect them with RHadronDecays.pop_decay_records once the
source is done, otherwise they pile up in the store.
"""

from numpy import log, sqrt, array
from numpy.linalg import norm

import hepunits as units
from crpropa import Candidate, GeV, Module, ParticleState, Vector3d, Random, c_light, meter

from rhadron_decay.decayer import RHadronPythiaDecayer
from rhadron_decay.track_bridge import TrackedParticle

decaying_kinds = ('rhadron', 'mesonino', 'sbaryon')


def to_array(vector):
    return array([vector.x, vector.y, vector.z])


class RHadronDecays(Module):
    '''Module handing decaying R-hadrons over to the Pythia decayer
    '''
    def __init__(self, decayer=None, seed=None, **decayer_kwargs):
        """The initialization takes as arguments
            - decayer        : a RHadronPythiaDecayer, built from decayer_kwargs if None
            - seed           : random number generator seed
            - decayer_kwargs : passed to RHadronPythiaDecayer
        """
        Module.__init__(self)

        self.decayer = decayer if decayer is not None else RHadronPythiaDecayer(**decayer_kwargs)

        if seed is None:
            self.random_number_generator = Random()  # using the eponymous class from CRPropa
        else:
            self.random_number_generator = Random(seed)

    def pop_decay_records(self, source_serial_number=None):
        """Decay vertex records of one source candidate (all if None),
        removed from the store. Records are kept until collected here.
        """
        return self.decayer.record_store.pop(source_serial_number)

    def decay_length(self, entry, momentum):
        """Mean decay length in mm for a momentum in MeV."""
        if entry.mass <= 0:
            return 0.
        return momentum / entry.mass * units.c_light * entry.lifetime

    def process(self, candidate):
        """Decays R-hadron candidates when the sampled decay point falls
        within the current step.
        """
        pid = candidate.current.getId()
        entry = self.decayer.catalog.find(pid)
        if entry is None or entry.kind not in decaying_kinds or not entry.lifetime:
            return

        energy = candidate.current.getEnergy() / GeV * units.GeV  # in MeV
        momentum = sqrt(max(energy**2 - entry.mass**2, 0.))

        current_step = candidate.getCurrentStep() / meter * units.m  # in mm
        random_number = self.random_number_generator.rand()
        decay_step = -log(random_number) * self.decay_length(entry, momentum)
        if decay_step >= current_step:
            return

        # Decay position in CRPropa coordinates, stepping back from the end of the step
        step_back = (current_step - decay_step) / units.m * meter
        decay_position = candidate.current.getPosition() - candidate.current.getDirection() * step_back

        direction = to_array(candidate.current.getDirection())
        elapsed = candidate.getTrajectoryLength() - step_back
        track = TrackedParticle(
            pid, entry.mass, momentum * direction,
            position=to_array(decay_position) / meter * units.m,
            global_time=elapsed / c_light * units.s,
            track_id=candidate.getSerialNumber(),
            energy=energy,
        )

        # Decays of all descendants of one source particle share a cycle
        cycle_id = candidate.getSourceSerialNumber()
        products = self.decayer.import_products(track, self.random_number_generator, cycle_id=cycle_id)
        positions = self.decayer.displace_secondaries([track.position] * len(products))

        for product, position in zip(products, positions):
            # Injecting secondaries, adding secondary to parent's particle stack
            pnorm = norm(product.momentum)
            if pnorm > 0:
                pvector = product.momentum / pnorm
                product_direction = Vector3d(pvector[0], pvector[1], pvector[2])
            else:
                product_direction = candidate.current.getDirection()
            crpropa_position = position / units.m * meter
            ps = ParticleState(int(product.pdg_id), product.energy / units.GeV * GeV,
                               Vector3d(crpropa_position[0], crpropa_position[1], crpropa_position[2]),
                               product_direction)
            candidate.addSecondary(Candidate(ps))

        candidate.setActive(False)
