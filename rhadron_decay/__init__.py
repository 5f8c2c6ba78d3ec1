"""Decays of long-lived R-hadrons through Pythia 8."""

from rhadron_decay.decayer import __version__, RHadronPythiaDecayer, RHadronDecayError, DecayAbandoned
from rhadron_decay.track_bridge import TrackedParticle, DecayProduct
from rhadron_decay.record_store import DecayVertexRecord, DecayRecordStore, shared_store
from rhadron_decay.catalog import ParticleCatalog, load_custom_particles
