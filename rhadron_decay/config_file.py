"""A configuration file for the R-hadron decay module

Energies in the simulation are in MeV, lengths in mm and times in ns.
Pythia works in GeV and mm (mm/c for times).
"""

from hepunits import GeV

# Directives used when no command file is given (or it cannot be read)
default_directives = [
    "ProcessLevel:all = off",
    "SUSY:all = on",
    "RHadrons:allow = on",
    "RHadrons:allowDecay = on",
    "RHadrons:probGluinoball = 0.1",
    "PartonLevel:FSR = off",
    "Init:showChangedSettings = off",
    "Init:showChangedParticleData = off",
    "Next:numberShowEvent = 0",
]

# Fixed scale from simulation energies to generator energies
energy_scale = 1. / GeV

# Heavy constituents, as in Pythia RHadrons:idGluino/idStop/idSbottom
id_gluino = 1000021
id_stop = 1000006
id_sbottom = 1000005

# Special gluinoball code, gluino-like despite its digits
id_gluinoball = 1000993

# Probability that a diquark of two different flavours has spin 1
diquark_spin1 = 0.

# Added to the constituent masses when sharing the gluino R-hadron cloud, GeV
mass_offset_cloud = 0.2

# Resampling of the heavy constituent mass when heavier than the R-hadron
resample_warn_attempts = 10
resample_max_attempts = 100

# Relative band for the outgoing vs incoming energy check
energy_tolerance = 0.01

# Pythia status code given to the constituents of a decayed R-hadron
status_constituent = 106

# Status code of the R-hadron when filled into the event
status_undecayed = 1
