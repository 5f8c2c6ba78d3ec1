from setuptools import setup

setup(
    name='rhadron_decay',
    version="0.1.0",

    description='Decays of long-lived R-hadrons in detector simulations through Pythia 8',

    install_requires=['numpy', 'particle', 'hepunits', 'pythia8mc'],
    extras_require={
        'crpropa': ['crpropa'],
        'test': ['pytest'],
    },
    packages=['rhadron_decay'],
)
