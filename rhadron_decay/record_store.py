"""Decay vertex records handed from the decayer to the output stage

Each successful decay leaves one record with the parent track, the decay
position and the products. The output stage reads the records once per
processed event (cycle) to attach the decays to the generator-level event
history, then clears them.

Every record carries the id of the cycle it was written in, so records from
events processed concurrently can be told apart.
"""

import threading
from collections import namedtuple

DecayVertexRecord = namedtuple('DecayVertexRecord',
                               ['cycle_id', 'track_id', 'pdg_id', 'x', 'y', 'z', 't', 'products'])
DecayVertexRecord.__doc__ = """Bookkeeping of one R-hadron decay.

    - cycle_id : id of the processing cycle (event) the decay belongs to
    - track_id : host track id of the decayed particle
    - pdg_id   : PDG code of the decayed particle
    - x, y, z  : decay position in mm
    - t        : global time of the decay in ns
    - products : tuple of DecayProduct, in the order given to the host
"""


class CycleMismatchError(ValueError):
    pass


class DecayRecordStore:
    '''Lock-protected list of decay vertex records.

    The store does not know when a cycle ends: the consumer drains and
    clears it after all decays of a cycle are done.
    '''
    def __init__(self, strict_cycles=False):
        """With strict_cycles, appending a record of another cycle than
        the ones already pending raises CycleMismatchError.
        """
        self._lock = threading.Lock()
        self._records = []
        self.strict_cycles = strict_cycles

    def append(self, record):
        with self._lock:
            if self.strict_cycles and self._records and self._records[-1].cycle_id != record.cycle_id:
                raise CycleMismatchError(
                    f'record of cycle {record.cycle_id} appended while cycle '
                    f'{self._records[-1].cycle_id} is pending')
            self._records.append(record)

    def drain_all(self, cycle_id=None):
        """Copy of the stored records, all or only those of one cycle.
        The store is left unchanged.
        """
        with self._lock:
            if cycle_id is None:
                return list(self._records)
            return [record for record in self._records if record.cycle_id == cycle_id]

    def clear(self, cycle_id=None):
        with self._lock:
            if cycle_id is None:
                self._records.clear()
            else:
                self._records[:] = [record for record in self._records if record.cycle_id != cycle_id]

    def pop(self, cycle_id=None):
        """Drains and clears in one step, all records or those of one cycle."""
        with self._lock:
            if cycle_id is None:
                records, self._records = self._records, []
                return records
            records = [record for record in self._records if record.cycle_id == cycle_id]
            self._records[:] = [record for record in self._records if record.cycle_id != cycle_id]
            return records

    def pending_cycles(self):
        """Cycle ids with records in the store, in order of first appearance."""
        with self._lock:
            return list(dict.fromkeys(record.cycle_id for record in self._records))

    def __len__(self):
        with self._lock:
            return len(self._records)


_shared_store = DecayRecordStore()


def shared_store():
    """The process-wide store used when none is given to the decayer."""
    return _shared_store
