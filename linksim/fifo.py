import math

import common.flags as FLAG
from aggregation.buckets import DelaySamples
from common.common import PRINTV
from linksim.linksim import LinkSim, registerLinkSim


@registerLinkSim
class FifoLink(LinkSim):
    '''
    A fluid FIFO link. Flows reach the link after their upstream propagation
    delay and are served one at a time in arrival order. A flow cannot finish
    before its access link has delivered its last byte.

    Data is served at the capacity left once the ACKs of reverse traffic are
    served. The delay of a flow is the time it spends on the link beyond what
    it would take on an idle link at full capacity. Transmission and
    propagation are part of the ideal completion time and excluded here.
    '''
    name = 'fifo'

    def __init__(self, sz_pktmax=None, sz_pkthdr=None):
        self.sz_pktmax = sz_pktmax or FLAG.SZ_PKTMAX
        self.sz_pkthdr = FLAG.SZ_PKTHDR if sz_pkthdr is None else sz_pkthdr

    def params(self):
        return {'sz_pktmax': self.sz_pktmax, 'sz_pkthdr': self.sz_pkthdr}

    def wireBytes(self, size):
        '''
        Returns the number of bytes put on the wire for a flow of `size`
        bytes, packet headers included.
        '''
        return size + math.ceil(size / self.sz_pktmax) * self.sz_pkthdr

    def run(self, descriptor):
        if descriptor.isIdle():
            return DelaySamples.empty()
        rate = descriptor.availableCapacity()
        if rate <= 0:
            PRINTV(0, f'[ERROR] FifoLink: ACKs use up all of the capacity '
                   f'of link {descriptor.link_id}.')
            raise ValueError(f'no capacity left for data on link '
                             f'{descriptor.link_id}')
        arrivals = sorted(descriptor.flows,
                          key=lambda s: (s.start + s.upstream_delay,
                                         s.flow_id))
        # Time at which the link finishes serving all earlier arrivals.
        free = 0.0
        sizes, delays = [], []
        for s in arrivals:
            arrival = s.start + s.upstream_delay
            bits = self.wireBytes(s.size) * 8
            tx = bits * 1e9 / rate
            access = bits * 1e9 / s.access_capacity
            ideal = max(bits * 1e9 / descriptor.capacity, access)
            begin = max(arrival, free)
            finish = max(begin + tx, arrival + access)
            free = begin + tx
            sizes.append(s.size)
            # Rounded to whole nanoseconds to absorb float error.
            delays.append(max(0.0, round(finish - arrival - ideal)))
        return DelaySamples(sizes, delays)
