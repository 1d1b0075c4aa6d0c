import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple

import numpy as np

import common.flags as FLAG
from schema.messages import pb2 as msg
from common.common import PRINTV, parMap
from topology.topology import Network


@dataclass(frozen=True)
class FlowSlice:
    '''
    The part of a flow offered to one link. Under the decoupling
    approximation, the flow enters the link as if it started fresh: no
    queuing state from other links is carried over, only the propagation
    delays before and after the link and the rate of its access link.
    '''
    flow_id: str
    src: str
    dst: str
    # Flow size in bytes.
    size: int
    # Flow start time in nanoseconds.
    start: int
    # Sum of propagation delays of the links before this link.
    upstream_delay: int
    # Sum of propagation delays of the links after this link.
    downstream_delay: int
    # Capacity (bps) of the first link on the flow path.
    access_capacity: float

    def toProto(self):
        return msg.FlowSlice(flow_id=self.flow_id, src=self.src, dst=self.dst,
                             size_bytes=self.size, start_ns=self.start,
                             upstream_delay_ns=self.upstream_delay,
                             downstream_delay_ns=self.downstream_delay,
                             access_capacity_bps=self.access_capacity)

@dataclass(frozen=True)
class LinkSimDescriptor:
    '''
    Everything needed to simulate one link in isolation: the link itself and
    the slices of all flows crossing it, sorted by start time (ties broken by
    flow id).
    '''
    link_id: str
    src: str
    dst: str
    # Link capacity in bps.
    capacity: float
    # Link propagation delay in nanoseconds.
    delay: int
    flows: Tuple[FlowSlice, ...]
    # Rate (bps) of the ACKs of reverse traffic that share the link.
    ack_rate: float = 0.0

    def isIdle(self):
        return not self.flows

    def numFlows(self):
        return len(self.flows)

    def flowIds(self):
        return [s.flow_id for s in self.flows]

    def sizes(self):
        return np.array([s.size for s in self.flows], dtype=np.float64)

    def interArrivals(self):
        '''
        Returns the gaps between consecutive flow starts, in nanoseconds.
        '''
        starts = np.array([s.start for s in self.flows], dtype=np.float64)
        return np.diff(starts)

    def duration(self):
        '''
        Returns the time between the first and the last flow start.
        '''
        if len(self.flows) < 2:
            return 0
        return self.flows[-1].start - self.flows[0].start

    def availableCapacity(self):
        '''
        Returns the capacity (bps) left for data once the ACKs are served.
        '''
        return self.capacity - self.ack_rate

    def offeredLoad(self):
        '''
        Returns the offered load of the flows normalized to the link capacity.
        A link with less than 2 flows (no measurable duration) has load 0.
        '''
        duration = self.duration()
        if duration == 0:
            return 0.0
        bps = self.sizes().sum() * 8 * 1e9 / duration
        return float(bps / self.capacity)

    def toProto(self):
        desc = msg.LinkSimDescriptor(link_id=self.link_id, src=self.src,
                                     dst=self.dst, capacity_bps=self.capacity,
                                     delay_ns=self.delay,
                                     ack_rate_bps=self.ack_rate)
        desc.flows.extend([s.toProto() for s in self.flows])
        return desc

def descriptorFromProto(desc_proto):
    slices = tuple(FlowSlice(s.flow_id, s.src, s.dst, s.size_bytes,
                             s.start_ns, s.upstream_delay_ns,
                             s.downstream_delay_ns, s.access_capacity_bps)
                   for s in desc_proto.flows)
    return LinkSimDescriptor(desc_proto.link_id, desc_proto.src,
                             desc_proto.dst, desc_proto.capacity_bps,
                             desc_proto.delay_ns, slices,
                             desc_proto.ack_rate_bps)

class DecomposedNetwork:
    '''
    A validated network plus one link simulation descriptor per link, not
    clustered yet.
    '''
    def __init__(self, network, descriptors):
        self.network = network
        # A map from link id to descriptor, in link id order.
        self._descriptors = {d.link_id: d
                             for d in sorted(descriptors,
                                             key=lambda d: d.link_id)}

    def descriptors(self):
        '''
        Returns all descriptors sorted by link id.
        '''
        return list(self._descriptors.values())

    def numDescriptors(self):
        return len(self._descriptors)

    def getDescriptor(self, link_id):
        return self._descriptors.get(link_id)

def ackRate(network, link, crossings):
    '''
    Returns the rate (bps) of the ACKs crossing `link`: the flows on the
    reverse link each send SZ_ACK bytes back per data packet, spread over the
    time between the first and the last of their starts. 0 if there is no
    reverse link or it carries less than 2 flows.

    crossings: a map from link id to the (flow, hop) tuples of that link.
    '''
    reverse = network.findLink(link.dst, link.src)
    if reverse is None:
        return 0.0
    flows = [flow for flow, _ in crossings[reverse.id]]
    starts = [f.start for f in flows]
    if len(flows) < 2 or max(starts) == min(starts):
        return 0.0
    ack_bytes = sum(math.ceil(f.size / FLAG.SZ_PKTMAX) * FLAG.SZ_ACK
                    for f in flows)
    return float(round(ack_bytes * 8 * 1e9 / (max(starts) - min(starts))))

def describeLink(network, link, crossings, ack_rate=0.0):
    '''
    Builds the descriptor of `link`.

    crossings: a list of (flow, hop) tuples, `hop` being the position of
               `link` on the flow path.
    ack_rate: rate (bps) of the ACKs sharing the link, see ackRate().
    '''
    slices = []
    for flow, hop in crossings:
        links = network.linksOf(flow.id)
        slices.append(FlowSlice(
            flow_id=flow.id, src=flow.src, dst=flow.dst, size=flow.size,
            start=flow.start,
            upstream_delay=sum(l.delay for l in links[:hop]),
            downstream_delay=sum(l.delay for l in links[hop + 1:]),
            access_capacity=links[0].capacity))
    slices.sort(key=lambda s: (s.start, s.flow_id))
    return LinkSimDescriptor(link.id, link.src, link.dst, link.capacity,
                             link.delay, tuple(slices), ack_rate)

def decompose(network):
    '''
    Validates `network` and splits it into one LinkSimDescriptor per link.
    A descriptor only depends on the flows whose path includes its link.

    Returns a DecomposedNetwork. Raises InvalidTopology if the network is
    malformed.
    '''
    if not isinstance(network, Network):
        raise TypeError(f'decompose: expects a Network, got '
                        f'{type(network).__name__}.')
    t = time.time()
    network.validate()
    # Index flows by link. Flows are visited in id order so every per-link
    # list is built the same way regardless of workload insertion order.
    crossings = {link.id: [] for link in network.links()}
    for flow in network.flows():
        for hop, link_id in enumerate(flow.path):
            crossings[link_id].append((flow, hop))
    descriptors = parMap(
        lambda link: describeLink(network, link, crossings[link.id],
                                  ackRate(network, link, crossings)),
        network.links())
    PRINTV(1, f'{datetime.now()} [decompose] {len(descriptors)} link '
           f'descriptors built in {time.time() - t:.3f} sec.')
    return DecomposedNetwork(network, descriptors)
