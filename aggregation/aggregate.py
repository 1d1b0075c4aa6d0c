import time
from datetime import datetime
from functools import reduce

import common.flags as FLAG
from aggregation.distribution import DelayDistribution
from common.common import PRINTV, parMap
from dispatch.coordinator import SimulatedNetwork


def idealFct(size, links):
    '''
    Returns the completion time (ns) of a flow of `size` bytes on an unloaded
    path `links`: the head packet is stored and forwarded by every hop, the
    rest of the flow streams behind it at the bottleneck rate, plus the
    propagation delay of every hop.
    '''
    pktmax, hdr = FLAG.SZ_PKTMAX, FLAG.SZ_PKTHDR
    bandwidths = [l.capacity for l in links]
    head_payload = min(pktmax, size)
    head = head_payload + hdr if head_payload else 0
    head_delay = sum(head * 8 * 1e9 / bw for bw in bandwidths)
    rest = size - head_payload
    num_full, partial_payload = divmod(rest, pktmax)
    partial = partial_payload + hdr if partial_payload else 0
    rest_delay = ((num_full * (pktmax + hdr) + partial) * 8 * 1e9 /
                  min(bandwidths))
    prop_delay = sum(l.delay for l in links)
    return head_delay + rest_delay + prop_delay

def composePath(dists):
    '''
    Returns the distribution of the sum of independent per-hop delays,
    convolved in path order. A single hop is returned as is.
    '''
    return reduce(lambda acc, d: acc.convolve(d), dists)

class DelayNetwork:
    '''
    The terminal pipeline stage: per-link delay distributions, bucketed by
    flow size and inherited from cluster representatives, and per-flow
    end-to-end delay distributions.
    Read-only, all queries are safe to call concurrently.

    A flow delay is the time the flow spends in the network beyond its ideal
    completion time, see idealFct().
    '''
    def __init__(self, simulated, flow_dists):
        self.simulated = simulated
        self.network = simulated.network
        self._flow_dists = flow_dists

    def _flow(self, flow_id):
        flow = self.network.getFlow(flow_id)
        if flow is None:
            raise KeyError(f'unknown flow {flow_id}')
        return flow

    def flowDistribution(self, flow_id):
        '''
        Returns the end-to-end delay distribution of a flow.
        '''
        self._flow(flow_id)
        return self._flow_dists[flow_id]

    def fctDistribution(self, flow_id):
        '''
        Returns the completion time distribution of a flow, i.e., its delay
        distribution shifted by its ideal completion time.
        '''
        return self.flowDistribution(flow_id).shift(self.idealFct(flow_id))

    def linkDistribution(self, link_id, size=None):
        '''
        Returns the delay distribution of flows of `size` bytes on a link, of
        all flows on it if `size` is None.
        '''
        if self.network.getLink(link_id) is None:
            raise KeyError(f'unknown link {link_id}')
        return self.simulated.linkDistribution(link_id, size)

    def percentile(self, flow_id, p):
        return self.flowDistribution(flow_id).percentile(p)

    def groupPercentile(self, flow_ids, p):
        '''
        Returns the p-th percentile of the delay of a flow picked uniformly at
        random from `flow_ids`.
        '''
        flow_ids = list(flow_ids)
        if not flow_ids:
            raise ValueError('groupPercentile: empty flow group.')
        return DelayDistribution.mixture(
            [self.flowDistribution(f) for f in flow_ids]).percentile(p)

    def percentileBySource(self, src, p):
        '''
        Returns the p-th percentile of the delay over all flows sent by host
        `src`.
        '''
        flow_ids = [f.id for f in self.network.flows() if f.src == src]
        if not flow_ids:
            raise ValueError(f'percentileBySource: no flow from {src}.')
        return self.groupPercentile(flow_ids, p)

    def idealFct(self, flow_id):
        flow = self._flow(flow_id)
        return idealFct(flow.size, self.network.linksOf(flow_id))

    def predict(self, flow_id, rng):
        '''
        Returns one predicted completion time (ns) of a flow: its ideal
        completion time plus a delay drawn with numpy Generator `rng`.
        '''
        return self.idealFct(flow_id) + self.flowDistribution(flow_id).sample(
            rng)

    def slowdownPercentile(self, flow_id, p):
        '''
        Returns the p-th percentile of the slowdown of a flow, the ratio of
        its completion time to its ideal completion time.
        '''
        ideal = self.idealFct(flow_id)
        if ideal == 0:
            return 1.0
        return (ideal + self.percentile(flow_id, p)) / ideal

def aggregate(simulated):
    '''
    Propagates every cluster's size buckets to the cluster members, then
    composes the link distributions along every flow path, each link
    contributing the bucket that holds the flow size. Flows sharing a path
    and the same buckets share the composed distribution.

    Returns a DelayNetwork.
    '''
    if not isinstance(simulated, SimulatedNetwork):
        raise TypeError(f'aggregate: expects a SimulatedNetwork, got '
                        f'{type(simulated).__name__}.')
    t = time.time()
    network = simulated.network
    buckets = {l.id: simulated.linkBuckets(l.id) for l in network.links()}
    # A map from flow id to its (link id, bucket index) hops.
    flow_keys = {f.id: tuple((l, buckets[l].indexOf(f.size)) for l in f.path)
                 for f in network.flows()}
    keys = sorted(set(flow_keys.values()))
    composed = parMap(
        lambda key: composePath([buckets[l].bucketDistribution(i)
                                 for l, i in key]),
        keys)
    key_dists = dict(zip(keys, composed))
    flow_dists = {flow_id: key_dists[key]
                  for flow_id, key in flow_keys.items()}
    PRINTV(1, f'{datetime.now()} [aggregate] {len(flow_dists)} flows over '
           f'{len(keys)} unique paths and buckets composed in '
           f'{time.time() - t:.3f} sec.')
    return DelayNetwork(simulated, flow_dists)
