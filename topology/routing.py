import zlib
from collections import deque

from common.common import PRINTV
from common.errors import InvalidTopology
from topology.topology import Network


def stableHash(key):
    '''
    Returns a hash of string `key` that is identical across processes (unlike
    the builtin hash(), which is salted per interpreter).
    '''
    return zlib.crc32(key.encode('utf-8'))

class EcmpRoutes:
    '''
    Shortest-path (ECMP) routes of a network. Only switches forward traffic, a
    host can only be the first or last node of a path. Routes towards a
    destination are computed lazily by a BFS over the reversed links.
    '''
    def __init__(self, network):
        self._network = network
        # A map from node id to ids of its incoming links, sorted.
        self._in_links = {}
        for link in network.links():
            self._in_links.setdefault(link.dst, []).append(link.id)
        # A map from dst to {node: hop distance to dst}.
        self._distances = {}

    def _distancesTo(self, dst):
        if dst in self._distances:
            return self._distances[dst]
        dist = {dst: 0}
        queue = deque([dst])
        while queue:
            cur = queue.popleft()
            for link_id in self._in_links.get(cur, []):
                prev = self._network.getLink(link_id).src
                if prev in dist:
                    continue
                dist[prev] = dist[cur] + 1
                # Hosts get a distance (they may originate traffic) but are
                # never expanded, they cannot be transit nodes.
                node = self._network.getNode(prev)
                if node is not None and not node.isHost():
                    queue.append(prev)
        self._distances[dst] = dist
        return dist

    def nextHops(self, cur, dst):
        '''
        Returns the outgoing links of `cur` that lie on a shortest path to
        `dst`, sorted by link id. Empty if `dst` is unreachable. A next hop is
        either `dst` itself or a switch.
        '''
        dist = self._distancesTo(dst)
        if cur not in dist:
            return []
        return [l for l in self._network.outLinks(cur)
                if dist.get(l.dst) == dist[cur] - 1 and
                (l.dst == dst or self._isSwitch(l.dst))]

    def _isSwitch(self, node_id):
        node = self._network.getNode(node_id)
        return node is not None and not node.isHost()

    def pathOf(self, flow):
        '''
        Returns a shortest path (list of link ids) for `flow`. Among equal-cost
        next hops, the choice is made by a stable hash of the flow id, so the
        same flow always takes the same path.
        '''
        h = stableHash(flow.id)
        path, cur = [], flow.src
        while cur != flow.dst:
            choices = self.nextHops(cur, flow.dst)
            if not choices:
                PRINTV(0, f'[ERROR] pathOf: no route from {flow.src} to '
                       f'{flow.dst} for flow {flow.id}.')
                raise InvalidTopology(f'no route from {flow.src} to '
                                      f'{flow.dst}', flow.id)
            link = choices[h % len(choices)]
            path.append(link.id)
            cur = link.dst
        return path

def routeNetwork(network):
    '''
    Returns a copy of `network` in which every flow without a path is routed
    along an ECMP shortest path. Flows that already have a path are kept as
    they are.
    '''
    routes = EcmpRoutes(network)
    flows = []
    for flow in network.flows():
        if flow.path:
            flows.append(flow)
            continue
        if flow.src == flow.dst:
            raise InvalidTopology(f'flow {flow.id} src and dst cannot be the '
                                  f'same', flow.id)
        flows.append(flow.withPath(routes.pathOf(flow)))
    return Network(network.nodes(), network.links(), flows, network.name)
