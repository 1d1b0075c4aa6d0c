from dataclasses import dataclass

from google.protobuf import text_format

from schema.messages import pb2 as msg
from common.common import PRINTV
from common.errors import InvalidTopology
from traffic.traffic import flowFromProto

# Node roles.
HOST = 'host'
SWITCH = 'switch'


def loadNetwork(filepath):
    '''
    Parses a NetworkSpec textproto. Returns None if no path is given.
    '''
    if not filepath:
        return None
    network = msg.NetworkSpec()
    with open(filepath, 'r', encoding='utf-8') as f:
        text_format.Parse(f.read(), network)
    return network

@dataclass(frozen=True)
class Node:
    '''
    A node is either a host (traffic endpoint) or a switch.
    id: node identifier.
    role: HOST or SWITCH.
    '''
    id: str
    role: str

    def isHost(self):
        return self.role == HOST

    def toProto(self):
        return msg.Node(id=self.id,
                        role=msg.HOST if self.isHost() else msg.SWITCH)

@dataclass(frozen=True)
class Link:
    '''
    A link represents a directed (unidi) network link between 2 nodes.
    id: link identifier.
    src: source node id.
    dst: destination node id.
    capacity: link capacity in bps.
    delay: propagation delay in nanoseconds.
    '''
    id: str
    src: str
    dst: str
    capacity: float
    delay: int

    def toProto(self):
        return msg.Link(id=self.id, src=self.src, dst=self.dst,
                        capacity_bps=self.capacity, delay_ns=self.delay)

class Network:
    '''
    Network class that represents the raw pipeline input: a topology of nodes
    and links plus a workload of flows. A Network is never mutated after
    construction; derived stages refer to its entities by id.

    Construction only indexes the entities. Call `validate()` (decomposition
    does) to check the structural invariants.
    '''
    def __init__(self, nodes, links, flows, name=''):
        self.name = name
        self._nodes = {}
        self._links = {}
        self._flows = {}
        # Ids seen more than once, as (kind, id) tuples.
        self._duplicates = []
        for node in nodes:
            if node.id in self._nodes:
                self._duplicates.append(('node', node.id))
            self._nodes[node.id] = node
        for link in links:
            if link.id in self._links:
                self._duplicates.append(('link', link.id))
            self._links[link.id] = link
        for flow in flows:
            if flow.id in self._flows:
                self._duplicates.append(('flow', flow.id))
            self._flows[flow.id] = flow
        # A map from (src, dst) node pair to link id.
        self._link_map = {}
        # A map from node id to the ids of its outgoing links.
        self._out_links = {}
        for link in sorted(self._links.values(), key=lambda l: l.id):
            self._link_map.setdefault((link.src, link.dst), link.id)
            self._out_links.setdefault(link.src, []).append(link.id)

    def validate(self):
        '''
        Checks the network invariants: unique ids, links connecting 2 distinct
        declared nodes with positive capacity, and every flow travelling from
        one host to another along a contiguous path of declared links.

        Returns self. Raises InvalidTopology naming the offending entity.
        '''
        if self._duplicates:
            kind, dup = self._duplicates[0]
            self._fail(f'duplicate {kind} id {dup}', dup)
        for link in self.links():
            if link.src not in self._nodes or link.dst not in self._nodes:
                self._fail(f'link {link.id} has at least one node not found!'
                           f' src: {link.src}, dst: {link.dst}', link.id)
            if link.src == link.dst:
                self._fail(f'link {link.id} connects node {link.src} to '
                           f'itself', link.id)
            if link.capacity <= 0:
                self._fail(f'link {link.id} has non-positive capacity '
                           f'{link.capacity}', link.id)
            if link.delay < 0:
                self._fail(f'link {link.id} has negative delay {link.delay}',
                           link.id)
        for flow in self.flows():
            self._validateFlow(flow)
        return self

    def _validateFlow(self, flow):
        for end in (flow.src, flow.dst):
            if end not in self._nodes or not self._nodes[end].isHost():
                self._fail(f'flow {flow.id} endpoint {end} is not a host',
                           flow.id)
        if flow.src == flow.dst:
            self._fail(f'flow {flow.id} src and dst cannot be the same',
                       flow.id)
        if flow.size < 0 or flow.start < 0:
            self._fail(f'flow {flow.id} has negative size or start time',
                       flow.id)
        if not flow.path:
            self._fail(f'flow {flow.id} has no path', flow.id)
        for link_id in flow.path:
            if link_id not in self._links:
                self._fail(f'flow {flow.id} references link {link_id} not '
                           f'found in the network', flow.id)
        if len(set(flow.path)) != len(flow.path):
            self._fail(f'flow {flow.id} path visits a link more than once',
                       flow.id)
        links = [self._links[l] for l in flow.path]
        if links[0].src != flow.src:
            self._fail(f'flow {flow.id} path starts at {links[0].src}, not at'
                       f' its source {flow.src}', flow.id)
        if links[-1].dst != flow.dst:
            self._fail(f'flow {flow.id} path ends at {links[-1].dst}, not at '
                       f'its destination {flow.dst}', flow.id)
        for prev, nxt in zip(links, links[1:]):
            if prev.dst != nxt.src:
                self._fail(f'flow {flow.id} path is not contiguous between '
                           f'{prev.id} and {nxt.id}', flow.id)

    @staticmethod
    def _fail(logstr, entity):
        PRINTV(0, f'[ERROR] Network validation: {logstr}.')
        raise InvalidTopology(logstr, entity)

    def numNodes(self):
        '''
        Returns number of nodes in this network.
        '''
        return len(self._nodes)

    def numLinks(self):
        '''
        Returns number of links in this network.
        '''
        return len(self._links)

    def numFlows(self):
        '''
        Returns number of flows in this network.
        '''
        return len(self._flows)

    def nodes(self):
        '''
        Returns all nodes sorted by id.
        '''
        return [self._nodes[k] for k in sorted(self._nodes)]

    def links(self):
        '''
        Returns all links sorted by id.
        '''
        return [self._links[k] for k in sorted(self._links)]

    def flows(self):
        '''
        Returns all flows sorted by id.
        '''
        return [self._flows[k] for k in sorted(self._flows)]

    def hostIds(self):
        return [n.id for n in self.nodes() if n.isHost()]

    def hasLink(self, link_id):
        return link_id in self._links

    def getNode(self, node_id):
        return self._nodes.get(node_id)

    def getLink(self, link_id):
        return self._links.get(link_id)

    def getFlow(self, flow_id):
        return self._flows.get(flow_id)

    def findLink(self, src, dst):
        '''
        Returns the link from node `src` to node `dst`, or None.
        '''
        link_id = self._link_map.get((src, dst))
        return self._links[link_id] if link_id else None

    def outLinks(self, node_id):
        '''
        Returns the outgoing links of a node, sorted by id.
        '''
        return [self._links[l] for l in self._out_links.get(node_id, [])]

    def linksOf(self, flow_id):
        '''
        Returns the link objects on the path of the given flow, in path order.
        '''
        return [self._links[l] for l in self._flows[flow_id].path]

    def toProto(self):
        net = msg.NetworkSpec(name=self.name)
        net.nodes.extend([n.toProto() for n in self.nodes()])
        net.links.extend([l.toProto() for l in self.links()])
        net.flows.extend([f.toProto() for f in self.flows()])
        return net

def networkFromProto(net_proto):
    '''
    Builds a Network out of a NetworkSpec proto.
    '''
    nodes = [Node(n.id, HOST if n.role == msg.HOST else SWITCH)
             for n in net_proto.nodes]
    links = [Link(l.id, l.src, l.dst, l.capacity_bps, l.delay_ns)
             for l in net_proto.links]
    flows = [flowFromProto(f) for f in net_proto.flows]
    return Network(nodes, links, flows, net_proto.name)
