import unittest

from common.errors import InvalidTopology
from topology.routing import EcmpRoutes, routeNetwork, stableHash
from topology.topogen import (generateEightNode, generateFatTree,
                              generateThreeNode)
from topology.topology import (HOST, SWITCH, Link, Network, Node, loadNetwork,
                               networkFromProto)
from traffic.traffic import Flow

THREE_NODE_PATH = 'tests/data/three_node.textproto'


def threeNode(flows):
    nodes = [Node('h0', HOST), Node('h1', HOST), Node('s0', SWITCH)]
    links = [Link('h0:s0', 'h0', 's0', 10e9, 1000),
             Link('s0:h0', 's0', 'h0', 10e9, 1000),
             Link('h1:s0', 'h1', 's0', 10e9, 1000),
             Link('s0:h1', 's0', 'h1', 10e9, 1000)]
    return Network(nodes, links, flows)

class TestLoadNetwork(unittest.TestCase):
    def test_load_invalid_network(self):
        self.assertEqual(None, loadNetwork(''))

    def test_load_valid_three_node(self):
        network = networkFromProto(loadNetwork(THREE_NODE_PATH))
        self.assertEqual(3, network.numNodes())
        self.assertEqual(4, network.numLinks())
        self.assertEqual(2, network.numFlows())
        self.assertEqual(['h0', 'h1'], network.hostIds())
        self.assertEqual(('h0:s0', 's0:h1'), network.getFlow('f0').path)
        self.assertEqual(5000, network.getFlow('f0').size)
        self.assertEqual(100, network.getFlow('f1').start)
        self.assertEqual(10e9, network.getLink('h0:s0').capacity)
        self.assertTrue(network.getNode('h0').isHost())
        self.assertFalse(network.getNode('s0').isHost())
        self.assertIs(network, network.validate())

    def test_proto_conversion(self):
        network = networkFromProto(loadNetwork(THREE_NODE_PATH))
        again = networkFromProto(network.toProto())
        self.assertEqual(network.nodes(), again.nodes())
        self.assertEqual(network.links(), again.links())
        self.assertEqual(network.flows(), again.flows())

    def test_accessors(self):
        network = threeNode([Flow('f0', 'h0', 'h1', 100, 0,
                                  ('h0:s0', 's0:h1'))])
        self.assertEqual('s0:h1', network.findLink('s0', 'h1').id)
        self.assertEqual(None, network.findLink('h0', 'h1'))
        self.assertEqual(['s0:h0', 's0:h1'],
                         [l.id for l in network.outLinks('s0')])
        self.assertEqual(['h0:s0', 's0:h1'],
                         [l.id for l in network.linksOf('f0')])
        self.assertTrue(network.hasLink('h1:s0'))
        self.assertFalse(network.hasLink('h1:h0'))

class TestValidation(unittest.TestCase):
    def assertInvalid(self, network, entity):
        with self.assertRaises(InvalidTopology) as cm:
            network.validate()
        self.assertEqual(entity, cm.exception.entity)
        self.assertEqual('decompose', cm.exception.stage)

    def test_duplicate_node(self):
        network = Network([Node('h0', HOST), Node('h0', SWITCH)], [], [])
        self.assertInvalid(network, 'h0')

    def test_link_unknown_node(self):
        network = Network([Node('h0', HOST)],
                          [Link('h0:s9', 'h0', 's9', 10e9, 0)], [])
        self.assertInvalid(network, 'h0:s9')

    def test_link_non_positive_capacity(self):
        network = Network([Node('h0', HOST), Node('s0', SWITCH)],
                          [Link('h0:s0', 'h0', 's0', 0, 0)], [])
        self.assertInvalid(network, 'h0:s0')

    def test_flow_unknown_link(self):
        network = threeNode([Flow('f0', 'h0', 'h1', 100, 0,
                                  ('h0:s0', 's0:h9'))])
        self.assertInvalid(network, 'f0')

    def test_flow_wrong_endpoints(self):
        # Path ends at h0 instead of h1.
        network = threeNode([Flow('f0', 'h0', 'h1', 100, 0,
                                  ('h0:s0', 's0:h0'))])
        self.assertInvalid(network, 'f0')
        # Path does not start at the source.
        network = threeNode([Flow('f1', 'h0', 'h1', 100, 0,
                                  ('h1:s0', 's0:h1'))])
        self.assertInvalid(network, 'f1')

    def test_flow_non_contiguous_path(self):
        network = threeNode([Flow('f0', 'h0', 'h0', 100, 0,
                                  ('h0:s0', 'h1:s0'))])
        self.assertInvalid(network, 'f0')
        network = threeNode([Flow('f1', 'h0', 'h1', 100, 0,
                                  ('h0:s0', 's0:h0', 'h1:s0', 's0:h1'))])
        self.assertInvalid(network, 'f1')

    def test_flow_endpoint_not_host(self):
        network = threeNode([Flow('f0', 'h0', 's0', 100, 0, ('h0:s0',))])
        self.assertInvalid(network, 'f0')

    def test_flow_without_path(self):
        network = threeNode([Flow('f0', 'h0', 'h1', 100, 0)])
        self.assertInvalid(network, 'f0')

    def test_flow_negative_size(self):
        network = threeNode([Flow('f0', 'h0', 'h1', -1, 0,
                                  ('h0:s0', 's0:h1'))])
        self.assertInvalid(network, 'f0')

class TestRouting(unittest.TestCase):
    def test_stable_hash(self):
        # CRC32 is fixed across runs and processes.
        self.assertEqual(stableHash('f0'), stableHash('f0'))
        self.assertNotEqual(stableHash('f0'), stableHash('f1'))

    def test_route_three_node(self):
        network = networkFromProto(generateThreeNode())
        flows = [Flow('f0', 'h0', 'h1', 100, 0)]
        routed = routeNetwork(Network(network.nodes(), network.links(), flows))
        self.assertEqual(('h0:s0', 's0:h1'), routed.getFlow('f0').path)
        routed.validate()

    def test_route_eight_node_ecmp(self):
        network = networkFromProto(generateEightNode())
        routes = EcmpRoutes(network)
        # t0 reaches h2 via both aggs.
        self.assertEqual(['t0:a0', 't0:a1'],
                         [l.id for l in routes.nextHops('t0', 'h2')])
        flows = [Flow(f'f{i}', 'h0', 'h2', 100, i) for i in range(20)]
        routed = routeNetwork(Network(network.nodes(), network.links(), flows))
        routed.validate()
        aggs = set()
        for flow in routed.flows():
            self.assertEqual(4, len(flow.path))
            aggs.add(routed.getLink(flow.path[1]).dst)
        # Flows are spread over both aggs.
        self.assertEqual({'a0', 'a1'}, aggs)
        # Routing is deterministic.
        again = routeNetwork(Network(network.nodes(), network.links(), flows))
        self.assertEqual(routed.flows(), again.flows())

    def test_hosts_do_not_forward(self):
        # h0 - s0 - h1 - s1 - h2: h2 is only reachable through host h1.
        nodes = [Node('h0', HOST), Node('h1', HOST), Node('h2', HOST),
                 Node('s0', SWITCH), Node('s1', SWITCH)]
        links = [Link('h0:s0', 'h0', 's0', 1e9, 0),
                 Link('s0:h1', 's0', 'h1', 1e9, 0),
                 Link('h1:s1', 'h1', 's1', 1e9, 0),
                 Link('s1:h2', 's1', 'h2', 1e9, 0)]
        network = Network(nodes, links, [Flow('f0', 'h0', 'h2', 100, 0)])
        with self.assertRaises(InvalidTopology) as cm:
            routeNetwork(network)
        self.assertEqual('f0', cm.exception.entity)

    def test_multi_homed_host_not_next_hop(self):
        # hm is attached to both sa and sd, as close to hd as sb is.
        nodes = [Node('hs', HOST), Node('hm', HOST), Node('hd', HOST),
                 Node('sa', SWITCH), Node('sb', SWITCH), Node('sd', SWITCH)]
        links = [Link('hs:sa', 'hs', 'sa', 1e9, 0),
                 Link('sa:hm', 'sa', 'hm', 1e9, 0),
                 Link('hm:sd', 'hm', 'sd', 1e9, 0),
                 Link('sa:sb', 'sa', 'sb', 1e9, 0),
                 Link('sb:sd', 'sb', 'sd', 1e9, 0),
                 Link('sd:hd', 'sd', 'hd', 1e9, 0)]
        flows = [Flow(f'f{i}', 'hs', 'hd', 100, 0) for i in range(8)]
        network = Network(nodes, links, flows)
        self.assertEqual(['sa:sb'],
                         [l.id for l in EcmpRoutes(network).nextHops('sa',
                                                                      'hd')])
        routed = routeNetwork(network)
        for flow in routed.flows():
            self.assertEqual(('hs:sa', 'sa:sb', 'sb:sd', 'sd:hd'), flow.path)

class TestTopogen(unittest.TestCase):
    def test_fat_tree(self):
        network = networkFromProto(generateFatTree(4))
        network.validate()
        self.assertEqual(16, len(network.hostIds()))
        self.assertEqual(36, network.numNodes())
        # 48 cables, 2 links each.
        self.assertEqual(96, network.numLinks())

    def test_fat_tree_invalid_k(self):
        self.assertEqual(None, generateFatTree(3))

if __name__ == "__main__":
    unittest.main()
