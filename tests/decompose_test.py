import unittest

from common.errors import InvalidTopology
from decomposition.decompose import decompose, descriptorFromProto
from topology.routing import routeNetwork
from topology.topogen import generateEightNode
from topology.topology import Network, networkFromProto
from traffic.tmgen import poissonFlows
from traffic.traffic import Flow


def eightNode(flows):
    network = networkFromProto(generateEightNode())
    return routeNetwork(Network(network.nodes(), network.links(), flows))

class TestDecompose(unittest.TestCase):
    def test_one_descriptor_per_link(self):
        network = eightNode(poissonFlows(['h0', 'h1', 'h2', 'h3'], 200, 5000,
                                         0.4, 10e9, seed=3))
        decomposed = decompose(network)
        self.assertEqual(network.numLinks(), decomposed.numDescriptors())
        self.assertEqual([l.id for l in network.links()],
                         [d.link_id for d in decomposed.descriptors()])

    def test_flow_union(self):
        network = eightNode(poissonFlows(['h0', 'h1', 'h2', 'h3'], 200, 5000,
                                         0.4, 10e9, seed=3))
        decomposed = decompose(network)
        # A flow shows up exactly on the links of its path.
        seen = {}
        for desc in decomposed.descriptors():
            for flow_id in desc.flowIds():
                seen.setdefault(flow_id, []).append(desc.link_id)
        self.assertEqual({f.id for f in network.flows()}, set(seen))
        for flow in network.flows():
            self.assertEqual(sorted(flow.path), sorted(seen[flow.id]))

    def test_slices(self):
        flows = [Flow('f0', 'h0', 'h2', 3000, 50),
                 Flow('f1', 'h1', 'h0', 1000, 20),
                 Flow('f2', 'h1', 'h0', 2000, 20)]
        decomposed = decompose(eightNode(flows))
        desc = decomposed.getDescriptor('t0:h0')
        # Sorted by start time, ties broken by flow id.
        self.assertEqual(['f1', 'f2'], desc.flowIds())
        self.assertFalse(desc.isIdle())
        f1 = desc.flows[0]
        self.assertEqual(1000, f1.upstream_delay)
        self.assertEqual(0, f1.downstream_delay)
        self.assertEqual(10e9, f1.access_capacity)
        # f0 crosses h0:t0, t0:aX, aX:t1, t1:h2.
        desc = decomposed.getDescriptor('t1:h2')
        self.assertEqual(['f0'], desc.flowIds())
        self.assertEqual(3000, desc.flows[0].upstream_delay)
        self.assertTrue(decomposed.getDescriptor('h3:t1').isIdle())

    def test_descriptor_features(self):
        flows = [Flow('f0', 'h0', 'h1', 1000, 0),
                 Flow('f1', 'h0', 'h1', 3000, 1000),
                 Flow('f2', 'h0', 'h1', 2000, 4000)]
        desc = decompose(eightNode(flows)).getDescriptor('h0:t0')
        self.assertEqual([1000, 3000, 2000], desc.sizes().tolist())
        self.assertEqual([1000, 3000], desc.interArrivals().tolist())
        self.assertEqual(4000, desc.duration())
        # 6000 bytes in 4 us on a 10 Gbps link.
        self.assertAlmostEqual(6000 * 8 / 4e-6 / 10e9, desc.offeredLoad())

    def test_ack_rate(self):
        # 4 packets of data from h1 to h0 within 1 us, each acked with
        # 60 bytes over h0:t0.
        flows = [Flow('f0', 'h1', 'h0', 1000, 0),
                 Flow('f1', 'h1', 'h0', 2500, 1000)]
        decomposed = decompose(eightNode(flows))
        desc = decomposed.getDescriptor('h0:t0')
        self.assertEqual(4 * 60 * 8 * 1e9 / 1000, desc.ack_rate)
        self.assertEqual(10e9 - desc.ack_rate, desc.availableCapacity())
        # Nothing flows from h0 to h1, so no ACKs travel towards h0.
        self.assertEqual(0.0, decomposed.getDescriptor('t0:h0').ack_rate)

    def test_descriptor_proto_conversion(self):
        flows = [Flow('f0', 'h0', 'h2', 3000, 50),
                 Flow('f1', 'h2', 'h0', 3000, 50),
                 Flow('f2', 'h2', 'h0', 1000, 900)]
        desc = decompose(eightNode(flows)).getDescriptor('h0:t0')
        self.assertGreater(desc.ack_rate, 0)
        self.assertEqual(desc, descriptorFromProto(desc.toProto()))

    def test_deterministic(self):
        flows = poissonFlows(['h0', 'h1', 'h2', 'h3'], 100, 5000, 0.4, 10e9,
                             seed=5)
        a = decompose(eightNode(flows))
        b = decompose(eightNode(list(reversed(flows))))
        self.assertEqual(a.descriptors(), b.descriptors())

    def test_invalid_network(self):
        flows = [Flow('f0', 'h0', 'h2', 3000, 50, ('h0:t0', 't0:h1'))]
        network = networkFromProto(generateEightNode())
        network = Network(network.nodes(), network.links(), flows)
        with self.assertRaises(InvalidTopology) as cm:
            decompose(network)
        self.assertEqual('f0', cm.exception.entity)

    def test_wrong_stage(self):
        with self.assertRaises(TypeError):
            decompose(generateEightNode())

if __name__ == "__main__":
    unittest.main()
