import unittest

from decomposition.decompose import FlowSlice, LinkSimDescriptor
from linksim.fifo import FifoLink
from linksim.linksim import LINKSIMS, LinkSim, getLinkSim

GBPS = 1e9


def descriptor(slices, capacity=10 * GBPS, ack_rate=0.0):
    return LinkSimDescriptor('s0:h1', 's0', 'h1', capacity, 1000,
                             tuple(slices), ack_rate)

def flowSlice(flow_id, size, start, upstream=0, access=10 * GBPS):
    return FlowSlice(flow_id, 'h0', 'h1', size, start, upstream, 0, access)

class TestRegistry(unittest.TestCase):
    def test_get_fifo(self):
        linksim = getLinkSim('fifo')
        self.assertIsInstance(linksim, FifoLink)
        self.assertIn('fifo', LINKSIMS)
        again = getLinkSim('fifo', linksim.params())
        self.assertEqual(linksim.params(), again.params())

    def test_unknown(self):
        with self.assertRaises(ValueError):
            getLinkSim('ns3')

    def test_base_class(self):
        with self.assertRaises(NotImplementedError):
            LinkSim().run(descriptor([]))
        self.assertEqual({}, LinkSim().params())

class TestFifoLink(unittest.TestCase):
    def setUp(self):
        self.fifo = FifoLink(sz_pktmax=1000, sz_pkthdr=0)

    def test_wire_bytes(self):
        fifo = FifoLink(sz_pktmax=1000, sz_pkthdr=48)
        self.assertEqual(0, fifo.wireBytes(0))
        self.assertEqual(1048, fifo.wireBytes(1000))
        self.assertEqual(1001 + 96, fifo.wireBytes(1001))

    def test_idle_link(self):
        self.assertTrue(self.fifo.run(descriptor([])).isEmpty())

    def test_no_queuing(self):
        # 1000 bytes take 800 ns at 10 Gbps, flows are 1 us apart.
        samples = self.fifo.run(descriptor(
            [flowSlice(f'f{i}', 1000, i * 1000) for i in range(5)]))
        self.assertEqual([1000] * 5, samples.sizes.tolist())
        self.assertEqual([0.0] * 5, samples.delays.tolist())

    def test_queuing(self):
        # 2 flows arriving together: the second waits for the first.
        samples = self.fifo.run(descriptor([flowSlice('f0', 1000, 0),
                                            flowSlice('f1', 3000, 0)]))
        self.assertEqual([1000, 3000], samples.sizes.tolist())
        self.assertEqual([0.0, 800.0], samples.delays.tolist())

    def test_upstream_delay_shifts_arrival(self):
        # f1 starts earlier but reaches the link after f0 is served.
        samples = self.fifo.run(descriptor([flowSlice('f0', 1000, 500),
                                            flowSlice('f1', 1000, 0,
                                                      upstream=2000)]))
        self.assertEqual([0.0, 0.0], samples.delays.tolist())

    def test_slow_access_link(self):
        # A flow behind a 1 Gbps access link is paced by it, which is part
        # of its ideal time.
        samples = self.fifo.run(descriptor([flowSlice('f0', 1000, 0,
                                                      access=GBPS)]))
        self.assertEqual([0.0], samples.delays.tolist())

    def test_ack_rate_slows_data(self):
        # Half of the link carries ACKs: 1000 bytes take 1600 ns instead of
        # the ideal 800 ns.
        samples = self.fifo.run(descriptor([flowSlice('f0', 1000, 0)],
                                           ack_rate=5 * GBPS))
        self.assertEqual([800.0], samples.delays.tolist())

    def test_ack_rate_above_capacity(self):
        with self.assertRaises(ValueError):
            self.fifo.run(descriptor([flowSlice('f0', 1000, 0)],
                                     ack_rate=10 * GBPS))

    def test_deterministic(self):
        slices = [flowSlice(f'f{i}', 1000 + i, (i * 397) % 2000)
                  for i in range(50)]
        self.assertEqual(self.fifo.run(descriptor(slices)),
                         self.fifo.run(descriptor(slices)))

if __name__ == "__main__":
    unittest.main()
