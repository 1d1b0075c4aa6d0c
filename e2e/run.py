import csv
import sys
from datetime import datetime
from pathlib import Path

from google.protobuf import text_format

import common.flags as FLAG
from clustering.cluster import getClusteringAlgo
from linksim.linksim import getLinkSim
from pipeline.run import run
from topology.routing import routeNetwork
from topology.topogen import LINK_BPS, generateFatTree
from topology.topology import Network, loadNetwork, networkFromProto
from traffic.tmgen import poissonFlows
from traffic.traffic import sortByStart

K = 4

NET_SPEC = 'tests/data/three_node.textproto'
# True to load the network (topology + flows) from the above file.
LOAD_NET = False
# Workload parameters of generated flows.
NUM_FLOWS = 2000
MEAN_SIZE = 20000
LOAD = 0.3
SEED = 1

if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(f'[ERROR] usage: {sys.argv[0]} <output dir>')
        sys.exit(1)
    logpath = Path(sys.argv[1] + f'/{FLAG.CLUSTERING}')
    logpath.mkdir(parents=True, exist_ok=True)

    # Generates the network.
    if LOAD_NET:
        net_proto = loadNetwork(NET_SPEC)
    else:
        net_proto = generateFatTree(K)
    network = networkFromProto(net_proto)
    if not LOAD_NET:
        flows = poissonFlows(network.hostIds(), NUM_FLOWS, MEAN_SIZE, LOAD,
                             LINK_BPS, seed=SEED)
        network = Network(network.nodes(), network.links(), flows,
                          network.name)
    network = routeNetwork(network)
    with (logpath / 'network.textproto').open('w') as net:
        net.write(text_format.MessageToString(network.toProto()))
    print(f'{datetime.now()} [Step 1] network generated.', flush=True)

    # Runs the pipeline.
    delays = run(network, getLinkSim(FLAG.LINKSIM),
                 getClusteringAlgo(FLAG.CLUSTERING))
    print(f'{datetime.now()} [Step 2] delay network estimated.', flush=True)

    # Dumps stats.
    with (logpath / 'flow_tail.csv').open('w') as tail:
        writer = csv.writer(tail)
        writer.writerow(["flow", "src", "dst", "size", "ideal FCT (ns)",
                         "p50 delay (ns)", "p99 delay (ns)"])
        for flow in sortByStart(network.flows()):
            writer.writerow([flow.id, flow.src, flow.dst, flow.size,
                             f'{delays.idealFct(flow.id)}',
                             f'{delays.percentile(flow.id, 50)}',
                             f'{delays.percentile(flow.id, 99)}'])
    print(f'{datetime.now()} [Step 3] dump flow tails to flow_tail.csv',
          flush=True)

    clustered = delays.simulated.clustered
    with (logpath / 'link_dist.csv').open('w') as link_dist:
        writer = csv.writer(link_dist)
        writer.writerow(["link", "cluster", "size buckets", "mean delay (ns)",
                         "p99 delay (ns)"])
        for link in network.links():
            dist = delays.linkDistribution(link.id)
            writer.writerow([link.id, clustered.clusterOf(link.id),
                             len(delays.simulated.linkBuckets(link.id)),
                             f'{dist.mean()}', f'{dist.percentile(99)}'])
    print(f'{datetime.now()} [Step 4] dump link distributions to '
          f'link_dist.csv', flush=True)
