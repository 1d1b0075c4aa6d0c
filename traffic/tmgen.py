import numpy as np
from numpy.random import default_rng
from scipy.stats import expon

from traffic.traffic import Flow


def poissonFlows(hosts, num_flows, mean_size, load, capacity_bps, seed=None):
    '''
    Generates a Poisson workload among `hosts`. Flows have exponentially
    distributed sizes and inter-arrival times, and each flow picks a random
    (src, dst) pair of distinct hosts.

    Returns a list of unrouted Flow objects sorted by start time.

    hosts: a list of host ids. Must contain at least 2 hosts.
    num_flows: number of flows to generate.
    mean_size: mean flow size in bytes.
    load: target average load of a host access link, in (0, 1].
    capacity_bps: capacity of a host access link, in bps.
    seed: seed of the random generator. The same seed yields the same flows.
    '''
    if len(hosts) < 2:
        print(f'[ERROR] poissonFlows: need at least 2 hosts, got '
              f'{len(hosts)}.')
        return []
    rng = default_rng(seed)
    # Every host offers `load` worth of traffic, so the aggregate arrival rate
    # scales with the number of hosts.
    desired_bps = capacity_bps * load * len(hosts)
    mean_interarrival = mean_size * 8 * 1e9 / desired_bps
    sizes = expon(scale=mean_size).rvs(size=num_flows, random_state=rng)
    gaps = expon(scale=mean_interarrival).rvs(size=num_flows,
                                              random_state=rng)
    starts = np.cumsum(np.round(gaps)).astype(np.int64)
    flows = []
    for i in range(num_flows):
        src, dst = rng.choice(len(hosts), size=2, replace=False)
        flows.append(Flow(id=f'f{i}', src=hosts[src], dst=hosts[dst],
                          size=max(int(round(sizes[i])), 1),
                          start=int(starts[i])))
    return flows
