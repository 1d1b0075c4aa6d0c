import time
from datetime import datetime

from aggregation.aggregate import aggregate
from clustering.cluster import clusterNetwork
from common.common import PRINTV
from common.errors import Cancelled, ParsimonError
from decomposition.decompose import decompose
from dispatch.coordinator import simulate


def run(network, linksim, clusterer=None, workers=None, cancel=None):
    '''
    Runs the full pipeline on a routed Network:
    decompose -> cluster -> simulate -> aggregate.

    network: a Network whose flows all have a path.
    linksim: the LinkSim backend simulating cluster representatives.
    clusterer: a ClusteringAlgo, FLAG.CLUSTERING if None.
    workers: remote worker addresses, FLAG.WORKERS if None.
    cancel: an optional CancelToken.

    Returns a DelayNetwork. Failures propagate as ParsimonError subclasses
    naming the failed stage.
    '''
    t = time.time()
    PRINTV(1, f'{datetime.now()} [pipeline] start.')
    try:
        decomposed = decompose(network)
        clustered = clusterNetwork(decomposed, clusterer)
        simulated = simulate(clustered, linksim, workers, cancel)
        delays = aggregate(simulated)
    except Cancelled as e:
        PRINTV(1, f'[WARN] run: {e}.')
        raise
    except ParsimonError as e:
        PRINTV(0, f'[ERROR] run: stage {e.stage} failed: {e}')
        raise
    PRINTV(1, f'{datetime.now()} [pipeline] done in {time.time() - t:.3f} '
           f'sec.')
    return delays
