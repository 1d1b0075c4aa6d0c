import time
from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet

import common.flags as FLAG
from common.common import PRINTV
from common.errors import ClusteringContractViolation
from decomposition.decompose import DecomposedNetwork


@dataclass(frozen=True)
class Cluster:
    '''
    A group of links deemed similar enough to share one simulated outcome.
    id: cluster identifier.
    representative: id of the link whose descriptor gets simulated.
    members: ids of all links in the cluster, representative included.
    '''
    id: str
    representative: str
    members: FrozenSet[str]

    def __post_init__(self):
        object.__setattr__(self, 'members', frozenset(self.members))

class ClusteringAlgo:
    '''
    The capability every clustering backend implements: partition an ordered
    sequence of LinkSimDescriptors into Clusters. Backends are not trusted,
    their output is validated by `validatePartition()`.
    '''
    name = None

    def cluster(self, descriptors):
        '''
        descriptors: a list of LinkSimDescriptor sorted by link id.

        Returns a list of Cluster.
        '''
        raise NotImplementedError

class DefaultClustering(ClusteringAlgo):
    '''
    A no-op clustering: every link is its own cluster, named after the link.
    '''
    name = 'default'

    def cluster(self, descriptors):
        return [Cluster(d.link_id, d.link_id, [d.link_id])
                for d in descriptors]

def validatePartition(descriptors, clusters):
    '''
    Checks that `clusters` is a partition of `descriptors`: every descriptor
    belongs to exactly one non-empty cluster, every cluster contains its
    representative and only known descriptors, and cluster ids are unique.

    Raises ClusteringContractViolation naming the offending link/cluster.
    '''
    known = {d.link_id for d in descriptors}
    cluster_ids = set()
    # A map from link id to the id of the cluster it is assigned to.
    owner = {}
    for c in clusters:
        if not isinstance(c, Cluster):
            fail(f'expected a Cluster, got {type(c).__name__}')
        if c.id in cluster_ids:
            fail(f'duplicate cluster id {c.id}', cluster_id=c.id)
        cluster_ids.add(c.id)
        if not c.members:
            fail(f'cluster {c.id} is empty', cluster_id=c.id)
        if c.representative not in c.members:
            fail(f'cluster {c.id} representative {c.representative} is not '
                 f'one of its members', c.representative, c.id)
        for link_id in sorted(c.members):
            if link_id not in known:
                fail(f'cluster {c.id} contains unknown link {link_id}',
                     link_id, c.id)
            if link_id in owner:
                fail(f'link {link_id} assigned to both cluster '
                     f'{owner[link_id]} and cluster {c.id}', link_id, c.id)
            owner[link_id] = c.id
    missing = sorted(known - owner.keys())
    if missing:
        fail(f'{len(missing)} links not assigned to any cluster, first: '
             f'{missing[0]}', missing[0])

def fail(logstr, link_id=None, cluster_id=None):
    PRINTV(0, f'[ERROR] validatePartition: {logstr}.')
    raise ClusteringContractViolation(logstr, link_id, cluster_id)

class ClusteredNetwork:
    '''
    A decomposed network plus a validated partition of its links into
    clusters. Only the representative of each cluster needs to be simulated.
    '''
    def __init__(self, decomposed, clusters):
        self.decomposed = decomposed
        self.network = decomposed.network
        # A map from cluster id to cluster, in cluster id order.
        self._clusters = {c.id: c
                          for c in sorted(clusters, key=lambda c: c.id)}
        # A map from link id to the id of its cluster.
        self._cluster_of = {}
        for c in self._clusters.values():
            for link_id in c.members:
                self._cluster_of[link_id] = c.id

    def clusters(self):
        '''
        Returns all clusters sorted by id.
        '''
        return list(self._clusters.values())

    def numClusters(self):
        return len(self._clusters)

    def getCluster(self, cluster_id):
        return self._clusters.get(cluster_id)

    def clusterOf(self, link_id):
        '''
        Returns the id of the cluster that link `link_id` belongs to.
        '''
        return self._cluster_of.get(link_id)

    def representativeOf(self, cluster_id):
        '''
        Returns the descriptor of the representative of the given cluster.
        '''
        c = self._clusters[cluster_id]
        return self.decomposed.getDescriptor(c.representative)

def getClusteringAlgo(name):
    '''
    Returns an instance of the clustering algorithm named `name`.
    '''
    # Greedy clustering builds on this module, hence the late import.
    from clustering.greedy import GreedyClustering
    algos = {
        DefaultClustering.name: DefaultClustering,
        GreedyClustering.name: GreedyClustering,
    }
    if name not in algos:
        PRINTV(0, f'[ERROR] getClusteringAlgo: unknown algorithm {name}, '
               f'must be one of {sorted(algos)}.')
        raise ValueError(f'unknown clustering algorithm {name}')
    return algos[name]()

def clusterNetwork(decomposed, algo=None):
    '''
    Partitions the links of `decomposed` with `algo` (FLAG.CLUSTERING if None)
    and validates the result.

    Returns a ClusteredNetwork. Raises ClusteringContractViolation if the
    algorithm does not return a partition.
    '''
    if not isinstance(decomposed, DecomposedNetwork):
        raise TypeError(f'clusterNetwork: expects a DecomposedNetwork, got '
                        f'{type(decomposed).__name__}.')
    algo = algo or getClusteringAlgo(FLAG.CLUSTERING)
    t = time.time()
    descriptors = decomposed.descriptors()
    clusters = list(algo.cluster(descriptors))
    validatePartition(descriptors, clusters)
    PRINTV(1, f'{datetime.now()} [cluster] {len(descriptors)} links grouped '
           f'into {len(clusters)} clusters by {type(algo).__name__} in '
           f'{time.time() - t:.3f} sec.')
    return ClusteredNetwork(decomposed, clusters)
