from clustering.cluster import Cluster, ClusteringAlgo
from clustering.features import distsAndLoad, isCloseEnough
from common.common import PRINTV, parMap


class GreedyClustering(ClusteringAlgo):
    '''
    Greedy clustering. Picks the first unclustered link (by id) as a
    representative and absorbs every unclustered link whose feature is close
    enough to the representative's. Repeats until all links are clustered.

    All idle links (no flows) form a single cluster of their own.
    '''
    name = 'greedy'

    def __init__(self, feature=distsAndLoad, is_close_enough=isCloseEnough):
        '''
        feature: a function mapping a LinkSimDescriptor to its feature.
        is_close_enough: a function of 2 features returning True if the
                         links can share a simulation.
        '''
        self.feature = feature
        self.is_close_enough = is_close_enough

    def cluster(self, descriptors):
        clusters = []
        idle = [d.link_id for d in descriptors if d.isIdle()]
        if idle:
            clusters.append(Cluster(idle[0], idle[0], idle))
        busy = [d for d in descriptors if not d.isIdle()]
        features = dict(zip([d.link_id for d in busy],
                            parMap(self.feature, busy)))
        unclustered = [d.link_id for d in busy]
        while unclustered:
            rep, candidates = unclustered[0], unclustered[1:]
            rfeat = features[rep]
            members = [rep]
            remaining = []
            for cand in candidates:
                if self.is_close_enough(rfeat, features[cand]):
                    members.append(cand)
                else:
                    remaining.append(cand)
            PRINTV(2, f'[cluster] {rep} represents {len(members)} links.')
            clusters.append(Cluster(rep, rep, members))
            unclustered = remaining
        return clusters
