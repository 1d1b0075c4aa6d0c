from dataclasses import dataclass

import numpy as np

import common.flags as FLAG

# Number of quantiles summarizing a feature distribution.
NUM_QUANTILES = 1000


def quantiles(data):
    '''
    Returns NUM_QUANTILES evenly spaced order statistics of `data`: the i-th
    quantile is the element at floor(i / NUM_QUANTILES * len(data)) of the
    sorted data.
    '''
    points = np.sort(np.asarray(data, dtype=np.float64))
    if points.size == 0:
        raise ValueError('quantiles: no data points.')
    idx = np.floor(np.arange(NUM_QUANTILES) / NUM_QUANTILES *
                   points.size).astype(np.int64)
    return points[idx]

def wmape(a, b):
    '''
    Weighted mean absolute percentage error of `b` with respect to `a`.
    '''
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f'wmape: shape mismatch {a.shape} vs {b.shape}.')
    denom = np.abs(a).sum()
    err = np.abs(a - b).sum()
    if denom == 0:
        return 0.0 if err == 0 else float('inf')
    return float(err / denom)

@dataclass(frozen=True, eq=False)
class LinkFeature:
    '''
    Summary of the traffic offered to a link.
    sizes: quantiles of flow sizes.
    deltas: quantiles of flow inter-arrival times.
    load: offered load normalized to the link capacity.
    '''
    sizes: np.ndarray
    deltas: np.ndarray
    load: float

def distsAndLoad(descriptor):
    '''
    Extracts the flow size distribution, the inter-arrival distribution and
    the load of a link. Returns None for links with less than 2 flows, which
    have no inter-arrival distribution.
    '''
    if descriptor.numFlows() < 2:
        return None
    return LinkFeature(quantiles(descriptor.sizes()),
                       quantiles(descriptor.interArrivals()),
                       descriptor.offeredLoad())

def maxWmape(a, b):
    '''
    Returns the larger of the size and inter-arrival WMAPEs of 2 features.
    '''
    return max(wmape(a.sizes, b.sizes), wmape(a.deltas, b.deltas))

def isCloseEnough(a, b, epsilon=None):
    '''
    Two features are close if both their distributions are within `epsilon`
    WMAPE and their loads are within `epsilon` of each other
    (FLAG.GREEDY_EPSILON by default). Missing features are never close.
    '''
    if a is None or b is None:
        return False
    epsilon = FLAG.GREEDY_EPSILON if epsilon is None else epsilon
    return maxWmape(a, b) <= epsilon and abs(a.load - b.load) <= epsilon
