import math

import numpy as np

import common.flags as FLAG
from aggregation.distribution import DelayDistribution
from schema.messages import pb2 as msg


class DelaySamples:
    '''
    The result of one link simulation: the delay (ns) each flow saw on the
    link, next to the flow size (bytes).
    '''
    def __init__(self, sizes, delays):
        self.sizes = np.asarray(sizes, dtype=np.int64).ravel()
        self.delays = np.asarray(delays, dtype=np.float64).ravel()
        if self.sizes.size != self.delays.size:
            raise ValueError(f'DelaySamples: got {self.sizes.size} sizes and '
                             f'{self.delays.size} delays.')
        if not np.all(np.isfinite(self.delays)):
            raise ValueError('DelaySamples: delays must be finite.')
        self.sizes.setflags(write=False)
        self.delays.setflags(write=False)

    @classmethod
    def empty(cls):
        return cls([], [])

    def __len__(self):
        return self.sizes.size

    def isEmpty(self):
        return self.sizes.size == 0

    def __eq__(self, other):
        if not isinstance(other, DelaySamples):
            return NotImplemented
        return (np.array_equal(self.sizes, other.sizes) and
                np.array_equal(self.delays, other.delays))

    __hash__ = None

    def __repr__(self):
        return f'DelaySamples(n={len(self)})'

    def toProto(self):
        return msg.DelaySamples(sizes=self.sizes.tolist(),
                                delays_ns=self.delays.tolist())

def samplesFromProto(samples_proto):
    return DelaySamples(list(samples_proto.sizes),
                        list(samples_proto.delays_ns))

def bucketBySize(sizes, x=None, b=None):
    '''
    Splits the sorted flow sizes `sizes` into contiguous size ranges. A
    bucket is closed once it holds at least `b` samples and its largest size
    is at least `x` times its smallest bound, then swallows every following
    sample of the same size. Leftover samples, however few, go to the last
    bucket.

    Returns a list of (lo, hi, start, end) tuples: the bucket covers sizes in
    [lo, hi) and holds samples [start, end). The first bucket starts at 0 and
    the last one is unbounded (hi is math.inf).
    '''
    x = x or FLAG.BUCKET_X
    b = b or FLAG.BUCKET_MIN_SAMPLES
    buckets = []
    lo, start, i = 0, 0, 0
    n = len(sizes)
    while i < n:
        hi = sizes[i]
        i += 1
        if lo <= hi / x and i - start >= b:
            while i < n and sizes[i] == hi:
                i += 1
            buckets.append((lo, hi + 1, start, i))
            lo, start = hi + 1, i
    if start < n:
        buckets.append((lo, math.inf, start, n))
    elif buckets:
        # Nothing left over: sizes above the largest sample fall in the last
        # bucket.
        last_lo, _, last_start, last_end = buckets[-1]
        buckets[-1] = (last_lo, math.inf, last_start, last_end)
    return buckets

class SizeBuckets:
    '''
    Delay distributions of a link bucketed by flow size. Every size falls in
    exactly one bucket.
    '''
    def __init__(self, ranges, dists, overall):
        '''
        ranges: sorted, contiguous (lo, hi) size ranges starting at 0, the
                last one unbounded.
        dists: the DelayDistribution of every range.
        overall: the DelayDistribution of all samples, regardless of size.
        '''
        self._los = np.array([lo for lo, _ in ranges], dtype=np.float64)
        self._ranges = list(ranges)
        self._dists = list(dists)
        self.overall = overall

    @classmethod
    def uniform(cls, dist):
        '''
        A single bucket holding `dist` for every flow size.
        '''
        return cls([(0, math.inf)], [dist], dist)

    @classmethod
    def fromSamples(cls, samples, x=None, b=None):
        '''
        Buckets DelaySamples `samples` by flow size, see bucketBySize(). No
        samples (an idle link) yields the zero delay for every size.
        '''
        if samples.isEmpty():
            return cls.uniform(DelayDistribution.zero())
        order = np.argsort(samples.sizes, kind='stable')
        sizes = samples.sizes[order]
        delays = samples.delays[order]
        ranges, dists = [], []
        for lo, hi, start, end in bucketBySize(sizes.tolist(), x, b):
            ranges.append((lo, hi))
            dists.append(DelayDistribution.fromSamples(delays[start:end]))
        return cls(ranges, dists, DelayDistribution.fromSamples(delays))

    def __len__(self):
        return len(self._dists)

    def __eq__(self, other):
        if not isinstance(other, SizeBuckets):
            return NotImplemented
        return (self._ranges == other._ranges and
                self._dists == other._dists)

    __hash__ = None

    def ranges(self):
        return list(self._ranges)

    def indexOf(self, size):
        '''
        Returns the index of the bucket holding flows of `size` bytes.
        '''
        if size < 0:
            raise ValueError(f'indexOf: negative flow size {size}.')
        return int(np.searchsorted(self._los, size, side='right')) - 1

    def forSize(self, size):
        '''
        Returns the delay distribution of flows of `size` bytes.
        '''
        return self.bucketDistribution(self.indexOf(size))

    def bucketDistribution(self, index):
        return self._dists[index]
