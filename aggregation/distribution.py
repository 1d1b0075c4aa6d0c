import numpy as np

import common.flags as FLAG


class DelayDistribution:
    '''
    An immutable finite discrete distribution of delays, in nanoseconds.

    The support is kept sorted and free of duplicates, and every support point
    carries positive probability. Probabilities sum to 1.
    '''
    def __init__(self, values, probs):
        '''
        values: support points (any order, duplicates are merged).
        probs: non-negative weights of the support points. Normalized to 1.
        '''
        values = np.asarray(values, dtype=np.float64).ravel()
        probs = np.asarray(probs, dtype=np.float64).ravel()
        if values.size == 0 or values.size != probs.size:
            raise ValueError(f'DelayDistribution: got {values.size} values '
                             f'and {probs.size} probabilities.')
        if not np.all(np.isfinite(values)) or np.any(probs < 0):
            raise ValueError('DelayDistribution: values must be finite and '
                             'probabilities non-negative.')
        total = probs.sum()
        if total <= 0:
            raise ValueError('DelayDistribution: total probability mass is 0.')
        uniq, inverse = np.unique(values, return_inverse=True)
        merged = np.bincount(inverse.ravel(), weights=probs,
                             minlength=uniq.size)
        keep = merged > 0
        self._values = uniq[keep]
        self._probs = merged[keep] / total
        self._values.setflags(write=False)
        self._probs.setflags(write=False)

    @classmethod
    def fromSamples(cls, samples):
        '''
        Builds the empirical distribution of `samples`.
        '''
        samples = np.asarray(samples, dtype=np.float64).ravel()
        if samples.size == 0:
            raise ValueError('DelayDistribution: no samples provided.')
        values, counts = np.unique(samples, return_counts=True)
        return cls(values, counts)

    @classmethod
    def constant(cls, value):
        '''
        Returns the degenerate distribution at `value`.
        '''
        return cls([value], [1.0])

    @classmethod
    def zero(cls):
        return cls.constant(0.0)

    @staticmethod
    def mixture(dists, weights=None):
        '''
        Returns the mixture of `dists`. Each component is weighted by the
        matching entry of `weights`, equal weights if not given.
        '''
        if not dists:
            raise ValueError('mixture: no distributions provided.')
        if weights is None:
            weights = [1.0] * len(dists)
        weights = np.asarray(weights, dtype=np.float64)
        weights = weights / weights.sum()
        values = np.concatenate([d.values for d in dists])
        probs = np.concatenate([d.probs * w for d, w in zip(dists, weights)])
        return DelayDistribution(values, probs)

    @property
    def values(self):
        return self._values

    @property
    def probs(self):
        return self._probs

    def __len__(self):
        return self._values.size

    def __eq__(self, other):
        if not isinstance(other, DelayDistribution):
            return NotImplemented
        return (np.array_equal(self._values, other._values) and
                np.allclose(self._probs, other._probs, rtol=0, atol=1e-12))

    __hash__ = None

    def __repr__(self):
        return (f'DelayDistribution(n={len(self)}, mean={self.mean():.1f}, '
                f'max={self.max():.1f})')

    def isConstant(self):
        return len(self) == 1

    def mean(self):
        return float(np.dot(self._values, self._probs))

    def min(self):
        return float(self._values[0])

    def max(self):
        return float(self._values[-1])

    def cdf(self, x):
        '''
        Returns P(delay <= x).
        '''
        return float(self._probs[self._values <= x].sum())

    def percentile(self, p):
        '''
        Returns the p-th percentile (p in [0, 100]): the smallest support point
        v such that P(delay <= v) >= p / 100.
        '''
        if p < 0 or p > 100:
            raise ValueError(f'percentile: {p} is not in [0, 100].')
        if p == 100:
            return self.max()
        cdf = np.cumsum(self._probs)
        # Tolerates the rounding error accumulated by cumsum.
        idx = np.searchsorted(cdf, p / 100 - 1e-12, side='left')
        return float(self._values[min(idx, len(self) - 1)])

    def sample(self, rng, size=None):
        '''
        Draws `size` samples (a single float if None) with the numpy
        Generator `rng`.
        '''
        if size is None:
            return float(rng.choice(self._values, p=self._probs))
        return rng.choice(self._values, size=size, p=self._probs)

    def shift(self, offset):
        '''
        Returns the distribution of delay + `offset`.
        '''
        return DelayDistribution(self._values + offset, self._probs)

    def convolve(self, other, max_points=None):
        '''
        Returns the distribution of the sum of 2 independent delays drawn from
        `self` and `other`. Equal sums are merged exactly, then the result is
        compacted to at most `max_points` support points
        (FLAG.MAX_SUPPORT_POINTS by default).
        '''
        max_points = max_points or FLAG.MAX_SUPPORT_POINTS
        # Degenerate operands only shift the support.
        if other.isConstant():
            return self.shift(other.min()).compact(max_points)
        if self.isConstant():
            return other.shift(self.min()).compact(max_points)
        values = np.add.outer(self._values, other._values).ravel()
        probs = np.multiply.outer(self._probs, other._probs).ravel()
        return DelayDistribution(values, probs).compact(max_points)

    def compact(self, max_points):
        '''
        Re-bins the distribution into at most `max_points` support points.

        The body (all but the largest support point) is split into
        `max_points - 1` equal-width buckets, each bucket collapsing to the
        probability-weighted mean of its points. The largest support point is
        kept as is. No bucket is ever dropped, so the total mass, the mean and
        the maximum are preserved.
        '''
        if len(self) <= max_points:
            return self
        if max_points < 2:
            raise ValueError(f'compact: max_points must be >= 2, got '
                             f'{max_points}.')
        body_v, body_p = self._values[:-1], self._probs[:-1]
        nbins = max_points - 1
        edges = np.linspace(self.min(), self.max(), nbins + 1)
        idx = np.clip(np.searchsorted(edges, body_v, side='right') - 1, 0,
                      nbins - 1)
        mass = np.bincount(idx, weights=body_p, minlength=nbins)
        moment = np.bincount(idx, weights=body_p * body_v, minlength=nbins)
        keep = mass > 0
        values = np.append(moment[keep] / mass[keep], self._values[-1])
        probs = np.append(mass[keep], self._probs[-1])
        return DelayDistribution(values, probs)
