import threading
import time
from collections import deque
from dataclasses import replace
from datetime import datetime

import common.flags as FLAG
from aggregation.buckets import DelaySamples, SizeBuckets
from clustering.cluster import ClusteredNetwork
from common.common import PRINTV
from common.errors import Cancelled, IncompleteSimulation, SimulationFailed
from dispatch.transport import Job, LocalTransport, RemoteTransport


class CancelToken:
    '''
    Lets an operator cancel a pipeline run from any thread.
    '''
    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks = []

    def cancel(self):
        with self._lock:
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            fn()

    def isCancelled(self):
        return self._event.is_set()

    def wait(self, timeout):
        '''
        Sleeps up to `timeout` seconds, waking up early on cancellation.
        Returns True if cancelled.
        '''
        return self._event.wait(timeout)

    def onCancel(self, fn):
        '''
        Registers `fn` to be called once on cancellation. Called right away if
        the token is already cancelled.
        '''
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(fn)
                return
        fn()

    def removeCallback(self, fn):
        '''
        Unregisters `fn` if it has not been called yet.
        '''
        with self._lock:
            if fn in self._callbacks:
                self._callbacks.remove(fn)

def backoff(attempt):
    '''
    Returns the delay in seconds before retrying a job whose attempt number
    `attempt` failed.
    '''
    return min(FLAG.BACKOFF_MAX_SEC, FLAG.BACKOFF_BASE_SEC * 2**(attempt - 1))

class Coordinator:
    '''
    Pull-based job coordinator. Every transport is served by a number of
    puller threads; an idle puller takes the next ready job from the pending
    queue, runs it on its transport and reports back. Fast transports thus
    naturally take more jobs than slow ones.

    A failed attempt (error or timeout) is put back in the pending queue after
    an exponential backoff, for any puller to pick up. A job failing more than
    `max_retries` times fails the whole run.

    The pending queue, the running set and the completed map are only
    touched with `self._cond` held.
    '''
    def __init__(self, transports, cancel=None, max_retries=None,
                 timeout=None):
        '''
        transports: a list of (Transport, number of pullers) tuples.
        cancel: an optional CancelToken.
        max_retries: retries after the first attempt, FLAG.MAX_RETRIES if
                     None.
        timeout: per-attempt timeout in seconds, FLAG.JOB_TIMEOUT_SEC if None.
        '''
        self._transports = transports
        self._cancel = cancel or CancelToken()
        self._max_retries = (FLAG.MAX_RETRIES if max_retries is None
                             else max_retries)
        self._timeout = FLAG.JOB_TIMEOUT_SEC if timeout is None else timeout
        self._cond = threading.Condition()
        self._pending = deque()
        # A map from cluster id to the job in flight.
        self._running = {}
        # A map from cluster id to its resulting DelaySamples.
        self._completed = {}
        self._failure = None
        self._total = 0

    def progress(self):
        '''
        Returns a (completed, running, pending) tuple of job counts.
        '''
        with self._cond:
            return (len(self._completed), len(self._running),
                    len(self._pending))

    def run(self, jobs):
        '''
        Runs all `jobs` to completion.

        Returns a map from cluster id to DelaySamples. Raises
        SimulationFailed if a job exhausts its retries, Cancelled if the
        cancel token fires first.
        '''
        with self._cond:
            self._pending = deque(jobs)
            self._running = {}
            self._completed = {}
            self._failure = None
            self._total = len(self._pending)
        self._cancel.onCancel(self._wakeAll)
        try:
            return self._runPullers()
        finally:
            self._cancel.removeCallback(self._wakeAll)

    def _runPullers(self):
        pullers = []
        if self._total and not self._cancel.isCancelled():
            for transport, num in self._transports:
                for i in range(max(num, 1)):
                    pullers.append(threading.Thread(
                        target=self._pull, args=(transport,), daemon=True,
                        name=f'puller-{transport.endpoint}-{i}'))
            for t in pullers:
                t.start()
        with self._cond:
            while not self._finished():
                self._cond.wait()
            completed = dict(self._completed)
            failure = self._failure
        if self._cancel.isCancelled():
            # In-flight jobs are abandoned, their pullers exit on their own.
            PRINTV(1, f'[WARN] Coordinator: cancelled with {len(completed)}/'
                   f'{self._total} jobs completed.')
            raise Cancelled(len(completed), self._total)
        if failure is not None:
            raise failure
        for t in pullers:
            t.join()
        return completed

    def _wakeAll(self):
        with self._cond:
            self._cond.notify_all()

    def _stopped(self):
        return self._cancel.isCancelled() or self._failure is not None

    def _finished(self):
        return self._stopped() or len(self._completed) == self._total

    def _nextReady(self):
        '''
        Pops the first pending job that is ready to run. Returns (job, None),
        or (None, seconds until the earliest job gets ready). The wait is None
        when nothing is pending.
        '''
        now = time.monotonic()
        earliest = None
        for job in self._pending:
            if job.ready_at <= now:
                self._pending.remove(job)
                return job, None
            if earliest is None or job.ready_at < earliest:
                earliest = job.ready_at
        return None, None if earliest is None else earliest - now

    def _pull(self, transport):
        while True:
            with self._cond:
                job = None
                while job is None:
                    if self._stopped():
                        return
                    if not self._pending and not self._running:
                        return
                    job, wait = self._nextReady()
                    if job is None:
                        self._cond.wait(wait)
                self._running[job.cluster_id] = job
            PRINTV(2, f'[simulate] {transport.endpoint}: job {job.job_id} '
                   f'attempt {job.attempt}.')
            try:
                dist = transport.run(job, self._timeout)
            except Exception as e:
                self._onFailure(transport, job, e)
            else:
                self._onSuccess(job, dist)

    def _onSuccess(self, job, dist):
        with self._cond:
            self._running.pop(job.cluster_id, None)
            # Results arriving after cancellation or failure are dropped.
            if not self._stopped():
                self._completed[job.cluster_id] = dist
            self._cond.notify_all()

    def _onFailure(self, transport, job, e):
        with self._cond:
            self._running.pop(job.cluster_id, None)
            self._cond.notify_all()
            if self._stopped():
                return
            if job.attempt > self._max_retries:
                PRINTV(0, f'[ERROR] Coordinator: cluster {job.cluster_id} '
                       f'failed after {job.attempt} attempts: {e!r}')
                self._failure = SimulationFailed(job.cluster_id, e)
            else:
                delay = backoff(job.attempt)
                PRINTV(1, f'[WARN] Coordinator: job {job.job_id} attempt '
                       f'{job.attempt} on {transport.endpoint} failed: {e!r}.'
                       f' Retrying in {delay} sec.')
                self._pending.append(replace(
                    job, attempt=job.attempt + 1,
                    ready_at=time.monotonic() + delay))

class SimulatedNetwork:
    '''
    A clustered network in which every cluster has the delay samples of its
    representative, bucketed by flow size. Constructing one with a cluster
    lacking samples is impossible.
    '''
    def __init__(self, clustered, samples):
        '''
        clustered: a ClusteredNetwork.
        samples: a map from cluster id to DelaySamples.
        '''
        missing = sorted(c.id for c in clustered.clusters()
                         if samples.get(c.id) is None)
        if missing:
            PRINTV(0, f'[ERROR] SimulatedNetwork: {len(missing)} clusters '
                   f'have no delay samples.')
            raise IncompleteSimulation(missing)
        self.clustered = clustered
        self.network = clustered.network
        self._samples = {c.id: samples[c.id] for c in clustered.clusters()}
        self._buckets = {cid: SizeBuckets.fromSamples(s)
                         for cid, s in self._samples.items()}

    def clusterSamples(self, cluster_id):
        return self._samples[cluster_id]

    def linkBuckets(self, link_id):
        '''
        Returns the SizeBuckets a link inherits from its cluster.
        '''
        return self._buckets[self.clustered.clusterOf(link_id)]

    def linkDistribution(self, link_id, size=None):
        '''
        Returns the delay distribution of flows of `size` bytes on a link, of
        all flows if `size` is None.
        '''
        buckets = self.linkBuckets(link_id)
        return buckets.overall if size is None else buckets.forSize(size)

def simulate(clustered, linksim, workers=None, cancel=None):
    '''
    Simulates the representative of every cluster of `clustered` with
    `linksim`. Clusters whose representative carries no flow get no samples
    (the zero delay) without running a job.

    workers: remote worker addresses, FLAG.WORKERS if None. Jobs run in this
             process when empty.
    cancel: an optional CancelToken.

    Returns a SimulatedNetwork.
    '''
    if not isinstance(clustered, ClusteredNetwork):
        raise TypeError(f'simulate: expects a ClusteredNetwork, got '
                        f'{type(clustered).__name__}.')
    workers = FLAG.WORKERS if workers is None else workers
    t = time.time()
    samples = {}
    jobs = []
    for c in clustered.clusters():
        desc = clustered.representativeOf(c.id)
        if desc.isIdle():
            samples[c.id] = DelaySamples.empty()
            continue
        jobs.append(Job(f'job-{c.id}', c.id, desc))
    if workers:
        transports = [(RemoteTransport(addr, linksim), FLAG.MAX_INFLIGHT)
                      for addr in workers]
    else:
        transports = [(LocalTransport(linksim), FLAG.MAX_INFLIGHT)]
    coordinator = Coordinator(transports, cancel)
    try:
        samples.update(coordinator.run(jobs))
    finally:
        for transport, _ in transports:
            transport.close()
    PRINTV(1, f'{datetime.now()} [simulate] {len(jobs)} jobs on '
           f'{len(transports)} endpoints ({len(samples) - len(jobs)} '
           f'idle clusters skipped) in {time.time() - t:.3f} sec.')
    return SimulatedNetwork(clustered, samples)
