import json
from concurrent import futures
from dataclasses import dataclass
from typing import Any

import common.flags as FLAG
from schema.messages import pb2 as msg
from common.common import PRINTV
from worker.client import WorkerClient


@dataclass(frozen=True)
class Job:
    '''
    One simulation of a cluster representative.
    job_id: stable job identifier, identical across attempts.
    cluster_id: the cluster whose distribution this job computes.
    descriptor: LinkSimDescriptor of the cluster representative.
    attempt: 1 for the first attempt, incremented on every retry.
    ready_at: monotonic time before which the job must not be dispatched.
    '''
    job_id: str
    cluster_id: str
    descriptor: Any
    attempt: int = 1
    ready_at: float = 0.0

    def toProto(self, linksim):
        return msg.SimJob(job_id=self.job_id, cluster_id=self.cluster_id,
                          attempt=self.attempt, backend=linksim.name,
                          backend_params=json.dumps(
                              linksim.params(), sort_keys=True).encode(),
                          descriptor=self.descriptor.toProto())

class Transport:
    '''
    Carries a job to wherever the link simulator runs and brings back its
    result. The coordinator owns queuing, retries and cancellation; a
    transport only runs one attempt at a time per caller.
    '''
    # Human readable endpoint name used in logs.
    endpoint = None

    def run(self, job, timeout):
        '''
        Runs one attempt of `job`, giving up after `timeout` seconds.

        Returns DelaySamples. Raises TimeoutError on timeout, or the
        failure reported by the simulator.
        '''
        raise NotImplementedError

    def close(self):
        pass

class LocalTransport(Transport):
    '''
    Runs the link simulator in this process, on a thread pool or a process
    pool (FLAG.LOCAL_EXECUTOR).
    '''
    endpoint = 'local'

    def __init__(self, linksim, max_workers=None, executor=None):
        self.linksim = linksim
        max_workers = max_workers or FLAG.MAX_INFLIGHT
        executor = executor or FLAG.LOCAL_EXECUTOR
        if executor == 'thread':
            self._exe = futures.ThreadPoolExecutor(max_workers=max_workers)
        elif executor == 'process':
            self._exe = futures.ProcessPoolExecutor(max_workers=max_workers)
        else:
            PRINTV(0, f'[ERROR] LocalTransport: unknown executor {executor}, '
                   f'must be one of thread/process.')
            raise ValueError(f'unknown executor {executor}')

    def run(self, job, timeout):
        future = self._exe.submit(self.linksim.run, job.descriptor)
        try:
            return future.result(timeout=timeout)
        except futures.TimeoutError:
            # An attempt already running cannot be interrupted, its result
            # is simply dropped.
            future.cancel()
            raise TimeoutError(f'job {job.job_id} attempt {job.attempt} '
                               f'timed out after {timeout} sec') from None

    def close(self):
        self._exe.shutdown(wait=False, cancel_futures=True)

class RemoteTransport(Transport):
    '''
    Sends jobs to a remote worker over gRPC. The timeout becomes the call
    deadline.
    '''
    def __init__(self, address, linksim):
        self.endpoint = address
        self.linksim = linksim
        self._client = WorkerClient(address)

    def run(self, job, timeout):
        return self._client.simulate(job.toProto(self.linksim),
                                     timeout=timeout)

    def close(self):
        self._client.close()
