import grpc

from aggregation.buckets import samplesFromProto
from common.errors import WorkerError
from schema.messages import pb2_grpc

# Link simulation descriptors of busy links can be large.
CHANNEL_OPTIONS = [
    ('grpc.max_send_message_length', 64 * 1024 * 1024),
    ('grpc.max_receive_message_length', 64 * 1024 * 1024),
]


class WorkerClient:
    '''
    A client of one remote link simulation worker.
    '''
    def __init__(self, address):
        '''
        address: the worker address in host:port format.
        '''
        self.address = address
        self._channel = grpc.insecure_channel(address, options=CHANNEL_OPTIONS)
        self._stub = pb2_grpc.LinkSimWorkerStub(self._channel)

    def simulate(self, job, timeout=None):
        '''
        Sends SimJob proto `job` to the worker and blocks until the result
        arrives or `timeout` seconds elapse.

        Returns the DelaySamples computed by the worker. Raises WorkerError if
        the worker reports a failure, grpc.RpcError if the call itself fails
        (deadline exceeded, worker unreachable).
        '''
        result = self._stub.Simulate(job, timeout=timeout)
        if result.error:
            raise WorkerError(f'worker {self.address} failed job '
                              f'{job.job_id}: {result.error}')
        return samplesFromProto(result.samples)

    def close(self):
        self._channel.close()
