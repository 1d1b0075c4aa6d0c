import json
from concurrent import futures

import grpc

import common.flags as FLAG
from common.common import PRINTV
from decomposition.decompose import descriptorFromProto
from linksim.linksim import getLinkSim
from schema.messages import pb2 as msg
from schema.messages import pb2_grpc


class LinkSimServicer(pb2_grpc.LinkSimWorkerServicer):
    '''
    Runs link simulation jobs. A job is self-contained: it names the backend
    and its parameters, so the same job yields the same result on any worker.
    '''
    def Simulate(self, request, context):
        result = msg.SimResult(job_id=request.job_id,
                               cluster_id=request.cluster_id)
        PRINTV(2, f'[worker] job {request.job_id} attempt {request.attempt}: '
               f'{len(request.descriptor.flows)} flows on link '
               f'{request.descriptor.link_id}.')
        try:
            params = json.loads(request.backend_params or b'{}')
            linksim = getLinkSim(request.backend, params)
            samples = linksim.run(descriptorFromProto(request.descriptor))
        except Exception as e:
            # Failures are reported in the result, the coordinator decides
            # whether to retry.
            PRINTV(0, f'[ERROR] Simulate: job {request.job_id} attempt '
                   f'{request.attempt} failed: {e!r}')
            result.error = f'{type(e).__name__}: {e}'
            return result
        result.samples.CopyFrom(samples.toProto())
        return result

def startServer(address, max_workers=None):
    '''
    Starts a worker serving on `address` (host:port, port 0 picks a free
    port) with `max_workers` concurrent jobs (FLAG.MAX_INFLIGHT by default).

    Returns the started grpc.Server and the bound port.
    '''
    server = grpc.server(futures.ThreadPoolExecutor(
        max_workers=max_workers or FLAG.MAX_INFLIGHT))
    pb2_grpc.add_LinkSimWorkerServicer_to_server(LinkSimServicer(), server)
    port = server.add_insecure_port(address)
    server.start()
    PRINTV(1, f'[worker] serving LinkSimWorker on port {port}.')
    return server, port

if __name__ == "__main__":
    server, _ = startServer(f'[::]:{FLAG.WORKER_PORT}')
    server.wait_for_termination()
