class ParsimonError(Exception):
    '''
    Base class of all pipeline failures. `stage` names the pipeline stage that
    reported the failure.
    '''
    stage = None


class InvalidTopology(ParsimonError):
    '''
    The network is malformed. Detected at decomposition, never retried.
    entity: identifier of the offending node, link or flow.
    '''
    stage = 'decompose'

    def __init__(self, msg, entity=None):
        super().__init__(msg)
        self.entity = entity


class ClusteringContractViolation(ParsimonError):
    '''
    A clustering backend returned something that is not a partition of the
    link descriptors.
    '''
    stage = 'cluster'

    def __init__(self, msg, link_id=None, cluster_id=None):
        super().__init__(msg)
        self.link_id = link_id
        self.cluster_id = cluster_id


class SimulationFailed(ParsimonError):
    '''
    The simulation job of a cluster exhausted its retries.
    cause: the exception raised by the last attempt.
    '''
    stage = 'simulate'

    def __init__(self, cluster_id, cause):
        super().__init__(f'simulation of cluster {cluster_id} failed: '
                         f'{cause!r}')
        self.cluster_id = cluster_id
        self.cause = cause


class IncompleteSimulation(ParsimonError):
    '''
    Attempted to build a simulated network in which some clusters have no
    delay samples.
    missing: sorted list of cluster ids without samples.
    '''
    stage = 'simulate'

    def __init__(self, missing):
        super().__init__(f'{len(missing)} clusters have no delay samples:'
                         f' {missing[:10]}')
        self.missing = missing


class Cancelled(ParsimonError):
    '''
    The run was cancelled by the operator while dispatching jobs.
    '''
    stage = 'simulate'

    def __init__(self, completed=0, total=0):
        super().__init__(f'run cancelled with {completed}/{total} clusters '
                         f'simulated')
        self.completed = completed
        self.total = total


class WorkerError(ParsimonError):
    '''
    A worker explicitly reported that it could not run a job.
    '''
    stage = 'simulate'
