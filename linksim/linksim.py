from common.common import PRINTV

# A map from link simulator name to its class.
LINKSIMS = {}


def registerLinkSim(cls):
    '''
    Class decorator that makes a link simulator constructible by name, which
    is how worker processes re-create the backend named in a job.
    '''
    LINKSIMS[cls.name] = cls
    return cls

class LinkSim:
    '''
    The capability every link simulation backend implements: simulate one
    link in isolation and return the delay of every flow that crosses it.

    A backend must be deterministic (the same descriptor always yields the
    same samples) so that a job can be retried or re-run anywhere.
    '''
    name = None

    def params(self):
        '''
        Returns the constructor keyword arguments of this backend as a
        JSON-serializable dict.
        '''
        return {}

    def run(self, descriptor):
        '''
        descriptor: a LinkSimDescriptor with at least one flow.

        Returns DelaySamples: the size and the delay (nanoseconds) of every
        flow on the link. Raises on failure.
        '''
        raise NotImplementedError

def getLinkSim(name, params=None):
    '''
    Instantiates the link simulator registered as `name` with `params`.
    '''
    # Registers the built-in backends.
    import linksim.fifo  # noqa: F401
    if name not in LINKSIMS:
        PRINTV(0, f'[ERROR] getLinkSim: unknown link simulator {name}, must '
               f'be one of {sorted(LINKSIMS)}.')
        raise ValueError(f'unknown link simulator {name}')
    return LINKSIMS[name](**(params or {}))
