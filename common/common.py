from concurrent.futures import ThreadPoolExecutor
from itertools import islice

import common.flags as FLAG


def PRINTV(verbose, logstr):
    '''
    Print helper with verbosity control.
    '''
    if FLAG.VERBOSE >= verbose:
        print(logstr, flush=True)

def chunk(container, size):
    '''
    Chunks `container` to multiple pieces, each of size `size`.
    Returns a generator of lists, preserving the order of `container`.
    '''
    it = iter(container)
    for _ in range(0, len(container), size):
        yield list(islice(it, size))

def parMap(fn, items, parallelism=None):
    '''
    Applies `fn` to every element of `items` on a thread pool and returns the
    results in input order. Work is submitted in chunks so that each task
    amortizes the executor overhead.

    fn: a function of one element. Must not mutate shared state.
    items: a list of inputs.
    parallelism: number of threads, defaults to FLAG.PARALLELISM.
    '''
    items = list(items)
    if not items:
        return []
    parallelism = parallelism or FLAG.PARALLELISM
    if parallelism <= 1 or len(items) == 1:
        return [fn(item) for item in items]
    size = max(len(items) // parallelism, 1)
    with ThreadPoolExecutor(max_workers=parallelism) as exe:
        results = exe.map(lambda piece: [fn(item) for item in piece],
                          chunk(items, size))
        return [r for piece in results for r in piece]
