import os

# VERBOSE=0: no informational prints. Errors only.
# VERBOSE=1: stage progress and retry warnings.
# VERBOSE=2: per-job and per-stage debug prints.
VERBOSE = 1

# Number of threads used by the embarrassingly parallel stages (decomposition
# and aggregation).
PARALLELISM = os.cpu_count() or 1

# Max number of simulation jobs in flight. In distributed mode this is the
# limit per remote worker.
MAX_INFLIGHT = 8

# Executor flavor for local link simulations. Must be one of thread/process.
# N.B., 'process' requires the link simulator to be picklable.
LOCAL_EXECUTOR = 'thread'

# Number of retries after the first failed attempt of a job.
MAX_RETRIES = 3

# Exponential backoff between retries of the same job, in seconds.
BACKOFF_BASE_SEC = 0.5
BACKOFF_MAX_SEC = 30.0

# Timeout in seconds for a single attempt of a simulation job.
JOB_TIMEOUT_SEC = 600.0

# Remote worker addresses in host:port format. Empty means in-process dispatch.
WORKERS = []

# Port a worker process listens on.
WORKER_PORT = 50051

# The link clustering algorithm to use. Must be one of default/greedy.
CLUSTERING = 'default'

# Closeness threshold used by greedy clustering, applied to both the WMAPE of
# the feature quantiles and the absolute difference of link loads.
GREEDY_EPSILON = 0.1

# The link simulator to use, looked up in the link simulator registry.
LINKSIM = 'fifo'

# Max number of support points a composed delay distribution keeps. Larger
# distributions are re-binned without dropping any probability mass.
MAX_SUPPORT_POINTS = 1024

# Max packet payload size and per-packet header size, in bytes.
SZ_PKTMAX = 1000
SZ_PKTHDR = 48

# Size of the ACK sent back for every data packet, in bytes.
SZ_ACK = 60

# Link delays are bucketed by flow size. A bucket is closed once it holds at
# least BUCKET_MIN_SAMPLES flows and its largest flow is at least BUCKET_X
# times the lower bound of the bucket.
BUCKET_X = 2
BUCKET_MIN_SAMPLES = 100
