from dataclasses import dataclass, field, replace
from typing import Tuple

from schema.messages import pb2 as msg


@dataclass(frozen=True)
class Flow:
    '''
    A flow is a traffic unit sent from a source host to a destination host
    along a path of links.
    '''
    # Unique flow identifier.
    id: str
    # Source host id.
    src: str
    # Destination host id.
    dst: str
    # Flow size in bytes.
    size: int
    # Start time in nanoseconds.
    start: int
    # Ordered link ids from src to dst. Empty means not routed yet.
    path: Tuple[str, ...] = field(default=())

    def withPath(self, path):
        '''
        Returns a copy of this flow routed along `path`.
        '''
        return replace(self, path=tuple(path))

    def toProto(self):
        return msg.Flow(id=self.id, src=self.src, dst=self.dst,
                        path=list(self.path), size_bytes=self.size,
                        start_ns=self.start)

def flowFromProto(flow_proto):
    return Flow(flow_proto.id, flow_proto.src, flow_proto.dst,
                flow_proto.size_bytes, flow_proto.start_ns,
                tuple(flow_proto.path))

def sortByStart(flows):
    '''
    Returns the flows sorted by start time. Ties are broken by flow id so the
    order is stable regardless of the input order.
    '''
    return sorted(flows, key=lambda f: (f.start, f.id))
