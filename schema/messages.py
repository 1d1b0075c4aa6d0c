'''
Protobuf messages exchanged by the pipeline (network specifications read as
textproto, link simulation jobs and their results) and the gRPC service of
link simulation workers.

Both are declared in proto/parsimon.proto and generated by grpcio-tools when
this module is first imported. The .proto path is resolved against sys.path,
so the repository root (or the install location) must be on it.
'''
import grpc

pb2, pb2_grpc = grpc.protos_and_services('proto/parsimon.proto')
