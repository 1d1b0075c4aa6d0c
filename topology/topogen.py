from schema.messages import pb2 as msg

# Default link speed (10 Gbps) and propagation delay (1 us).
LINK_BPS = 10 * 1000 * 1000 * 1000
LINK_DELAY_NS = 1000


def addNode(net, name, role):
    node = net.nodes.add()
    node.id = name
    node.role = role

def addCable(net, a, b, capacity=LINK_BPS, delay=LINK_DELAY_NS):
    '''
    Adds a bidirectional cable between `a` and `b` to the NetworkSpec proto
    `net`, as 2 unidi links named `a:b` and `b:a`.
    '''
    for src, dst in [(a, b), (b, a)]:
        link = net.links.add()
        link.id = f'{src}:{dst}'
        link.src = src
        link.dst = dst
        link.capacity_bps = capacity
        link.delay_ns = delay

def generateThreeNode():
    '''
    Generates 2 hosts (h0, h1) connected by a switch (s0).

    Returns a populated protobuf-format network without flows.
    '''
    net = msg.NetworkSpec(name='three')
    addNode(net, 'h0', msg.HOST)
    addNode(net, 'h1', msg.HOST)
    addNode(net, 's0', msg.SWITCH)
    addCable(net, 'h0', 's0')
    addCable(net, 'h1', 's0')
    return net

def generateEightNode():
    '''
    Generates 4 hosts (h0-h3), 2 ToR switches (t0, t1) and 2 agg switches
    (a0, a1) organized in a Clos topology. Each ToR connects 2 hosts and both
    aggs.

    Returns a populated protobuf-format network without flows.
    '''
    net = msg.NetworkSpec(name='eight')
    for i in range(4):
        addNode(net, f'h{i}', msg.HOST)
    for name in ['t0', 't1', 'a0', 'a1']:
        addNode(net, name, msg.SWITCH)
    addCable(net, 'h0', 't0')
    addCable(net, 'h1', 't0')
    addCable(net, 'h2', 't1')
    addCable(net, 'h3', 't1')
    # Each ToR is connected to both aggs.
    for tor in ['t0', 't1']:
        for agg in ['a0', 'a1']:
            addCable(net, tor, agg)
    return net

def generateFatTree(k):
    '''
    Generates a k-ary fat-tree: k pods of k/2 edge and k/2 aggregation
    switches, (k/2)^2 core switches and k/2 hosts per edge switch, k^3/4 hosts
    in total. Names follow `p{pod}-e{i}`, `p{pod}-a{i}`, `c{i}` and
    `p{pod}-e{i}-h{j}`.

    Returns a populated protobuf-format network without flows.
    '''
    if k < 2 or k % 2:
        print(f'[ERROR] generateFatTree: k must be a positive even number, '
              f'got {k}.')
        return None
    half = k // 2
    net = msg.NetworkSpec(name=f'fattree{k}')
    for c in range(half * half):
        addNode(net, f'c{c}', msg.SWITCH)
    for pod in range(k):
        for i in range(half):
            addNode(net, f'p{pod}-e{i}', msg.SWITCH)
            addNode(net, f'p{pod}-a{i}', msg.SWITCH)
        for i in range(half):
            for j in range(half):
                host = f'p{pod}-e{i}-h{j}'
                addNode(net, host, msg.HOST)
                addCable(net, host, f'p{pod}-e{i}')
            # Full bipartite edge-agg connectivity inside a pod.
            for j in range(half):
                addCable(net, f'p{pod}-e{i}', f'p{pod}-a{j}')
        # Agg switch i connects to core switches [i * half, (i + 1) * half).
        for i in range(half):
            for c in range(i * half, (i + 1) * half):
                addCable(net, f'p{pod}-a{i}', f'c{c}')
    return net
