"""Splitting work into contiguous ranges and running them on a thread pool.

numpy releases the GIL inside its array kernels, so plain threads give
real parallelism for the band/chunk sized work done here. Every range is
independent; callers only need to wait for all of them (the barrier
between phases of an iteration).
"""


def bands(size, parts):
    """Split range(size) into at most `parts` contiguous (start, stop) ranges."""
    parts = max(1, min(int(parts), size))
    step, extra = divmod(size, parts)
    ranges = []
    start = 0
    for i in range(parts):
        stop = start + step + (1 if i < extra else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


def run_bands(executor, fn, ranges):
    """Call fn(start, stop) for every range, on the executor if there is one."""
    if executor is None or len(ranges) < 2:
        for start, stop in ranges:
            fn(start, stop)
        return
    # list() waits for every range and re-raises the first worker exception
    list(executor.map(lambda r: fn(r[0], r[1]), ranges))
