class DoubleBuffer:
    """
    Two equally sized buffer sets with a current/other index.

    A pass reads `current` and writes `other`, then calls swap(). settle()
    copies the newest data back into the primary set when an odd number of
    swaps happened, so the primary set is authoritative between stages.
    """

    def __init__(self, primary, secondary, fields):
        self.buffers = (primary, secondary)
        self.fields = tuple(fields)
        self.index = 0

    @property
    def primary(self):
        return self.buffers[0]

    @property
    def current(self):
        return self.buffers[self.index]

    @property
    def other(self):
        return self.buffers[1 - self.index]

    def swap(self):
        self.index = 1 - self.index

    def settle(self, batch):
        """Record the copy back into the primary set if needed. Returns True if copies were recorded."""
        if self.index == 0:
            return False
        for name in self.fields:
            batch.copy(getattr(self.primary, name), getattr(self.current, name))
        self.index = 0
        return True
