"""Exception hierarchy for NIBBLE-CPU.

All faults raised by the machine derive from MachineError so a host can
catch them in one place. Faults are raised where they are detected and are
never swallowed by the execution loop.
"""


class MachineError(Exception):
    """Base class for every machine fault."""


class OutOfRange(MachineError, IndexError):
    """A register index or memory address supplied by the host is out of bounds."""


class StackOverflow(MachineError):
    """CALL executed with every call stack slot already in use."""


class StackUnderflow(MachineError):
    """RET executed with an empty call stack."""


class CycleLimitExceeded(MachineError, RuntimeError):
    """The optional step limit was reached before the program stopped."""
