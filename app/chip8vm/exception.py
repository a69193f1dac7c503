from typing import Final, Type


class EmulatorError(BaseException):
    """Base exception for everything raised by the interpreter core."""

    def __init__(self, exception: BaseException):
        self.original: Final[BaseException] = exception
        self.exception: Final[Type[BaseException]] = type(exception)
        self.message: Final[str] = str(exception)
        super().__init__(self.message)


class FatalError(EmulatorError):
    """The machine state can no longer be trusted; stepping must stop."""

    pass


class MemoryBoundsError(FatalError):
    """An address fell outside the 4 KB address space."""

    pass


class StackOverflowError(FatalError):
    pass


class StackUnderflowError(FatalError):
    pass


class UnimplementedOpcodeError(EmulatorError):
    """Valid decode with no defined behaviour (only raised when halting on it)."""

    pass


class ExitException(BaseException):
    """Exception to signal the frontend to exit."""

    pass
