from enum import IntFlag

class EventKind(IntFlag):
    # Base categories
    UNKNOWN = 0
    ADDREF = 1 << 0
    RELEASE = 1 << 1

    # How the event was recognised
    METHOD = 1 << 4         # Frame ends with ::AddRef / ::Release
    INTERLOCKED = 1 << 5    # Frame is an InterlockedIncrement/Decrement helper

    ADDREF_METHOD = ADDREF | METHOD              # 17
    ADDREF_INTERLOCKED = ADDREF | INTERLOCKED    # 33
    RELEASE_METHOD = RELEASE | METHOD            # 18
    RELEASE_INTERLOCKED = RELEASE | INTERLOCKED  # 34

ADDREF_SUFFIX = "::AddRef"
RELEASE_SUFFIX = "::Release"
INTERLOCKED_INCREMENT = "InterlockedIncrement"
INTERLOCKED_DECREMENT = "InterlockedDecrement"

# Substrings used when classifying call tree roots
ADDREF_MARKER = "AddRef"
RELEASE_MARKER = "Release"
INDIRECTION_MARKER = "Interlocked"

def is_kind(value, kind):
    return (value & kind) == kind

def classify_frame(frame: str) -> EventKind:
    """Classify the first real frame of a tracepoint hit."""
    if frame.endswith(ADDREF_SUFFIX):
        return EventKind.ADDREF_METHOD
    if INTERLOCKED_INCREMENT in frame:
        return EventKind.ADDREF_INTERLOCKED
    if frame.endswith(RELEASE_SUFFIX):
        return EventKind.RELEASE_METHOD
    if INTERLOCKED_DECREMENT in frame:
        return EventKind.RELEASE_INTERLOCKED
    return EventKind.UNKNOWN

def is_addref(kind):
    return is_kind(kind, EventKind.ADDREF)

def is_release(kind):
    return is_kind(kind, EventKind.RELEASE)

def refcount_step(kind) -> int:
    """+1 for an AddRef event, -1 for a Release event, 0 otherwise."""
    if is_addref(kind):
        return 1
    if is_release(kind):
        return -1
    return 0
