"""Known UBX message types and their fixed payload lengths."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass

# Message classes
CLS_NAV = 0x01
CLS_RXM = 0x02
CLS_INF = 0x04
CLS_ACK = 0x05
CLS_CFG = 0x06
CLS_MON = 0x0A
CLS_AID = 0x0B
CLS_TIM = 0x0D
CLS_ESF = 0x10

CLASS_NAMES: dict[int, str] = {
    CLS_NAV: "NAV",
    CLS_RXM: "RXM",
    CLS_INF: "INF",
    CLS_ACK: "ACK",
    CLS_CFG: "CFG",
    CLS_MON: "MON",
    CLS_AID: "AID",
    CLS_TIM: "TIM",
    CLS_ESF: "ESF",
}


@dataclass(frozen=True)
class MessageType:
    """Name and payload length of a message; length None means variable."""

    name: str
    length: int | None = None


MESSAGE_TYPES: dict[tuple[int, int], MessageType] = {
    (CLS_NAV, 0x01): MessageType("NAV-POSECEF", 20),
    (CLS_NAV, 0x02): MessageType("NAV-POSLLH", 28),
    (CLS_NAV, 0x03): MessageType("NAV-STATUS", 16),
    (CLS_NAV, 0x04): MessageType("NAV-DOP", 18),
    (CLS_NAV, 0x05): MessageType("NAV-ATT", 32),
    (CLS_NAV, 0x06): MessageType("NAV-SOL", 52),
    (CLS_NAV, 0x07): MessageType("NAV-PVT", 92),
    (CLS_NAV, 0x09): MessageType("NAV-ODO", 20),
    (CLS_NAV, 0x11): MessageType("NAV-VELECEF", 20),
    (CLS_NAV, 0x12): MessageType("NAV-VELNED", 36),
    (CLS_NAV, 0x13): MessageType("NAV-HPPOSECEF", 28),
    (CLS_NAV, 0x14): MessageType("NAV-HPPOSLLH", 36),
    (CLS_NAV, 0x20): MessageType("NAV-TIMEGPS", 16),
    (CLS_NAV, 0x21): MessageType("NAV-TIMEUTC", 20),
    (CLS_NAV, 0x22): MessageType("NAV-CLOCK", 20),
    (CLS_NAV, 0x23): MessageType("NAV-TIMEGLO", 20),
    (CLS_NAV, 0x24): MessageType("NAV-TIMEBDS", 20),
    (CLS_NAV, 0x25): MessageType("NAV-TIMEGAL", 20),
    (CLS_NAV, 0x26): MessageType("NAV-TIMELS", 24),
    (CLS_NAV, 0x35): MessageType("NAV-SAT"),
    (CLS_NAV, 0x61): MessageType("NAV-EOE", 4),
    (CLS_ACK, 0x00): MessageType("ACK-NAK", 2),
    (CLS_ACK, 0x01): MessageType("ACK-ACK", 2),
    (CLS_MON, 0x04): MessageType("MON-VER"),
    (CLS_MON, 0x09): MessageType("MON-HW", 60),
    (CLS_TIM, 0x01): MessageType("TIM-TP", 16),
    (CLS_RXM, 0x15): MessageType("RXM-RAWX"),
}


def lookup_expected_length(message_class: int, message_id: int) -> int | None:
    """Return the fixed payload length for a message, or None if unconstrained."""
    message_type = MESSAGE_TYPES.get((message_class, message_id))
    if message_type is None:
        return None
    return message_type.length


def make_length_lookup(
    overrides: Mapping[tuple[int, int], int],
) -> Callable[[int, int], int | None]:
    """Build a length lookup where overrides take precedence over the table."""
    if not overrides:
        return lookup_expected_length
    table = dict(overrides)

    def lookup(message_class: int, message_id: int) -> int | None:
        length = table.get((message_class, message_id))
        if length is not None:
            return length
        return lookup_expected_length(message_class, message_id)

    return lookup


def message_name(message_class: int, message_id: int) -> str:
    """Human readable name, e.g. NAV-PVT, or hex notation for unknown types."""
    message_type = MESSAGE_TYPES.get((message_class, message_id))
    if message_type is not None:
        return message_type.name
    class_name = CLASS_NAMES.get(message_class)
    if class_name is not None:
        return f"{class_name}-0x{message_id:02X}"
    return f"0x{message_class:02X}-0x{message_id:02X}"
